"""Runtime activation of a template's computed occurrences."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Literal

from .config import settings
from .errors import ReminderStateError
from .events import record_event
from .schedule_service import ReminderScheduleService
from .schemas import ImportanceLevel, NotificationPayload, RecurrenceRule, ReminderSchedule
from .templates import ReminderTemplate
from .utils import logger, parse_timestamp

InstanceStatus = Literal["pending", "triggered", "completed", "cancelled"]
KeyStrategy = Literal["instance", "occurrence"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "cancelled"})

_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"triggered", "cancelled"}),
    "triggered": frozenset({"triggered", "completed", "cancelled"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
}


def date_to_cron(moment: datetime) -> str:
    """Return a cron expression pinned to the minute, hour, day and month of ``moment``.

    The expression has no year field, so it matches the same instant every year.
    """
    return f"{moment.minute} {moment.hour} {moment.day} {moment.month} *"


@dataclass
class ReminderInstance:
    """Registers one job per computed occurrence of a template.

    With ``key_strategy="instance"`` every occurrence is registered under the
    instance uuid, so each registration replaces the previous one and only the
    last occurrence stays live. ``"occurrence"`` keys jobs as
    ``"{uuid}:{index}"`` so all occurrences coexist.
    """

    uuid: str
    title: str
    body: str
    schedules: list[ReminderSchedule]
    template_uuid: str | None = None
    importance: ImportanceLevel = "moderate"
    key_strategy: KeyStrategy = "instance"
    status: InstanceStatus = "pending"
    triggered_at: datetime | None = None
    registered_keys: list[str] = field(default_factory=list)
    _lock: Lock = field(default_factory=Lock, init=False, repr=False, compare=False)

    @classmethod
    def from_template(
        cls,
        template: ReminderTemplate,
        base_time: str | datetime,
        *,
        uuid: str | None = None,
        key_strategy: KeyStrategy = "instance",
        rng: random.Random | None = None,
    ) -> ReminderInstance:
        return cls(
            uuid=uuid or template.uuid,
            template_uuid=template.uuid,
            title=template.name,
            body=template.description or settings.default_body,
            importance=template.importance_level,
            schedules=template.calculate_reminder_schedules(base_time, rng=rng),
            key_strategy=key_strategy,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def _key(self, index: int) -> str:
        if self.key_strategy == "occurrence":
            return f"{self.uuid}:{index}"
        return self.uuid

    def _transition(self, target: InstanceStatus) -> None:
        with self._lock:
            if target not in _TRANSITIONS[self.status]:
                raise ReminderStateError(
                    f"Cannot move reminder instance {self.uuid} "
                    f"from {self.status} to {target}."
                )
            self.status = target

    def activate(self, service: ReminderScheduleService) -> int:
        """Register every occurrence; returns the number of successful registrations."""
        if self.is_terminal:
            logger.warning(
                "Refusing to activate a finished reminder instance.",
                uuid=self.uuid,
                status=self.status,
            )
            return 0

        registered = 0
        for index, schedule in enumerate(self.schedules):
            with self._lock:
                if self.is_terminal:
                    break
            key = self._key(index)
            payload = NotificationPayload(
                uuid=key,
                title=self.title,
                body=self.body,
                importance=self.importance,
            )
            if isinstance(schedule.time, RecurrenceRule):
                ok = service.create_by_rule(
                    schedule.time, payload, on_fire=self.mark_triggered
                )
            else:
                moment = parse_timestamp(schedule.time).astimezone(settings.tzinfo)
                cron_expr = date_to_cron(moment)
                ok = service.create_by_cron(
                    cron_expr, payload, on_fire=self.mark_triggered
                )
            if not ok:
                continue
            with self._lock:
                finished = self.is_terminal
                if not finished and key not in self.registered_keys:
                    self.registered_keys.append(key)
            if finished:
                # Finished while this job was being registered; _release never saw it.
                service.cancel(key)
                break
            registered += 1

        logger.bind(
            uuid=self.uuid,
            occurrences=len(self.schedules),
            registered=registered,
            key_strategy=self.key_strategy,
        ).info("Reminder instance activated")
        return registered

    def mark_triggered(self) -> None:
        """Record that a job fired; ignored once the instance is finished."""
        with self._lock:
            if self.is_terminal:
                logger.debug(
                    "Ignoring fire for finished reminder instance.", uuid=self.uuid
                )
                return
            self.status = "triggered"
            self.triggered_at = datetime.now().astimezone()

    def _release(self, service: ReminderScheduleService) -> None:
        with self._lock:
            keys = list(self.registered_keys)
            self.registered_keys.clear()
        for key in keys:
            service.cancel(key)

    def complete(self, service: ReminderScheduleService) -> None:
        self._transition("completed")
        self._release(service)
        record_event(
            action="reminder_instance_completed",
            subject_type="reminder_instance",
            subject_id=self.uuid,
        )

    def cancel(self, service: ReminderScheduleService) -> None:
        if self.status == "cancelled":
            return
        self._transition("cancelled")
        self._release(service)
        record_event(
            action="reminder_instance_cancelled",
            subject_type="reminder_instance",
            subject_id=self.uuid,
        )


__all__ = [
    "ReminderInstance",
    "date_to_cron",
    "TERMINAL_STATUSES",
]
