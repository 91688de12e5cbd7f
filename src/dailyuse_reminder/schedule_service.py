"""Process-wide registry of live reminder jobs."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from functools import lru_cache
from threading import Lock

from .config import settings
from .events import record_event
from .notifier import LoggingNotifier, Notifier
from .scheduler import APSchedulerAdapter, JobHandle, Scheduler
from .schemas import NotificationPayload, RecurrenceRule, ScheduleInfo
from .utils import logger

FireHook = Callable[[], None]


class ReminderScheduleService:
    """Maps an occurrence id to exactly one live job in the scheduler.

    Creating a job under a key that is already registered cancels the old job
    first. If the new registration then fails the key is left empty: the
    previous job is not restored.
    """

    def __init__(self, scheduler: Scheduler, notifier: Notifier) -> None:
        self._scheduler = scheduler
        self._notifier = notifier
        self._jobs: dict[str, JobHandle] = {}
        # Callbacks may run on the scheduler's thread pool.
        self._lock = Lock()

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    def _fire(self, payload: NotificationPayload, on_fire: FireHook | None) -> None:
        try:
            self._notifier.show_notification(payload)
            record_event(
                action="reminder_fired",
                subject_type="reminder",
                subject_id=payload.uuid,
                metadata={"title": payload.title, "importance": payload.importance},
            )
            if on_fire is not None:
                on_fire()
        except Exception as exc:
            logger.exception("Reminder fire action failed.", uuid=payload.uuid, error=str(exc))

    def _register(
        self,
        payload: NotificationPayload,
        kind: str,
        schedule: Callable[[FireHook], JobHandle],
        on_fire: FireHook | None,
    ) -> bool:
        with self._lock:
            previous = self._jobs.pop(payload.uuid, None)
            if previous is not None:
                previous.cancel()
                logger.debug("Replaced existing reminder job.", uuid=payload.uuid)
            try:
                handle = schedule(lambda: self._fire(payload, on_fire))
            except Exception as exc:
                logger.exception(
                    "Failed to register reminder job.",
                    uuid=payload.uuid,
                    kind=kind,
                    error=str(exc),
                )
                record_event(
                    action="reminder_registration_failed",
                    subject_type="reminder",
                    subject_id=payload.uuid,
                    reason=str(exc),
                    metadata={"kind": kind},
                )
                return False
            self._jobs[payload.uuid] = handle
        logger.bind(uuid=payload.uuid, kind=kind).info("Reminder job registered")
        return True

    def create_by_date(
        self,
        when: datetime,
        payload: NotificationPayload,
        *,
        on_fire: FireHook | None = None,
    ) -> bool:
        return self._register(
            payload,
            "date",
            lambda fn: self._scheduler.schedule_at(when, fn),
            on_fire,
        )

    def create_by_cron(
        self,
        cron_expr: str,
        payload: NotificationPayload,
        *,
        on_fire: FireHook | None = None,
    ) -> bool:
        return self._register(
            payload,
            "cron",
            lambda fn: self._scheduler.schedule_by_cron(cron_expr, fn),
            on_fire,
        )

    def create_by_rule(
        self,
        rule: RecurrenceRule,
        payload: NotificationPayload,
        *,
        on_fire: FireHook | None = None,
    ) -> bool:
        return self._register(
            payload,
            "rule",
            lambda fn: self._scheduler.schedule_by_rule(rule, fn),
            on_fire,
        )

    def cancel(self, uuid: str) -> None:
        with self._lock:
            handle = self._jobs.pop(uuid, None)
            if handle is None:
                return
            handle.cancel()
        logger.bind(uuid=uuid).info("Reminder job cancelled")

    def cancel_all(self) -> None:
        with self._lock:
            handles = list(self._jobs.values())
            self._jobs.clear()
            for handle in handles:
                handle.cancel()
        logger.info("Cancelled {} reminder job(s)", len(handles))

    def get_schedule_ids(self) -> list[str]:
        with self._lock:
            return list(self._jobs)

    def get_schedule_info(self, uuid: str) -> ScheduleInfo:
        with self._lock:
            handle = self._jobs.get(uuid)
        if handle is None:
            return ScheduleInfo(exists=False, next_invocation=None)
        return ScheduleInfo(exists=True, next_invocation=handle.next_invocation())


@lru_cache
def get_reminder_schedule_service() -> ReminderScheduleService:
    """Return the lazily constructed process-wide schedule service."""
    adapter = APSchedulerAdapter(
        timezone=settings.timezone,
        misfire_grace_seconds=settings.misfire_grace_seconds,
    )
    adapter.start()
    return ReminderScheduleService(adapter, LoggingNotifier())


__all__ = ["ReminderScheduleService", "get_reminder_schedule_service"]
