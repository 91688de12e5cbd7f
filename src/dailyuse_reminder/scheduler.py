"""Scheduler collaborator contract and the APScheduler-backed adapter."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import suppress
from datetime import datetime
from typing import Any, Protocol
from zoneinfo import ZoneInfo

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from .schemas import RecurrenceRule
from .utils import logger

# Cron numbering (0 = Sunday) to APScheduler day names.
_CRON_DAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


class JobHandle(Protocol):
    """Opaque handle for one registered timer or cron entry."""

    def cancel(self) -> None:
        ...

    def next_invocation(self) -> datetime | None:
        ...


class Scheduler(Protocol):
    """Port for the process-level date/cron scheduler."""

    def schedule_at(self, when: datetime, fn: Callable[[], None]) -> JobHandle:
        ...

    def schedule_by_cron(self, cron_expr: str, fn: Callable[[], None]) -> JobHandle:
        ...

    def schedule_by_rule(
        self, rule: RecurrenceRule, fn: Callable[[], None]
    ) -> JobHandle:
        ...


def _rule_field(value: int | list[int] | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, list):
        if not value:
            raise ValueError("Recurrence rule fields must not be empty lists.")
        return ",".join(str(item) for item in value)
    return str(value)


def _rule_day_of_week(value: int | list[int] | None) -> str | None:
    if value is None:
        return None
    days = value if isinstance(value, list) else [value]
    if not days:
        raise ValueError("Recurrence rule fields must not be empty lists.")
    names: list[str] = []
    for day in days:
        if not 0 <= day <= 7:
            raise ValueError(f"Invalid day of week in recurrence rule: {day}")
        # Cron accepts both 0 and 7 for Sunday.
        names.append(_CRON_DAY_NAMES[day % 7])
    return ",".join(names)


def rule_to_trigger(
    rule: RecurrenceRule, *, default_timezone: str | None = None
) -> CronTrigger:
    """Translate a recurrence rule into an APScheduler cron trigger."""
    fields: dict[str, Any] = {
        "second": _rule_field(rule.second),
        "minute": _rule_field(rule.minute),
        "hour": _rule_field(rule.hour),
        "day": _rule_field(rule.date),
        "day_of_week": _rule_day_of_week(rule.day_of_week),
        "month": _rule_field(rule.month),
        "year": _rule_field(rule.year),
    }
    timezone = rule.tz or default_timezone
    return CronTrigger(
        **{key: value for key, value in fields.items() if value is not None},
        timezone=ZoneInfo(timezone) if timezone else None,
    )


class APSchedulerJobHandle:
    """Job handle over an APScheduler job id."""

    def __init__(self, scheduler: BackgroundScheduler, job_id: str) -> None:
        self._scheduler = scheduler
        self.job_id = job_id

    def cancel(self) -> None:
        # One-shot jobs are dropped by APScheduler once they have run.
        with suppress(JobLookupError):
            self._scheduler.remove_job(self.job_id)

    def next_invocation(self) -> datetime | None:
        job = self._scheduler.get_job(self.job_id)
        if job is None:
            return None
        return getattr(job, "next_run_time", None)


class APSchedulerAdapter(Scheduler):
    """Adapter that registers jobs with an APScheduler background scheduler."""

    def __init__(
        self,
        scheduler: BackgroundScheduler | None = None,
        *,
        timezone: str = "UTC",
        misfire_grace_seconds: int = 60,
    ) -> None:
        self._timezone = timezone
        self._misfire_grace_seconds = misfire_grace_seconds
        self._scheduler = scheduler or BackgroundScheduler(timezone=ZoneInfo(timezone))

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self, *, paused: bool = False) -> None:
        if self._scheduler.running:
            return
        self._scheduler.start(paused=paused)
        logger.info("Reminder scheduler started.", timezone=self._timezone)

    def shutdown(self, *, wait: bool = False) -> None:
        if not self._scheduler.running:
            return
        self._scheduler.shutdown(wait=wait)
        logger.info("Reminder scheduler stopped.")

    def _add(self, trigger: Any, fn: Callable[[], None]) -> APSchedulerJobHandle:
        job = self._scheduler.add_job(
            fn,
            trigger=trigger,
            misfire_grace_time=self._misfire_grace_seconds,
            coalesce=True,
        )
        return APSchedulerJobHandle(self._scheduler, job.id)

    def schedule_at(self, when: datetime, fn: Callable[[], None]) -> APSchedulerJobHandle:
        trigger = DateTrigger(run_date=when, timezone=ZoneInfo(self._timezone))
        return self._add(trigger, fn)

    def schedule_by_cron(
        self, cron_expr: str, fn: Callable[[], None]
    ) -> APSchedulerJobHandle:
        trigger = CronTrigger.from_crontab(cron_expr, timezone=ZoneInfo(self._timezone))
        return self._add(trigger, fn)

    def schedule_by_rule(
        self, rule: RecurrenceRule, fn: Callable[[], None]
    ) -> APSchedulerJobHandle:
        trigger = rule_to_trigger(rule, default_timezone=self._timezone)
        return self._add(trigger, fn)


__all__ = [
    "JobHandle",
    "Scheduler",
    "APSchedulerAdapter",
    "APSchedulerJobHandle",
    "rule_to_trigger",
]
