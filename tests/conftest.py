"""Shared fakes for the reminder test suite."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import pytest

from dailyuse_reminder.notifier import RecordingNotifier
from dailyuse_reminder.schedule_service import ReminderScheduleService
from dailyuse_reminder.schemas import RecurrenceRule


class FakeJobHandle:
    def __init__(self, kind: str, spec: object, fn: Callable[[], None]) -> None:
        self.kind = kind
        self.spec = spec
        self.fn = fn
        self.cancel_calls = 0
        self.next_run: datetime | None = spec if isinstance(spec, datetime) else None

    @property
    def cancelled(self) -> bool:
        return self.cancel_calls > 0

    def cancel(self) -> None:
        self.cancel_calls += 1

    def next_invocation(self) -> datetime | None:
        return None if self.cancelled else self.next_run

    def fire(self) -> None:
        self.fn()


class FakeScheduler:
    def __init__(self) -> None:
        self.handles: list[FakeJobHandle] = []
        self.fail_with: Exception | None = None

    def _add(self, kind: str, spec: object, fn: Callable[[], None]) -> FakeJobHandle:
        if self.fail_with is not None:
            raise self.fail_with
        handle = FakeJobHandle(kind, spec, fn)
        self.handles.append(handle)
        return handle

    def schedule_at(self, when: datetime, fn: Callable[[], None]) -> FakeJobHandle:
        return self._add("date", when, fn)

    def schedule_by_cron(self, cron_expr: str, fn: Callable[[], None]) -> FakeJobHandle:
        return self._add("cron", cron_expr, fn)

    def schedule_by_rule(
        self, rule: RecurrenceRule, fn: Callable[[], None]
    ) -> FakeJobHandle:
        return self._add("rule", rule, fn)

    @property
    def live(self) -> list[FakeJobHandle]:
        return [handle for handle in self.handles if not handle.cancelled]


@pytest.fixture
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def schedule_service(
    fake_scheduler: FakeScheduler, notifier: RecordingNotifier
) -> ReminderScheduleService:
    return ReminderScheduleService(fake_scheduler, notifier)
