from __future__ import annotations

from datetime import datetime

import pytest

from dailyuse_reminder import instances
from dailyuse_reminder.config import Settings
from dailyuse_reminder.errors import ReminderStateError
from dailyuse_reminder.events import list_recent_events
from dailyuse_reminder.instances import ReminderInstance, date_to_cron
from dailyuse_reminder.schemas import (
    AbsoluteTimeConfig,
    RecurrenceRule,
    RelativeTimeConfig,
    RelativeTimeSchedule,
)
from dailyuse_reminder.templates import ReminderTemplate

BASE = "2025-01-01T08:00:00+00:00"


@pytest.fixture(autouse=True)
def utc_settings(monkeypatch):
    test_settings = Settings(
        timezone="UTC", default_body="Nothing to add", misfire_grace_seconds=60
    )
    monkeypatch.setattr(instances, "settings", test_settings)
    return test_settings


def _relative_template(uuid: str = "tpl-1") -> ReminderTemplate:
    return ReminderTemplate(
        uuid=uuid,
        name="Eye rest",
        description="Look away from the screen",
        time_config=RelativeTimeConfig(
            name="Eye rest",
            times=[
                RelativeTimeSchedule(name="First", duration=60),
                RelativeTimeSchedule(name="Second", duration=120),
                RelativeTimeSchedule(name="Third", duration=180),
            ],
        ),
    )


def test_date_to_cron_pins_minute_hour_day_month():
    assert date_to_cron(datetime(2025, 3, 4, 5, 6)) == "6 5 4 3 *"


def test_from_template_copies_notification_fields():
    template = _relative_template()
    template.importance_level = "vital"

    instance = ReminderInstance.from_template(template, BASE)

    assert instance.uuid == "tpl-1"
    assert instance.template_uuid == "tpl-1"
    assert instance.title == "Eye rest"
    assert instance.body == "Look away from the screen"
    assert instance.importance == "vital"
    assert [schedule.name for schedule in instance.schedules] == [
        "First",
        "Second",
        "Third",
    ]


def test_from_template_falls_back_to_default_body():
    template = ReminderTemplate(uuid="t", name="Silent")

    instance = ReminderInstance.from_template(template, BASE, uuid="custom")

    assert instance.uuid == "custom"
    assert instance.body == "Nothing to add"
    assert instance.schedules == []


def test_shared_key_keeps_only_last_occurrence(schedule_service, fake_scheduler):
    instance = ReminderInstance.from_template(_relative_template(), BASE)

    assert instance.activate(schedule_service) == 3

    assert [handle.spec for handle in fake_scheduler.handles] == [
        "1 8 1 1 *",
        "2 8 1 1 *",
        "3 8 1 1 *",
    ]
    assert [handle.spec for handle in fake_scheduler.live] == ["3 8 1 1 *"]
    assert schedule_service.get_schedule_ids() == ["tpl-1"]
    assert instance.registered_keys == ["tpl-1"]


def test_occurrence_keys_keep_every_occurrence(schedule_service, fake_scheduler):
    instance = ReminderInstance.from_template(
        _relative_template(), BASE, key_strategy="occurrence"
    )

    assert instance.activate(schedule_service) == 3

    assert len(fake_scheduler.live) == 3
    assert sorted(schedule_service.get_schedule_ids()) == [
        "tpl-1:0",
        "tpl-1:1",
        "tpl-1:2",
    ]


def test_occurrence_time_is_converted_to_configured_timezone(
    monkeypatch, schedule_service, fake_scheduler
):
    monkeypatch.setattr(
        instances,
        "settings",
        Settings(timezone="Asia/Tokyo", default_body="-", misfire_grace_seconds=60),
    )
    instance = ReminderInstance.from_template(_relative_template(), BASE)

    instance.activate(schedule_service)

    # 08:01 UTC is 17:01 in Tokyo.
    assert fake_scheduler.handles[0].spec == "1 17 1 1 *"


def test_absolute_schedule_is_registered_as_rule(schedule_service, fake_scheduler):
    rule = RecurrenceRule(hour=9, minute=0, day_of_week=[1, 2, 3, 4, 5])
    template = ReminderTemplate(
        uuid="standup",
        name="Standup",
        time_config=AbsoluteTimeConfig(name="Standup", schedule=rule),
    )
    instance = ReminderInstance.from_template(template, BASE)

    assert instance.activate(schedule_service) == 1

    handle = fake_scheduler.handles[0]
    assert handle.kind == "rule"
    assert handle.spec == rule


def test_firing_marks_instance_triggered(schedule_service, fake_scheduler, notifier):
    instance = ReminderInstance.from_template(_relative_template(), BASE)
    instance.activate(schedule_service)

    fake_scheduler.live[0].fire()

    assert instance.status == "triggered"
    assert instance.triggered_at is not None
    assert notifier.delivered[0].body == "Look away from the screen"


def test_complete_releases_registered_jobs(schedule_service, fake_scheduler):
    instance = ReminderInstance.from_template(
        _relative_template("tpl-complete"), BASE, key_strategy="occurrence"
    )
    instance.activate(schedule_service)
    fake_scheduler.live[0].fire()

    instance.complete(schedule_service)

    assert instance.status == "completed"
    assert schedule_service.get_schedule_ids() == []
    assert fake_scheduler.live == []
    assert list_recent_events(limit=1)[0].action == "reminder_instance_completed"


def test_pending_instance_cannot_complete(schedule_service):
    instance = ReminderInstance.from_template(_relative_template(), BASE)

    with pytest.raises(ReminderStateError):
        instance.complete(schedule_service)

    assert instance.status == "pending"


def test_cancel_is_idempotent(schedule_service, fake_scheduler):
    instance = ReminderInstance.from_template(_relative_template("tpl-cancel"), BASE)
    instance.activate(schedule_service)

    instance.cancel(schedule_service)
    instance.cancel(schedule_service)

    assert instance.status == "cancelled"
    assert fake_scheduler.live == []
    cancelled = list_recent_events(
        action="reminder_instance_cancelled", subject_id="tpl-cancel"
    )
    assert len(cancelled) == 1


def test_finished_instance_is_not_reactivated_or_retriggered(
    schedule_service, fake_scheduler
):
    instance = ReminderInstance.from_template(_relative_template(), BASE)
    instance.cancel(schedule_service)

    assert instance.activate(schedule_service) == 0
    instance.mark_triggered()

    assert fake_scheduler.handles == []
    assert instance.status == "cancelled"
    assert instance.triggered_at is None
    with pytest.raises(ReminderStateError):
        instance.complete(schedule_service)


def test_failed_registration_is_not_counted(schedule_service, fake_scheduler):
    fake_scheduler.fail_with = RuntimeError("scheduler offline")
    instance = ReminderInstance.from_template(_relative_template(), BASE)

    assert instance.activate(schedule_service) == 0
    assert instance.registered_keys == []


def test_cancel_during_activation_stops_further_registrations(
    monkeypatch, schedule_service, fake_scheduler
):
    instance = ReminderInstance.from_template(
        _relative_template("tpl-race"), BASE, key_strategy="occurrence"
    )
    schedule_by_cron = fake_scheduler.schedule_by_cron

    def schedule_then_finish(cron_expr, fn):
        handle = schedule_by_cron(cron_expr, fn)
        if len(fake_scheduler.handles) == 2:
            # Another thread finishes the instance mid-registration.
            instance.status = "cancelled"
        return handle

    monkeypatch.setattr(fake_scheduler, "schedule_by_cron", schedule_then_finish)

    assert instance.activate(schedule_service) == 1

    assert len(fake_scheduler.handles) == 2
    assert schedule_service.get_schedule_ids() == ["tpl-race:0"]
    assert [handle.spec for handle in fake_scheduler.live] == ["1 8 1 1 *"]
    assert instance.registered_keys == ["tpl-race:0"]
