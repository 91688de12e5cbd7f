from __future__ import annotations

import json
import threading

import pytest

from dailyuse_reminder import cli
from dailyuse_reminder.groups import SYSTEM_GROUP_ID, create_system_group
from dailyuse_reminder.repositories import InMemoryReminderGroupRepository

GROUPS_JSON = [
    {
        "uuid": "health",
        "name": "Health",
        "enabled": True,
        "enableMode": "individual",
        "templates": [
            {
                "uuid": "water",
                "name": "Drink water",
                "importanceLevel": "important",
                "timeConfig": {
                    "type": "relative",
                    "name": "Water",
                    "times": [
                        {"name": "Glass", "duration": 3600},
                        {"name": "Bottle", "duration": 7200},
                    ],
                },
            },
            {
                "uuid": "stand",
                "name": "Stand up",
                "selfEnabled": False,
                "timeConfig": {
                    "type": "absolute",
                    "name": "Stand",
                    "schedule": {"hour": 10, "minute": 0},
                },
            },
        ],
    }
]


@pytest.fixture
def groups_file(tmp_path):
    path = tmp_path / "groups.json"
    path.write_text(json.dumps(GROUPS_JSON), encoding="utf-8")
    return path


def test_load_groups_saves_every_group(groups_file):
    repository = InMemoryReminderGroupRepository()

    assert cli.load_groups(groups_file, repository) == 1

    group = repository.get("health")
    assert group.enable_mode == "individual"
    assert [template.uuid for template in group.templates] == ["water", "stand"]


def test_load_groups_rejects_invalid_file(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text('[{"uuid": "g"}]', encoding="utf-8")

    with pytest.raises(SystemExit):
        cli.load_groups(path, InMemoryReminderGroupRepository())
    with pytest.raises(SystemExit):
        cli.load_groups(tmp_path / "missing.json", InMemoryReminderGroupRepository())


def test_preview_prints_enabled_templates(groups_file):
    repository = InMemoryReminderGroupRepository()
    cli.load_groups(groups_file, repository)
    output: list[str] = []

    cli.preview(repository, base_time="2025-01-01T08:00:00+00:00", print_fn=output.append)

    payload = json.loads(output[0])
    assert payload["base"] == "2025-01-01T08:00:00+00:00"
    assert payload["total"] == 1
    entry = payload["templates"][0]
    assert (entry["group"], entry["template"], entry["uuid"]) == (
        "Health",
        "Drink water",
        "water",
    )
    assert [schedule["time"] for schedule in entry["schedules"]] == [
        "2025-01-01T09:00:00+00:00",
        "2025-01-01T10:00:00+00:00",
    ]


def test_preview_without_groups():
    output: list[str] = []

    cli.preview(InMemoryReminderGroupRepository(), print_fn=output.append)

    assert output == ["No reminder groups found."]


def test_preview_rejects_invalid_base_time():
    with pytest.raises(SystemExit):
        cli.preview(InMemoryReminderGroupRepository(), base_time="yesterday")


def test_main_preview_uses_configured_repository(monkeypatch, groups_file, capsys):
    repository = InMemoryReminderGroupRepository()
    monkeypatch.setattr(cli, "get_reminder_group_repository", lambda: repository)

    cli.main(["--file", str(groups_file), "--preview", "--base", "2025-01-01T08:00:00Z"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["total"] == 1


def test_main_without_action_prints_help(monkeypatch, capsys):
    monkeypatch.setattr(
        cli, "get_reminder_group_repository", InMemoryReminderGroupRepository
    )

    cli.main([])

    assert "--preview" in capsys.readouterr().out


def test_run_registers_jobs_and_cleans_up(monkeypatch, groups_file, schedule_service):
    repository = InMemoryReminderGroupRepository()
    cli.load_groups(groups_file, repository)
    monkeypatch.setattr(cli, "get_reminder_schedule_service", lambda: schedule_service)
    stop = threading.Event()
    stop.set()
    output: list[str] = []

    cli.run(repository, stop_event=stop, print_fn=output.append)

    assert output == ["Registered 1 reminder job(s). Press Ctrl+C to stop."]
    assert repository.get(SYSTEM_GROUP_ID) is not None
    assert schedule_service.get_schedule_ids() == []


def test_run_when_system_group_disabled(monkeypatch, schedule_service):
    repository = InMemoryReminderGroupRepository()
    system_group = create_system_group()
    system_group.set_enabled(False)
    repository.save(system_group)
    monkeypatch.setattr(cli, "get_reminder_schedule_service", lambda: schedule_service)
    output: list[str] = []

    cli.run(repository, print_fn=output.append)

    assert output == ["Reminder scheduling is disabled."]
