"""Command-line helpers for previewing and running reminder schedules."""

from __future__ import annotations

import argparse
import json
import threading
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from .errors import ReminderError
from .groups import ReminderTemplateGroup
from .repositories import ReminderGroupRepository, get_reminder_group_repository
from .schedule_service import get_reminder_schedule_service
from .schemas import ReminderTemplateGroupDTO
from .services import ReminderApplicationService
from .utils import configure_logging, logger, parse_timestamp

configure_logging()

_GROUPS_ADAPTER = TypeAdapter(list[ReminderTemplateGroupDTO])


def _dump_json(data: object, *, print_fn=print) -> None:
    formatted = json.dumps(data, indent=2, sort_keys=True, default=str)
    print_fn(formatted)


def load_groups(path: Path, repository: ReminderGroupRepository) -> int:
    """Load a JSON list of group DTOs into ``repository``; returns the group count."""
    try:
        dtos = _GROUPS_ADAPTER.validate_json(path.read_text(encoding="utf-8"))
        groups = [ReminderTemplateGroup.from_dto(dto) for dto in dtos]
    except (OSError, ValidationError, ReminderError) as exc:
        logger.exception("Failed to load reminder groups from {}", path)
        raise SystemExit(f"Could not load reminder groups: {exc}") from exc

    for group in groups:
        repository.save(group)
    logger.bind(path=str(path), group_count=len(groups)).info("Loaded reminder groups")
    return len(groups)


def preview(
    repository: ReminderGroupRepository,
    *,
    base_time: str | None = None,
    print_fn=print,
) -> None:
    """Print the computed occurrences of every effectively enabled template."""
    try:
        base = parse_timestamp(base_time) if base_time else None
    except ValueError as exc:
        raise SystemExit(f"Invalid base time: {base_time}") from exc
    if base is None:
        base = datetime.now(UTC)

    groups = repository.list_all()
    if not groups:
        print_fn("No reminder groups found.")
        logger.warning("No reminder groups available for preview")
        return

    records = []
    for group in groups:
        for template in group.enabled_templates:
            schedules = template.calculate_reminder_schedules(base)
            records.append(
                {
                    "group": group.name,
                    "template": template.name,
                    "uuid": template.uuid,
                    "schedules": [
                        schedule.model_dump(mode="json", by_alias=True, exclude_none=True)
                        for schedule in schedules
                    ],
                }
            )
    _dump_json(
        {"base": base.isoformat(), "total": len(records), "templates": records},
        print_fn=print_fn,
    )


def run(
    repository: ReminderGroupRepository,
    *,
    stop_event: threading.Event | None = None,
    print_fn=print,
) -> None:
    """Register all enabled templates and block until interrupted."""
    schedule_service = get_reminder_schedule_service()
    service = ReminderApplicationService(repository, schedule_service)
    service.initialize_module()
    if not service.initialize_schedule():
        print_fn("Reminder scheduling is disabled.")
        return

    ids = schedule_service.get_schedule_ids()
    print_fn(f"Registered {len(ids)} reminder job(s). Press Ctrl+C to stop.")
    stop = stop_event or threading.Event()
    try:
        stop.wait()
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down reminder scheduler")
    finally:
        service.shutdown()
        schedule_service.cancel_all()


def main(argv: Iterable[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Preview and run reminder template schedules."
    )
    parser.add_argument(
        "-f",
        "--file",
        type=Path,
        help="JSON file containing a list of reminder groups to load.",
    )
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Print the computed occurrences of every enabled template.",
    )
    parser.add_argument(
        "--base",
        help="ISO-8601 base time for relative schedules (defaults to now).",
    )
    parser.add_argument(
        "--run",
        action="store_true",
        help="Register jobs for all enabled templates and wait for them to fire.",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)

    repository = get_reminder_group_repository()
    if args.file:
        load_groups(args.file, repository)
    if args.preview:
        preview(repository, base_time=args.base, print_fn=print)
        return
    if args.run:
        run(repository, print_fn=print)
        return
    parser.print_help()


__all__ = ["main", "load_groups", "preview", "run"]
