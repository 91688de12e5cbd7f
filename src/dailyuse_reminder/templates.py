"""Reminder templates and the occurrence calculator."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import get_args

from .errors import ReminderValidationError
from .schemas import (
    AbsoluteTimeConfig,
    DurationRange,
    EnableMode,
    ImportanceLevel,
    NotificationSettings,
    RelativeTimeConfig,
    RelativeTimeSchedule,
    ReminderSchedule,
    ReminderTemplateDTO,
    TimeConfig,
)
from .utils import logger, parse_timestamp


def effective_enabled(
    group_enabled: bool, group_mode: EnableMode, self_enabled: bool
) -> bool:
    """Return whether a template fires under its group's policy."""
    if group_mode == "group":
        return group_enabled
    return group_enabled and self_enabled


def resolve_duration(
    duration: float | DurationRange, rng: random.Random | None = None
) -> float:
    """Return a concrete second count for a fixed or ranged duration.

    Ranges are drawn uniformly from the closed interval ``[min, max]``. Unless
    a seeded ``rng`` is supplied the draw is unseeded, so two calculations of
    the same relative configuration give different instants. The jitter keeps
    reminders sharing a configuration from firing at the same moment.
    """
    if isinstance(duration, DurationRange):
        source = rng or random
        return source.uniform(duration.min, duration.max)
    return float(duration)


def _expand_relative(
    nodes: list[RelativeTimeSchedule],
    current: datetime,
    parent_name: str | None,
    schedules: list[ReminderSchedule],
    rng: random.Random | None,
) -> None:
    for node in nodes:
        offset = resolve_duration(node.duration, rng)
        next_time = current + timedelta(seconds=offset)
        name = f"{parent_name} - {node.name}" if parent_name else node.name
        schedules.append(
            ReminderSchedule(
                name=name,
                description=node.description,
                time=next_time.isoformat(),
            )
        )
        if node.times:
            # Children are offset from this node's instant, not the base.
            _expand_relative(node.times, next_time, node.name, schedules, rng)


def calculate_schedules(
    time_config: TimeConfig | None,
    base_time: str | datetime,
    *,
    rng: random.Random | None = None,
) -> list[ReminderSchedule]:
    """Expand a time configuration into a flat list of occurrences.

    Absolute configurations produce one occurrence carrying the recurrence
    rule unchanged. Relative configurations are walked depth first, parents
    before children. Anything else produces no occurrences.
    """
    if isinstance(time_config, AbsoluteTimeConfig):
        return [
            ReminderSchedule(
                name=time_config.name,
                description=time_config.description,
                time=time_config.schedule,
            )
        ]
    if isinstance(time_config, RelativeTimeConfig):
        schedules: list[ReminderSchedule] = []
        _expand_relative(
            time_config.times, parse_timestamp(base_time), None, schedules, rng
        )
        return schedules
    if time_config is not None:
        logger.warning(
            "Unsupported time configuration encountered.",
            config_type=getattr(time_config, "type", None),
        )
    return []


@dataclass
class ReminderTemplate:
    """One reminder's notification and time configuration.

    ``enabled`` is a cached projection of the owning group's policy and must
    only be written through :meth:`calculate_and_set_enabled`.
    """

    uuid: str
    name: str
    group_uuid: str | None = None
    description: str | None = None
    importance_level: ImportanceLevel = "moderate"
    self_enabled: bool = True
    enabled: bool = True
    notification_settings: NotificationSettings = field(
        default_factory=NotificationSettings
    )
    time_config: TimeConfig | None = None

    def __post_init__(self) -> None:
        self.rename(self.name)

    def calculate_and_set_enabled(
        self, group_enabled: bool, group_mode: EnableMode
    ) -> bool:
        self.enabled = effective_enabled(group_enabled, group_mode, self.self_enabled)
        return self.enabled

    def rename(self, name: str) -> None:
        if not name or not name.strip():
            raise ReminderValidationError("Reminder template name must not be blank.")
        self.name = name.strip()

    def set_importance_level(self, level: ImportanceLevel) -> None:
        if level not in get_args(ImportanceLevel):
            raise ReminderValidationError(f"Unknown importance level: {level!r}")
        self.importance_level = level

    def set_self_enabled(self, value: bool) -> None:
        """Record the template's own preference; the group recomputes ``enabled``."""
        self.self_enabled = value

    def calculate_reminder_schedules(
        self, base_time: str | datetime, *, rng: random.Random | None = None
    ) -> list[ReminderSchedule]:
        return calculate_schedules(self.time_config, base_time, rng=rng)

    @classmethod
    def from_dto(cls, dto: ReminderTemplateDTO) -> ReminderTemplate:
        return cls(
            uuid=dto.uuid,
            name=dto.name,
            group_uuid=dto.group_uuid,
            description=dto.description,
            importance_level=dto.importance_level,
            self_enabled=dto.self_enabled,
            enabled=dto.enabled,
            notification_settings=dto.notification_settings.model_copy(),
            time_config=dto.time_config.model_copy(deep=True)
            if dto.time_config
            else None,
        )

    def to_dto(self) -> ReminderTemplateDTO:
        return ReminderTemplateDTO(
            uuid=self.uuid,
            group_uuid=self.group_uuid,
            name=self.name,
            description=self.description,
            importance_level=self.importance_level,
            self_enabled=self.self_enabled,
            enabled=self.enabled,
            notification_settings=self.notification_settings.model_copy(),
            time_config=self.time_config.model_copy(deep=True)
            if self.time_config
            else None,
        )


__all__ = [
    "ReminderTemplate",
    "calculate_schedules",
    "effective_enabled",
    "resolve_duration",
]
