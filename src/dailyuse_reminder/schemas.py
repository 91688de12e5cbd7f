"""Pydantic models for the reminder serialization boundary."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, model_validator

EnableMode = Literal["group", "individual"]
ImportanceLevel = Literal["vital", "important", "moderate", "minor", "trivial"]

TIME_CONFIG_TYPES = ("absolute", "relative")


def _to_camel(string: str) -> str:
    first, *rest = string.split("_")
    return first + "".join(word.capitalize() for word in rest)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Time configuration

RuleField = int | list[int] | None


class RecurrenceRule(CamelModel):
    """Cron-like descriptor; ``None`` fields are wildcards.

    Months run 1-12 and ``day_of_week`` uses cron numbering (0 = Sunday).
    """

    second: RuleField = 0
    minute: RuleField = None
    hour: RuleField = None
    date: RuleField = None
    day_of_week: RuleField = None
    month: RuleField = None
    year: RuleField = None
    tz: str | None = None


class DurationRange(CamelModel):
    min: float = Field(..., ge=0)
    max: float = Field(..., ge=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> DurationRange:
        if self.max < self.min:
            raise ValueError("duration max must not be smaller than min")
        return self


Duration = Annotated[float, Field(ge=0)] | DurationRange


class RelativeTimeSchedule(CamelModel):
    name: str
    description: str | None = None
    duration: Duration = 0
    times: list[RelativeTimeSchedule] = Field(default_factory=list)


class AbsoluteTimeConfig(CamelModel):
    name: str
    type: Literal["absolute"] = "absolute"
    description: str | None = None
    schedule: RecurrenceRule


class RelativeTimeConfig(CamelModel):
    name: str
    type: Literal["relative"] = "relative"
    description: str | None = None
    duration: Duration = 0
    times: list[RelativeTimeSchedule] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _accept_schedule_alias(cls, data: Any) -> Any:
        if isinstance(data, dict) and "times" not in data and "schedule" in data:
            data = dict(data)
            data["times"] = data.pop("schedule")
        return data


TimeConfig = Annotated[
    AbsoluteTimeConfig | RelativeTimeConfig, Field(discriminator="type")
]


# ---------------------------------------------------------------------------
# Template and group DTOs


class NotificationSettings(CamelModel):
    sound: bool = True
    vibration: bool = True
    popup: bool = True


class ReminderTemplateDTO(CamelModel):
    uuid: str
    group_uuid: str | None = None
    name: str
    description: str | None = None
    importance_level: ImportanceLevel = "moderate"
    self_enabled: bool = True
    enabled: bool = True
    notification_settings: NotificationSettings = Field(
        default_factory=NotificationSettings
    )
    time_config: TimeConfig | None = None

    @model_validator(mode="before")
    @classmethod
    def _drop_unknown_time_config(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        key = "timeConfig" if "timeConfig" in data else "time_config"
        raw = data.get(key)
        if isinstance(raw, dict) and raw.get("type") not in TIME_CONFIG_TYPES:
            logger.warning(
                "Unknown time configuration type; template will not be scheduled.",
                template_uuid=data.get("uuid"),
                config_type=raw.get("type"),
            )
            data = dict(data)
            data[key] = None
        return data


class ReminderTemplateGroupDTO(CamelModel):
    uuid: str
    name: str
    description: str | None = None
    enabled: bool = True
    enable_mode: EnableMode = "group"
    templates: list[ReminderTemplateDTO] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Scheduling


class ReminderSchedule(CamelModel):
    """A flattened, named occurrence ready for registration."""

    name: str
    description: str | None = None
    time: str | RecurrenceRule


class NotificationPayload(CamelModel):
    uuid: str
    title: str
    body: str
    importance: ImportanceLevel = "moderate"


class ScheduleInfo(CamelModel):
    exists: bool
    next_invocation: datetime | None = None


__all__ = [
    "CamelModel",
    "EnableMode",
    "ImportanceLevel",
    "RecurrenceRule",
    "DurationRange",
    "RelativeTimeSchedule",
    "AbsoluteTimeConfig",
    "RelativeTimeConfig",
    "TimeConfig",
    "NotificationSettings",
    "ReminderTemplateDTO",
    "ReminderTemplateGroupDTO",
    "ReminderSchedule",
    "NotificationPayload",
    "ScheduleInfo",
]
