"""Reminder template groups and the cascading enable policy."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import get_args

from .errors import ReminderValidationError
from .schemas import EnableMode, ReminderTemplateGroupDTO
from .templates import ReminderTemplate, effective_enabled
from .utils import logger

SYSTEM_GROUP_ID = "system-root"
SYSTEM_GROUP_NAME = "System"

MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500


def _validate_name(name: str | None) -> str:
    if not name or not name.strip():
        raise ReminderValidationError("Reminder group name must not be blank.")
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ReminderValidationError(
            f"Reminder group name must be at most {MAX_NAME_LENGTH} characters."
        )
    return name


def _validate_mode(mode: str) -> EnableMode:
    if mode not in get_args(EnableMode):
        raise ReminderValidationError(f"Unknown enable mode: {mode!r}")
    return mode  # type: ignore[return-value]


def _validate_description(description: str | None) -> str | None:
    if description is None:
        return None
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ReminderValidationError(
            "Reminder group description must be at most "
            f"{MAX_DESCRIPTION_LENGTH} characters."
        )
    return description


@dataclass
class ReminderTemplateGroup:
    """Aggregate owning a set of templates and their enable policy."""

    uuid: str
    name: str
    description: str | None = None
    enabled: bool = True
    enable_mode: EnableMode = "group"
    templates: list[ReminderTemplate] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.name = _validate_name(self.name)
        self.description = _validate_description(self.description)
        self.enable_mode = _validate_mode(self.enable_mode)
        owned = self.templates
        self.templates = []
        for template in owned:
            self.add_template(template)

    @property
    def is_system_group(self) -> bool:
        return self.uuid == SYSTEM_GROUP_ID

    def rename(self, name: str) -> None:
        self.name = _validate_name(name)

    def set_description(self, description: str | None) -> None:
        self.description = _validate_description(description)

    def get_template(self, template_uuid: str) -> ReminderTemplate | None:
        for template in self.templates:
            if template.uuid == template_uuid:
                return template
        return None

    def add_template(self, template: ReminderTemplate) -> bool:
        """Take ownership of ``template``; returns False for a duplicate uuid."""
        if self.get_template(template.uuid) is not None:
            logger.debug(
                "Template already owned by group; ignoring.",
                group_uuid=self.uuid,
                template_uuid=template.uuid,
            )
            return False
        template.group_uuid = self.uuid
        template.calculate_and_set_enabled(self.enabled, self.enable_mode)
        self.templates.append(template)
        return True

    def remove_template(self, template_uuid: str) -> ReminderTemplate | None:
        for index, template in enumerate(self.templates):
            if template.uuid == template_uuid:
                return self.templates.pop(index)
        return None

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        self._recalculate()

    def set_enable_mode(self, mode: EnableMode) -> None:
        self.enable_mode = _validate_mode(mode)
        self._recalculate()

    def set_template_self_enabled(self, template_uuid: str, value: bool) -> bool:
        template = self.get_template(template_uuid)
        if template is None:
            return False
        template.set_self_enabled(value)
        template.calculate_and_set_enabled(self.enabled, self.enable_mode)
        return True

    def _recalculate(self) -> None:
        for template in self.templates:
            template.calculate_and_set_enabled(self.enabled, self.enable_mode)

    @property
    def enabled_templates(self) -> list[ReminderTemplate]:
        # Recomputed from the policy so reads before a recalculation are not stale.
        return [
            template
            for template in self.templates
            if effective_enabled(self.enabled, self.enable_mode, template.self_enabled)
        ]

    @property
    def has_enabled_template(self) -> bool:
        return any(template.enabled for template in self.templates)

    def is_template_enabled(self, template_uuid: str) -> bool:
        template = self.get_template(template_uuid)
        if template is None:
            return False
        return effective_enabled(self.enabled, self.enable_mode, template.self_enabled)

    @classmethod
    def from_dto(cls, dto: ReminderTemplateGroupDTO) -> ReminderTemplateGroup:
        return cls(
            uuid=dto.uuid,
            name=dto.name,
            description=dto.description,
            enabled=dto.enabled,
            enable_mode=dto.enable_mode,
            templates=[ReminderTemplate.from_dto(item) for item in dto.templates],
        )

    def to_dto(self) -> ReminderTemplateGroupDTO:
        return ReminderTemplateGroupDTO(
            uuid=self.uuid,
            name=self.name,
            description=self.description,
            enabled=self.enabled,
            enable_mode=self.enable_mode,
            templates=[template.to_dto() for template in self.templates],
        )


def create_system_group() -> ReminderTemplateGroup:
    """Return the built-in group whose enabled flag gates all scheduling."""
    return ReminderTemplateGroup(
        uuid=SYSTEM_GROUP_ID,
        name=SYSTEM_GROUP_NAME,
        description="Built-in reminders",
        enabled=True,
        enable_mode="group",
    )


__all__ = [
    "SYSTEM_GROUP_ID",
    "ReminderTemplateGroup",
    "create_system_group",
]
