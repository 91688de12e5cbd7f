"""Application service wiring reminder aggregates to the job registry."""

from __future__ import annotations

import random
from collections.abc import Callable
from datetime import UTC, datetime

from .errors import ReminderNotFoundError, ReminderValidationError
from .groups import SYSTEM_GROUP_ID, ReminderTemplateGroup, create_system_group
from .instances import KeyStrategy, ReminderInstance
from .repositories import ReminderGroupRepository
from .schedule_service import ReminderScheduleService
from .schemas import EnableMode, ImportanceLevel, NotificationSettings, TimeConfig
from .templates import ReminderTemplate
from .utils import logger


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _require_template(group: ReminderTemplateGroup, template_uuid: str) -> ReminderTemplate:
    template = group.get_template(template_uuid)
    if template is None:
        raise ReminderNotFoundError(
            f"Reminder template {template_uuid} not found in group {group.uuid}"
        )
    return template


class ReminderApplicationService:
    """Coordinates repository updates with job (re)registration.

    Every template that is effectively enabled has a live
    :class:`ReminderInstance` keyed by the template uuid; every other
    template has none.
    """

    def __init__(
        self,
        repository: ReminderGroupRepository,
        schedule_service: ReminderScheduleService,
        *,
        clock: Callable[[], datetime] = _utcnow,
        key_strategy: KeyStrategy = "instance",
        rng: random.Random | None = None,
    ) -> None:
        self._repository = repository
        self._schedule_service = schedule_service
        self._clock = clock
        self._key_strategy = key_strategy
        self._rng = rng
        self._instances: dict[str, ReminderInstance] = {}

    # Initialization ----------------------------------------------------------

    def initialize_module(self) -> ReminderTemplateGroup:
        """Create the system group when it does not exist yet."""
        existing = self._repository.get(SYSTEM_GROUP_ID)
        if existing is not None:
            return existing
        logger.info("Creating reminder system group.")
        return self._repository.save(create_system_group())

    def initialize_schedule(self) -> bool:
        """Register jobs for every enabled template, system group included.

        Returns False without registering anything when the system group is
        missing or disabled.
        """
        groups = self._repository.list_all()
        system_group = next((g for g in groups if g.uuid == SYSTEM_GROUP_ID), None)
        if system_group is None:
            logger.warning("System group missing; initialize the reminder module first.")
            return False
        if not system_group.enabled:
            logger.info("System group disabled; reminder scheduling not started.")
            return False
        for group in groups:
            self._sync_group(group)
        return True

    # Groups ------------------------------------------------------------------

    def list_groups(self) -> list[ReminderTemplateGroup]:
        return self._repository.list_all()

    def get_group(self, group_uuid: str) -> ReminderTemplateGroup:
        group = self._repository.get(group_uuid)
        if group is None:
            raise ReminderNotFoundError(f"Reminder group not found: {group_uuid}")
        return group

    def create_group(self, group: ReminderTemplateGroup) -> ReminderTemplateGroup:
        if self._repository.get(group.uuid) is not None:
            raise ReminderValidationError(f"Reminder group already exists: {group.uuid}")
        saved = self._repository.save(group)
        self._sync_group(saved)
        return saved

    def update_group(
        self,
        group_uuid: str,
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> ReminderTemplateGroup:
        group = self.get_group(group_uuid)
        if name is not None:
            group.rename(name)
        if description is not None:
            group.set_description(description or None)
        return self._repository.save(group)

    def delete_group(self, group_uuid: str) -> None:
        group = self.get_group(group_uuid)
        if group.is_system_group:
            raise ReminderValidationError("The system reminder group cannot be deleted.")
        for template in group.templates:
            self._deactivate(template.uuid)
        self._repository.delete(group_uuid)
        logger.bind(group_uuid=group_uuid).info("Reminder group deleted")

    def set_group_enabled(self, group_uuid: str, enabled: bool) -> ReminderTemplateGroup:
        group = self.get_group(group_uuid)
        group.set_enabled(enabled)
        saved = self._repository.save(group)
        self._sync_group(saved)
        return saved

    def set_group_enable_mode(
        self, group_uuid: str, mode: EnableMode
    ) -> ReminderTemplateGroup:
        group = self.get_group(group_uuid)
        group.set_enable_mode(mode)
        saved = self._repository.save(group)
        self._sync_group(saved)
        return saved

    # Templates ---------------------------------------------------------------

    def get_template(self, template_uuid: str) -> ReminderTemplate:
        template = self._repository.find_template(template_uuid)
        if template is None:
            raise ReminderNotFoundError(f"Reminder template not found: {template_uuid}")
        return template

    def create_template(
        self, group_uuid: str, template: ReminderTemplate
    ) -> ReminderTemplate:
        if self._repository.find_template(template.uuid) is not None:
            raise ReminderValidationError(
                f"Reminder template already exists: {template.uuid}"
            )
        group = self.get_group(group_uuid)
        group.add_template(template)
        saved = self._repository.save(group)
        stored = _require_template(saved, template.uuid)
        self._sync_template(saved, stored)
        return stored

    def update_template(
        self,
        template_uuid: str,
        *,
        name: str | None = None,
        description: str | None = None,
        importance_level: ImportanceLevel | None = None,
        notification_settings: NotificationSettings | None = None,
        time_config: TimeConfig | None = None,
    ) -> ReminderTemplate:
        """Edit a template in place and recompute its jobs."""
        template = self.get_template(template_uuid)
        group = self.get_group(template.group_uuid or "")
        owned = _require_template(group, template_uuid)
        if name is not None:
            owned.rename(name)
        if description is not None:
            owned.description = description or None
        if importance_level is not None:
            owned.set_importance_level(importance_level)
        if notification_settings is not None:
            owned.notification_settings = notification_settings.model_copy()
        if time_config is not None:
            owned.time_config = time_config.model_copy(deep=True)
        saved = self._repository.save(group)
        stored = _require_template(saved, template_uuid)
        logger.bind(template_uuid=template_uuid).info("Reminder template updated")
        self._sync_template(saved, stored)
        return stored

    def delete_template(self, template_uuid: str) -> None:
        template = self.get_template(template_uuid)
        group = self.get_group(template.group_uuid or "")
        group.remove_template(template_uuid)
        self._repository.save(group)
        self._deactivate(template_uuid)

    def move_template_to_group(
        self, template_uuid: str, to_group_uuid: str
    ) -> ReminderTemplate:
        template = self.get_template(template_uuid)
        target = self.get_group(to_group_uuid)
        if template.group_uuid == to_group_uuid:
            return template
        source = self.get_group(template.group_uuid or "")
        moved = source.remove_template(template_uuid) or template
        self._repository.save(source)
        target.add_template(moved)
        saved = self._repository.save(target)
        stored = _require_template(saved, template_uuid)
        logger.bind(
            template_uuid=template_uuid,
            from_group=source.uuid,
            to_group=to_group_uuid,
        ).info("Reminder template moved")
        self._sync_template(saved, stored)
        return stored

    def set_template_enabled(self, template_uuid: str, enabled: bool) -> ReminderTemplate:
        template = self.get_template(template_uuid)
        group = self.get_group(template.group_uuid or "")
        group.set_template_self_enabled(template_uuid, enabled)
        saved = self._repository.save(group)
        stored = _require_template(saved, template_uuid)
        self._sync_template(saved, stored)
        return stored

    # Scheduling ----------------------------------------------------------------

    def get_instance(self, template_uuid: str) -> ReminderInstance | None:
        return self._instances.get(template_uuid)

    def shutdown(self) -> None:
        for template_uuid in list(self._instances):
            self._deactivate(template_uuid)

    def _sync_group(self, group: ReminderTemplateGroup) -> None:
        for template in group.templates:
            self._sync_template(group, template)

    def _sync_template(
        self, group: ReminderTemplateGroup, template: ReminderTemplate
    ) -> None:
        self._deactivate(template.uuid)
        if not group.is_template_enabled(template.uuid):
            return
        instance = ReminderInstance.from_template(
            template,
            self._clock(),
            key_strategy=self._key_strategy,
            rng=self._rng,
        )
        instance.activate(self._schedule_service)
        self._instances[template.uuid] = instance

    def _deactivate(self, template_uuid: str) -> None:
        instance = self._instances.pop(template_uuid, None)
        if instance is not None and not instance.is_terminal:
            instance.cancel(self._schedule_service)
        # Jobs registered before this service existed are keyed by the template uuid.
        self._schedule_service.cancel(template_uuid)


__all__ = ["ReminderApplicationService"]
