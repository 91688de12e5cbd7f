"""Repositories for persisting reminder template groups."""

from __future__ import annotations

import json
from functools import lru_cache
from threading import Lock
from typing import Protocol

from pydantic import TypeAdapter
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload, sessionmaker

from .database import get_engine, get_session_factory, is_database_configured
from .db_models import ReminderGroupModel, ReminderTemplateModel
from .groups import ReminderTemplateGroup
from .schemas import (
    NotificationSettings,
    ReminderTemplateDTO,
    ReminderTemplateGroupDTO,
    TimeConfig,
)
from .templates import ReminderTemplate
from .utils import logger

_TIME_CONFIG_ADAPTER: TypeAdapter[TimeConfig] = TypeAdapter(TimeConfig)


class ReminderGroupRepository(Protocol):
    """Port defining persistence operations for reminder groups."""

    def list_all(self) -> list[ReminderTemplateGroup]:
        ...

    def get(self, group_uuid: str) -> ReminderTemplateGroup | None:
        ...

    def save(self, group: ReminderTemplateGroup) -> ReminderTemplateGroup:
        ...

    def delete(self, group_uuid: str) -> bool:
        ...

    def find_template(self, template_uuid: str) -> ReminderTemplate | None:
        ...


class InMemoryReminderGroupRepository(ReminderGroupRepository):
    """Adapter that keeps group DTO snapshots in memory."""

    def __init__(self, groups: list[ReminderTemplateGroup] | None = None) -> None:
        self._lock = Lock()
        self._groups: dict[str, ReminderTemplateGroupDTO] = {}
        for group in groups or []:
            self.save(group)

    def list_all(self) -> list[ReminderTemplateGroup]:
        with self._lock:
            snapshots = list(self._groups.values())
        return [ReminderTemplateGroup.from_dto(dto) for dto in snapshots]

    def get(self, group_uuid: str) -> ReminderTemplateGroup | None:
        with self._lock:
            dto = self._groups.get(group_uuid)
        return ReminderTemplateGroup.from_dto(dto) if dto else None

    def save(self, group: ReminderTemplateGroup) -> ReminderTemplateGroup:
        dto = group.to_dto()
        with self._lock:
            self._groups[group.uuid] = dto
        return ReminderTemplateGroup.from_dto(dto)

    def delete(self, group_uuid: str) -> bool:
        with self._lock:
            return self._groups.pop(group_uuid, None) is not None

    def find_template(self, template_uuid: str) -> ReminderTemplate | None:
        with self._lock:
            snapshots = list(self._groups.values())
        for dto in snapshots:
            for template in dto.templates:
                if template.uuid == template_uuid:
                    return ReminderTemplate.from_dto(template)
        return None


def _apply_template(
    model: ReminderTemplateModel, template: ReminderTemplateDTO, position: int
) -> None:
    model.position = position
    model.name = template.name
    model.description = template.description
    model.importance_level = template.importance_level
    model.self_enabled = template.self_enabled
    model.enabled = template.enabled
    model.notification_settings_json = template.notification_settings.model_dump_json(
        by_alias=True
    )
    model.time_config_json = (
        template.time_config.model_dump_json(by_alias=True)
        if template.time_config
        else None
    )


def _model_to_template(model: ReminderTemplateModel) -> ReminderTemplateDTO:
    time_config = None
    if model.time_config_json:
        raw = json.loads(model.time_config_json)
        try:
            time_config = _TIME_CONFIG_ADAPTER.validate_python(raw)
        except ValueError:
            logger.warning(
                "Stored time configuration could not be parsed; ignoring.",
                template_uuid=model.uuid,
            )
    return ReminderTemplateDTO(
        uuid=model.uuid,
        group_uuid=model.group_uuid,
        name=model.name,
        description=model.description,
        importance_level=model.importance_level,
        self_enabled=bool(model.self_enabled),
        enabled=bool(model.enabled),
        notification_settings=NotificationSettings.model_validate_json(
            model.notification_settings_json
        ),
        time_config=time_config,
    )


def _model_to_group(model: ReminderGroupModel) -> ReminderTemplateGroup:
    dto = ReminderTemplateGroupDTO(
        uuid=model.uuid,
        name=model.name,
        description=model.description,
        enabled=bool(model.enabled),
        enable_mode=model.enable_mode,
        templates=[_model_to_template(row) for row in model.templates],
    )
    return ReminderTemplateGroup.from_dto(dto)


class SQLReminderGroupRepository(ReminderGroupRepository):
    """SQLAlchemy-backed group repository; templates are stored per row."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def _query(self):
        return select(ReminderGroupModel).options(
            selectinload(ReminderGroupModel.templates)
        )

    def list_all(self) -> list[ReminderTemplateGroup]:
        with self._session_factory() as session:
            rows = session.execute(self._query()).scalars().all()
            return [_model_to_group(row) for row in rows]

    def get(self, group_uuid: str) -> ReminderTemplateGroup | None:
        with self._session_factory() as session:
            row = (
                session.execute(
                    self._query().where(ReminderGroupModel.uuid == group_uuid)
                )
                .scalars()
                .first()
            )
            return _model_to_group(row) if row else None

    def save(self, group: ReminderTemplateGroup) -> ReminderTemplateGroup:
        dto = group.to_dto()
        with self._session_factory() as session:
            row = session.get(ReminderGroupModel, dto.uuid)
            if row is None:
                row = ReminderGroupModel(uuid=dto.uuid)
                session.add(row)
            row.name = dto.name
            row.description = dto.description
            row.enabled = dto.enabled
            row.enable_mode = dto.enable_mode

            current = {template.uuid: template for template in row.templates}
            rows: list[ReminderTemplateModel] = []
            for position, template in enumerate(dto.templates):
                existing = current.get(template.uuid)
                if existing is None:
                    # A template moved between groups must leave its old row first.
                    stale = session.get(ReminderTemplateModel, template.uuid)
                    if stale is not None:
                        session.delete(stale)
                        session.flush()
                    existing = ReminderTemplateModel(uuid=template.uuid)
                _apply_template(existing, template, position)
                rows.append(existing)
            row.templates = rows
            session.commit()
        return ReminderTemplateGroup.from_dto(dto)

    def delete(self, group_uuid: str) -> bool:
        with self._session_factory() as session:
            row = session.get(ReminderGroupModel, group_uuid)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    def find_template(self, template_uuid: str) -> ReminderTemplate | None:
        with self._session_factory() as session:
            row = session.get(ReminderTemplateModel, template_uuid)
            return ReminderTemplate.from_dto(_model_to_template(row)) if row else None


@lru_cache
def _default_group_repository() -> InMemoryReminderGroupRepository:
    return InMemoryReminderGroupRepository()


@lru_cache
def _sql_group_repository() -> SQLReminderGroupRepository:
    return SQLReminderGroupRepository(get_session_factory())


def get_reminder_group_repository() -> ReminderGroupRepository:
    """Return the configured reminder group repository."""
    if is_database_configured() and get_engine() is not None:
        return _sql_group_repository()
    return _default_group_repository()


__all__ = [
    "ReminderGroupRepository",
    "InMemoryReminderGroupRepository",
    "SQLReminderGroupRepository",
    "get_reminder_group_repository",
]
