"""Audit trail of reminder fires, registration failures, and instance lifecycle."""

from __future__ import annotations

import json
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from functools import lru_cache
from threading import Lock
from typing import Any, Literal, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from .database import get_session_factory, is_database_configured
from .db_models import EventModel

DEFAULT_MAX_EVENTS = 1000

EventAction = Literal[
    "reminder_fired",
    "reminder_registration_failed",
    "reminder_instance_completed",
    "reminder_instance_cancelled",
]


@dataclass(frozen=True)
class ReminderEvent:
    """One audit record; ``subject_id`` is a job key or an instance uuid."""

    action: EventAction
    subject_type: str
    subject_id: str | None = None
    reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    id: int | None = None

    def matches(self, *, action: str | None, subject_id: str | None) -> bool:
        if action is not None and self.action != action:
            return False
        return subject_id is None or self.subject_id == subject_id


class EventRepository(Protocol):
    """Storage abstraction for audit events."""

    def record(self, event: ReminderEvent) -> ReminderEvent:
        ...

    def list_recent(
        self,
        limit: int = 100,
        *,
        action: str | None = None,
        subject_id: str | None = None,
    ) -> list[ReminderEvent]:
        ...


class InMemoryEventRepository(EventRepository):
    """Event store used when no database is configured.

    Keeps the newest ``max_events`` records; older ones are dropped.
    """

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS) -> None:
        self._events: deque[ReminderEvent] = deque(maxlen=max_events)
        self._counter = 0
        self._lock = Lock()

    def record(self, event: ReminderEvent) -> ReminderEvent:
        with self._lock:
            self._counter += 1
            stored = replace(event, id=self._counter)
            self._events.append(stored)
            return stored

    def list_recent(
        self,
        limit: int = 100,
        *,
        action: str | None = None,
        subject_id: str | None = None,
    ) -> list[ReminderEvent]:
        with self._lock:
            newest_first = list(reversed(self._events))
        matching = [
            event
            for event in newest_first
            if event.matches(action=action, subject_id=subject_id)
        ]
        return matching[:limit]


def _row_to_event(row: EventModel) -> ReminderEvent:
    return ReminderEvent(
        id=row.id,
        timestamp=datetime.fromisoformat(row.timestamp),
        action=row.action,  # type: ignore[arg-type]
        subject_type=row.subject_type,
        subject_id=row.subject_id,
        reason=row.reason,
        metadata=json.loads(row.metadata_json) if row.metadata_json else {},
    )


class SQLEventRepository(EventRepository):
    """SQLAlchemy-backed event repository."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def record(self, event: ReminderEvent) -> ReminderEvent:
        row = EventModel(
            timestamp=event.timestamp.isoformat(),
            action=event.action,
            subject_type=event.subject_type,
            subject_id=event.subject_id,
            reason=event.reason,
            metadata_json=json.dumps(event.metadata, default=str)
            if event.metadata
            else None,
        )
        with self._session_factory() as session:
            session.add(row)
            session.commit()
            return replace(event, id=row.id)

    def list_recent(
        self,
        limit: int = 100,
        *,
        action: str | None = None,
        subject_id: str | None = None,
    ) -> list[ReminderEvent]:
        query = select(EventModel).order_by(EventModel.id.desc()).limit(limit)
        if action is not None:
            query = query.where(EventModel.action == action)
        if subject_id is not None:
            query = query.where(EventModel.subject_id == subject_id)
        with self._session_factory() as session:
            rows = session.execute(query).scalars().all()
            return [_row_to_event(row) for row in rows]


@lru_cache
def _default_event_repository() -> InMemoryEventRepository:
    return InMemoryEventRepository()


@lru_cache
def _sql_event_repository() -> SQLEventRepository:
    return SQLEventRepository(get_session_factory())


def get_event_repository() -> EventRepository:
    """Return the configured event repository."""
    if is_database_configured():
        return _sql_event_repository()
    return _default_event_repository()


def record_event(
    *,
    action: EventAction,
    subject_type: str,
    subject_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> ReminderEvent:
    """Persist an audit event."""
    event = ReminderEvent(
        action=action,
        subject_type=subject_type,
        subject_id=subject_id,
        reason=reason,
        metadata=metadata or {},
    )
    return get_event_repository().record(event)


def list_recent_events(
    limit: int = 100,
    *,
    action: str | None = None,
    subject_id: str | None = None,
) -> list[ReminderEvent]:
    """Return the most recent audit events, newest first."""
    return get_event_repository().list_recent(
        limit, action=action, subject_id=subject_id
    )


__all__ = [
    "EventAction",
    "ReminderEvent",
    "EventRepository",
    "InMemoryEventRepository",
    "SQLEventRepository",
    "record_event",
    "list_recent_events",
    "get_event_repository",
]
