"""Notification collaborator contract and default adapters."""

from __future__ import annotations

from threading import Lock
from typing import Protocol

from .schemas import NotificationPayload
from .utils import logger


class Notifier(Protocol):
    """Port for rendering a reminder notification."""

    def show_notification(self, payload: NotificationPayload) -> None:
        ...


class LoggingNotifier(Notifier):
    """Writes notifications to the application log."""

    def show_notification(self, payload: NotificationPayload) -> None:
        logger.bind(
            reminder_uuid=payload.uuid,
            importance=payload.importance,
        ).info("Reminder: {} - {}", payload.title, payload.body)


class RecordingNotifier(Notifier):
    """Keeps delivered payloads in memory."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._delivered: list[NotificationPayload] = []

    def show_notification(self, payload: NotificationPayload) -> None:
        with self._lock:
            self._delivered.append(payload)

    @property
    def delivered(self) -> list[NotificationPayload]:
        with self._lock:
            return list(self._delivered)


__all__ = ["Notifier", "LoggingNotifier", "RecordingNotifier"]
