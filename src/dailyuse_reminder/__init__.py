"""Reminder templates, schedule calculation, and live job registration."""

from __future__ import annotations

from .cli import main as run_cli
from .groups import SYSTEM_GROUP_ID, ReminderTemplateGroup, create_system_group
from .instances import ReminderInstance
from .schedule_service import ReminderScheduleService, get_reminder_schedule_service
from .services import ReminderApplicationService
from .templates import ReminderTemplate

__all__ = [
    "SYSTEM_GROUP_ID",
    "ReminderTemplate",
    "ReminderTemplateGroup",
    "ReminderInstance",
    "ReminderScheduleService",
    "ReminderApplicationService",
    "create_system_group",
    "get_reminder_schedule_service",
    "run_cli",
]
