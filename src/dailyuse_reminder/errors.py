"""Exception hierarchy for the reminder core."""

from __future__ import annotations


class ReminderError(Exception):
    """Base class for reminder errors."""


class ReminderValidationError(ReminderError, ValueError):
    """Raised when a required field is missing or out of bounds."""


class ReminderStateError(ReminderError, ValueError):
    """Raised on an invalid reminder instance lifecycle transition."""


class ReminderNotFoundError(ReminderError, LookupError):
    """Raised by the application service when a group or template is unknown."""


__all__ = [
    "ReminderError",
    "ReminderValidationError",
    "ReminderStateError",
    "ReminderNotFoundError",
]
