"""General utilities for the dailyuse_reminder package."""

from __future__ import annotations

import os
import sys
from datetime import UTC, datetime

from loguru import logger

_LOGGER_CONFIGURED = False


def configure_logging(*, force: bool = False) -> None:
    """Set up the global Loguru logger with application defaults."""
    global _LOGGER_CONFIGURED
    if _LOGGER_CONFIGURED and not force:
        return

    log_level = os.getenv("DAILYUSE_LOG_LEVEL", "INFO")
    diagnose = parse_bool(os.getenv("DAILYUSE_LOG_DIAGNOSE", "false"))

    logger.remove()
    logger.add(
        sys.stderr,
        level=log_level,
        backtrace=False,
        diagnose=diagnose,
        enqueue=False,
        colorize=True,
    )

    _LOGGER_CONFIGURED = True


def parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_timestamp(value: str | datetime) -> datetime:
    """Return an aware datetime for an ISO-8601 string or datetime.

    Naive values are taken to be UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


configure_logging()

__all__ = [
    "configure_logging",
    "parse_bool",
    "parse_timestamp",
    "logger",
]
