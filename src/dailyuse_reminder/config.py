"""Configuration helpers for the reminder runtime."""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger

DEFAULT_TIMEZONE = "UTC"
DEFAULT_BODY = "No description"
DEFAULT_MISFIRE_GRACE_SECONDS = 60


def _candidate_env_paths(start: Path) -> Iterable[Path]:
    """Yield plausible .env locations from closest to farthest."""
    override = os.environ.get("DAILYUSE_ENV_FILE")
    if override:
        yield Path(override).expanduser()

    for directory in (start, *start.parents):
        yield directory / ".env"


def _discover_env_path() -> Path | None:
    """Return the first .env path that exists, if any."""
    package_dir = Path(__file__).resolve().parent
    for candidate in _candidate_env_paths(package_dir):
        if candidate.exists():
            return candidate
    return None


def _load_env_file(path: Path | None = None) -> None:
    """Populate os.environ with values from a .env file if present."""
    env_path = path or _discover_env_path()
    if env_path is None or not env_path.exists():
        logger.debug("No .env file discovered for configuration")
        return

    logger.bind(path=str(env_path)).info("Loading environment variables from .env")
    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        # Existing environment variables win over the file.
        os.environ.setdefault(key, value)


_load_env_file()


def _resolve_timezone(name: str) -> str:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(
            "Invalid timezone configured; defaulting to UTC.",
            timezone=name,
        )
        return DEFAULT_TIMEZONE
    return name


@dataclass(frozen=True)
class Settings:
    """Typed accessors for configuration derived from the environment."""

    timezone: str
    default_body: str
    misfire_grace_seconds: int

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def from_env(cls) -> Settings:
        timezone = _resolve_timezone(
            os.environ.get("DAILYUSE_TIMEZONE", DEFAULT_TIMEZONE).strip()
            or DEFAULT_TIMEZONE
        )
        default_body = os.environ.get("DAILYUSE_DEFAULT_BODY", DEFAULT_BODY)

        grace_env = os.environ.get("DAILYUSE_MISFIRE_GRACE_SECONDS")
        try:
            misfire_grace = (
                int(grace_env) if grace_env is not None else DEFAULT_MISFIRE_GRACE_SECONDS
            )
        except ValueError as exc:
            raise RuntimeError(
                "DAILYUSE_MISFIRE_GRACE_SECONDS must be an integer number of seconds."
            ) from exc

        logger.bind(timezone=timezone, misfire_grace_seconds=misfire_grace).info(
            "Configuration loaded from environment"
        )

        return cls(
            timezone=timezone,
            default_body=default_body,
            misfire_grace_seconds=misfire_grace,
        )


settings = Settings.from_env()
