"""Optional SQLAlchemy storage for reminder groups and audit events."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from threading import Lock

from pydantic import BaseModel, Field
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from .utils import logger, parse_bool

STORAGE_MODES = ("memory", "auto", "database")


class DatabaseSettings(BaseModel):
    """Storage selection read from ``DAILYUSE_DB_*`` variables."""

    url: str | None = Field(default=None)
    echo: bool = Field(default=False)
    mode: str = Field(default="memory")

    @classmethod
    def load(cls) -> DatabaseSettings:
        mode = os.getenv("DAILYUSE_DB_MODE", "memory").strip().lower()
        if mode not in STORAGE_MODES:
            logger.warning("Unknown storage mode; keeping reminders in memory.", mode=mode)
            mode = "memory"
        return cls(
            url=os.getenv("DAILYUSE_DB_URL") or None,
            echo=parse_bool(os.getenv("DAILYUSE_DB_ECHO", "false")),
            mode=mode,
        )

    @property
    def uses_database(self) -> bool:
        return self.mode != "memory" and bool(self.url)

    @property
    def sqlite_path(self) -> Path | None:
        if self.url and self.url.startswith("sqlite:///"):
            return Path(self.url.removeprefix("sqlite:///"))
        return None


@lru_cache
def get_database_settings() -> DatabaseSettings:
    """Return cached database settings."""
    return DatabaseSettings.load()


def is_database_configured() -> bool:
    """Return True when reminder storage should go through SQLAlchemy."""
    return get_database_settings().uses_database


def prepare_schema(engine: Engine) -> None:
    """Create the reminder and event tables when missing."""
    from .db_models import Base  # Local import to avoid circular deps

    Base.metadata.create_all(engine)


def create_database_engine(settings: DatabaseSettings) -> Engine:
    """Build an engine for ``settings`` with its schema in place."""
    if settings.url is None:
        raise RuntimeError("DAILYUSE_DB_URL is not set.")
    sqlite_path = settings.sqlite_path
    if sqlite_path is not None:
        sqlite_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(settings.url, echo=settings.echo, future=True)
    prepare_schema(engine)
    logger.bind(url=engine.url.render_as_string(hide_password=True)).info(
        "Reminder database ready"
    )
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, future=True)


_engine_lock = Lock()
_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def get_engine() -> Engine | None:
    """Return the shared engine, or None while storage stays in memory."""
    global _engine

    settings = get_database_settings()
    if not settings.uses_database:
        return None

    if _engine is None:
        with _engine_lock:
            if _engine is None:
                _engine = create_database_engine(settings)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Return the shared session factory for the configured engine."""
    global _session_factory
    engine = get_engine()
    if engine is None:
        raise RuntimeError(
            "Database is not configured. Set DAILYUSE_DB_URL and "
            "DAILYUSE_DB_MODE=database (or auto) to enable SQL storage."
        )

    if _session_factory is None:
        with _engine_lock:
            if _session_factory is None:
                _session_factory = create_session_factory(engine)
    return _session_factory


__all__ = [
    "DatabaseSettings",
    "create_database_engine",
    "create_session_factory",
    "get_database_settings",
    "get_engine",
    "get_session_factory",
    "is_database_configured",
    "prepare_schema",
]
