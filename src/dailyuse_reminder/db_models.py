"""SQLAlchemy ORM models for persisting reminder groups, templates, and audit events."""

from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Declarative base for ORM models."""


class ReminderGroupModel(Base):
    """ORM model representing reminder template groups."""

    __tablename__ = "reminder_groups"

    uuid: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    enable_mode: Mapped[str] = mapped_column(String(16), nullable=False)
    templates: Mapped[list[ReminderTemplateModel]] = relationship(
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="ReminderTemplateModel.position",
    )


class ReminderTemplateModel(Base):
    """ORM model representing reminder templates owned by a group."""

    __tablename__ = "reminder_templates"

    uuid: Mapped[str] = mapped_column(String(64), primary_key=True)
    group_uuid: Mapped[str] = mapped_column(
        String(64), ForeignKey("reminder_groups.uuid"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    importance_level: Mapped[str] = mapped_column(String(16), nullable=False)
    self_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notification_settings_json: Mapped[str] = mapped_column(Text, nullable=False)
    time_config_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    group: Mapped[ReminderGroupModel] = relationship(back_populates="templates")


class EventModel(Base):
    """Audit log entries for significant reminder actions."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(128), nullable=False)
    subject_type: Mapped[str] = mapped_column(String(128), nullable=False)
    subject_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)
