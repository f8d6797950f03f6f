# PURPOSE: define how users, todos and their satellite rows look in the database.

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from .db import Base


def now_utc():
    """Return timezone-aware UTC datetime (stored in DB)."""
    return datetime.now(UTC)


def new_id() -> str:
    return uuid.uuid4().hex


class UTCDateTime(TypeDecorator):
    """Store instants as naive UTC, hand them back timezone-aware.

    Naive values coming in are taken to be UTC already.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(UTC).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class UserDB(Base):
    __tablename__ = "users"
    # id is the identity-provider subject
    id: Mapped[str] = mapped_column(String, primary_key=True)
    email: Mapped[str] = mapped_column(String, index=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String, nullable=True)
    photo_url: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=now_utc)

    todos = relationship("TodoDB", backref="owner")


class TodoDB(Base):
    __tablename__ = "todos"

    id = Column(String, primary_key=True, default=new_id)
    owner_id = Column(String, ForeignKey("users.id"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(UTCDateTime, nullable=False)
    category = Column(String, default="none")  # refreshed on every write
    priority = Column(String, default="medium")  # low | medium | high | urgent
    completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(UTCDateTime, nullable=True)
    is_calendar_synced = Column(Boolean, default=False, nullable=False)
    calendar_event_id = Column(String, nullable=True)
    created_at = Column(UTCDateTime, default=now_utc)
    updated_at = Column(UTCDateTime, default=now_utc)


class CalendarMappingDB(Base):
    __tablename__ = "calendar_mappings"
    # No FK to todos: a mapping may outlive its todo
    todo_id: Mapped[str] = mapped_column(String, primary_key=True)
    event_id: Mapped[str] = mapped_column(String, nullable=False)
    owner_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=now_utc)
    last_synced: Mapped[datetime] = mapped_column(UTCDateTime, default=now_utc)


class CalendarCredentialsDB(Base):
    __tablename__ = "calendar_credentials"
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), primary_key=True)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)  # Fernet-encrypted
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)  # Fernet-encrypted
    token_expiry: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    scopes: Mapped[list | None] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=now_utc)


class NotificationSettingsDB(Base):
    __tablename__ = "notification_settings"
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), primary_key=True)
    enable_email_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    enable_push_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    reminder_timing: Mapped[int] = mapped_column(Integer, default=30)  # minutes before due
    urgent_task_notification: Mapped[bool] = mapped_column(Boolean, default=True)
    overdue_task_notification: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=now_utc)


class BackupDB(Base):
    __tablename__ = "backups"
    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, default=now_utc)
    collections: Mapped[list] = mapped_column(JSON, default=list)
    data_count: Mapped[dict] = mapped_column(JSON, default=dict)
    status: Mapped[str] = mapped_column(String, default="partial")  # complete | partial | failed
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    total_count: Mapped[int] = mapped_column(Integer, default=0)
    restored_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    restore_status: Mapped[str | None] = mapped_column(String, nullable=True)
    restore_error: Mapped[str | None] = mapped_column(Text, nullable=True)


# Helpful indexes for the per-owner queries
Index("ix_todos_owner_due", TodoDB.owner_id, TodoDB.due_date)
Index("ix_todos_owner_completed_due", TodoDB.owner_id, TodoDB.completed, TodoDB.due_date)
Index("ix_todos_owner_category_due", TodoDB.owner_id, TodoDB.category, TodoDB.due_date)
Index("ix_todos_owner_priority_due", TodoDB.owner_id, TodoDB.priority, TodoDB.due_date)
Index("ix_calendar_mappings_owner_synced", CalendarMappingDB.owner_id, CalendarMappingDB.last_synced)
Index("ix_backups_user_timestamp", BackupDB.user_id, BackupDB.timestamp)
