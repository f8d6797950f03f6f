# API schemas (pydantic v2).
# - Todo schemas validate lengths and required due date; category is derived, never accepted.
# - User / auth / notification / backup / calendar sync schemas.

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from .categories import Category

Priority = Literal["low", "medium", "high", "urgent"]

TITLE_MAX_LENGTH = 1000
DESCRIPTION_MAX_LENGTH = 5000


class TodoCreate(BaseModel):
    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    due_date: datetime
    priority: Priority = "medium"
    completed: bool = False
    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "examples": [
                {"title": "Buy milk", "due_date": "2025-12-31T18:00:00Z"},
                {
                    "title": "Plan trip",
                    "description": "Book flights",
                    "priority": "high",
                    "due_date": "2026-01-15T09:00:00+09:00",
                },
            ]
        },
    )

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


class TodoUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    due_date: datetime | None = None
    priority: Priority | None = None
    completed: bool | None = None
    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "examples": [
                {"completed": True},
                {"priority": "urgent"},
                {"due_date": "2025-12-31T18:00:00Z"},
            ]
        },
    )

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


class Todo(BaseModel):
    id: str
    owner_id: str
    title: str
    description: str | None
    due_date: datetime
    category: Category
    priority: Priority
    completed: bool
    completed_at: datetime | None
    is_calendar_synced: bool
    calendar_event_id: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)  # ORM -> schema


class TodoFilter(BaseModel):
    """In-memory list filter; every criterion that is set must match."""

    category: Category | None = None
    priority: Priority | None = None
    completed: bool | None = None
    search: str | None = None
    due_from: datetime | None = None
    due_to: datetime | None = None

    @field_validator("due_from", "due_to")
    @classmethod
    def assume_utc(cls, value):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def check_range(self):
        if self.due_from and self.due_to and self.due_from > self.due_to:
            raise ValueError("due_from must not be after due_to")
        return self


class TodoStats(BaseModel):
    total: int = 0
    completed: int = 0
    urgent: int = 0
    overdue: int = 0
    today_count: int = 0
    this_week_count: int = 0
    this_month_count: int = 0


# --- User / Auth schemas ---


class UserPublic(BaseModel):
    id: str
    email: EmailStr
    display_name: str | None = None
    photo_url: str | None = None
    model_config = ConfigDict(from_attributes=True)  # allow ORM -> schema


class AuthState(BaseModel):
    initialized: bool
    user: UserPublic | None = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: Literal["bearer"] = "bearer"
    model_config = ConfigDict(
        json_schema_extra={"examples": [{"access_token": "<jwt>", "token_type": "bearer"}]}
    )


# --- Notifications ---

NotificationType = Literal["urgent", "overdue", "reminder", "update", "complete"]


class NotificationPayload(BaseModel):
    id: str  # also used as the browser notification tag
    type: NotificationType
    title: str
    message: str
    timestamp: datetime
    todo_id: str | None = None


class NotificationSettings(BaseModel):
    enable_email_notifications: bool = True
    enable_push_notifications: bool = True
    reminder_timing: int = Field(default=30, ge=1, le=7 * 24 * 60)
    urgent_task_notification: bool = True
    overdue_task_notification: bool = True
    model_config = ConfigDict(from_attributes=True)


# --- Calendar sync ---


class SyncResult(BaseModel):
    success: bool


class BatchSyncResult(BaseModel):
    processed: int = 0
    synced: int = 0
    failed: int = 0


# --- Backups ---

BackupStatus = Literal["complete", "partial", "failed"]


class BackupMetadata(BaseModel):
    id: str
    user_id: str
    timestamp: datetime
    collections: list[str]
    data_count: dict[str, int]
    status: BackupStatus
    error: str | None = None
    total_count: int = 0
    restored_at: datetime | None = None
    restore_status: Literal["complete", "failed"] | None = None
    restore_error: str | None = None
    model_config = ConfigDict(from_attributes=True)
