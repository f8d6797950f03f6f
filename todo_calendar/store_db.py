# Document store adapter: typed CRUD over users, todos, calendar mappings
# and notification settings. Every query is scoped by owner.

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .categories import URGENT_WINDOW, determine_category
from .db_models import (
    CalendarMappingDB,
    NotificationSettingsDB,
    TodoDB,
    UserDB,
    now_utc,
)

# Fields a partial update may touch; completion and dates are handled separately
_UPDATABLE_FIELDS = ("title", "description", "priority")


class TodoLimitExceeded(Exception):
    """Raised when a user already owns the maximum number of todos."""


# --- CRUD: Todos -----------------------------------------------------------


def count_todos(db: Session, *, owner_id: str) -> int:
    return int(db.query(func.count(TodoDB.id)).filter(TodoDB.owner_id == owner_id).scalar() or 0)


def create_todo(db: Session, data, *, owner_id: str, max_per_user: Optional[int] = None) -> TodoDB:
    """Create a todo from a TodoCreate-like object."""
    if max_per_user is not None and count_todos(db, owner_id=owner_id) >= max_per_user:
        raise TodoLimitExceeded(f"todo limit of {max_per_user} reached")

    now = now_utc()
    completed = bool(getattr(data, "completed", False))
    row = TodoDB(
        owner_id=owner_id,
        title=data.title,
        description=getattr(data, "description", None),
        due_date=data.due_date,
        category=determine_category(data.due_date, now),
        priority=getattr(data, "priority", "medium"),
        completed=completed,
        completed_at=now if completed else None,
        is_calendar_synced=False,
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_todo(db: Session, todo_id: str, *, owner_id: Optional[str] = None) -> Optional[TodoDB]:
    """Fetch a single todo; if owner_id is given, enforce ownership."""
    query = db.query(TodoDB).filter(TodoDB.id == todo_id)
    if owner_id is not None:
        query = query.filter(TodoDB.owner_id == owner_id)
    return query.one_or_none()


def list_todos_by_user(db: Session, owner_id: str, category: Optional[str] = None) -> List[TodoDB]:
    """All todos of a user by ascending due date.

    ``category`` filters on the stored bucket, which may be stale.
    """
    query = db.query(TodoDB).filter(TodoDB.owner_id == owner_id)
    if category:
        query = query.filter(TodoDB.category == category)
    return query.order_by(TodoDB.due_date.asc(), TodoDB.created_at.asc()).all()


def list_unsynced_todos(db: Session, owner_id: Optional[str] = None) -> List[TodoDB]:
    query = db.query(TodoDB).filter(TodoDB.is_calendar_synced.is_(False))
    if owner_id is not None:
        query = query.filter(TodoDB.owner_id == owner_id)
    return query.order_by(TodoDB.owner_id.asc(), TodoDB.due_date.asc()).all()


def get_urgent_todos(db: Session, owner_id: str, now: Optional[datetime] = None) -> List[TodoDB]:
    """Incomplete todos due within the urgent window (overdue included)."""
    now = now or now_utc()
    return (
        db.query(TodoDB)
        .filter(
            TodoDB.owner_id == owner_id,
            TodoDB.completed.is_(False),
            TodoDB.due_date <= now + URGENT_WINDOW,
        )
        .order_by(TodoDB.due_date.asc())
        .all()
    )


def update_todo(db: Session, todo_id: str, data, *, owner_id: Optional[str] = None) -> Optional[TodoDB]:
    """Partial update. Returns the updated row or None if not found."""
    row = get_todo(db, todo_id, owner_id=owner_id)
    if not row:
        return None
    now = now_utc()
    for field in _UPDATABLE_FIELDS:
        if getattr(data, field, None) is not None:
            setattr(row, field, getattr(data, field))
    due_date = getattr(data, "due_date", None)
    if due_date is not None:
        row.due_date = due_date
    completed = getattr(data, "completed", None)
    if completed is not None and completed != row.completed:
        row.completed = completed
        row.completed_at = now if completed else None
    row.category = determine_category(row.due_date, now)
    row.updated_at = now
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def mark_calendar_synced(
    db: Session, todo_id: str, *, synced: bool, event_id: Optional[str] = None
) -> Optional[TodoDB]:
    row = get_todo(db, todo_id)
    if not row:
        return None
    row.is_calendar_synced = synced
    if event_id is not None:
        row.calendar_event_id = event_id
    row.updated_at = now_utc()
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def delete_todo(db: Session, todo_id: str, *, owner_id: Optional[str] = None) -> bool:
    """Delete a todo; returns True if deleted, False if not found/forbidden."""
    row = get_todo(db, todo_id, owner_id=owner_id)
    if not row:
        return False
    db.delete(row)
    db.commit()
    return True


# --- Users -----------------------------------------------------------------


def get_user(db: Session, user_id: str) -> Optional[UserDB]:
    return db.get(UserDB, user_id)


def create_or_update_user(
    db: Session,
    *,
    user_id: str,
    email: str,
    display_name: Optional[str] = None,
    photo_url: Optional[str] = None,
) -> UserDB:
    """Insert the profile on first sign-in, refresh it afterwards."""
    now = now_utc()
    row = get_user(db, user_id)
    if row is None:
        row = UserDB(id=user_id, created_at=now)
    row.email = email
    row.display_name = display_name
    row.photo_url = photo_url
    row.updated_at = now
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


# --- Calendar mappings -----------------------------------------------------


def save_event_mapping(db: Session, *, owner_id: str, todo_id: str, event_id: str) -> CalendarMappingDB:
    """Write the todo -> event mapping, overwriting any previous one."""
    now = now_utc()
    row = db.get(CalendarMappingDB, todo_id)
    if row is None:
        row = CalendarMappingDB(todo_id=todo_id, created_at=now)
    row.owner_id = owner_id
    row.event_id = event_id
    row.last_synced = now
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_event_mapping(db: Session, todo_id: str) -> Optional[CalendarMappingDB]:
    return db.get(CalendarMappingDB, todo_id)


def touch_event_mapping(db: Session, todo_id: str) -> None:
    row = db.get(CalendarMappingDB, todo_id)
    if row is None:
        return
    row.last_synced = now_utc()
    db.add(row)
    db.commit()


# --- Notification settings -------------------------------------------------


def get_notification_settings(db: Session, user_id: str) -> Optional[NotificationSettingsDB]:
    return db.get(NotificationSettingsDB, user_id)


def upsert_notification_settings(db: Session, user_id: str, data) -> NotificationSettingsDB:
    now = now_utc()
    row = db.get(NotificationSettingsDB, user_id)
    if row is None:
        row = NotificationSettingsDB(user_id=user_id, created_at=now)
    for field in (
        "enable_email_notifications",
        "enable_push_notifications",
        "reminder_timing",
        "urgent_task_notification",
        "overdue_task_notification",
    ):
        setattr(row, field, getattr(data, field))
    row.updated_at = now
    db.add(row)
    db.commit()
    db.refresh(row)
    return row
