# PURPOSE: notification outbox polled by the browser, plus per-user preferences.

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..api.deps import get_notification_service, load_notification_settings
from ..api.errors import load_failed
from ..auth import get_current_user
from ..db import get_db
from ..models import NotificationPayload, NotificationSettings, UserPublic
from ..notifications import NotificationService
from ..security import ensure_csrf
from ..store_db import list_todos_by_user, upsert_notification_settings

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/", response_model=List[NotificationPayload])
def poll_notifications(
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notification_service),
):
    """Queued event notifications followed by the ones due right now."""
    prefs = load_notification_settings(db, user.id)
    try:
        todos = list_todos_by_user(db, user.id)
    except SQLAlchemyError as exc:
        raise load_failed(exc) from exc
    queued = notifier.drain(user.id)
    due = notifier.due_notifications(todos, prefs)
    return queued + due


@router.get("/settings", response_model=NotificationSettings)
def get_settings(
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    return load_notification_settings(db, user.id)


@router.put("/settings", response_model=NotificationSettings, dependencies=[Depends(ensure_csrf)])
def put_settings(
    payload: NotificationSettings,
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    row = upsert_notification_settings(db, user.id, payload)
    return NotificationSettings.model_validate(row)
