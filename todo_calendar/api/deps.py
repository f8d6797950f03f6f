# Dependencies resolving the services built in the app lifespan.
# Tests swap any of them through app.dependency_overrides.

from fastapi import HTTPException, Request, status
from sqlalchemy.orm import Session

from ..backup import BackupService
from ..calendar_sync import CalendarMirror, CalendarSyncJob
from ..identity import AuthEventStream, GoogleIdentityProvider
from ..models import NotificationSettings
from ..notifications import NotificationService
from .. import store_db


def _service(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} is not available",
        )
    return service


def get_identity_provider(request: Request) -> GoogleIdentityProvider:
    return _service(request, "identity_provider")


def get_auth_events(request: Request) -> AuthEventStream:
    return _service(request, "auth_events")


def get_calendar_mirror(request: Request) -> CalendarMirror:
    return _service(request, "calendar_mirror")


def get_calendar_sync_job(request: Request) -> CalendarSyncJob | None:
    return getattr(request.app.state, "calendar_sync_job", None)


def get_notification_service(request: Request) -> NotificationService:
    return _service(request, "notification_service")


def get_backup_service(request: Request) -> BackupService:
    return _service(request, "backup_service")


def load_notification_settings(db: Session, user_id: str) -> NotificationSettings:
    """Stored preferences, or the defaults for users who never saved any."""
    row = store_db.get_notification_settings(db, user_id)
    if row is None:
        return NotificationSettings()
    return NotificationSettings.model_validate(row)
