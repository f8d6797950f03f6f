# PURPOSE: manual calendar sync for the signed-in user.
# Each call reports the mirror outcome; failures come back as success=false, never as errors.

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..api.deps import get_calendar_mirror, get_calendar_sync_job
from ..auth import get_current_user
from ..calendar_sync import CalendarMirror, CalendarSyncJob
from ..db import get_db
from ..models import BatchSyncResult, SyncResult, UserPublic
from ..security import ensure_csrf
from ..store_db import get_todo

router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.get("/status")
def calendar_status(
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
    mirror: CalendarMirror = Depends(get_calendar_mirror),
    job: CalendarSyncJob | None = Depends(get_calendar_sync_job),
):
    return {
        "enabled": mirror.enabled,
        "connected": mirror.tokens.load_credentials(db, user.id) is not None,
        "auto_sync": bool(job and job.running),
    }


@router.post("/sync", response_model=BatchSyncResult, dependencies=[Depends(ensure_csrf)])
def sync_all(
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
    mirror: CalendarMirror = Depends(get_calendar_mirror),
):
    """Mirror every todo of the user that is not yet on the calendar."""
    return mirror.sync_all(db, owner_id=user.id)


@router.post("/todos/{todo_id}", response_model=SyncResult, dependencies=[Depends(ensure_csrf)])
def sync_one(
    todo_id: str,
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
    mirror: CalendarMirror = Depends(get_calendar_mirror),
):
    todo = get_todo(db, todo_id, owner_id=user.id)
    if not todo:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Todo not found")
    return SyncResult(success=mirror.sync_todo(db, todo))


@router.delete("/todos/{todo_id}", response_model=SyncResult, dependencies=[Depends(ensure_csrf)])
def remove_one(
    todo_id: str,
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
    mirror: CalendarMirror = Depends(get_calendar_mirror),
):
    todo = get_todo(db, todo_id, owner_id=user.id)
    if not todo:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Todo not found")
    return SyncResult(success=mirror.remove_todo(db, todo.id))
