# PURPOSE: create / list / restore / prune per-user backups.

from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..api.deps import get_backup_service
from ..auth import get_current_user
from ..backup import BackupError, BackupIncomplete, BackupNotFound, BackupService
from ..db import get_db
from ..models import BackupMetadata, UserPublic
from ..security import ensure_csrf

router = APIRouter(prefix="/backups", tags=["backups"])


@router.post("/", response_model=BackupMetadata, status_code=status.HTTP_201_CREATED, dependencies=[Depends(ensure_csrf)])
def create_backup(
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
    backups: BackupService = Depends(get_backup_service),
):
    try:
        return backups.create_backup(db, user.id)
    except BackupError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


@router.get("/", response_model=List[BackupMetadata])
def backup_history(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
    backups: BackupService = Depends(get_backup_service),
):
    return backups.backup_history(db, user.id, limit=limit)


@router.post("/cleanup", dependencies=[Depends(ensure_csrf)])
def cleanup_backups(
    keep_last: int = Query(5, ge=0),
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
    backups: BackupService = Depends(get_backup_service),
) -> Dict[str, int]:
    return {"deleted": backups.cleanup_old_backups(db, user.id, keep_last=keep_last)}


@router.post("/{backup_id}/restore", response_model=BackupMetadata, dependencies=[Depends(ensure_csrf)])
def restore_backup(
    backup_id: str,
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
    backups: BackupService = Depends(get_backup_service),
):
    try:
        return backups.restore_backup(db, user.id, backup_id)
    except BackupNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except BackupIncomplete as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except BackupError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
