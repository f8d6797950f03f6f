# Per-user snapshot / restore of todos, notification settings and calendar mappings.
# - Snapshots live in the `backups` table as JSON.
# - Only complete backups can be restored; the restore outcome is recorded on the backup row.

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db_models import (
    BackupDB,
    CalendarMappingDB,
    NotificationSettingsDB,
    TodoDB,
    UTCDateTime,
    now_utc,
)

logger = logging.getLogger(__name__)

# collection name -> (model, owner column)
BACKUP_COLLECTIONS = {
    "todos": (TodoDB, "owner_id"),
    "notification_settings": (NotificationSettingsDB, "user_id"),
    "calendar_mappings": (CalendarMappingDB, "owner_id"),
}

DEFAULT_HISTORY_LIMIT = 10
DEFAULT_KEEP_LAST = 5


class BackupError(Exception):
    pass


class BackupNotFound(BackupError):
    pass


class BackupIncomplete(BackupError):
    pass


def _row_to_dict(row) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for column in inspect(type(row)).columns:
        value = getattr(row, column.key)
        if isinstance(value, datetime):
            value = value.isoformat()
        out[column.key] = value
    return out


def _dict_to_row(model, data: Dict[str, Any]):
    values: Dict[str, Any] = {}
    for column in inspect(model).columns:
        if column.key not in data:
            continue
        value = data[column.key]
        if value is not None and isinstance(column.type, UTCDateTime):
            value = datetime.fromisoformat(value)
        values[column.key] = value
    return model(**values)


def _new_backup_id(db: Session) -> str:
    stamp = int(time.time() * 1000)
    while db.get(BackupDB, f"backup_{stamp}") is not None:
        stamp += 1
    return f"backup_{stamp}"


class BackupService:
    def create_backup(self, db: Session, user_id: str) -> BackupDB:
        """Snapshot every backed-up collection of ``user_id``."""
        collections = list(BACKUP_COLLECTIONS)
        backup = BackupDB(
            id=_new_backup_id(db),
            user_id=user_id,
            timestamp=now_utc(),
            collections=collections,
            data_count={},
            status="partial",
        )
        db.add(backup)
        db.commit()

        try:
            data: Dict[str, List[Dict[str, Any]]] = {}
            counts: Dict[str, int] = {}
            for name, (model, owner_col) in BACKUP_COLLECTIONS.items():
                rows = db.query(model).filter(getattr(model, owner_col) == user_id).all()
                data[name] = [_row_to_dict(r) for r in rows]
                counts[name] = len(rows)

            backup.data = data
            backup.data_count = counts
            backup.total_count = sum(counts.values())
            backup.status = "complete"
            db.add(backup)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            backup.status = "failed"
            backup.error = str(exc)
            db.add(backup)
            db.commit()
            raise BackupError(f"Backup failed: {exc}") from exc

        db.refresh(backup)
        logger.info("backup %s created for user %s total=%s", backup.id, user_id, backup.total_count)
        return backup

    def get_backup(self, db: Session, user_id: str, backup_id: str) -> Optional[BackupDB]:
        row = db.get(BackupDB, backup_id)
        if row is None or row.user_id != user_id:
            return None
        return row

    def restore_backup(self, db: Session, user_id: str, backup_id: str) -> BackupDB:
        backup = self.get_backup(db, user_id, backup_id)
        if backup is None:
            raise BackupNotFound("Backup not found")
        if backup.status != "complete":
            raise BackupIncomplete("Cannot restore from incomplete backup")

        try:
            restored = 0
            for name in backup.collections:
                model, owner_col = BACKUP_COLLECTIONS[name]
                for item in (backup.data or {}).get(name, []):
                    # never write rows that belong to someone else
                    if item.get(owner_col) != user_id:
                        continue
                    db.merge(_dict_to_row(model, item))
                    restored += 1
            db.commit()
        except (SQLAlchemyError, KeyError, ValueError) as exc:
            db.rollback()
            backup.restored_at = now_utc()
            backup.restore_status = "failed"
            backup.restore_error = str(exc)
            db.add(backup)
            db.commit()
            logger.error("restore of backup %s failed: %s", backup_id, exc)
            raise BackupError(f"Restore failed: {exc}") from exc

        backup.restored_at = now_utc()
        backup.restore_status = "complete"
        backup.restore_error = None
        db.add(backup)
        db.commit()
        db.refresh(backup)
        logger.info("backup %s restored for user %s rows=%s", backup_id, user_id, restored)
        return backup

    def backup_history(self, db: Session, user_id: str, limit: Optional[int] = DEFAULT_HISTORY_LIMIT) -> List[BackupDB]:
        """Newest first."""
        query = (
            db.query(BackupDB)
            .filter(BackupDB.user_id == user_id)
            .order_by(BackupDB.timestamp.desc(), BackupDB.id.desc())
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def cleanup_old_backups(self, db: Session, user_id: str, keep_last: int = DEFAULT_KEEP_LAST) -> int:
        """Delete all but the newest ``keep_last`` backups; returns how many went."""
        stale = self.backup_history(db, user_id, limit=None)[keep_last:]
        for row in stale:
            db.delete(row)
        db.commit()
        return len(stale)
