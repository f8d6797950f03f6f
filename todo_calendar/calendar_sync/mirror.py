# PURPOSE: best-effort mirroring of todos to calendar events.
# - Public operations return a bool and never raise.
# - The todo -> event mapping lives in calendar_mappings, resolved once into Mapped or Unmapped.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from sqlalchemy.orm import Session

from .. import store_db
from ..config import settings
from ..models import BatchSyncResult
from .client import CalendarClient, build_event
from .tokens import CalendarTokenStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Mapped:
    event_id: str


@dataclass(frozen=True)
class Unmapped:
    pass


MappingState = Union[Mapped, Unmapped]


def create_description(todo) -> str:
    return todo.description or f"Todo: {todo.title}"


def update_description(todo) -> str:
    suffix = " (completed)" if todo.completed else ""
    return f"Todo: {todo.title}{suffix}"


class CalendarMirror:
    def __init__(
        self,
        client: Optional[CalendarClient] = None,
        tokens: Optional[CalendarTokenStore] = None,
        enabled: Optional[bool] = None,
    ):
        self.client = client or CalendarClient()
        self.tokens = tokens or CalendarTokenStore()
        self.enabled = settings.CALENDAR_SYNC_ENABLED if enabled is None else enabled

    def mapping_state(self, db: Session, todo_id: str) -> MappingState:
        row = store_db.get_event_mapping(db, todo_id)
        if row is None or not row.event_id:
            return Unmapped()
        return Mapped(row.event_id)

    def _event(self, todo, description: str) -> dict:
        return build_event(title=todo.title, description=description, start=todo.due_date)

    def create(self, db: Session, todo) -> bool:
        """POST a new event for ``todo`` and remember its id."""
        if not self.enabled:
            return False
        try:
            token = self.tokens.get_access_token(db, todo.owner_id)
            if not token:
                return False
            created = self.client.create_event(token, self._event(todo, create_description(todo)))
            event_id = created.get("id")
            if not event_id:
                logger.warning("calendar create for todo %s returned no event id", todo.id)
                return False
            store_db.save_event_mapping(db, owner_id=todo.owner_id, todo_id=todo.id, event_id=event_id)
            logger.info("calendar event %s created for todo %s", event_id, todo.id)
            return True
        except Exception:
            logger.exception("calendar create failed for todo %s", todo.id)
            return False

    def reconcile(self, db: Session, todo, state: Optional[MappingState] = None) -> bool:
        """Bring the calendar in line with ``todo``: create if unmapped, PUT if mapped."""
        if not self.enabled:
            return False
        if state is None:
            state = self.mapping_state(db, todo.id)
        if isinstance(state, Unmapped):
            return self.create(db, todo)

        try:
            token = self.tokens.get_access_token(db, todo.owner_id)
            if not token:
                return False
            self.client.update_event(token, state.event_id, self._event(todo, update_description(todo)))
            store_db.touch_event_mapping(db, todo.id)
            logger.info("calendar event %s updated for todo %s", state.event_id, todo.id)
            return True
        except Exception:
            logger.exception("calendar update failed for todo %s", todo.id)
            return False

    update = reconcile

    def delete(self, db: Session, todo_id: str) -> bool:
        """Remove the mirrored event; nothing mapped means nothing to do."""
        state = self.mapping_state(db, todo_id)
        if isinstance(state, Unmapped):
            return True
        if not self.enabled:
            return False
        try:
            mapping = store_db.get_event_mapping(db, todo_id)
            token = self.tokens.get_access_token(db, mapping.owner_id)
            if not token:
                return False
            self.client.delete_event(token, state.event_id)
            logger.info("calendar event %s deleted for todo %s", state.event_id, todo_id)
            return True
        except Exception:
            logger.exception("calendar delete failed for todo %s", todo_id)
            return False

    # --- helpers that also maintain the todo's sync flag ---

    def sync_todo(self, db: Session, todo) -> bool:
        ok = self.reconcile(db, todo)
        if ok:
            mapping = store_db.get_event_mapping(db, todo.id)
            store_db.mark_calendar_synced(
                db, todo.id, synced=True, event_id=mapping.event_id if mapping else None
            )
        return ok

    def remove_todo(self, db: Session, todo_id: str) -> bool:
        ok = self.delete(db, todo_id)
        if ok:
            store_db.mark_calendar_synced(db, todo_id, synced=False)
        return ok

    def sync_all(self, db: Session, owner_id: Optional[str] = None) -> BatchSyncResult:
        """Mirror every todo not yet marked as synced."""
        result = BatchSyncResult()
        for todo in store_db.list_unsynced_todos(db, owner_id=owner_id):
            result.processed += 1
            if self.sync_todo(db, todo):
                result.synced += 1
            else:
                result.failed += 1
        if result.processed:
            logger.info(
                "calendar sync processed=%s synced=%s failed=%s",
                result.processed,
                result.synced,
                result.failed,
            )
        return result


# --- background-task entry points (run after the response is sent) ---

SessionFactory = Callable[[], Session]


def mirror_todo(mirror: CalendarMirror, session_factory: SessionFactory, todo_id: str) -> None:
    db = session_factory()
    try:
        todo = store_db.get_todo(db, todo_id)
        if todo is None:
            return
        mirror.sync_todo(db, todo)
    finally:
        db.close()


def unmirror_todo(mirror: CalendarMirror, session_factory: SessionFactory, todo_id: str) -> None:
    db = session_factory()
    try:
        mirror.delete(db, todo_id)
    finally:
        db.close()
