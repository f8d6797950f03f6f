# PURPOSE: browser notifications for todos.
# - update/complete are queued in a per-user outbox the browser polls.
# - urgent/overdue/reminder are derived from the todo list on each poll.

from __future__ import annotations

import logging
import threading
from collections import defaultdict, deque
from datetime import UTC, datetime, timedelta
from typing import Deque, Dict, Iterable, List, Optional

from .categories import URGENT_WINDOW, is_overdue, is_within_hours
from .models import NotificationPayload, NotificationSettings

logger = logging.getLogger(__name__)

DEFAULT_OUTBOX_SIZE = 100


def _now() -> datetime:
    return datetime.now(UTC)


def urgent_notification(todo, now: Optional[datetime] = None) -> NotificationPayload:
    return NotificationPayload(
        id=f"urgent-{todo.id}",
        type="urgent",
        title="Urgent task",
        message=f'"{todo.title}" is due within 2 hours',
        timestamp=now or _now(),
        todo_id=todo.id,
    )


def overdue_notification(todo, now: Optional[datetime] = None) -> NotificationPayload:
    return NotificationPayload(
        id=f"overdue-{todo.id}",
        type="overdue",
        title="Overdue task",
        message=f'"{todo.title}" is past its due date',
        timestamp=now or _now(),
        todo_id=todo.id,
    )


def reminder_notification(todo, minutes_before: int, now: Optional[datetime] = None) -> NotificationPayload:
    return NotificationPayload(
        id=f"reminder-{todo.id}-{minutes_before}",
        type="reminder",
        title="Reminder",
        message=f'"{todo.title}" is due in {minutes_before} minutes',
        timestamp=now or _now(),
        todo_id=todo.id,
    )


def update_notification(todo, now: Optional[datetime] = None) -> NotificationPayload:
    return NotificationPayload(
        id=f"update-{todo.id}",
        type="update",
        title="Task updated",
        message=f'"{todo.title}" was updated',
        timestamp=now or _now(),
        todo_id=todo.id,
    )


def complete_notification(todo, now: Optional[datetime] = None) -> NotificationPayload:
    return NotificationPayload(
        id=f"complete-{todo.id}",
        type="complete",
        title="Task completed",
        message=f'"{todo.title}" was completed',
        timestamp=now or _now(),
        todo_id=todo.id,
    )


class NotificationService:
    def __init__(self, max_per_user: int = DEFAULT_OUTBOX_SIZE):
        self.max_per_user = max_per_user
        self._outbox: Dict[str, Deque[NotificationPayload]] = defaultdict(
            lambda: deque(maxlen=self.max_per_user)
        )
        # endpoints and background tasks run on different threads
        self._lock = threading.Lock()

    def deliver(
        self,
        user_id: str,
        payload: NotificationPayload,
        prefs: Optional[NotificationSettings] = None,
    ) -> bool:
        """Queue ``payload`` for the user unless push notifications are off."""
        prefs = prefs or NotificationSettings()
        if not prefs.enable_push_notifications:
            return False
        with self._lock:
            queue = self._outbox[user_id]
            # same id replaces the older entry, like a browser notification tag
            for existing in list(queue):
                if existing.id == payload.id:
                    queue.remove(existing)
            queue.append(payload)
        logger.debug("queued %s notification %s for user %s", payload.type, payload.id, user_id)
        return True

    def notify_urgent(self, user_id: str, todo, prefs: Optional[NotificationSettings] = None) -> bool:
        prefs = prefs or NotificationSettings()
        if not prefs.urgent_task_notification:
            return False
        return self.deliver(user_id, urgent_notification(todo), prefs)

    def notify_overdue(self, user_id: str, todo, prefs: Optional[NotificationSettings] = None) -> bool:
        prefs = prefs or NotificationSettings()
        if not prefs.overdue_task_notification:
            return False
        return self.deliver(user_id, overdue_notification(todo), prefs)

    def notify_reminder(
        self, user_id: str, todo, minutes_before: int, prefs: Optional[NotificationSettings] = None
    ) -> bool:
        return self.deliver(user_id, reminder_notification(todo, minutes_before), prefs)

    def notify_update(self, user_id: str, todo, prefs: Optional[NotificationSettings] = None) -> bool:
        return self.deliver(user_id, update_notification(todo), prefs)

    def notify_complete(self, user_id: str, todo, prefs: Optional[NotificationSettings] = None) -> bool:
        return self.deliver(user_id, complete_notification(todo), prefs)

    def due_notifications(
        self,
        todos: Iterable,
        prefs: Optional[NotificationSettings] = None,
        now: Optional[datetime] = None,
    ) -> List[NotificationPayload]:
        """Time-based notifications for the current state of ``todos``.

        A todo gets at most one notification: overdue first, then the
        reminder when inside the reminder window, else urgent.
        """
        prefs = prefs or NotificationSettings()
        if not prefs.enable_push_notifications:
            return []
        now = now or _now()
        urgent_hours = URGENT_WINDOW / timedelta(hours=1)
        reminder_hours = prefs.reminder_timing / 60

        out: List[NotificationPayload] = []
        for todo in todos:
            if todo.completed:
                continue
            if is_overdue(todo.due_date, now):
                if prefs.overdue_task_notification:
                    out.append(overdue_notification(todo, now))
            elif is_within_hours(todo.due_date, reminder_hours, now):
                out.append(reminder_notification(todo, prefs.reminder_timing, now))
            elif is_within_hours(todo.due_date, urgent_hours, now):
                if prefs.urgent_task_notification:
                    out.append(urgent_notification(todo, now))
        return out

    def pending(self, user_id: str) -> List[NotificationPayload]:
        with self._lock:
            return list(self._outbox.get(user_id, ()))

    def drain(self, user_id: str) -> List[NotificationPayload]:
        """Return and clear the user's queued notifications."""
        with self._lock:
            queue = self._outbox.pop(user_id, None)
        return list(queue) if queue else []

    def clear(self) -> None:
        with self._lock:
            self._outbox.clear()
