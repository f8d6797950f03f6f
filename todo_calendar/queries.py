# PURPOSE: in-memory filtering, ordering and statistics over a user's todos.
# - Filter and sort read each todo's category as given; stored rows go through with_live_category first.
# - Statistics always classify from the due date.

from __future__ import annotations

from datetime import UTC, datetime
from typing import Iterable, List, Optional

from .categories import determine_category, is_overdue, is_within_hours
from .models import Todo, TodoFilter, TodoStats


def with_live_category(rows: Iterable, now: Optional[datetime] = None) -> List[Todo]:
    """ORM rows -> Todo schemas carrying the category for ``now``."""
    now = now or datetime.now(UTC)
    return [
        Todo.model_validate(row).model_copy(update={"category": determine_category(row.due_date, now)})
        for row in rows
    ]


def _matches(todo, flt: TodoFilter) -> bool:
    if flt.category and todo.category != flt.category:
        return False
    if flt.priority and todo.priority != flt.priority:
        return False
    if flt.completed is not None and todo.completed != flt.completed:
        return False
    if flt.search:
        needle = flt.search.strip().lower()
        haystacks = (todo.title or "", todo.description or "")
        if needle and not any(needle in h.lower() for h in haystacks):
            return False
    if flt.due_from and todo.due_date < flt.due_from:
        return False
    if flt.due_to and todo.due_date > flt.due_to:
        return False
    return True


def filter_todos(todos: Iterable, flt: Optional[TodoFilter] = None) -> List:
    if flt is None:
        return list(todos)
    return [t for t in todos if _matches(t, flt)]


def _sort_key(todo):
    urgent = todo.category == "urgent"
    return (bool(todo.completed), not urgent, todo.due_date)


def sort_todos(todos: Iterable) -> List:
    """Incomplete first, then urgent before the rest, then by due date."""
    return sorted(todos, key=_sort_key)


def query_todos(rows: Iterable, flt: Optional[TodoFilter] = None, now: Optional[datetime] = None) -> List[Todo]:
    return sort_todos(filter_todos(with_live_category(rows, now), flt))


def compute_stats(todos: Iterable, now: Optional[datetime] = None) -> TodoStats:
    """Single pass over a user's todos."""
    now = now or datetime.now(UTC)
    stats = TodoStats()
    for todo in todos:
        stats.total += 1
        if todo.completed:
            stats.completed += 1
            continue

        if is_overdue(todo.due_date, now):
            stats.overdue += 1
        if is_within_hours(todo.due_date, 2, now):
            stats.urgent += 1

        category = determine_category(todo.due_date, now)
        if category == "today":
            stats.today_count += 1
        elif category == "thisWeek":
            stats.this_week_count += 1
        elif category == "thisMonth":
            stats.this_month_count += 1
    return stats
