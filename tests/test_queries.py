from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from todo_calendar.models import TodoFilter
from todo_calendar.queries import compute_stats, filter_todos, sort_todos

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def _todo(title, *, due, category="none", priority="medium", completed=False, description=None):
    return SimpleNamespace(
        id=title,
        title=title,
        description=description,
        due_date=due,
        category=category,
        priority=priority,
        completed=completed,
    )


def test_urgent_sorts_before_sooner_non_urgent():
    a = _todo("A", due=NOW + timedelta(hours=1), category="urgent")
    b = _todo("B", due=NOW + timedelta(minutes=10), category="today")
    assert [t.title for t in sort_todos([b, a])] == ["A", "B"]


def test_incomplete_sorts_before_complete():
    a = _todo("A", due=NOW - timedelta(days=30), category="urgent", completed=True)
    b = _todo("B", due=NOW + timedelta(days=400), category="none")
    assert [t.title for t in sort_todos([a, b])] == ["B", "A"]


def test_ties_break_by_due_date():
    later = _todo("later", due=NOW + timedelta(days=3), category="thisWeek")
    sooner = _todo("sooner", due=NOW + timedelta(days=2), category="thisWeek")
    assert [t.title for t in sort_todos([later, sooner])] == ["sooner", "later"]


def test_all_filter_criteria_are_combined():
    todos = [
        _todo("Buy milk", due=NOW + timedelta(days=1), category="tomorrow", priority="high"),
        _todo("Buy bread", due=NOW + timedelta(days=1), category="tomorrow", priority="low"),
        _todo("Call mom", due=NOW + timedelta(days=1), category="tomorrow", priority="high",
              description="about the milk"),
        _todo("Milk run", due=NOW + timedelta(days=1), category="tomorrow", priority="high", completed=True),
    ]
    flt = TodoFilter(search="MILK", priority="high", completed=False)
    assert [t.title for t in filter_todos(todos, flt)] == ["Buy milk", "Call mom"]


def test_due_range_is_inclusive():
    todos = [_todo(str(d), due=NOW + timedelta(days=d)) for d in range(5)]
    flt = TodoFilter(due_from=NOW + timedelta(days=1), due_to=NOW + timedelta(days=3))
    assert [t.title for t in filter_todos(todos, flt)] == ["1", "2", "3"]


def test_inverted_due_range_is_rejected():
    with pytest.raises(ValidationError):
        TodoFilter(due_from=NOW, due_to=NOW - timedelta(days=1))


def test_category_filter():
    todos = [
        _todo("u", due=NOW, category="urgent"),
        _todo("t", due=NOW, category="today"),
    ]
    assert [t.title for t in filter_todos(todos, TodoFilter(category="today"))] == ["t"]
    assert len(filter_todos(todos, None)) == 2


def test_stats_single_pass():
    todos = [
        _todo("soon", due=NOW + timedelta(minutes=90)),
        _todo("late", due=NOW - timedelta(minutes=10)),
        _todo("today", due=NOW + timedelta(hours=6)),
        _todo("week", due=NOW + timedelta(days=3)),
        _todo("month", due=NOW + timedelta(days=20)),
        _todo("done", due=NOW + timedelta(minutes=30), completed=True),
    ]
    stats = compute_stats(todos, NOW)
    assert stats.total == 6
    assert stats.completed == 1
    assert stats.urgent == 1
    assert stats.overdue == 1
    assert stats.today_count == 1
    assert stats.this_week_count == 1
    assert stats.this_month_count == 1
