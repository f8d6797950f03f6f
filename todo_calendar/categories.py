# PURPOSE: due-date urgency buckets.
# The only place a todo's category is derived; sorting, filtering, stats and store writes call determine_category.

from __future__ import annotations

from datetime import UTC, datetime, timedelta, tzinfo
from typing import Literal, get_args
from zoneinfo import ZoneInfo

from .config import settings

Category = Literal[
    "urgent",  # due within 2 hours (or already past)
    "today",
    "tomorrow",
    "thisWeek",
    "thisMonth",
    "halfYear",
    "none",
]

CATEGORIES: tuple[str, ...] = get_args(Category)

URGENT_WINDOW = timedelta(hours=2)

# (max calendar-day difference, category), checked in order
_DAY_THRESHOLDS: tuple[tuple[int, Category], ...] = (
    (0, "today"),
    (1, "tomorrow"),
    (7, "thisWeek"),
    (30, "thisMonth"),
    (180, "halfYear"),
)


def app_timezone() -> tzinfo:
    return ZoneInfo(settings.TIMEZONE)


def _aware(dt: datetime) -> datetime:
    # naive values are treated as UTC, matching what the store hands back
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


def calendar_day_difference(due: datetime, now: datetime, tz: tzinfo | None = None) -> int:
    """Whole calendar days from today to the due date in ``tz``."""
    tz = tz or app_timezone()
    due_day = _aware(due).astimezone(tz).date()
    today = _aware(now).astimezone(tz).date()
    return (due_day - today).days


def determine_category(
    due: datetime,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> Category:
    """Classify a due timestamp relative to ``now``.

    Anything due within two hours is ``urgent`` regardless of the calendar
    day; otherwise the calendar-day distance picks the bucket.
    """
    now = _aware(now or datetime.now(UTC))
    due = _aware(due)

    if due - now <= URGENT_WINDOW:
        return "urgent"

    days = calendar_day_difference(due, now, tz)
    for max_days, category in _DAY_THRESHOLDS:
        if days <= max_days:
            return category
    return "none"


def is_overdue(due: datetime, now: datetime | None = None) -> bool:
    now = _aware(now or datetime.now(UTC))
    return now > _aware(due)


def is_within_hours(due: datetime, hours: float, now: datetime | None = None) -> bool:
    """True when ``due`` lies between now and ``hours`` from now (inclusive)."""
    now = _aware(now or datetime.now(UTC))
    remaining = _aware(due) - now
    return timedelta(0) <= remaining <= timedelta(hours=hours)
