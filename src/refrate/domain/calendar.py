"""
Business-Day Calendar

Weekend-aware date arithmetic used for planned dispatch dates and for
flagging historical rate rows. Holidays are only flagged, never skipped.

Files that USE this module:
- refrate.application.dispatch_dates (computed planned dates)
- refrate.application.statistics (rate preload window)
- refrate.application.daily_rates (weekend/holiday flags)
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Union

# Fixed-date national holidays (MM-DD); movable holidays are not tracked
FIXED_HOLIDAYS = frozenset({"01-01", "05-01", "07-20", "08-07", "12-08", "12-25"})

DateLike = Union[date, datetime]


def _as_date(value: DateLike) -> date:
    return value.date() if isinstance(value, datetime) else value


def is_weekend(day: DateLike) -> bool:
    return _as_date(day).weekday() >= 5


def is_fixed_holiday(day: DateLike) -> bool:
    return _as_date(day).strftime("%m-%d") in FIXED_HOLIDAYS


def add_business_days(start: DateLike, days: int) -> date:
    """
    Move forward by a number of business days, skipping Saturdays and Sundays.

    Args:
        start: Starting date (a datetime is truncated to its date)
        days: Business days to add (0 returns the start date)

    Returns:
        The resulting date

    Example:
        add_business_days(date(2024, 1, 5), 1) == date(2024, 1, 8)
    """
    if days < 0:
        raise ValueError("days must be non-negative")

    current = _as_date(start)
    remaining = days
    while remaining > 0:
        current += timedelta(days=1)
        if not is_weekend(current):
            remaining -= 1
    return current
