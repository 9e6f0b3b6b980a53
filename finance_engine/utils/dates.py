"""Calendar arithmetic used by schedules, budgets and recurrences."""

import calendar
from datetime import date, timedelta
from typing import Optional


def clamp_day_to_month(year: int, month: int, day: int) -> int:
    """Clamp day to valid range for the given year/month."""
    max_day = calendar.monthrange(year, month)[1]
    return min(day, max_day)


def add_days(d: date, n: int) -> date:
    return d + timedelta(days=n)


def add_months(d: date, n: int, day: Optional[int] = None) -> date:
    """Add n months to date d, clamping day to month end.

    When ``day`` is given the result is pinned to that day of the
    target month instead of keeping ``d.day``.
    """
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    day = clamp_day_to_month(year, month, day if day is not None else d.day)
    return d.replace(year=year, month=month, day=day)


def next_day_of_month(day_of_month: int, today: date) -> date:
    """Next date on/after ``today`` that falls on ``day_of_month``."""
    candidate = today.replace(day=clamp_day_to_month(today.year, today.month, day_of_month))
    if candidate < today:
        candidate = add_months(today, 1, day=day_of_month)
    return candidate
