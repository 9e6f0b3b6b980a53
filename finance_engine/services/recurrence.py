"""Recurrence stepping and expansion for recurring items."""

from datetime import date
from typing import Optional

from finance_engine.config import get_settings
from finance_engine.models.planning import RecurrenceCadence, RecurrenceRule
from finance_engine.utils.dates import add_days, add_months

_DAYS_PER_STEP = {
    RecurrenceCadence.DAILY: 1,
    RecurrenceCadence.WEEKLY: 7,
    RecurrenceCadence.BIWEEKLY: 14,
    RecurrenceCadence.CUSTOM: 1,  # every `interval` days
}

_MONTHS_PER_STEP = {
    RecurrenceCadence.MONTHLY: 1,
    RecurrenceCadence.QUARTERLY: 3,
    RecurrenceCadence.YEARLY: 12,
}


def occurrence(anchor: date, rule: RecurrenceRule, k: int) -> date:
    """The k-th occurrence counting from ``anchor`` (k=0 is anchor itself).

    Month-based cadences are measured from the anchor, not from the
    previous occurrence, so a short month never shifts later ones.
    """
    if rule.cadence in _MONTHS_PER_STEP:
        months = _MONTHS_PER_STEP[rule.cadence] * rule.interval * k
        return add_months(anchor, months, day=rule.day_of_month or anchor.day)
    return add_days(anchor, _DAYS_PER_STEP[rule.cadence] * rule.interval * k)


def advance(current: date, rule: RecurrenceRule, anchor_day: Optional[int] = None) -> date:
    """Next occurrence after ``current``.

    Month-based steps land on ``rule.day_of_month``, else ``anchor_day``,
    else the day of ``current``, clamped to the end of shorter months.
    """
    if rule.cadence in _MONTHS_PER_STEP:
        months = _MONTHS_PER_STEP[rule.cadence] * rule.interval
        return add_months(current, months, day=rule.day_of_month or anchor_day)
    return add_days(current, _DAYS_PER_STEP[rule.cadence] * rule.interval)


def expand(
    cursor: date,
    rule: RecurrenceRule,
    window_start: date,
    window_end: date,
    limit: Optional[int] = None,
) -> list[date]:
    """
    Occurrence dates in [window_start, window_end], stepping from ``cursor``.

    Occurrences before the window are skipped, not back-filled.
    """
    if limit is None:
        limit = get_settings().engine.max_recurrence_occurrences

    dates = []
    k = 0
    current = cursor
    while current <= window_end and len(dates) < limit:
        if current >= window_start:
            dates.append(current)
        k += 1
        # A cursor far in the past must still terminate.
        if k > limit * 100:
            break
        current = occurrence(cursor, rule, k)
    return dates
