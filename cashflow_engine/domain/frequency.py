"""Recurrence arithmetic for recurring transactions"""

from datetime import date, timedelta
from typing import Iterator, Optional
from cashflow_engine.domain.models import Frequency
from cashflow_engine.utils.date_utils import add_months

DAY_STEPS = {
    Frequency.DAILY: 1,
    Frequency.WEEKLY: 7,
    Frequency.BIWEEKLY: 14,
}

MONTH_STEPS = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.SEMIANNUAL: 6,
    Frequency.YEARLY: 12,
}


def next_occurrence(current: date, frequency: Frequency) -> date:
    """
    Date of the occurrence following `current`.

    Day-based frequencies add a fixed number of days. Month-based frequencies
    keep the day of month and clamp to the target month's last day, so
    Jan 31 MONTHLY -> Feb 28/29 and Feb 29 YEARLY -> Feb 28 in non-leap years.

    Always strictly later than `current`.
    """
    if frequency in DAY_STEPS:
        return current + timedelta(days=DAY_STEPS[frequency])
    return add_months(current, MONTH_STEPS[frequency])


def occurrences_between(
    first: date,
    frequency: Frequency,
    start: date,
    end: date,
    until: Optional[date] = None,
) -> Iterator[date]:
    """Walk the series first, next(first), ... yielding dates inside [start, end] and never past `until`"""
    current = first
    last = end if until is None else min(end, until)
    while current <= last:
        if current >= start:
            yield current
        current = next_occurrence(current, frequency)
