"""Date manipulation utilities"""

import calendar
from datetime import date, timedelta
from typing import List, Tuple


def generate_date_range(start: date, end: date) -> List[date]:
    """Generate list of dates from start to end (inclusive)"""
    days = (end - start).days + 1
    return [start + timedelta(days=i) for i in range(days)]


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last day of a calendar month"""
    return date(year, month, 1), date(year, month, days_in_month(year, month))


def previous_month(year: int, month: int) -> Tuple[int, int]:
    """(year, month) of the month before the given one"""
    if month == 1:
        return year - 1, 12
    return year, month - 1


def add_months(from_date: date, months: int) -> date:
    """
    Shift a date by whole calendar months.

    The day of month is preserved when the target month has it, otherwise it is
    clamped to the target month's last day:
        2024-01-31 + 1 month  -> 2024-02-29
        2023-01-31 + 1 month  -> 2023-02-28
        2024-02-29 + 12 months -> 2025-02-28
    """
    month_index = from_date.month - 1 + months
    year = from_date.year + month_index // 12
    month = month_index % 12 + 1
    day = min(from_date.day, days_in_month(year, month))
    return date(year, month, day)
