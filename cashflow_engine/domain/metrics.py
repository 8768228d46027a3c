"""Dashboard metrics engine - month rollups on top of calendar output"""

from collections import Counter
from datetime import date
from typing import Mapping, Optional
from cashflow_engine.domain.models import CalendarResult, DashboardMetrics, TransactionType
from cashflow_engine.utils.date_utils import days_in_month


def percent_change(current: int, previous: int) -> float:
    """Change vs previous in percent, 0.0 when there is no baseline"""
    if previous == 0:
        return 0.0
    return round((current - previous) / previous * 100, 2)


def savings_rate(income_cents: int, expense_cents: int) -> float:
    """Share of income kept, in percent; 0.0 without income"""
    if income_cents <= 0:
        return 0.0
    return round((income_cents - expense_cents) / income_cents * 100, 2)


def elapsed_days(year: int, month: int, today: date) -> int:
    """
    Day count used for daily averages.

    Current month: days elapsed so far, today included.
    Any other month: the full length of that month.
    """
    if (today.year, today.month) == (year, month):
        return today.day
    return days_in_month(year, month)


def remaining_days(year: int, month: int, today: date) -> int:
    length = days_in_month(year, month)
    if (today.year, today.month) == (year, month):
        return length - today.day
    if (year, month) < (today.year, today.month):
        return 0
    return length


def days_until_zero(balance_cents: int, expense_cents: int, elapsed: int) -> Optional[int]:
    """
    Days the balance lasts at the current average daily spend, rounded up.

    balance / (expense / elapsed) == balance * elapsed / expense, kept in
    integers so the ceiling is exact.
    """
    if balance_cents <= 0 or expense_cents <= 0:
        return None
    return -(-balance_cents * elapsed // expense_cents)


def compute_dashboard_metrics(
    current: CalendarResult,
    previous: CalendarResult,
    today: date,
    category_names: Optional[Mapping[str, str]] = None,
    recent_limit: int = 10,
) -> DashboardMetrics:
    """
    Derive month-level statistics from two calendar results.

    Only confirmed events count. Ties for the most used category go to the
    category encountered first in calendar order.
    """
    category_names = category_names or {}
    year, month = current.year, current.month

    events = current.confirmed_events()
    incomes = [e.amount_cents for e in events if e.type == TransactionType.INCOME]
    expenses = [e.amount_cents for e in events if e.type == TransactionType.EXPENSE]
    income = sum(incomes)
    expense = sum(expenses)
    balance = income - expense

    previous_events = previous.confirmed_events()
    previous_income = sum(e.amount_cents for e in previous_events if e.type == TransactionType.INCOME)
    previous_expense = sum(e.amount_cents for e in previous_events if e.type == TransactionType.EXPENSE)

    length = days_in_month(year, month)
    elapsed = elapsed_days(year, month, today)

    category_counts = Counter(category_names.get(e.category_id, e.category_id) for e in events)
    most_used = category_counts.most_common(1)[0][0] if category_counts else None

    recent = sorted(events, key=lambda e: e.date, reverse=True)[:recent_limit]

    return DashboardMetrics(
        year=year,
        month=month,
        income_cents=income,
        expense_cents=expense,
        balance_cents=balance,
        days_in_month=length,
        days_elapsed=elapsed,
        days_remaining_in_month=remaining_days(year, month, today),
        avg_daily_income_cents=income / elapsed,
        avg_daily_expense_cents=expense / elapsed,
        average_balance_cents=balance / length,
        previous_income_cents=previous_income,
        previous_expense_cents=previous_expense,
        income_variation=percent_change(income, previous_income),
        expense_variation=percent_change(expense, previous_expense),
        savings_rate=savings_rate(income, expense),
        days_until_zero=days_until_zero(balance, expense, elapsed),
        most_used_category=most_used,
        max_income_cents=max(incomes, default=0),
        max_expense_cents=max(expenses, default=0),
        income_count=len(incomes),
        expense_count=len(expenses),
        total_transactions=len(events),
        recent_transactions=recent,
    )
