"""Calendar aggregation - merges event sources into per-day buckets"""

from typing import Dict, Iterable, List
from cashflow_engine.domain.models import (
    CalendarEvent,
    CalendarResult,
    DailyTotals,
    EventStatus,
    Installment,
    RecurringTransaction,
    Transaction,
    TransactionType,
)
from cashflow_engine.domain.installments import pending_slots
from cashflow_engine.domain.recurring import project_occurrences
from cashflow_engine.utils.date_utils import generate_date_range, month_bounds


def _transaction_event(txn: Transaction, status: EventStatus) -> CalendarEvent:
    return CalendarEvent(
        id=txn.id,
        description=txn.description,
        amount_cents=txn.amount_cents,
        type=txn.type,
        date=txn.date,
        status=status,
        category_id=txn.category_id,
        scheduled_date=txn.scheduled_date,
        credit_card_id=txn.credit_card_id,
        is_recurring=txn.recurring_source_id is not None,
        recurring_source_id=txn.recurring_source_id,
        installment_id=txn.installment_id,
    )


def aggregate_calendar(
    month: int,
    year: int,
    transactions: Iterable[Transaction],
    recurring: Iterable[RecurringTransaction],
    installments: Iterable[Installment],
) -> CalendarResult:
    """
    Bucket every event touching the month into mutually exclusive day buckets.

    Sources:
    - confirmed: Transactions with is_scheduled=False, keyed by date
    - scheduled: Transactions with is_scheduled=True, keyed by scheduled_date,
      plus projected occurrences of ACTIVE recurring transactions (status "recurring")
    - pending: unpaid slots of ACTIVE installment plans

    Records outside the month are ignored, so callers may pass a superset.
    Every day of the month gets a key in every mapping, empty when nothing happens.
    """
    start, end = month_bounds(year, month)
    days = [day.isoformat() for day in generate_date_range(start, end)]

    confirmed_by_day: Dict[str, List[CalendarEvent]] = {day: [] for day in days}
    scheduled_by_day: Dict[str, List[CalendarEvent]] = {day: [] for day in days}
    pending_by_day: Dict[str, List[CalendarEvent]] = {day: [] for day in days}

    for txn in transactions:
        if txn.is_scheduled:
            if txn.scheduled_date is not None and start <= txn.scheduled_date <= end:
                scheduled_by_day[txn.scheduled_date.isoformat()].append(
                    _transaction_event(txn, EventStatus.SCHEDULED)
                )
        elif start <= txn.date <= end:
            confirmed_by_day[txn.date.isoformat()].append(_transaction_event(txn, EventStatus.CONFIRMED))

    # Projections begin at next_due_date, which is always after every generated occurrence
    for record in recurring:
        for due in project_occurrences(record, start, end):
            scheduled_by_day[due.isoformat()].append(
                CalendarEvent(
                    id=f"recurring-{record.id}-{due.isoformat()}",
                    description=record.description,
                    amount_cents=record.amount_cents,
                    type=record.type,
                    date=due,
                    status=EventStatus.RECURRING,
                    category_id=record.category_id,
                    scheduled_date=due,
                    credit_card_id=record.credit_card_id,
                    is_recurring=True,
                    recurring_source_id=record.id,
                    frequency=record.frequency,
                )
            )

    for plan in installments:
        for slot in pending_slots(plan):
            if not start <= slot.due_date <= end:
                continue
            pending_by_day[slot.due_date.isoformat()].append(
                CalendarEvent(
                    id=f"installment-{plan.id}-{slot.number}",
                    description=f"{plan.description} - {slot.number}/{plan.installments}",
                    amount_cents=slot.amount_cents,
                    type=TransactionType.EXPENSE,
                    date=slot.due_date,
                    status=EventStatus.PENDING,
                    category_id=plan.category_id,
                    scheduled_date=slot.due_date,
                    credit_card_id=plan.credit_card_id,
                    installment_id=plan.id,
                    installment_number=slot.number,
                )
            )

    daily_totals = {
        day: _totals(confirmed_by_day[day], scheduled_by_day[day], pending_by_day[day]) for day in days
    }
    transactions_by_day = {
        day: confirmed_by_day[day] + scheduled_by_day[day] + pending_by_day[day] for day in days
    }

    return CalendarResult(
        year=year,
        month=month,
        transactions_by_day=transactions_by_day,
        confirmed_by_day=confirmed_by_day,
        scheduled_by_day=scheduled_by_day,
        pending_by_day=pending_by_day,
        daily_totals=daily_totals,
    )


def _sum(events: List[CalendarEvent], type: TransactionType) -> int:
    return sum(e.amount_cents for e in events if e.type == type)


def _totals(
    confirmed: List[CalendarEvent],
    scheduled: List[CalendarEvent],
    pending: List[CalendarEvent],
) -> DailyTotals:
    return DailyTotals(
        income_cents=_sum(confirmed, TransactionType.INCOME),
        expense_cents=_sum(confirmed, TransactionType.EXPENSE),
        scheduled_income_cents=_sum(scheduled, TransactionType.INCOME),
        scheduled_expense_cents=_sum(scheduled, TransactionType.EXPENSE),
        pending_expense_cents=_sum(pending, TransactionType.EXPENSE),
    )
