"""Recurring transaction state machine and catch-up planning"""

import uuid
from dataclasses import replace
from datetime import date
from typing import List, Optional
from cashflow_engine.domain.models import (
    CatchUpBatch,
    Frequency,
    RecurringState,
    RecurringTransaction,
    Transaction,
    TransactionType,
)
from cashflow_engine.domain.exceptions import InvalidStateError, NotDueError, ValidationError
from cashflow_engine.domain.frequency import next_occurrence, occurrences_between


def create_recurring(
    description: str,
    amount_cents: int,
    type: TransactionType,
    frequency: Frequency,
    start_date: date,
    category_id: str,
    user_id: str,
    end_date: Optional[date] = None,
    credit_card_id: Optional[str] = None,
) -> RecurringTransaction:
    """
    Build a new ACTIVE recurring transaction whose first occurrence is start_date.

    Raises:
        ValidationError: amount <= 0 or end_date before start_date
    """
    if amount_cents <= 0:
        raise ValidationError("amount", "Amount must be positive")
    if end_date is not None and end_date < start_date:
        raise ValidationError("endDate", "End date cannot be before start date")

    return RecurringTransaction(
        id=str(uuid.uuid4()),
        description=description,
        amount_cents=amount_cents,
        type=type,
        frequency=frequency,
        start_date=start_date,
        next_due_date=start_date,
        category_id=category_id,
        user_id=user_id,
        end_date=end_date,
        is_active=True,
        credit_card_id=credit_card_id,
    )


def plan_catch_up(record: RecurringTransaction, as_of: date, limit: Optional[int] = None) -> CatchUpBatch:
    """
    Compute every occurrence owed as of `as_of` (catch-up policy).

    One occurrence per missed period, stopping at end_date. The returned
    next_due_date is past `as_of`, or past end_date when the schedule ran out.
    With `limit`, at most that many occurrences are planned and next_due_date
    points at the first one left for a later run.

    Raises:
        InvalidStateError: record is PAUSED or ENDED
        NotDueError: nothing is due yet
    """
    state = record.state
    if state != RecurringState.ACTIVE:
        raise InvalidStateError(f"Recurring transaction {record.id} is {state.value}")
    if record.next_due_date > as_of:
        raise NotDueError(
            f"Recurring transaction {record.id} is not due until {record.next_due_date.isoformat()}"
        )

    occurrence_dates = []
    due = record.next_due_date
    while due <= as_of and (record.end_date is None or due <= record.end_date):
        if limit is not None and len(occurrence_dates) >= limit:
            break
        occurrence_dates.append(due)
        due = next_occurrence(due, record.frequency)

    return CatchUpBatch(occurrence_dates=occurrence_dates, next_due_date=due)


def build_occurrence(record: RecurringTransaction, occurrence_date: date) -> Transaction:
    """Confirmed Transaction generated by `record` for one due date"""
    return Transaction(
        id=str(uuid.uuid4()),
        description=record.description,
        amount_cents=record.amount_cents,
        type=record.type,
        date=occurrence_date,
        category_id=record.category_id,
        user_id=record.user_id,
        is_scheduled=False,
        credit_card_id=record.credit_card_id,
        recurring_source_id=record.id,
    )


def set_active(record: RecurringTransaction, active: bool) -> RecurringTransaction:
    """
    Pause or resume without touching next_due_date.

    Raises:
        InvalidStateError: record is ENDED
    """
    if record.state == RecurringState.ENDED:
        raise InvalidStateError(f"Recurring transaction {record.id} has ended")
    return replace(record, is_active=active)


def project_occurrences(record: RecurringTransaction, start: date, end: date) -> List[date]:
    """Future (not yet generated) occurrence dates of an ACTIVE record within [start, end]"""
    if record.state != RecurringState.ACTIVE:
        return []
    return list(
        occurrences_between(record.next_due_date, record.frequency, start, end, until=record.end_date)
    )
