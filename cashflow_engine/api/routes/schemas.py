"""Pydantic schemas for API request/response validation"""

import datetime as dt
from decimal import Decimal
from typing import Annotated, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, model_validator
from pydantic.alias_generators import to_camel

from cashflow_engine.domain.models import (
    CalendarEvent,
    CalendarResult,
    DailyTotals,
    DashboardMetrics,
    EventStatus,
    Frequency,
    Installment,
    InstallmentStatus,
    RecurringState,
    RecurringTransaction,
    Transaction,
    TransactionType,
)
from cashflow_engine.domain.installments import MAX_INSTALLMENTS, generate_installment_schedule, next_slot
from cashflow_engine.utils.money import from_cents

# Decimal in Python, plain JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float)]

PositiveAmount = Annotated[Decimal, Field(gt=0, max_digits=14, decimal_places=2)]


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Transactions

class TransactionCreateRequest(CamelModel):
    """Request body for POST /transactions"""

    description: str = Field(..., min_length=1)
    amount: PositiveAmount
    type: TransactionType
    category_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    date: Optional[dt.date] = None
    is_scheduled: bool = False
    scheduled_date: Optional[dt.date] = None
    credit_card_id: Optional[str] = None
    installment_id: Optional[str] = None

    @model_validator(mode="after")
    def check_schedule(self) -> "TransactionCreateRequest":
        if self.is_scheduled and self.scheduled_date is None:
            raise ValueError("scheduledDate is required when isScheduled is true")
        if not self.is_scheduled and self.scheduled_date is not None:
            raise ValueError("scheduledDate is only allowed when isScheduled is true")
        return self


class TransactionResponse(CamelModel):
    id: str
    description: str
    amount: Money
    type: TransactionType
    date: dt.date
    is_scheduled: bool
    scheduled_date: Optional[dt.date] = None
    category_id: str
    user_id: str
    credit_card_id: Optional[str] = None
    installment_id: Optional[str] = None
    recurring_source_id: Optional[str] = None


def transaction_response(txn: Transaction) -> TransactionResponse:
    return TransactionResponse(
        id=txn.id,
        description=txn.description,
        amount=from_cents(txn.amount_cents),
        type=txn.type,
        date=txn.date,
        is_scheduled=txn.is_scheduled,
        scheduled_date=txn.scheduled_date,
        category_id=txn.category_id,
        user_id=txn.user_id,
        credit_card_id=txn.credit_card_id,
        installment_id=txn.installment_id,
        recurring_source_id=txn.recurring_source_id,
    )


# Recurring transactions

class RecurringTransactionCreateRequest(CamelModel):
    """Request body for POST /recurring-transactions"""

    description: str = Field(..., min_length=1)
    amount: PositiveAmount
    type: TransactionType
    frequency: Frequency
    category_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    start_date: dt.date
    end_date: Optional[dt.date] = None
    credit_card_id: Optional[str] = None


class RecurringTransactionUpdateRequest(CamelModel):
    """Request body for PUT /recurring-transactions/{id}"""

    is_active: bool


class RecurringTransactionResponse(CamelModel):
    id: str
    description: str
    amount: Money
    type: TransactionType
    frequency: Frequency
    start_date: dt.date
    end_date: Optional[dt.date] = None
    next_due_date: dt.date
    is_active: bool
    state: RecurringState
    category_id: str
    user_id: str
    credit_card_id: Optional[str] = None


def recurring_response(record: RecurringTransaction) -> RecurringTransactionResponse:
    return RecurringTransactionResponse(
        id=record.id,
        description=record.description,
        amount=from_cents(record.amount_cents),
        type=record.type,
        frequency=record.frequency,
        start_date=record.start_date,
        end_date=record.end_date,
        next_due_date=record.next_due_date,
        is_active=record.is_active,
        state=record.state,
        category_id=record.category_id,
        user_id=record.user_id,
        credit_card_id=record.credit_card_id,
    )


class ExecuteResponse(CamelModel):
    """Response for POST /recurring-transactions/{id}/execute"""

    transactions: List[TransactionResponse]
    next_due_date: dt.date
    state: RecurringState


# Installments

class InstallmentCreateRequest(CamelModel):
    """Request body for POST /installments"""

    description: str = Field(..., min_length=1)
    total_amount: PositiveAmount
    installments: int = Field(..., le=MAX_INSTALLMENTS)
    category_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    start_date: Optional[dt.date] = None
    credit_card_id: Optional[str] = None


class InstallmentSlotSchema(CamelModel):
    """Single payment in an installment plan"""

    number: int
    due_date: dt.date
    amount: Money


class InstallmentResponse(CamelModel):
    id: str
    description: str
    total_amount: Money
    installments: int
    current_installment: int
    status: InstallmentStatus
    start_date: dt.date
    category_id: str
    user_id: str
    credit_card_id: Optional[str] = None
    schedule: List[InstallmentSlotSchema]
    next_due_date: Optional[dt.date] = None


def installment_response(plan: Installment) -> InstallmentResponse:
    upcoming = next_slot(plan)
    return InstallmentResponse(
        id=plan.id,
        description=plan.description,
        total_amount=from_cents(plan.total_cents),
        installments=plan.installments,
        current_installment=plan.current_installment,
        status=plan.status,
        start_date=plan.start_date,
        category_id=plan.category_id,
        user_id=plan.user_id,
        credit_card_id=plan.credit_card_id,
        schedule=[
            InstallmentSlotSchema(number=s.number, due_date=s.due_date, amount=from_cents(s.amount_cents))
            for s in generate_installment_schedule(plan.total_cents, plan.installments, plan.start_date)
        ],
        next_due_date=upcoming.due_date if upcoming else None,
    )


class InstallmentSyncResponse(CamelModel):
    """Outcome of recounting a plan from its linked transactions"""

    installment: InstallmentResponse
    previous_installment: int
    calculated_installment: int
    difference: int
    transaction_count: int
    is_completed: bool


class InstallmentSyncStatusResponse(CamelModel):
    id: str
    current_installment: int
    transaction_count: int
    installments: int
    status: InstallmentStatus
    is_synced: bool
    needs_sync: bool


# Calendar

class CalendarEventSchema(CamelModel):
    """Single event in a day bucket"""

    id: str
    description: str
    amount: Money
    type: TransactionType
    date: dt.date
    status: EventStatus
    category_id: str
    scheduled_date: Optional[dt.date] = None
    credit_card_id: Optional[str] = None
    is_recurring: bool = False
    recurring_source_id: Optional[str] = None
    installment_id: Optional[str] = None
    installment_number: Optional[int] = None
    frequency: Optional[Frequency] = None


class DailyTotalsSchema(CamelModel):
    income: Money
    expense: Money
    balance: Money
    scheduled_income: Money
    scheduled_expense: Money
    pending_expense: Money


class CalendarResponse(CamelModel):
    """Response for GET /transactions/calendar"""

    year: int
    month: int
    transactions_by_day: Dict[str, List[CalendarEventSchema]]
    confirmed_by_day: Dict[str, List[CalendarEventSchema]]
    scheduled_by_day: Dict[str, List[CalendarEventSchema]]
    pending_by_day: Dict[str, List[CalendarEventSchema]]
    daily_totals: Dict[str, DailyTotalsSchema]
    total_transactions: int
    total_scheduled: int
    total_pending: int


def event_schema(event: CalendarEvent) -> CalendarEventSchema:
    return CalendarEventSchema(
        id=event.id,
        description=event.description,
        amount=from_cents(event.amount_cents),
        type=event.type,
        date=event.date,
        status=event.status,
        category_id=event.category_id,
        scheduled_date=event.scheduled_date,
        credit_card_id=event.credit_card_id,
        is_recurring=event.is_recurring,
        recurring_source_id=event.recurring_source_id,
        installment_id=event.installment_id,
        installment_number=event.installment_number,
        frequency=event.frequency,
    )


def _buckets(by_day: Dict[str, List[CalendarEvent]]) -> Dict[str, List[CalendarEventSchema]]:
    return {day: [event_schema(e) for e in events] for day, events in by_day.items()}


def _totals(totals: DailyTotals) -> DailyTotalsSchema:
    return DailyTotalsSchema(
        income=from_cents(totals.income_cents),
        expense=from_cents(totals.expense_cents),
        balance=from_cents(totals.balance_cents),
        scheduled_income=from_cents(totals.scheduled_income_cents),
        scheduled_expense=from_cents(totals.scheduled_expense_cents),
        pending_expense=from_cents(totals.pending_expense_cents),
    )


def calendar_response(result: CalendarResult) -> CalendarResponse:
    return CalendarResponse(
        year=result.year,
        month=result.month,
        transactions_by_day=_buckets(result.transactions_by_day),
        confirmed_by_day=_buckets(result.confirmed_by_day),
        scheduled_by_day=_buckets(result.scheduled_by_day),
        pending_by_day=_buckets(result.pending_by_day),
        daily_totals={day: _totals(t) for day, t in result.daily_totals.items()},
        total_transactions=result.total_transactions,
        total_scheduled=result.total_scheduled,
        total_pending=result.total_pending,
    )


# Dashboard

class MonthTotals(CamelModel):
    income: Money
    expenses: Money


class Variations(CamelModel):
    income: float
    expense: float


class MetricsSchema(CamelModel):
    max_income: Money
    max_expense: Money
    savings_rate: float
    average_balance: Money
    most_used_category: Optional[str] = None
    days_until_zero: Optional[int] = None
    total_transactions: int
    income_count: int
    expense_count: int


class DashboardResponse(CamelModel):
    """Response for GET /dashboard"""

    month: int
    year: int
    balance: Money
    income: Money
    expenses: Money
    recent_transactions: List[CalendarEventSchema]
    days_in_month: int
    days_remaining_in_month: int
    avg_daily_income: Money
    avg_daily_expense: Money
    previous_month: MonthTotals
    variations: Variations
    metrics: MetricsSchema


def dashboard_response(m: DashboardMetrics) -> DashboardResponse:
    return DashboardResponse(
        month=m.month,
        year=m.year,
        balance=from_cents(m.balance_cents),
        income=from_cents(m.income_cents),
        expenses=from_cents(m.expense_cents),
        recent_transactions=[event_schema(e) for e in m.recent_transactions],
        days_in_month=m.days_in_month,
        days_remaining_in_month=m.days_remaining_in_month,
        avg_daily_income=from_cents(m.avg_daily_income_cents),
        avg_daily_expense=from_cents(m.avg_daily_expense_cents),
        previous_month=MonthTotals(
            income=from_cents(m.previous_income_cents),
            expenses=from_cents(m.previous_expense_cents),
        ),
        variations=Variations(income=m.income_variation, expense=m.expense_variation),
        metrics=MetricsSchema(
            max_income=from_cents(m.max_income_cents),
            max_expense=from_cents(m.max_expense_cents),
            savings_rate=m.savings_rate,
            average_balance=from_cents(m.average_balance_cents),
            most_used_category=m.most_used_category,
            days_until_zero=m.days_until_zero,
            total_transactions=m.total_transactions,
            income_count=m.income_count,
            expense_count=m.expense_count,
        ),
    )
