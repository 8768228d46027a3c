"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional


class TransactionType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class Frequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    SEMIANNUAL = "SEMIANNUAL"
    YEARLY = "YEARLY"


class InstallmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class RecurringState(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    ENDED = "ENDED"


class EventStatus(str, Enum):
    """Which source produced a calendar event"""

    CONFIRMED = "confirmed"
    SCHEDULED = "scheduled"
    RECURRING = "recurring"
    PENDING = "pending"


@dataclass
class Transaction:
    """Confirmed or scheduled money movement"""

    id: str
    description: str
    amount_cents: int
    type: TransactionType
    date: date  # Economic date
    category_id: str
    user_id: str
    is_scheduled: bool = False
    scheduled_date: Optional[date] = None
    credit_card_id: Optional[str] = None
    installment_id: Optional[str] = None
    recurring_source_id: Optional[str] = None


@dataclass
class RecurringTransaction:
    """Template that periodically generates Transactions"""

    id: str
    description: str
    amount_cents: int
    type: TransactionType
    frequency: Frequency
    start_date: date
    next_due_date: date
    category_id: str
    user_id: str
    end_date: Optional[date] = None
    is_active: bool = True
    credit_card_id: Optional[str] = None

    @property
    def state(self) -> RecurringState:
        # ENDED wins over PAUSED: once the schedule is exhausted nothing can revive it
        if self.end_date is not None and self.next_due_date > self.end_date:
            return RecurringState.ENDED
        if not self.is_active:
            return RecurringState.PAUSED
        return RecurringState.ACTIVE


@dataclass
class Installment:
    """Purchase split into N payments, tracked by progress"""

    id: str
    description: str
    total_cents: int
    installments: int
    current_installment: int
    status: InstallmentStatus
    start_date: date
    category_id: str
    user_id: str
    credit_card_id: Optional[str] = None


@dataclass
class InstallmentSlot:
    """Single payment in an installment plan"""

    number: int  # 1-based
    due_date: date
    amount_cents: int


@dataclass
class CatchUpBatch:
    """Occurrences owed by a recurring transaction and where its schedule lands afterwards"""

    occurrence_dates: List[date]
    next_due_date: date


@dataclass
class Category:
    """Reference record from the category service"""

    id: str
    name: str
    type: Optional[str] = None


@dataclass
class CalendarEvent:
    """One entry in a day bucket, whatever its source"""

    id: str
    description: str
    amount_cents: int
    type: TransactionType
    date: date
    status: EventStatus
    category_id: str
    scheduled_date: Optional[date] = None
    credit_card_id: Optional[str] = None
    is_recurring: bool = False
    recurring_source_id: Optional[str] = None
    installment_id: Optional[str] = None
    installment_number: Optional[int] = None
    frequency: Optional[Frequency] = None


@dataclass
class DailyTotals:
    income_cents: int = 0
    expense_cents: int = 0
    scheduled_income_cents: int = 0
    scheduled_expense_cents: int = 0
    pending_expense_cents: int = 0

    @property
    def balance_cents(self) -> int:
        return self.income_cents - self.expense_cents


@dataclass
class CalendarResult:
    """Per-day buckets for one month, keyed by ISO date string"""

    year: int
    month: int
    transactions_by_day: Dict[str, List[CalendarEvent]]
    confirmed_by_day: Dict[str, List[CalendarEvent]]
    scheduled_by_day: Dict[str, List[CalendarEvent]]
    pending_by_day: Dict[str, List[CalendarEvent]]
    daily_totals: Dict[str, DailyTotals]

    @property
    def total_transactions(self) -> int:
        return sum(len(events) for events in self.confirmed_by_day.values())

    @property
    def total_scheduled(self) -> int:
        return sum(len(events) for events in self.scheduled_by_day.values())

    @property
    def total_pending(self) -> int:
        return sum(len(events) for events in self.pending_by_day.values())

    def confirmed_events(self) -> List[CalendarEvent]:
        """Confirmed events in calendar order"""
        return [event for day in sorted(self.confirmed_by_day) for event in self.confirmed_by_day[day]]


@dataclass
class DashboardMetrics:
    """Month-level rollup derived from calendar output"""

    year: int
    month: int
    income_cents: int
    expense_cents: int
    balance_cents: int
    days_in_month: int
    days_elapsed: int
    days_remaining_in_month: int
    avg_daily_income_cents: float
    avg_daily_expense_cents: float
    average_balance_cents: float
    previous_income_cents: int
    previous_expense_cents: int
    income_variation: float
    expense_variation: float
    savings_rate: float
    days_until_zero: Optional[int]
    most_used_category: Optional[str]
    max_income_cents: int
    max_expense_cents: int
    income_count: int
    expense_count: int
    total_transactions: int
    recent_transactions: List[CalendarEvent] = field(default_factory=list)
