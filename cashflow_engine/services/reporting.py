"""Calendar and dashboard read models"""

import time
from datetime import date
from typing import Mapping, Optional
from sqlalchemy.orm import Session

from cashflow_engine.config import settings
from cashflow_engine.domain.calendar import aggregate_calendar
from cashflow_engine.domain.metrics import compute_dashboard_metrics
from cashflow_engine.domain.models import CalendarResult, DashboardMetrics
from cashflow_engine.infrastructure.database.repositories import (
    InstallmentRepository,
    RecurringTransactionRepository,
    TransactionRepository,
    installment_to_domain,
    recurring_to_domain,
    transaction_to_domain,
)
from cashflow_engine.infrastructure.observability.logging import log_calendar_built
from cashflow_engine.infrastructure.observability.metrics import aggregation_duration_histogram
from cashflow_engine.utils.date_utils import month_bounds, previous_month


class ReportingService:
    """Read-only views over committed state; no locking"""

    def __init__(self, db: Session):
        self.transactions = TransactionRepository(db)
        self.recurring = RecurringTransactionRepository(db)
        self.installments = InstallmentRepository(db)

    def calendar(self, month: int, year: int, user_id: Optional[str] = None) -> CalendarResult:
        start_time = time.time()
        with aggregation_duration_histogram.labels(view="calendar").time():
            result = self._aggregate(month, year, user_id)

        log_calendar_built(
            "calendar",
            year,
            month,
            result.total_transactions + result.total_scheduled + result.total_pending,
            (time.time() - start_time) * 1000,
        )
        return result

    def dashboard(
        self,
        month: int,
        year: int,
        today: date,
        category_names: Optional[Mapping[str, str]] = None,
        user_id: Optional[str] = None,
    ) -> DashboardMetrics:
        with aggregation_duration_histogram.labels(view="dashboard").time():
            current = self._aggregate(month, year, user_id)
            prev_year, prev_month = previous_month(year, month)
            previous = self._aggregate(prev_month, prev_year, user_id)
            return compute_dashboard_metrics(
                current,
                previous,
                today=today,
                category_names=category_names,
                recent_limit=settings.dashboard_recent_limit,
            )

    def _aggregate(self, month: int, year: int, user_id: Optional[str]) -> CalendarResult:
        start, end = month_bounds(year, month)
        return aggregate_calendar(
            month,
            year,
            transactions=[transaction_to_domain(r) for r in self.transactions.list_for_period(start, end, user_id)],
            recurring=[recurring_to_domain(r) for r in self.recurring.list_active_until(end, user_id)],
            installments=[installment_to_domain(r) for r in self.installments.list_active(user_id)],
        )
