"""Data access layer for transactions, recurring templates and installment plans"""

from datetime import date
from typing import List, Optional
from sqlalchemy import and_, func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from cashflow_engine.infrastructure.database.models import (
    InstallmentRecord,
    RecurringTransactionRecord,
    TransactionRecord,
)
from cashflow_engine.domain.models import (
    Installment,
    InstallmentStatus,
    RecurringTransaction,
    Transaction,
)
from cashflow_engine.domain.exceptions import ConcurrencyConflictError

# PostgreSQL names the constraint; SQLite names the columns
_DUPLICATE_OCCURRENCE_MARKERS = (
    "uq_transaction_recurring_occurrence",
    "financial_transaction.recurring_source_id, financial_transaction.date",
)


def is_duplicate_occurrence(error: IntegrityError) -> bool:
    """True when the violation is the one-transaction-per-occurrence guard"""
    message = str(error.orig)
    return any(marker in message for marker in _DUPLICATE_OCCURRENCE_MARKERS)


def transaction_to_domain(row: TransactionRecord) -> Transaction:
    return Transaction(
        id=row.id,
        description=row.description,
        amount_cents=row.amount_cents,
        type=row.type,
        date=row.date,
        category_id=row.category_id,
        user_id=row.user_id,
        is_scheduled=row.is_scheduled,
        scheduled_date=row.scheduled_date,
        credit_card_id=row.credit_card_id,
        installment_id=row.installment_id,
        recurring_source_id=row.recurring_source_id,
    )


def recurring_to_domain(row: RecurringTransactionRecord) -> RecurringTransaction:
    return RecurringTransaction(
        id=row.id,
        description=row.description,
        amount_cents=row.amount_cents,
        type=row.type,
        frequency=row.frequency,
        start_date=row.start_date,
        next_due_date=row.next_due_date,
        category_id=row.category_id,
        user_id=row.user_id,
        end_date=row.end_date,
        is_active=row.is_active,
        credit_card_id=row.credit_card_id,
    )


def installment_to_domain(row: InstallmentRecord) -> Installment:
    return Installment(
        id=row.id,
        description=row.description,
        total_cents=row.total_cents,
        installments=row.installments,
        current_installment=row.current_installment,
        status=row.status,
        start_date=row.start_date,
        category_id=row.category_id,
        user_id=row.user_id,
        credit_card_id=row.credit_card_id,
    )


class TransactionRepository:
    """Repository for transactions"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, txn: Transaction) -> TransactionRecord:
        """Stage a transaction in the current unit of work"""
        row = TransactionRecord(
            id=txn.id,
            description=txn.description,
            amount_cents=txn.amount_cents,
            type=txn.type,
            date=txn.date,
            is_scheduled=txn.is_scheduled,
            scheduled_date=txn.scheduled_date,
            category_id=txn.category_id,
            credit_card_id=txn.credit_card_id,
            installment_id=txn.installment_id,
            recurring_source_id=txn.recurring_source_id,
            user_id=txn.user_id,
        )
        self.db.add(row)
        self.db.flush()  # Surface constraint violations without committing
        return row

    def get(self, transaction_id: str) -> Optional[TransactionRecord]:
        return self.db.get(TransactionRecord, transaction_id)

    def list_for_period(self, start: date, end: date, user_id: Optional[str] = None) -> List[TransactionRecord]:
        """Confirmed transactions dated in [start, end] and scheduled ones due in [start, end]"""
        query = self.db.query(TransactionRecord).filter(
            or_(
                and_(
                    TransactionRecord.is_scheduled.is_(False),
                    TransactionRecord.date >= start,
                    TransactionRecord.date <= end,
                ),
                and_(
                    TransactionRecord.is_scheduled.is_(True),
                    TransactionRecord.scheduled_date >= start,
                    TransactionRecord.scheduled_date <= end,
                ),
            )
        )
        if user_id is not None:
            query = query.filter(TransactionRecord.user_id == user_id)
        return query.order_by(TransactionRecord.date, TransactionRecord.created_at).all()

    def list_scheduled_due(self, as_of: date) -> List[TransactionRecord]:
        return (
            self.db.query(TransactionRecord)
            .filter(TransactionRecord.is_scheduled.is_(True), TransactionRecord.scheduled_date <= as_of)
            .order_by(TransactionRecord.scheduled_date)
            .all()
        )

    def list_scheduled(
        self,
        user_id: Optional[str] = None,
        pending_from: Optional[date] = None,
        limit: int = 50,
    ) -> List[TransactionRecord]:
        """Unconfirmed scheduled transactions, soonest first; `pending_from` drops overdue ones"""
        query = self.db.query(TransactionRecord).filter(TransactionRecord.is_scheduled.is_(True))
        if user_id is not None:
            query = query.filter(TransactionRecord.user_id == user_id)
        if pending_from is not None:
            query = query.filter(TransactionRecord.scheduled_date >= pending_from)
        return query.order_by(TransactionRecord.scheduled_date).limit(limit).all()

    def count_for_installment(self, installment_id: str) -> int:
        return self.db.query(TransactionRecord).filter(TransactionRecord.installment_id == installment_id).count()

    def delete(self, row: TransactionRecord) -> None:
        self.db.delete(row)
        self.db.flush()

    def confirm(self, row: TransactionRecord) -> TransactionRecord:
        """Move a scheduled transaction to its scheduled date and mark it confirmed"""
        row.date = row.scheduled_date or row.date
        row.is_scheduled = False
        row.scheduled_date = None
        self.db.flush()
        return row


class RecurringTransactionRepository:
    """Repository for recurring transaction templates"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, record: RecurringTransaction) -> RecurringTransactionRecord:
        row = RecurringTransactionRecord(
            id=record.id,
            description=record.description,
            amount_cents=record.amount_cents,
            type=record.type,
            frequency=record.frequency,
            start_date=record.start_date,
            end_date=record.end_date,
            next_due_date=record.next_due_date,
            is_active=record.is_active,
            category_id=record.category_id,
            credit_card_id=record.credit_card_id,
            user_id=record.user_id,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def get(self, recurring_id: str) -> Optional[RecurringTransactionRecord]:
        """Fetch the committed row, bypassing any stale copy in the identity map"""
        return self.db.get(RecurringTransactionRecord, recurring_id, populate_existing=True)

    def list(self, user_id: Optional[str] = None) -> List[RecurringTransactionRecord]:
        """Every template regardless of state, soonest next occurrence first"""
        query = self.db.query(RecurringTransactionRecord)
        if user_id is not None:
            query = query.filter(RecurringTransactionRecord.user_id == user_id)
        return query.order_by(RecurringTransactionRecord.next_due_date).all()

    def _active(self):
        return self.db.query(RecurringTransactionRecord).filter(
            RecurringTransactionRecord.is_active.is_(True),
            or_(
                RecurringTransactionRecord.end_date.is_(None),
                RecurringTransactionRecord.next_due_date <= RecurringTransactionRecord.end_date,
            ),
        )

    def list_due(self, as_of: date) -> List[RecurringTransactionRecord]:
        """ACTIVE templates with at least one occurrence due on or before as_of"""
        return (
            self._active()
            .filter(RecurringTransactionRecord.next_due_date <= as_of)
            .order_by(RecurringTransactionRecord.next_due_date)
            .all()
        )

    def list_active_until(self, end: date, user_id: Optional[str] = None) -> List[RecurringTransactionRecord]:
        """ACTIVE templates whose next occurrence is on or before `end`"""
        query = self._active().filter(RecurringTransactionRecord.next_due_date <= end)
        if user_id is not None:
            query = query.filter(RecurringTransactionRecord.user_id == user_id)
        return query.order_by(RecurringTransactionRecord.next_due_date).all()

    def count_due_between(self, after: Optional[date], until: date) -> int:
        query = self._active().filter(RecurringTransactionRecord.next_due_date <= until)
        if after is not None:
            query = query.filter(RecurringTransactionRecord.next_due_date > after)
        return query.count()

    def advance_due_date(self, recurring_id: str, expected_version: int, next_due_date: date) -> bool:
        """
        Compare-and-set next_due_date on the row version.

        Only succeeds when the stored version still equals `expected_version`;
        returns False when another writer executed, paused or resumed the
        record first.
        """
        result = self.db.execute(
            update(RecurringTransactionRecord)
            .where(
                RecurringTransactionRecord.id == recurring_id,
                RecurringTransactionRecord.version == expected_version,
            )
            .values(
                next_due_date=next_due_date,
                last_executed_at=func.now(),
                version=RecurringTransactionRecord.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def set_active(self, row: RecurringTransactionRecord, active: bool) -> RecurringTransactionRecord:
        row.is_active = active
        row.version = row.version + 1  # Makes in-flight executions lose their compare-and-set
        self.db.flush()
        return row


class InstallmentRepository:
    """Repository for installment plans"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, plan: Installment) -> InstallmentRecord:
        row = InstallmentRecord(
            id=plan.id,
            description=plan.description,
            total_cents=plan.total_cents,
            installments=plan.installments,
            current_installment=plan.current_installment,
            status=plan.status,
            start_date=plan.start_date,
            category_id=plan.category_id,
            credit_card_id=plan.credit_card_id,
            user_id=plan.user_id,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def get(self, installment_id: str) -> Optional[InstallmentRecord]:
        return self.db.get(InstallmentRecord, installment_id)

    def list(self, user_id: Optional[str] = None, status: Optional[InstallmentStatus] = None) -> List[InstallmentRecord]:
        query = self.db.query(InstallmentRecord)
        if user_id is not None:
            query = query.filter(InstallmentRecord.user_id == user_id)
        if status is not None:
            query = query.filter(InstallmentRecord.status == status)
        return query.order_by(InstallmentRecord.created_at.desc()).all()

    def list_active(self, user_id: Optional[str] = None) -> List[InstallmentRecord]:
        query = self.db.query(InstallmentRecord).filter(InstallmentRecord.status == InstallmentStatus.ACTIVE)
        if user_id is not None:
            query = query.filter(InstallmentRecord.user_id == user_id)
        return query.order_by(InstallmentRecord.start_date).all()

    def save(self, row: InstallmentRecord, plan: Installment) -> InstallmentRecord:
        """
        Write progress back to the row.

        Raises:
            ConcurrencyConflictError: the row changed since it was loaded
        """
        row.current_installment = plan.current_installment
        row.status = plan.status
        try:
            self.db.flush()
        except StaleDataError as e:
            raise ConcurrencyConflictError(f"Installment plan {row.id} was modified concurrently") from e
        return row
