"""Transaction writes, deletion and scheduled-transaction confirmation"""

import logging
import uuid
from datetime import date
from typing import List, Optional
from sqlalchemy.orm import Session

from cashflow_engine.domain.models import Transaction, TransactionType
from cashflow_engine.domain.exceptions import NotFoundError, ValidationError
from cashflow_engine.infrastructure.database.repositories import TransactionRepository, transaction_to_domain
from cashflow_engine.services.installment_tracker import InstallmentTracker


class TransactionService:
    """User-facing transaction writes. Callers own the commit."""

    def __init__(self, db: Session, installment_tracker: Optional[InstallmentTracker] = None):
        self.db = db
        self.repo = TransactionRepository(db)
        self.installment_tracker = installment_tracker or InstallmentTracker(db, transaction_repo=self.repo)

    def get(self, transaction_id: str) -> Transaction:
        row = self.repo.get(transaction_id)
        if row is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return transaction_to_domain(row)

    def create(
        self,
        description: str,
        amount_cents: int,
        type: TransactionType,
        category_id: str,
        user_id: str,
        date: date,
        is_scheduled: bool = False,
        scheduled_date: Optional[date] = None,
        credit_card_id: Optional[str] = None,
        installment_id: Optional[str] = None,
    ) -> Transaction:
        """
        Stage a transaction; when it pays an installment plan, record the payment
        in the same unit of work.

        Scheduled transactions take their scheduled date as economic date.

        Raises:
            ValidationError: amount <= 0, or scheduled without a scheduled date
            NotFoundError: installment plan does not exist
            InvalidStateError: installment plan is COMPLETED or CANCELLED
        """
        if amount_cents <= 0:
            raise ValidationError("amount", "Amount must be positive")
        if is_scheduled and scheduled_date is None:
            raise ValidationError("scheduledDate", "Scheduled transactions need a scheduled date")

        txn = Transaction(
            id=str(uuid.uuid4()),
            description=description,
            amount_cents=amount_cents,
            type=type,
            date=scheduled_date if is_scheduled else date,
            category_id=category_id,
            user_id=user_id,
            is_scheduled=is_scheduled,
            scheduled_date=scheduled_date if is_scheduled else None,
            credit_card_id=credit_card_id,
            installment_id=installment_id,
        )

        # Validate the plan before staging anything
        if installment_id is not None:
            self.installment_tracker.record_payment(installment_id)
        self.repo.add(txn)
        return txn

    def delete(self, transaction_id: str) -> None:
        """
        Delete a transaction; a linked ACTIVE installment plan is recounted from
        the transactions that remain.

        Raises:
            NotFoundError: no such transaction
        """
        row = self.repo.get(transaction_id)
        if row is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        installment_id = row.installment_id
        self.repo.delete(row)
        if installment_id is not None:
            self.installment_tracker.sync(installment_id)

    def list_scheduled(
        self,
        user_id: Optional[str] = None,
        pending_from: Optional[date] = None,
        limit: int = 50,
    ) -> List[Transaction]:
        return [transaction_to_domain(row) for row in self.repo.list_scheduled(user_id, pending_from, limit)]

    def confirm(self, transaction_id: str) -> Transaction:
        """
        Raises:
            NotFoundError: no scheduled transaction with that id
        """
        row = self.repo.get(transaction_id)
        if row is None or not row.is_scheduled:
            raise NotFoundError(f"Scheduled transaction {transaction_id} not found")
        return transaction_to_domain(self.repo.confirm(row))

    def confirm_due(self, as_of: date) -> int:
        """Cron batch: confirm every scheduled transaction whose date has arrived"""
        rows = self.repo.list_scheduled_due(as_of)
        for row in rows:
            self.repo.confirm(row)
        logging.info("Scheduled transactions confirmed", extra={"confirmed_count": len(rows), "as_of": as_of.isoformat()})
        return len(rows)
