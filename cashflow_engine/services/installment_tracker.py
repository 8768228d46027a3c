"""Installment plan persistence and payment recording"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cashflow_engine.domain.models import Installment, InstallmentStatus, Transaction, TransactionType
from cashflow_engine.domain.installments import cancel_plan, create_plan, next_slot, record_payment, sync_progress
from cashflow_engine.domain.exceptions import DomainException, InvalidStateError, NotFoundError
from cashflow_engine.infrastructure.database.models import InstallmentRecord
from cashflow_engine.infrastructure.database.repositories import (
    InstallmentRepository,
    TransactionRepository,
    installment_to_domain,
)
from cashflow_engine.infrastructure.observability.logging import log_installment_payment
from cashflow_engine.infrastructure.observability.metrics import installment_payment_counter


@dataclass
class SyncResult:
    """A plan recounted from its linked transactions"""

    plan: Installment
    previous_installment: int
    transaction_count: int
    changed: bool

    @property
    def difference(self) -> int:
        return self.plan.current_installment - self.previous_installment


@dataclass
class SyncSummary:
    total: int = 0
    synced: int = 0
    fixed: int = 0
    failed: int = 0
    fixes: List[SyncResult] = field(default_factory=list)


class InstallmentTracker:
    """Installment operations over the store. Callers own the commit."""

    def __init__(
        self,
        db: Session,
        installment_repo: Optional[InstallmentRepository] = None,
        transaction_repo: Optional[TransactionRepository] = None,
    ):
        self.db = db
        self.installment_repo = installment_repo or InstallmentRepository(db)
        self.transaction_repo = transaction_repo or TransactionRepository(db)

    def _load(self, installment_id: str) -> InstallmentRecord:
        row = self.installment_repo.get(installment_id)
        if row is None:
            raise NotFoundError(f"Installment plan {installment_id} not found")
        return row

    def create_plan(self, **fields) -> Installment:
        plan = create_plan(**fields)
        self.installment_repo.add(plan)
        return plan

    def get(self, installment_id: str) -> Installment:
        return installment_to_domain(self._load(installment_id))

    def record_payment(self, installment_id: str) -> Installment:
        """
        Count one more paid installment.

        Raises:
            NotFoundError: no such plan
            InvalidStateError: plan is COMPLETED or CANCELLED
            ConcurrencyConflictError: plan changed since it was read
        """
        row = self._load(installment_id)
        updated = record_payment(installment_to_domain(row))
        self.installment_repo.save(row, updated)

        installment_payment_counter.labels(status=updated.status.value).inc()
        log_installment_payment(updated.id, updated.current_installment, updated.installments, updated.status.value)
        return updated

    def pay_next(self, installment_id: str) -> Installment:
        """
        Create the confirmed expense for the next unpaid slot and record it.

        The transaction is dated at the slot's due date so it replaces the
        pending calendar item on the same day.
        """
        plan = self.get(installment_id)
        slot = next_slot(plan)
        if slot is None:
            raise InvalidStateError(f"Installment plan {plan.id} is {plan.status.value}")

        self.transaction_repo.add(
            Transaction(
                id=str(uuid.uuid4()),
                description=f"{plan.description} ({slot.number}/{plan.installments})",
                amount_cents=slot.amount_cents,
                type=TransactionType.EXPENSE,
                date=slot.due_date,
                category_id=plan.category_id,
                user_id=plan.user_id,
                credit_card_id=plan.credit_card_id,
                installment_id=plan.id,
            )
        )
        return self.record_payment(installment_id)

    def cancel(self, installment_id: str) -> Installment:
        """
        Raises:
            NotFoundError: no such plan
            InvalidStateError: plan is COMPLETED or already CANCELLED
        """
        row = self._load(installment_id)
        updated = cancel_plan(installment_to_domain(row))
        self.installment_repo.save(row, updated)
        return updated

    def list(self, user_id: Optional[str] = None, status: Optional[InstallmentStatus] = None) -> List[Installment]:
        return [installment_to_domain(row) for row in self.installment_repo.list(user_id, status)]

    def sync(self, installment_id: str, dry_run: bool = False) -> SyncResult:
        """
        Recount current_installment from the transactions linked to the plan.

        Only ACTIVE plans move; COMPLETED and CANCELLED plans are reported as is.
        With dry_run nothing is written.

        Raises:
            NotFoundError: no such plan
            ConcurrencyConflictError: plan changed since it was read
        """
        row = self._load(installment_id)
        plan = installment_to_domain(row)
        count = self.transaction_repo.count_for_installment(installment_id)
        synced = sync_progress(plan, count)
        changed = synced != plan

        if changed and not dry_run:
            self.installment_repo.save(row, synced)
            logging.info(
                "Installment plan resynced",
                extra={
                    "installment_id": installment_id,
                    "previous_installment": plan.current_installment,
                    "current_installment": synced.current_installment,
                    "status": synced.status.value,
                },
            )

        return SyncResult(
            plan=synced,
            previous_installment=plan.current_installment,
            transaction_count=count,
            changed=changed,
        )

    def sync_all(self) -> SyncSummary:
        """Cron batch: resync every ACTIVE plan, committing each plan on its own"""
        plan_ids = [row.id for row in self.installment_repo.list_active()]
        summary = SyncSummary(total=len(plan_ids))

        for installment_id in plan_ids:
            try:
                result = self.sync(installment_id)
                self.db.commit()
            except (DomainException, SQLAlchemyError) as e:
                self.db.rollback()
                summary.failed += 1
                logging.error(f"Installment sync failed: {e}", extra={"installment_id": installment_id})
                continue
            summary.synced += 1
            if result.changed:
                summary.fixed += 1
                summary.fixes.append(result)

        logging.info(
            "Installment sync completed",
            extra={
                "total": summary.total,
                "synced": summary.synced,
                "fixed": summary.fixed,
                "failed": summary.failed,
            },
        )
        return summary

    def count_needing_sync(self) -> int:
        return sum(1 for row in self.installment_repo.list_active() if self.sync(row.id, dry_run=True).changed)
