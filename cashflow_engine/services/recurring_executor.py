"""Exactly-once execution of due recurring transactions"""

import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import List, Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cashflow_engine.config import settings
from cashflow_engine.domain.models import RecurringTransaction, Transaction
from cashflow_engine.domain.recurring import build_occurrence, create_recurring, plan_catch_up, set_active
from cashflow_engine.domain.exceptions import (
    ConcurrencyConflictError,
    DomainException,
    InvalidStateError,
    NotDueError,
    NotFoundError,
)
from cashflow_engine.infrastructure.database.repositories import (
    RecurringTransactionRepository,
    TransactionRepository,
    is_duplicate_occurrence,
    recurring_to_domain,
)
from cashflow_engine.infrastructure.observability.logging import log_recurring_execution
from cashflow_engine.infrastructure.observability.metrics import execute_conflict_counter, record_execution


@dataclass
class ExecutionSummary:
    """Outcome of a cron batch over every due recurring transaction"""

    total: int = 0
    processed: int = 0
    created: int = 0
    skipped: int = 0
    failed: int = 0


class RecurringTransactionExecutor:
    """
    Runs the catch-up policy against the store.

    Each attempt reads the record, plans the batch, stages the generated
    transactions and compare-and-sets next_due_date, all inside one SQL
    transaction. The compare-and-set is on the row version, so a concurrent
    execution, pause or resume makes it lose. Losing (or hitting the unique
    (recurring_source_id, date) guard) rolls the attempt back and retries.
    Any other integrity error is rolled back and raised.
    """

    def __init__(
        self,
        db: Session,
        recurring_repo: Optional[RecurringTransactionRepository] = None,
        transaction_repo: Optional[TransactionRepository] = None,
        max_retries: Optional[int] = None,
        backoff_base: Optional[float] = None,
        max_batch: Optional[int] = None,
    ):
        self.db = db
        self.recurring_repo = recurring_repo or RecurringTransactionRepository(db)
        self.transaction_repo = transaction_repo or TransactionRepository(db)
        self.max_retries = max_retries if max_retries is not None else settings.execute_max_retries
        self.backoff_base = backoff_base if backoff_base is not None else settings.execute_backoff_base
        self.max_batch = max_batch if max_batch is not None else settings.execute_max_batch

    def create(self, **fields) -> RecurringTransaction:
        """Validate and stage a new recurring transaction (caller commits)"""
        record = create_recurring(**fields)
        self.recurring_repo.add(record)
        return record

    def get(self, recurring_id: str) -> RecurringTransaction:
        row = self.recurring_repo.get(recurring_id)
        if row is None:
            raise NotFoundError(f"Recurring transaction {recurring_id} not found")
        return recurring_to_domain(row)

    def list(self, user_id: Optional[str] = None) -> List[RecurringTransaction]:
        return [recurring_to_domain(row) for row in self.recurring_repo.list(user_id)]

    def execute(self, recurring_id: str, as_of: date) -> List[Transaction]:
        """
        Generate every occurrence due on or before `as_of` and advance next_due_date.

        At most max_batch occurrences per call; the rest stay due. Commits on success.

        Raises:
            NotFoundError: no such record
            InvalidStateError: record is PAUSED or ENDED
            NotDueError: nothing due (including when a concurrent caller already caught up)
            ConcurrencyConflictError: retries exhausted
        """
        attempt = 0
        while True:
            attempt += 1
            row = self.recurring_repo.get(recurring_id)
            if row is None:
                raise NotFoundError(f"Recurring transaction {recurring_id} not found")
            snapshot = recurring_to_domain(row)
            version = row.version

            try:
                batch = plan_catch_up(snapshot, as_of, limit=self.max_batch)
            except NotDueError:
                record_execution("not_due")
                raise
            except InvalidStateError:
                record_execution("rejected")
                raise

            created = [build_occurrence(snapshot, due) for due in batch.occurrence_dates]
            try:
                for txn in created:
                    self.transaction_repo.add(txn)
                advanced = self.recurring_repo.advance_due_date(
                    recurring_id,
                    expected_version=version,
                    next_due_date=batch.next_due_date,
                )
            except IntegrityError as e:
                if not is_duplicate_occurrence(e):
                    self.db.rollback()
                    raise
                advanced = False

            if advanced:
                self.db.commit()
                record_execution("executed", len(created))
                log_recurring_execution(recurring_id, len(created), batch.next_due_date, attempt)
                return created

            self.db.rollback()
            execute_conflict_counter.inc()
            logging.warning(
                "Recurring execution conflict",
                extra={"recurring_id": recurring_id, "attempt": attempt},
            )

            if attempt >= self.max_retries:
                record_execution("conflict")
                raise ConcurrencyConflictError(
                    f"Recurring transaction {recurring_id} kept changing after {attempt} attempts"
                )

            # Exponential backoff: base, 2x base, 4x base...
            time.sleep(self.backoff_base * (2 ** (attempt - 1)))

    def set_active(self, recurring_id: str, active: bool) -> RecurringTransaction:
        """
        Pause or resume. Leaves next_due_date untouched (caller commits).

        Raises:
            NotFoundError: no such record
            InvalidStateError: record is ENDED
        """
        row = self.recurring_repo.get(recurring_id)
        if row is None:
            raise NotFoundError(f"Recurring transaction {recurring_id} not found")
        updated = set_active(recurring_to_domain(row), active)
        self.recurring_repo.set_active(row, updated.is_active)
        return updated

    def execute_due(self, as_of: date) -> ExecutionSummary:
        """Cron batch: execute every due record, isolating failures per record"""
        due_ids = [row.id for row in self.recurring_repo.list_due(as_of)]
        summary = ExecutionSummary(total=len(due_ids))

        for recurring_id in due_ids:
            try:
                created = self.execute(recurring_id, as_of)
            except InvalidStateError:
                # Paused, ended, or caught up by a concurrent trigger since the listing
                summary.skipped += 1
                continue
            except DomainException as e:
                summary.failed += 1
                logging.error(
                    f"Recurring execution failed: {e}",
                    extra={"recurring_id": recurring_id},
                )
                continue
            except SQLAlchemyError as e:
                # Roll back so the next record starts from a clean session
                self.db.rollback()
                summary.failed += 1
                logging.error(
                    f"Recurring execution failed on the database: {e}",
                    extra={"recurring_id": recurring_id},
                )
                continue
            summary.processed += 1
            summary.created += len(created)

        logging.info(
            "Recurring batch completed",
            extra={
                "total": summary.total,
                "processed": summary.processed,
                "created_count": summary.created,
                "skipped": summary.skipped,
                "failed": summary.failed,
            },
        )
        return summary
