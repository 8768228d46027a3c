"""Cron triggers - called by an external scheduler with the cron secret"""

from datetime import date, timedelta
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cashflow_engine.api.routes.schemas import CamelModel
from cashflow_engine.config import settings
from cashflow_engine.api.dependencies import verify_cron_secret
from cashflow_engine.infrastructure.database.session import get_db
from cashflow_engine.infrastructure.database.repositories import RecurringTransactionRepository
from cashflow_engine.services.installment_tracker import InstallmentTracker
from cashflow_engine.services.recurring_executor import RecurringTransactionExecutor
from cashflow_engine.services.transactions import TransactionService

router = APIRouter(dependencies=[Depends(verify_cron_secret)])


class ProcessRecurringResponse(CamelModel):
    total: int
    processed: int
    created: int
    skipped: int
    failed: int


class RecurringStatusResponse(CamelModel):
    due: int
    upcoming: int
    upcoming_window_days: int


class ProcessScheduledResponse(CamelModel):
    confirmed: int


class InstallmentFix(CamelModel):
    id: str
    description: str
    previous_installment: int
    calculated_installment: int
    difference: int


class SyncInstallmentsResponse(CamelModel):
    total_installments: int
    synced_count: int
    fixed_count: int
    failed_count: int
    fixes: List[InstallmentFix]


class SyncInstallmentsStatusResponse(CamelModel):
    needs_sync_count: int


# Only the first few fixes are echoed back
MAX_REPORTED_FIXES = 10


@router.post("/cron/process-recurring", response_model=ProcessRecurringResponse)
def process_recurring(db: Session = Depends(get_db)):
    """Execute every due recurring transaction; each record commits on its own"""
    summary = RecurringTransactionExecutor(db).execute_due(date.today())
    return ProcessRecurringResponse(
        total=summary.total,
        processed=summary.processed,
        created=summary.created,
        skipped=summary.skipped,
        failed=summary.failed,
    )


@router.get("/cron/process-recurring", response_model=RecurringStatusResponse)
def recurring_status(db: Session = Depends(get_db)):
    """How many records are due now and how many fall due in the next few days"""
    today = date.today()
    repo = RecurringTransactionRepository(db)
    window = settings.upcoming_window_days
    return RecurringStatusResponse(
        due=repo.count_due_between(None, today),
        upcoming=repo.count_due_between(today, today + timedelta(days=window)),
        upcoming_window_days=window,
    )


@router.post("/cron/process-scheduled", response_model=ProcessScheduledResponse)
def process_scheduled(db: Session = Depends(get_db)):
    confirmed = TransactionService(db).confirm_due(date.today())
    db.commit()
    return ProcessScheduledResponse(confirmed=confirmed)


@router.post("/cron/sync-installments", response_model=SyncInstallmentsResponse)
def sync_installments(db: Session = Depends(get_db)):
    """Recount every ACTIVE plan from its linked transactions; each plan commits on its own"""
    summary = InstallmentTracker(db).sync_all()
    return SyncInstallmentsResponse(
        total_installments=summary.total,
        synced_count=summary.synced,
        fixed_count=summary.fixed,
        failed_count=summary.failed,
        fixes=[
            InstallmentFix(
                id=fix.plan.id,
                description=fix.plan.description,
                previous_installment=fix.previous_installment,
                calculated_installment=fix.plan.current_installment,
                difference=fix.difference,
            )
            for fix in summary.fixes[:MAX_REPORTED_FIXES]
        ],
    )


@router.get("/cron/sync-installments", response_model=SyncInstallmentsStatusResponse)
def sync_installments_status(db: Session = Depends(get_db)):
    return SyncInstallmentsStatusResponse(needs_sync_count=InstallmentTracker(db).count_needing_sync())
