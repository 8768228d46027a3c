"""Installment plan endpoints"""

from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from cashflow_engine.api.routes.schemas import (
    InstallmentCreateRequest,
    InstallmentResponse,
    InstallmentSyncResponse,
    InstallmentSyncStatusResponse,
    installment_response,
)
from cashflow_engine.infrastructure.database.session import get_db
from cashflow_engine.services.installment_tracker import InstallmentTracker
from cashflow_engine.domain.models import InstallmentStatus
from cashflow_engine.domain.exceptions import (
    ConcurrencyConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from cashflow_engine.utils.money import to_cents

router = APIRouter()


@router.post("/installments", response_model=InstallmentResponse, status_code=201)
def create_installment_plan(request_body: InstallmentCreateRequest, db: Session = Depends(get_db)):
    """Split a purchase into monthly installments starting at startDate (default: today)"""
    try:
        plan = InstallmentTracker(db).create_plan(
            description=request_body.description,
            total_cents=to_cents(request_body.total_amount),
            installments=request_body.installments,
            start_date=request_body.start_date or date.today(),
            category_id=request_body.category_id,
            user_id=request_body.user_id,
            credit_card_id=request_body.credit_card_id,
        )
        db.commit()
    except ValidationError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail={"field": e.field, "message": e.message})

    return installment_response(plan)


@router.get("/installments", response_model=List[InstallmentResponse])
def list_installment_plans(
    user_id: Optional[str] = Query(None, alias="userId"),
    status: Optional[InstallmentStatus] = Query(None),
    db: Session = Depends(get_db),
):
    """Plans newest first, optionally filtered by owner and status"""
    return [installment_response(p) for p in InstallmentTracker(db).list(user_id, status)]


@router.get("/installments/{installment_id}", response_model=InstallmentResponse)
def get_installment_plan(installment_id: str, db: Session = Depends(get_db)):
    try:
        plan = InstallmentTracker(db).get(installment_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return installment_response(plan)


@router.post("/installments/{installment_id}/next", response_model=InstallmentResponse)
def pay_next_installment(installment_id: str, db: Session = Depends(get_db)):
    """Record the next installment as a confirmed expense dated at its due date"""
    try:
        plan = InstallmentTracker(db).pay_next(installment_id)
        db.commit()
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStateError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    except ConcurrencyConflictError as e:
        db.rollback()
        raise HTTPException(status_code=503, detail=str(e), headers={"Retry-After": "1"})

    return installment_response(plan)


@router.post("/installments/{installment_id}/cancel", response_model=InstallmentResponse)
def cancel_installment_plan(installment_id: str, db: Session = Depends(get_db)):
    try:
        plan = InstallmentTracker(db).cancel(installment_id)
        db.commit()
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStateError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    except ConcurrencyConflictError as e:
        db.rollback()
        raise HTTPException(status_code=503, detail=str(e), headers={"Retry-After": "1"})

    return installment_response(plan)


@router.post("/installments/{installment_id}/sync", response_model=InstallmentSyncResponse)
def sync_installment_plan(installment_id: str, db: Session = Depends(get_db)):
    """
    Recount paid installments from the linked transactions.

    Only ACTIVE plans change; a COMPLETED plan is never reopened.
    """
    try:
        result = InstallmentTracker(db).sync(installment_id)
        db.commit()
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except ConcurrencyConflictError as e:
        db.rollback()
        raise HTTPException(status_code=503, detail=str(e), headers={"Retry-After": "1"})

    return InstallmentSyncResponse(
        installment=installment_response(result.plan),
        previous_installment=result.previous_installment,
        calculated_installment=result.plan.current_installment,
        difference=result.difference,
        transaction_count=result.transaction_count,
        is_completed=result.plan.status == InstallmentStatus.COMPLETED,
    )


@router.get("/installments/{installment_id}/sync", response_model=InstallmentSyncStatusResponse)
def installment_sync_status(installment_id: str, db: Session = Depends(get_db)):
    """Compare stored progress with the linked transactions without writing"""
    tracker = InstallmentTracker(db)
    try:
        plan = tracker.get(installment_id)
        result = tracker.sync(installment_id, dry_run=True)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return InstallmentSyncStatusResponse(
        id=plan.id,
        current_installment=plan.current_installment,
        transaction_count=result.transaction_count,
        installments=plan.installments,
        status=plan.status,
        is_synced=not result.changed,
        needs_sync=result.changed,
    )
