"""Recurring transaction endpoints - create, pause/resume and execute"""

import logging
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from cashflow_engine.api.routes.schemas import (
    ExecuteResponse,
    RecurringTransactionCreateRequest,
    RecurringTransactionResponse,
    RecurringTransactionUpdateRequest,
    recurring_response,
    transaction_response,
)
from cashflow_engine.api.dependencies import get_request_id
from cashflow_engine.infrastructure.database.session import get_db
from cashflow_engine.services.recurring_executor import RecurringTransactionExecutor
from cashflow_engine.domain.exceptions import (
    ConcurrencyConflictError,
    InvalidStateError,
    NotDueError,
    NotFoundError,
    ValidationError,
)
from cashflow_engine.utils.money import to_cents

router = APIRouter()


@router.post("/recurring-transactions", response_model=RecurringTransactionResponse, status_code=201)
def create_recurring_transaction(
    request_body: RecurringTransactionCreateRequest,
    db: Session = Depends(get_db),
):
    """Create a recurring transaction; the first occurrence is due on startDate"""
    executor = RecurringTransactionExecutor(db)
    try:
        record = executor.create(
            description=request_body.description,
            amount_cents=to_cents(request_body.amount),
            type=request_body.type,
            frequency=request_body.frequency,
            start_date=request_body.start_date,
            category_id=request_body.category_id,
            user_id=request_body.user_id,
            end_date=request_body.end_date,
            credit_card_id=request_body.credit_card_id,
        )
        db.commit()
    except ValidationError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail={"field": e.field, "message": e.message})

    return recurring_response(record)


@router.get("/recurring-transactions", response_model=List[RecurringTransactionResponse])
def list_recurring_transactions(
    user_id: Optional[str] = Query(None, alias="userId"),
    db: Session = Depends(get_db),
):
    """Every recurring transaction, paused and ended ones included"""
    return [recurring_response(r) for r in RecurringTransactionExecutor(db).list(user_id)]


@router.get("/recurring-transactions/{recurring_id}", response_model=RecurringTransactionResponse)
def get_recurring_transaction(recurring_id: str, db: Session = Depends(get_db)):
    try:
        record = RecurringTransactionExecutor(db).get(recurring_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return recurring_response(record)


@router.put("/recurring-transactions/{recurring_id}", response_model=RecurringTransactionResponse)
def update_recurring_transaction(
    recurring_id: str,
    request_body: RecurringTransactionUpdateRequest,
    db: Session = Depends(get_db),
):
    """Pause or resume. next_due_date is left as is."""
    try:
        record = RecurringTransactionExecutor(db).set_active(recurring_id, request_body.is_active)
        db.commit()
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStateError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))

    return recurring_response(record)


@router.post("/recurring-transactions/{recurring_id}/execute", response_model=ExecuteResponse)
def execute_recurring_transaction(
    recurring_id: str,
    request: Request,
    as_of: Optional[date] = Query(None, alias="asOf", description="Execution date (default: today)"),
    db: Session = Depends(get_db),
):
    """
    Generate every occurrence due up to asOf (catch-up).

    asOf cannot be in the future: generated transactions are confirmed.

    Returns:
        Created transactions; an empty list when nothing is due
    """
    request_id = get_request_id(request)
    today = date.today()
    if as_of is not None and as_of > today:
        raise HTTPException(
            status_code=422,
            detail={"field": "asOf", "message": "Execution date cannot be in the future"},
        )
    executor = RecurringTransactionExecutor(db)

    try:
        created = executor.execute(recurring_id, as_of or today)
    except NotDueError:
        created = []
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStateError as e:
        logging.warning(f"Execution rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))
    except ConcurrencyConflictError as e:
        logging.error(f"Execution conflict: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail=str(e), headers={"Retry-After": "1"})

    record = executor.get(recurring_id)
    return ExecuteResponse(
        transactions=[transaction_response(t) for t in created],
        next_due_date=record.next_due_date,
        state=record.state,
    )
