"""Transaction endpoints"""

import logging
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.orm import Session

from cashflow_engine.api.routes.schemas import TransactionCreateRequest, TransactionResponse, transaction_response
from cashflow_engine.api.dependencies import get_request_id
from cashflow_engine.infrastructure.database.session import get_db
from cashflow_engine.services.transactions import TransactionService
from cashflow_engine.domain.exceptions import (
    ConcurrencyConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from cashflow_engine.utils.money import to_cents

router = APIRouter()


@router.post("/transactions", response_model=TransactionResponse, status_code=201)
def create_transaction(
    request_body: TransactionCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Record a confirmed or scheduled transaction.

    When installmentId is present the plan's payment is recorded in the
    same commit; a closed plan rejects the whole request.
    """
    request_id = get_request_id(request)

    try:
        txn = TransactionService(db).create(
            description=request_body.description,
            amount_cents=to_cents(request_body.amount),
            type=request_body.type,
            category_id=request_body.category_id,
            user_id=request_body.user_id,
            date=request_body.date or date.today(),
            is_scheduled=request_body.is_scheduled,
            scheduled_date=request_body.scheduled_date,
            credit_card_id=request_body.credit_card_id,
            installment_id=request_body.installment_id,
        )
        db.commit()
    except ValidationError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail={"field": e.field, "message": e.message})
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStateError as e:
        db.rollback()
        logging.warning(f"Installment payment rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))
    except ConcurrencyConflictError as e:
        db.rollback()
        raise HTTPException(status_code=503, detail=str(e), headers={"Retry-After": "1"})

    return transaction_response(txn)


@router.get("/transactions/scheduled", response_model=List[TransactionResponse])
def list_scheduled_transactions(
    user_id: Optional[str] = Query(None, alias="userId"),
    status: str = Query("all", pattern="^(pending|all)$", description="pending: scheduled today or later"),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """Unconfirmed scheduled transactions, soonest first"""
    pending_from = date.today() if status == "pending" else None
    rows = TransactionService(db).list_scheduled(user_id, pending_from, limit)
    return [transaction_response(t) for t in rows]


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(transaction_id: str, db: Session = Depends(get_db)):
    try:
        txn = TransactionService(db).get(transaction_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return transaction_response(txn)


@router.post("/transactions/{transaction_id}/confirm", response_model=TransactionResponse)
def confirm_transaction(transaction_id: str, db: Session = Depends(get_db)):
    """Turn a scheduled transaction into a confirmed one on its scheduled date"""
    try:
        txn = TransactionService(db).confirm(transaction_id)
        db.commit()
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    return transaction_response(txn)


@router.delete("/transactions/{transaction_id}", status_code=204)
def delete_transaction(transaction_id: str, db: Session = Depends(get_db)):
    """Delete a transaction; an ACTIVE installment plan it paid is recounted"""
    try:
        TransactionService(db).delete(transaction_id)
        db.commit()
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except ConcurrencyConflictError as e:
        db.rollback()
        raise HTTPException(status_code=503, detail=str(e), headers={"Retry-After": "1"})
    return Response(status_code=204)
