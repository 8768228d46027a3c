"""GET /transactions/calendar - monthly calendar view"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cashflow_engine.api.routes.schemas import CalendarResponse, calendar_response
from cashflow_engine.infrastructure.database.session import get_db
from cashflow_engine.services.reporting import ReportingService

router = APIRouter()


@router.get("/transactions/calendar", response_model=CalendarResponse)
def get_calendar(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1900, le=9999),
    user_id: Optional[str] = Query(None, alias="userId"),
    db: Session = Depends(get_db),
):
    """
    Confirmed, scheduled, recurring and pending-installment events for one
    month, bucketed by day with per-day totals.

    Defaults to the current month.
    """
    today = date.today()
    result = ReportingService(db).calendar(month or today.month, year or today.year, user_id)
    return calendar_response(result)
