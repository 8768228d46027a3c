"""GET /dashboard - monthly summary and metrics"""

import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from cashflow_engine.api.routes.schemas import DashboardResponse, dashboard_response
from cashflow_engine.api.dependencies import get_reference_client, get_request_id
from cashflow_engine.infrastructure.database.session import get_db
from cashflow_engine.infrastructure.clients.reference import ReferenceDataClient
from cashflow_engine.infrastructure.observability.metrics import reference_fetch_failures_counter
from cashflow_engine.services.reporting import ReportingService
from cashflow_engine.domain.exceptions import ReferenceDataError

router = APIRouter()


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    request: Request,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1900, le=9999),
    user_id: Optional[str] = Query(None, alias="userId"),
    db: Session = Depends(get_db),
    reference_client: ReferenceDataClient = Depends(get_reference_client),
):
    """
    Flow:
    1. Fetch category names from the reference data service
    2. Aggregate the requested and previous month
    3. Derive balance, variations and statistics

    If the reference service is down the dashboard still renders, with
    category ids in place of names.
    """
    request_id = get_request_id(request)
    today = date.today()

    category_names = None
    try:
        categories = await reference_client.get_categories()
        category_names = {c.id: c.name for c in categories}
    except ReferenceDataError as e:
        reference_fetch_failures_counter.inc()
        logging.warning(f"Reference data unavailable: {e}", extra={"request_id": request_id})

    metrics = ReportingService(db).dashboard(
        month or today.month,
        year or today.year,
        today=today,
        category_names=category_names,
        user_id=user_id,
    )
    return dashboard_response(metrics)
