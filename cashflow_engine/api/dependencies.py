"""Dependency injection for FastAPI endpoints"""

import secrets
from fastapi import Header, HTTPException, Request
from cashflow_engine.config import settings
from cashflow_engine.infrastructure.clients.reference import ReferenceDataClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_reference_client() -> ReferenceDataClient:
    """Provide reference data API client instance"""
    return ReferenceDataClient()


def verify_cron_secret(authorization: str | None = Header(None)) -> None:
    """Cron triggers must present `Authorization: Bearer <CRON_SECRET>`"""
    expected = f"Bearer {settings.cron_secret}"
    if authorization is None or not secrets.compare_digest(authorization, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")
