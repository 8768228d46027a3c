"""FastAPI application factory"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from cashflow_engine.api.middleware import RequestIDMiddleware, MetricsMiddleware
from cashflow_engine.api.dependencies import get_request_id
from cashflow_engine.api.routes import calendar, cron, dashboard, installments, recurring, transactions
from cashflow_engine.infrastructure.database.session import init_db
from cashflow_engine.infrastructure.observability.logging import setup_logging
from cashflow_engine.config import settings

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Cashflow Engine",
        description="Calendar, recurring transaction and installment service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logging.error(f"Unexpected error: {exc}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers (calendar before transactions so /transactions/calendar
    # is not captured by /transactions/{transaction_id})
    app.include_router(calendar.router, tags=["calendar"])
    app.include_router(dashboard.router, tags=["dashboard"])
    app.include_router(transactions.router, tags=["transactions"])
    app.include_router(recurring.router, tags=["recurring"])
    app.include_router(installments.router, tags=["installments"])
    app.include_router(cron.router, tags=["cron"])

    return app


app = create_app()
