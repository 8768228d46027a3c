"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import date, datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger
from cashflow_engine.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_recurring_execution(
    recurring_id: str,
    created_count: int,
    next_due_date: date,
    attempts: int,
) -> None:
    """Log structured catch-up outcome for a recurring transaction"""
    logging.info(
        "Recurring transaction executed",
        extra={
            "recurring_id": recurring_id,
            "step": "recurring_execute",
            "created_count": created_count,
            "next_due_date": next_due_date.isoformat(),
            "attempts": attempts,
        },
    )


def log_installment_payment(
    installment_id: str,
    current_installment: int,
    installments: int,
    status: str,
) -> None:
    logging.info(
        "Installment payment recorded",
        extra={
            "installment_id": installment_id,
            "step": "installment_payment",
            "current_installment": current_installment,
            "installments": installments,
            "installment_status": status,
        },
    )


def log_calendar_built(view: str, year: int, month: int, event_count: int, duration_ms: float) -> None:
    logging.info(
        "Calendar view built",
        extra={
            "view": view,
            "year": year,
            "month": month,
            "event_count": event_count,
            "duration_ms": duration_ms,
        },
    )
