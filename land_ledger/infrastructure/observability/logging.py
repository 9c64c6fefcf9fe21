"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger
from land_ledger.config import settings
from land_ledger.domain.models import DriverRun, PaymentOutcome


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

    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    logger.addHandler(handler)


def log_payment_applied(request_id: str, outcome: PaymentOutcome, duration_ms: float) -> None:
    """Log structured payment outcome for reconciliation"""
    logging.info(
        "Payment applied",
        extra={
            "request_id": request_id,
            "sale_id": str(outcome.sale_id),
            "step": "payment_applied",
            "amount_cents": outcome.amount_cents,
            "applied_cents": outcome.applied_cents,
            "credit_cents": outcome.credit_cents,
            "installments_touched": [change.sequence for change in outcome.changes],
            "duration_ms": duration_ms,
        },
    )


def log_generation_run(run: DriverRun, duration_ms: float) -> None:
    """Log one Template Driver invocation"""
    logging.info(
        "Recurring generation completed",
        extra={
            "step": "generation_run",
            "now": run.now.isoformat(),
            "generated_count": len(run.generated),
            "conflict_count": len(run.conflicts),
            "failure_count": len(run.failures),
            "duration_ms": duration_ms,
        },
    )
