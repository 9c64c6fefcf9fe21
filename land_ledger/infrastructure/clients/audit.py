"""Audit trail webhook client with exponential backoff retry logic"""

import httpx
import asyncio
import logging
from typing import Dict, Any, List
from land_ledger.config import settings
from land_ledger.domain.models import DriverRun, PaymentOutcome
from land_ledger.infrastructure.observability.metrics import webhook_latency_histogram, webhook_failure_counter

logger = logging.getLogger(__name__)


def payment_event(outcome: PaymentOutcome, payment_id: str) -> Dict[str, Any]:
    """Audit payload for an applied payment"""
    return {
        "event": "PAYMENT_APPLIED",
        "payment_id": payment_id,
        "sale_id": str(outcome.sale_id),
        "amount_cents": outcome.amount_cents,
        "applied_cents": outcome.applied_cents,
        "credit_cents": outcome.credit_cents,
        "changes": [
            {
                "installment_id": str(change.installment_id),
                "sequence": change.sequence,
                "previous_status": change.previous_status.value,
                "new_status": change.new_status.value,
                "applied_cents": change.applied_cents,
            }
            for change in outcome.changes
        ],
    }


def generation_event(run: DriverRun) -> Dict[str, Any]:
    """Audit payload for a recurring generation run"""
    records: List[Dict[str, Any]] = [
        {
            "template_id": str(result.template_id),
            "record_id": str(result.record_id),
            "effective_date": result.effective_date.isoformat(),
        }
        for result in run.generated
    ]
    return {"event": "RECORDS_GENERATED", "now": run.now.isoformat(), "records": records}


class AuditClient:
    """Client for sending audit events to the surrounding application's audit log"""

    def __init__(self, webhook_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.webhook_url = webhook_url or settings.audit_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.timeout = settings.http_timeout_seconds
        self.transport = transport

    async def send_event(self, payload: Dict[str, Any]) -> None:
        """
        Deliver an audit event with retry logic.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s, 16s (base^attempt)
        - Retries on 5xx errors and network failures
        - 4xx responses fail at once, the payload would be rejected again
        - Tracks latency histogram and failure counter

        Args:
            payload: Event data for the audit log
        """
        attempt = 0
        async with httpx.AsyncClient(transport=self.transport) as client:
            while attempt < self.max_retries:
                try:
                    with webhook_latency_histogram.time():
                        response = await client.post(
                            self.webhook_url,
                            json=payload,
                            timeout=self.timeout,
                        )
                        response.raise_for_status()
                        return

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    webhook_failure_counter.inc()

                    rejected = isinstance(e, httpx.HTTPStatusError) and e.response.status_code < 500
                    if rejected or attempt >= self.max_retries:
                        logger.error(
                            f"Audit event delivery failed: {e}",
                            extra={"event": payload.get("event"), "attempts": attempt},
                        )
                        raise

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)
