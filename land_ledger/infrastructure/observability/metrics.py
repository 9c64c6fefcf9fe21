"""Prometheus metrics for payment application, recurring generation and webhook delivery"""

from prometheus_client import Counter, Histogram

# Ledger metrics
payment_counter = Counter(
    "land_ledger_payments_total",
    "Payments applied to sales",
    ["outcome"],  # settled | partial | credit
)

overpayment_credit_counter = Counter(
    "land_ledger_overpayment_credit_cents_total",
    "Overpayment residual returned as credit, in minor units",
)

installments_marked_late_counter = Counter(
    "land_ledger_installments_marked_late_total",
    "Installments moved to Late by the sweep",
)

# Recurring generation metrics
records_generated_counter = Counter(
    "land_ledger_records_generated_total",
    "Records materialized from recurring templates",
    ["kind"],  # revenue | expense
)

generation_conflict_counter = Counter(
    "land_ledger_generation_conflicts_total",
    "Occurrences skipped because another run advanced the template first",
)

generation_failure_counter = Counter(
    "land_ledger_generation_failures_total",
    "Templates that failed during a driver run",
)

driver_run_histogram = Histogram(
    "land_ledger_driver_run_seconds",
    "Template Driver run duration",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "webhook_latency_seconds",
    "Audit webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "webhook_failures_total",
    "Failed webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_payment(credit_cents: int, settled: bool) -> None:
    """Record payment metrics: whether the sale is settled and any credit returned"""
    if credit_cents > 0:
        outcome = "credit"
    elif settled:
        outcome = "settled"
    else:
        outcome = "partial"
    payment_counter.labels(outcome=outcome).inc()

    if credit_cents > 0:
        overpayment_credit_counter.inc(credit_cents)


def record_generated(is_revenue: bool) -> None:
    records_generated_counter.labels(kind="revenue" if is_revenue else "expense").inc()
