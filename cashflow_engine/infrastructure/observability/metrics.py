"""Prometheus metrics for recurring execution, installment progress and read-model latency"""

from prometheus_client import Counter, Histogram

# Recurring execution metrics
recurring_execution_counter = Counter(
    "cashflow_recurring_executions_total",
    "Recurring transaction execution attempts",
    ["outcome"],  # executed | not_due | rejected | conflict
)

generated_transactions_counter = Counter(
    "cashflow_generated_transactions_total",
    "Transactions generated from recurring templates",
)

execute_conflict_counter = Counter(
    "cashflow_execute_conflicts_total",
    "Optimistic commit conflicts while executing recurring transactions",
)

# Installment metrics
installment_payment_counter = Counter(
    "cashflow_installment_payments_total",
    "Installment payments recorded",
    ["status"],  # plan status after the payment: ACTIVE | COMPLETED
)

# Reference data metrics
reference_fetch_failures_counter = Counter(
    "reference_fetch_failures_total",
    "Failed reference data API calls",
)

# Read models
aggregation_duration_histogram = Histogram(
    "cashflow_aggregation_seconds",
    "Time spent building calendar and dashboard read models",
    ["view"],  # calendar | dashboard
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_execution(outcome: str, created_count: int = 0) -> None:
    """Record one execute() outcome and how many transactions it produced"""
    recurring_execution_counter.labels(outcome=outcome).inc()
    if created_count:
        generated_transactions_counter.inc(created_count)
