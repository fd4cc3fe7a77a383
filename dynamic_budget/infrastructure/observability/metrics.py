"""Prometheus metrics for monitoring syncs, decisions and balance resets"""

from prometheus_client import Counter, Histogram

# Sync metrics
sync_counter = Counter(
    "budget_sync_total",
    "Transaction sync attempts",
    ["outcome"],  # ok | not_found | unauthorized | upstream_error | conflict | error
)

ingested_transactions_counter = Counter(
    "budget_ingested_transactions_total",
    "New transactions stored by sync",
    ["kind"],  # paycheck | windfall | unknown (debits) | fixed_cost
)

large_expense_counter = Counter(
    "budget_large_expense_flagged_total",
    "Debits flagged for large-expense review",
)

transaction_source_failures_counter = Counter(
    "transaction_source_failures_total",
    "Failed transaction provider calls",
)

# Decision metrics
decision_counter = Counter(
    "budget_decision_total",
    "User decisions applied",
    ["decision", "effect"],
)

decision_mismatch_counter = Counter(
    "budget_decision_category_mismatch_total",
    "Decisions recorded against a transaction of the other category",
)

# Period metrics
finalize_counter = Counter(
    "budget_finalize_total",
    "Period finalization attempts",
    ["outcome"],  # ok | conflict | invalid
)

discovered_fixed_costs_counter = Counter(
    "budget_discovered_fixed_costs_total",
    "Fixed costs created from Plaid recurring streams",
)

# Notification metrics
notification_latency_histogram = Histogram(
    "notification_latency_seconds",
    "Push notification request time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

notification_failure_counter = Counter(
    "notification_failures_total",
    "Failed push notification deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_decision(decision: str, effect: str, category_mismatch: bool) -> None:
    """Record decision metrics"""
    decision_counter.labels(decision=decision, effect=effect).inc()
    if category_mismatch:
        decision_mismatch_counter.inc()
