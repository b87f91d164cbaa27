"""Prometheus metrics for store health, backup freshness and overdue tracking"""

from prometheus_client import Counter, Histogram

# Primary store
storage_operation_counter = Counter(
    "bnpl_storage_operations_total",
    "Primary store operations",
    ["collection", "operation", "outcome"],  # outcome: ok | error
)

compound_rollback_counter = Counter(
    "bnpl_compound_rollbacks_total",
    "Compound writes rolled back after a failure",
    ["outcome"],  # complete | incomplete
)

# Backup mirror
backup_refresh_counter = Counter(
    "bnpl_backup_refresh_total",
    "Backup mirror refreshes",
    ["outcome"],  # ok | quota_exceeded | error
)

backup_restore_counter = Counter(
    "bnpl_backup_restore_total",
    "Cold-start restores from the backup mirror",
    ["outcome"],  # ok | error
)

# Import
snapshot_import_counter = Counter(
    "bnpl_snapshot_import_total",
    "Snapshot imports",
    ["outcome"],  # ok | rejected | error
)

# Overdue sweep
overdue_marked_counter = Counter(
    "bnpl_payments_marked_overdue_total",
    "Payments promoted to overdue by the sweeper",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_storage_operation(collection: str, operation: str, ok: bool) -> None:
    storage_operation_counter.labels(
        collection=collection,
        operation=operation,
        outcome="ok" if ok else "error",
    ).inc()
