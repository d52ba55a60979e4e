"""
Prometheus metrics for clubfin.

Reallocation skips are counted here so that a silent data-quality problem
(a transaction dated outside its fiscal year, a missing budget) shows up
on a dashboard instead of only in a log line.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Gauge, Histogram, start_http_server

# ============================================================================
# Reallocation Metrics
# ============================================================================

reallocations_total = Counter(
    "clubfin_reallocations_total",
    "Total number of budget bucket adjustments made by the reallocation engine",
    ["operation", "bucket"],  # operation: create, edit, delete, plan
)

reallocation_skips_total = Counter(
    "clubfin_reallocation_skips_total",
    "Total number of reallocations skipped without failing the save",
    ["reason"],  # reason: UNMAPPED_FISCAL_MONTH, BUDGET_DOCUMENT_MISSING
)

linked_item_not_found_total = Counter(
    "clubfin_linked_item_not_found_total",
    "Total number of saves aborted because the linked item did not resolve",
    ["kind"],
)

allocations_restored_total = Counter(
    "clubfin_allocations_restored_total",
    "Total number of planned allocations restored after the last unlink",
    ["bucket"],
)

# ============================================================================
# Operation Metrics
# ============================================================================

operation_duration_seconds = Histogram(
    "clubfin_operation_duration_seconds",
    "Duration of service operations in seconds",
    ["operation"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

operations_total = Counter(
    "clubfin_operations_total",
    "Total number of service operations",
    ["operation", "status"],  # status: success, failure
)

store_writes_total = Counter(
    "clubfin_store_writes_total",
    "Total number of document writes committed to the store",
    ["collection", "op"],  # op: set, delete
)

# ============================================================================
# Dashboard Metrics
# ============================================================================

items_by_alert_status = Gauge(
    "clubfin_items_by_alert_status",
    "Tracked maintenance items and CAPEX projects by alert status",
    ["kind", "status"],
)

# ============================================================================
# Helper Functions
# ============================================================================

P = ParamSpec("P")
R = TypeVar("R")


def track_operation_duration(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator to track service operation duration and outcome.

    Args:
        operation: Name of the operation being tracked

    Returns:
        Decorated function that tracks duration
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                duration = time.perf_counter() - start
                operation_duration_seconds.labels(operation=operation).observe(duration)
                operations_total.labels(operation=operation, status=status).inc()

        return wrapper

    return decorator


def start_metrics_server(port: int = 9090) -> None:
    """Start Prometheus metrics HTTP server."""
    start_http_server(port)


def update_alert_metrics(kind: str, counts: dict[str, int]) -> None:
    """
    Publish alert-status counts for one kind of tracked item.

    Args:
        kind: "maintenance" or "capex"
        counts: status -> number of items
    """
    for status in ("overdue", "critical", "warning", "good"):
        items_by_alert_status.labels(kind=kind, status=status).set(counts.get(status, 0))
