"""Prometheus Metrics - visibility into transit encryption traffic

Metrics Categories:
1. Operations: encrypt/decrypt/batch calls by backend (transit or local)
2. Reliability: retries and failures by error type
3. Performance: round-trip latency to the transit service
4. Safety: every use of the in-process local cipher
"""

import time
from functools import wraps
from typing import Callable

import structlog
from prometheus_client import REGISTRY, Counter, Histogram, generate_latest

logger = structlog.get_logger()

# ============================================================================
# OPERATION METRICS
# ============================================================================

operations_total = Counter(
    "transit_fields_operations_total",
    "Encrypt/decrypt operations performed",
    ["operation", "backend"],
)

batch_items_total = Counter(
    "transit_fields_batch_items_total",
    "Non-blank items sent in batch operations",
    ["operation"],
)

local_cipher_uses_total = Counter(
    "transit_fields_local_cipher_uses_total",
    "Operations served by the in-process cipher instead of the transit service",
    ["operation"],
)

# ============================================================================
# RELIABILITY METRICS
# ============================================================================

retries_total = Counter(
    "transit_fields_retries_total",
    "Retried transit calls",
    ["operation"],
)

failures_total = Counter(
    "transit_fields_failures_total",
    "Operations that surfaced an error to the caller",
    ["operation", "error_type"],
)

# ============================================================================
# PERFORMANCE METRICS
# ============================================================================

request_duration_seconds = Histogram(
    "transit_fields_request_duration_seconds",
    "Transit service round-trip latency",
    ["operation"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5],
)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================


def record_operation(operation: str, backend: str):
    operations_total.labels(operation=operation, backend=backend).inc()
    if backend == "local":
        local_cipher_uses_total.labels(operation=operation).inc()


def record_batch_items(operation: str, count: int):
    batch_items_total.labels(operation=operation).inc(count)


def record_retry(operation: str):
    retries_total.labels(operation=operation).inc()


def record_failure(operation: str, error: BaseException):
    failures_total.labels(operation=operation, error_type=type(error).__name__).inc()


def track_duration(operation: str) -> Callable:
    """Decorator to time a transit round trip

    Usage:
        @track_duration("encrypt")
        def write(...):
            ...
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            start = time.time()
            try:
                return func(*args, **kwargs)
            finally:
                request_duration_seconds.labels(operation=operation).observe(
                    time.time() - start
                )

        return wrapper

    return decorator


def get_metrics_text() -> bytes:
    """Metrics in Prometheus exposition format"""
    return generate_latest(REGISTRY)
