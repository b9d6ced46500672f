"""Retry policy for transit calls

Bounded exponential backoff around any fallible operation. Which errors are
worth another try is decided by a predicate, so the same policy wraps encrypt,
decrypt or anything else.
"""

import time
from typing import Callable, Optional, TypeVar

import structlog

from transit_fields.errors import is_retryable
from transit_fields.utils.metrics import record_retry

logger = structlog.get_logger()

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, max_wait: float) -> float:
    """Delay after the given failed attempt (1-based), doubling each time"""
    return min(max_wait, base_delay * (2 ** (attempt - 1)))


def with_retries(
    operation: Callable[[], T],
    attempts: int,
    base_delay: float,
    max_wait: float,
    retry_on: Callable[[BaseException], bool] = is_retryable,
    operation_name: str = "transit",
    sleep: Optional[Callable[[float], None]] = None,
) -> T:
    """Run operation, retrying retryable failures

    Args:
        operation: Zero-argument callable performing one attempt
        attempts: Total number of tries (>= 1)
        base_delay: Delay in seconds after the first failure
        max_wait: Upper bound for a single delay
        retry_on: Predicate deciding whether an error is retried
        operation_name: Label for logs and metrics
        sleep: Replacement for time.sleep

    Returns:
        Result of the first successful attempt

    Raises:
        The last error once attempts are exhausted, or any non-retryable
        error immediately.
    """
    sleep = sleep or time.sleep
    attempt = 1
    while True:
        try:
            return operation()
        except Exception as e:
            if attempt >= attempts or not retry_on(e):
                raise

            delay = backoff_delay(attempt, base_delay, max_wait)
            logger.warning(
                "Transit call failed, retrying",
                operation=operation_name,
                attempt=attempt,
                max_attempts=attempts,
                delay=delay,
                error=str(e),
            )
            record_retry(operation_name)
            sleep(delay)
            attempt += 1
