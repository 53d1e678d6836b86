"""Retry policy for optimistic-lock conflicts on an order."""
from __future__ import annotations

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from domain.common.exceptions import ConcurrentOrderUpdateException


DEFAULT_MAX_ATTEMPTS = 3


def retry_on_conflict(max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> AsyncRetrying:
    """Re-run the block on ConcurrentOrderUpdateException, re-raising the last one.

    Each attempt must open a new unit of work and read the order again.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=0.05, min=0.05, max=0.5),
        retry=retry_if_exception_type(ConcurrentOrderUpdateException),
        reraise=True,
    )
