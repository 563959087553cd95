"""Retry and backoff for idempotent writes using tenacity.

Reads are never retried: the index/relational dual path already gives
read resilience. Only upsert-by-id index writes use this.
"""

from typing import Callable, Type

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from catalog_search_common.logging_config import get_logger

logger = get_logger(__name__)


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning(
        "retrying_operation",
        function=getattr(state.fn, "__name__", "unknown"),
        attempt=state.attempt_number,
        error=str(exc) if exc else None,
    )


def retry_on_exception(
    exception_types: tuple[Type[Exception], ...],
    max_attempts: int = 3,
    min_wait_seconds: float = 0.5,
    max_wait_seconds: float = 5.0,
) -> Callable:
    """Decorator retrying a (sync or async) callable on specific exceptions.

    Uses exponential backoff: wait = min(max_wait, min_wait * 2^(attempt-1)).
    The last exception is re-raised once attempts are exhausted.

    Args:
        exception_types: Exception types that trigger a retry
        max_attempts: Maximum number of attempts (default: 3)
        min_wait_seconds: Minimum wait between attempts
        max_wait_seconds: Maximum wait between attempts

    Example:
        >>> @retry_on_exception((httpx.TransportError,), max_attempts=3)
        ... async def put_document(...): ...
    """
    return retry(
        retry=retry_if_exception_type(exception_types),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(
            multiplier=min_wait_seconds,
            min=min_wait_seconds,
            max=max_wait_seconds,
        ),
        before_sleep=_log_retry,
        reraise=True,
    )
