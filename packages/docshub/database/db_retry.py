"""Database retry utilities for transient PostgreSQL errors"""

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

T = TypeVar("T")
P = ParamSpec("P")

RETRYABLE_ERROR_PATTERNS = [
    # connection errors
    "connection refused",
    "could not connect",
    "connection timed out",
    "server closed the connection unexpectedly",
    "connection reset by peer",
    "no connection to the server",
    "terminating connection due to administrator command",
    # transaction errors
    "deadlock detected",
    "serialization failure",
    "could not serialize access",
    "temporary failure",
]


def _is_retryable_error(error: Exception) -> bool:
    """Check if an OperationalError is transient and safe to retry."""
    error_str = str(error).lower()
    return any(pattern in error_str for pattern in RETRYABLE_ERROR_PATTERNS)


def with_db_retry(
    retries: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    max_delay: float = 30.0,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """
    Decorator to retry async database operations on transient errors.

    Args:
        retries: Number of retry attempts
        delay: Initial delay between retries in seconds
        backoff: Backoff multiplier for exponential backoff
        max_delay: Maximum delay between retries
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            current_delay = delay
            for attempt in range(retries + 1):
                try:
                    return await func(*args, **kwargs)
                except OperationalError as e:
                    if not _is_retryable_error(e) or attempt == retries:
                        raise
                    logger.warning(
                        "Retryable database error (attempt %d/%d): %s",
                        attempt + 1,
                        retries + 1,
                        e,
                    )
                    await asyncio.sleep(current_delay)
                    current_delay = min(current_delay * backoff, max_delay)
            raise RuntimeError("Unexpected retry loop exit")

        return wrapper

    return decorator
