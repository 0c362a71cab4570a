"""
Retry with exponential backoff for rate-limited upstream calls.

Only rate-limit / quota failures are retried. Everything else is raised on
the first occurrence.
"""

import asyncio
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from salesdash.services.errors import ServiceError

T = TypeVar("T")

RATE_LIMIT_MARKERS = (
    "quota exceeded",
    "rate limit",
    "too many requests",
    "resource exhausted",
)


def is_rate_limit_error(error: BaseException | None) -> bool:
    """
    Check whether an error signals upstream throttling.

    ServiceError subclasses are classified by their ``retryable`` tag.
    Foreign exceptions fall back to a 429 status attribute or a known
    quota message.
    """
    if error is None:
        return False

    if isinstance(error, ServiceError):
        return error.retryable

    for attr in ("status", "code", "status_code"):
        value = getattr(error, attr, None)
        if value == 429 or value == "429":
            return True

    message = str(error).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay in seconds before the retry that follows ``attempt`` (0-indexed)."""
    return min(base_delay * (2**attempt), max_delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    name: str = "Operation",
) -> T:
    """
    Execute ``operation`` retrying on rate-limit errors.

    Args:
        operation: Zero-argument async callable
        max_retries: Extra attempts after the first one
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for any single delay, in seconds
        name: Label used in log output

    Returns:
        Result of the first successful attempt

    Raises:
        The last error seen, once attempts are exhausted or as soon as a
        non-retryable error occurs
    """
    for attempt in range(max_retries + 1):
        try:
            return await operation()
        except Exception as e:
            is_last = attempt == max_retries
            if is_last or not is_rate_limit_error(e):
                raise

            wait = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                f"[Retry] {name}: attempt {attempt + 1}/{max_retries + 1} failed "
                f"({e}), waiting {wait:.2f}s before retry"
            )
            await asyncio.sleep(wait)

    # range() always runs at least once and every path above returns or raises
    raise RuntimeError(f"{name}: retry loop exited without a result")
