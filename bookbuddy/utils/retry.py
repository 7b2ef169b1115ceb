"""Exponential-backoff retry for transient storage failures.

Used by the record store: every public operation is run
through :func:`retry_async`, which re-invokes the operation when the
failure looks transient (lock contention, timeouts, dropped connections)
and re-raises anything else immediately.

The delay before attempt *n + 1* is ``min(base_delay * 2 ** (n - 1), max_delay)``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from bookbuddy.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)

_TRANSIENT_MARKERS = (
    "locked",
    "busy",
    "timeout",
    "timed out",
    "reset",
    "terminated",
)


def is_transient(exc: BaseException) -> bool:
    """Return ``True`` if *exc* looks like a retryable connection/lock error."""
    if isinstance(exc, (TimeoutError, ConnectionResetError)):
        return True
    text = str(exc).lower()
    return any(marker in text for marker in _TRANSIENT_MARKERS)


def backoff_delay(attempt: int, base_delay: float = 1.0, max_delay: float = 5.0) -> float:
    """Return the sleep (seconds) after failed *attempt* (1-based)."""
    return min(base_delay * (2 ** (attempt - 1)), max_delay)


async def retry_async(
    operation: Callable[[], Awaitable[_T]],
    *,
    attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 5.0,
    op_name: str = "storage_operation",
) -> _T:
    """Await ``operation()`` retrying transient failures with backoff.

    Parameters
    ----------
    operation:
        Zero-argument callable returning a fresh awaitable each call.
    attempts:
        Total number of tries (including the first).
    base_delay, max_delay:
        Backoff parameters in seconds.
    op_name:
        Label used in log events.

    Raises
    ------
    Exception
        The last error once *attempts* are exhausted, or the first
        non-transient error.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            if attempt >= attempts or not is_transient(exc):
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            _logger.warning(
                "storage_retry",
                operation=op_name,
                attempt=attempt,
                max_attempts=attempts,
                delay_s=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover
