"""Bounded fan-out for provider calls.

The embedding service issues every request of a batch at once and relies
on :func:`throttled_gather` to keep at most ``max_in_flight`` of them open
against the provider.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

_T = TypeVar("_T")

DEFAULT_MAX_IN_FLIGHT = 16


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = False,
) -> list[_T | BaseException]:
    """``asyncio.gather`` with each awaitable run under *semaphore*.

    Results keep input order.  Without a semaphore a new one allowing
    :data:`DEFAULT_MAX_IN_FLIGHT` is created per call, since a semaphore
    belongs to the loop it was first used on.

    Unless *return_exceptions* is set, the first failure cancels every
    call still running or waiting for the semaphore before it propagates.
    """
    gate = semaphore or asyncio.Semaphore(DEFAULT_MAX_IN_FLIGHT)

    async def _run(coro: Awaitable[_T]) -> _T:
        try:
            async with gate:
                return await coro
        except asyncio.CancelledError:
            # Never-started coroutines must be closed or they warn on GC.
            if asyncio.iscoroutine(coro):
                coro.close()
            raise

    tasks = [asyncio.ensure_future(_run(c)) for c in coros]
    if return_exceptions:
        return await asyncio.gather(*tasks, return_exceptions=True)

    try:
        return await asyncio.gather(*tasks)
    except Exception:
        pending = [t for t in tasks if not t.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        raise
