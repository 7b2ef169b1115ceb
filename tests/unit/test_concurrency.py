"""Unit tests for throttled_gather."""

from __future__ import annotations

import asyncio

import pytest

from bookbuddy.utils.concurrency import throttled_gather
from bookbuddy.utils.errors import RAGError


class TestThrottledGather:
    @pytest.mark.asyncio
    async def test_results_keep_input_order(self) -> None:
        async def value(n: int, delay: float) -> int:
            await asyncio.sleep(delay)
            return n

        results = await throttled_gather([value(1, 0.02), value(2, 0), value(3, 0.01)])

        assert results == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_never_exceeds_semaphore(self) -> None:
        active = 0
        peak = 0

        async def tracked() -> None:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        await throttled_gather([tracked() for _ in range(6)], semaphore=asyncio.Semaphore(2))

        assert peak == 2

    @pytest.mark.asyncio
    async def test_first_failure_cancels_outstanding_calls(self) -> None:
        started: list[str] = []
        cancelled: list[str] = []
        release = asyncio.Event()

        async def slow(name: str) -> str:
            started.append(name)
            try:
                await release.wait()
            except asyncio.CancelledError:
                cancelled.append(name)
                raise
            return name

        async def failing() -> str:
            started.append("failing")
            await asyncio.sleep(0)
            raise RAGError("embedding down")

        # One slot: "a" takes it once the failure releases it, "queued" never does.
        with pytest.raises(RAGError, match="embedding down"):
            await throttled_gather(
                [failing(), slow("a"), slow("queued")],
                semaphore=asyncio.Semaphore(1),
            )

        assert started == ["failing", "a"]
        assert cancelled == ["a"]

    @pytest.mark.asyncio
    async def test_return_exceptions_keeps_siblings(self) -> None:
        async def ok() -> str:
            await asyncio.sleep(0.01)
            return "ok"

        async def failing() -> str:
            raise RAGError("boom")

        results = await throttled_gather([ok(), failing(), ok()], return_exceptions=True)

        assert results[0] == "ok"
        assert isinstance(results[1], RAGError)
        assert results[2] == "ok"
