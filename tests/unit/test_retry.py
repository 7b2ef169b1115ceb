"""Unit tests for the transient-failure retry helper."""

from __future__ import annotations

import sqlite3
from unittest.mock import AsyncMock, patch

import pytest

from bookbuddy.utils.retry import backoff_delay, is_transient, retry_async


class TestClassification:
    @pytest.mark.parametrize(
        "exc",
        [
            sqlite3.OperationalError("database is locked"),
            TimeoutError(),
            ConnectionResetError(),
            RuntimeError("Connection reset by peer"),
            RuntimeError("operation timed out"),
        ],
    )
    def test_transient(self, exc: BaseException) -> None:
        assert is_transient(exc)

    @pytest.mark.parametrize("exc", [ValueError("bad value"), sqlite3.IntegrityError("UNIQUE constraint failed")])
    def test_permanent(self, exc: BaseException) -> None:
        assert not is_transient(exc)


def test_backoff_doubles_and_caps() -> None:
    assert [backoff_delay(n, 1.0, 5.0) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]


class TestRetryAsync:
    @pytest.mark.asyncio
    async def test_retries_transient_then_succeeds(self) -> None:
        operation = AsyncMock(side_effect=[sqlite3.OperationalError("database is locked"), "ok"])

        with patch("bookbuddy.utils.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            result = await retry_async(operation, attempts=3, base_delay=0.5)

        assert result == "ok"
        assert operation.await_count == 2
        mock_sleep.assert_awaited_once_with(0.5)

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self) -> None:
        operation = AsyncMock(side_effect=ValueError("bad row"))
        with pytest.raises(ValueError):
            await retry_async(operation, attempts=3, base_delay=0)
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_attempts(self) -> None:
        operation = AsyncMock(side_effect=sqlite3.OperationalError("database is locked"))
        with pytest.raises(sqlite3.OperationalError):
            await retry_async(operation, attempts=3, base_delay=0, max_delay=0)
        assert operation.await_count == 3
