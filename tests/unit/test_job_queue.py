"""Unit tests for the in-process IngestionQueue."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from bookbuddy.models.ingestion import IngestionJob, JobStatus
from bookbuddy.services.ingestion.ingestion_service import IngestionService
from bookbuddy.services.ingestion.job_queue import IngestionQueue
from bookbuddy.utils.errors import StorageError


@pytest.fixture
def mock_service() -> MagicMock:
    service = MagicMock(spec=IngestionService)
    counter = iter(range(1, 100))

    async def create_job(book):
        return IngestionJob(id=f"job-{next(counter)}", book_id=book.id)

    async def process(job_id):
        return IngestionJob(id=job_id, book_id="book-001", status=JobStatus.COMPLETED, progress=100)

    service.create_job = AsyncMock(side_effect=create_job)
    service.process = AsyncMock(side_effect=process)
    service.get_status = AsyncMock()
    return service


class TestSubmitAndDrain:
    @pytest.mark.asyncio
    async def test_submit_returns_pending_job(self, mock_service, make_book) -> None:
        queue = IngestionQueue(mock_service)
        job = await queue.submit(make_book())

        assert job.status is JobStatus.PENDING
        mock_service.process.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_drain_processes_in_order(self, mock_service, make_book) -> None:
        queue = IngestionQueue(mock_service)
        await queue.submit(make_book(id="a"))
        await queue.submit(make_book(id="b"))

        results = await queue.drain()

        assert [r.id for r in results] == ["job-1", "job-2"]
        assert all(r.status is JobStatus.COMPLETED for r in results)
        assert await queue.drain() == []

    @pytest.mark.asyncio
    async def test_get_status_delegates(self, mock_service) -> None:
        queue = IngestionQueue(mock_service)
        await queue.get_status("job-9")
        mock_service.get_status.assert_awaited_once_with("job-9")


class TestWorkers:
    @pytest.mark.asyncio
    async def test_workers_process_submitted_jobs(self, mock_service, make_book) -> None:
        queue = IngestionQueue(mock_service, workers=2)
        queue.start()
        try:
            for n in range(4):
                await queue.submit(make_book(id=f"book-{n}"))
            await asyncio.wait_for(queue.join(), timeout=5)
        finally:
            await queue.stop()

        assert mock_service.process.await_count == 4
        assert not queue.running

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, mock_service) -> None:
        queue = IngestionQueue(mock_service, workers=3)
        queue.start()
        queue.start()
        try:
            assert len(queue._tasks) == 3
        finally:
            await queue.stop()

    @pytest.mark.asyncio
    async def test_worker_survives_storage_error(self, mock_service, make_book) -> None:
        mock_service.process = AsyncMock(
            side_effect=[StorageError("database is locked"), IngestionJob(id="job-2", book_id="b")]
        )
        queue = IngestionQueue(mock_service, workers=1)
        queue.start()
        try:
            await queue.submit(make_book(id="a"))
            await queue.submit(make_book(id="b"))
            await asyncio.wait_for(queue.join(), timeout=5)
        finally:
            await queue.stop()

        assert mock_service.process.await_count == 2
