"""In-process ingestion work queue.

:meth:`IngestionQueue.submit` creates the ``pending`` job row and puts its
id on an ``asyncio.Queue``.  A fixed pool of worker tasks pulls ids and
runs them through :class:`IngestionService` one at a time per worker;
different documents ingest concurrently across workers.

There is no cancellation of a running job.  :meth:`stop` cancels the
workers, which only interrupts a job mid-flight at shutdown; such a job
stays ``processing`` and is not resumed.
"""

from __future__ import annotations

import asyncio
import contextlib

import structlog

from bookbuddy.models.book import Book
from bookbuddy.models.ingestion import IngestionJob
from bookbuddy.services.ingestion.ingestion_service import IngestionService

logger = structlog.get_logger(logger_name=__name__)


class IngestionQueue:
    """Dispatches ingestion jobs to a pool of asyncio worker tasks."""

    def __init__(self, service: IngestionService, workers: int = 2) -> None:
        self._service = service
        self._worker_count = max(1, workers)
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def submit(self, book: Book) -> IngestionJob:
        """Create a pending job for *book* and enqueue it."""
        job = await self._service.create_job(book)
        await self._queue.put(job.id)
        logger.info("ingestion_job_enqueued", job_id=job.id, queue_depth=self._queue.qsize())
        return job

    async def get_status(self, job_id: str) -> IngestionJob:
        return await self._service.get_status(job_id)

    def start(self) -> None:
        """Spawn the worker tasks; a no-op if already running."""
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker(n), name=f"ingestion-worker-{n}")
            for n in range(self._worker_count)
        ]
        logger.info("ingestion_workers_started", workers=self._worker_count)

    async def stop(self) -> None:
        """Cancel the workers and wait for them to exit."""
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []
        logger.info("ingestion_workers_stopped")

    async def join(self) -> None:
        """Wait until every enqueued job has been processed by the workers."""
        await self._queue.join()

    async def drain(self) -> list[IngestionJob]:
        """Process every queued job inline, without workers (CLI use)."""
        results: list[IngestionJob] = []
        while not self._queue.empty():
            job_id = self._queue.get_nowait()
            try:
                results.append(await self._service.process(job_id))
            finally:
                self._queue.task_done()
        return results

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _worker(self, worker_id: int) -> None:
        while True:
            job_id = await self._queue.get()
            try:
                await self._service.process(job_id)
            except Exception as exc:
                # process() records pipeline failures itself; this catches
                # storage errors raised while recording them.
                logger.error(
                    "ingestion_worker_error",
                    worker=worker_id,
                    job_id=job_id,
                    error=str(exc),
                )
            finally:
                self._queue.task_done()
