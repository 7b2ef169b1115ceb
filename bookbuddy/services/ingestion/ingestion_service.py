"""Orchestrator for the per-document ingestion pipeline.

Pipeline stages: **fetch -> parse -> update metadata -> chunk -> embed -> persist**.

:class:`IngestionService` coordinates its collaborators (blob store, parser,
chunker, embedding service, record store, chunk store) without any of them
knowing about each other.  All are injected via the constructor.

Job state machine: ``pending -> processing -> completed | failed``.  Each
stage advances a monotonic progress percentage::

    10  bytes fetched
    30  parsed (book metadata updated right after)
    50  chunked; total_chunks recorded before any chunk is written
    50 -> 100  linearly while chunks are persisted
    100 completed

Embedding and persistence are interleaved per embedding batch: a batch is
embedded, every chunk in it is written, then the next batch is embedded.
When a later batch fails, chunks from earlier batches remain stored; they
are not rolled back.  Any exception marks the job ``failed`` with its
message and is not re-raised, so upload requests never see ingestion errors.

Book and job rows are only ever *updated* here, never re-inserted.  If the
book is deleted while a job is running, the next checkpoint fails the job
and any chunks it already wrote are removed.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import TYPE_CHECKING

import structlog

from bookbuddy.models.book import Book, ChapterEntry
from bookbuddy.models.document import ParsedDocument
from bookbuddy.models.ingestion import IngestionJob, JobStatus
from bookbuddy.models.rag import DocumentChunk
from bookbuddy.utils.errors import IngestionError, NotFoundError
from bookbuddy.utils.logging import bind_job_context

if TYPE_CHECKING:
    from bookbuddy.interfaces.blob_store import IBlobStore
    from bookbuddy.interfaces.chunk_store import IChunkStore
    from bookbuddy.interfaces.record_store import IRecordStore
    from bookbuddy.services.embedding_service import EmbeddingService
    from bookbuddy.services.ingestion.chunker import WordWindowChunker
    from bookbuddy.services.ingestion.parser import DocumentParser

logger = structlog.get_logger(logger_name=__name__)

PROGRESS_FETCHED = 10
PROGRESS_PARSED = 30
PROGRESS_CHUNKED = 50
PROGRESS_DONE = 100


class IngestionService:
    """Runs ingestion jobs end to end and reports their status.

    Parameters
    ----------
    record_store:
        Persists books and job rows.
    chunk_store:
        Receives every chunk with its embedding.
    blob_store:
        Source of the raw uploaded bytes.
    parser:
        Turns bytes into pages.
    chunker:
        Turns pages into overlapping word windows.
    embedding_service:
        Batched embedding client.
    progress_every:
        Write progress after this many persisted chunks (and at the end of
        every embedding batch).
    """

    def __init__(
        self,
        record_store: IRecordStore,
        chunk_store: IChunkStore,
        blob_store: IBlobStore,
        parser: DocumentParser,
        chunker: WordWindowChunker,
        embedding_service: EmbeddingService,
        progress_every: int = 10,
    ) -> None:
        self._records = record_store
        self._chunks = chunk_store
        self._blobs = blob_store
        self._parser = parser
        self._chunker = chunker
        self._embedding = embedding_service
        self._progress_every = max(1, progress_every)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def create_job(self, book: Book) -> IngestionJob:
        """Persist a new ``pending`` job for *book*."""
        job = IngestionJob(id=str(uuid.uuid4()), book_id=book.id)
        await self._records.save_job(job)
        logger.info("ingestion_job_created", job_id=job.id, book_id=book.id)
        return job

    async def get_status(self, job_id: str) -> IngestionJob:
        """Return the current job row.

        Raises
        ------
        NotFoundError
            If no job has *job_id*.
        """
        job = await self._records.get_job(job_id)
        if job is None:
            raise NotFoundError(message=f"Ingestion job {job_id} not found")
        return job

    async def process(self, job_id: str) -> IngestionJob:
        """Run the pipeline for *job_id* and return the final job row.

        Jobs that are no longer ``pending`` are returned untouched, so a
        job dequeued twice is only processed once.
        """
        job = await self.get_status(job_id)
        if job.status is not JobStatus.PENDING:
            logger.warning("ingestion_job_skipped", job_id=job_id, status=job.status.value)
            return job

        # Claimed before any work so a second worker sees it as taken.
        job = await self._save(job.advance(status=JobStatus.PROCESSING))

        with bind_job_context(job_id=job.id, book_id=job.book_id):
            logger.info("ingestion_job_started")
            try:
                job = await self._run(job)
            except Exception as exc:
                message = str(exc) or exc.__class__.__name__
                logger.error(
                    "ingestion_job_failed",
                    error=message,
                    error_type=exc.__class__.__name__,
                    progress=job.progress,
                )
                return await self._fail(job, message)

            logger.info("ingestion_job_completed", total_chunks=job.total_chunks)
            return job

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    async def _run(self, job: IngestionJob) -> IngestionJob:
        book = await self._require_book(job.book_id)

        data = await self._blobs.get(book.storage_key)
        # The book may have been deleted while its bytes were being read.
        await self._require_book(book.id)
        job = await self._save(job.advance(progress=PROGRESS_FETCHED))

        parsed = await asyncio.to_thread(self._parser.parse, data, book.file_type)
        job = await self._save(job.advance(progress=PROGRESS_PARSED))

        book = await self._apply_metadata(book, parsed)

        text_chunks = self._chunker.chunk(parsed.pages)
        total = len(text_chunks)
        job = await self._save(job.advance(progress=PROGRESS_CHUNKED, total_chunks=total))
        logger.info("document_chunked", chunks=total, pages=len(parsed.pages))

        persisted = 0
        texts = [c.text for c in text_chunks]
        async for start, vectors in self._embedding.iter_batches(texts):
            await self._require_book(book.id)
            for offset, vector in enumerate(vectors):
                text_chunk = text_chunks[start + offset]
                chunk = DocumentChunk(
                    id=str(uuid.uuid4()),
                    book_id=book.id,
                    chunk_index=text_chunk.chunk_index,
                    page=text_chunk.page,
                    chapter=text_chunk.chapter,
                    text=text_chunk.text,
                    metadata={"word_count": text_chunk.word_count},
                )
                await self._chunks.add_chunk(chunk, vector)
                persisted += 1
                if persisted % self._progress_every == 0:
                    job = await self._save(job.advance(progress=_persist_progress(persisted, total)))
            job = await self._save(job.advance(progress=_persist_progress(persisted, total)))

        return await self._save(job.advance(status=JobStatus.COMPLETED, progress=PROGRESS_DONE))

    async def _apply_metadata(self, book: Book, parsed: ParsedDocument) -> Book:
        """Fill empty book fields from parser metadata; never overwrite caller values."""
        meta = parsed.metadata
        update: dict = {
            "total_pages": meta.total_pages,
            "chapters": [ChapterEntry(page=p.page_number, chapter=p.chapter) for p in parsed.pages],
        }
        if not book.title:
            update["title"] = meta.title or "Untitled"
        if book.author is None and meta.author:
            update["author"] = meta.author
        if not book.language and meta.language:
            update["language"] = meta.language

        updated = book.model_copy(update=update)
        if not await self._records.update_book(updated):
            raise IngestionError(message=f"Book {book.id} no longer exists")
        return updated

    async def _require_book(self, book_id: str) -> Book:
        book = await self._records.get_book(book_id)
        if book is None:
            raise IngestionError(message=f"Book {book_id} no longer exists")
        return book

    async def _save(self, job: IngestionJob) -> IngestionJob:
        # Updates only: a job removed along with its book is never re-created.
        if not await self._records.update_job(job):
            raise IngestionError(message=f"Ingestion job {job.id} no longer exists")
        return job

    async def _fail(self, job: IngestionJob, message: str) -> IngestionJob:
        failed = job.advance(status=JobStatus.FAILED, error_message=message)
        if not await self._records.update_job(failed):
            logger.warning("ingestion_job_row_missing")
        if await self._records.get_book(job.book_id) is None:
            # Chunks written before the book was deleted would be orphans.
            removed = await self._chunks.delete_by_book(job.book_id)
            logger.info("orphan_chunks_removed", removed=removed)
        return failed


def _persist_progress(persisted: int, total: int) -> int:
    if total <= 0:
        return PROGRESS_CHUNKED
    return PROGRESS_CHUNKED + (persisted * (PROGRESS_DONE - PROGRESS_CHUNKED)) // total
