"""Book library: upload, listing and deletion.

Uploads are validated synchronously (extension, non-empty, size cap) before
anything is written; ingestion itself runs asynchronously through the
:class:`IngestionQueue`, so the caller gets the book and a job id back
immediately and polls the job for progress.

Deletion is owner-only, except for orphan books (uploaded without a
caller id), which anyone may delete.  The raw blob is removed first and a
failure there is logged but does not stop the delete; chunk vectors and the
book row (which cascades to jobs and memory) are then removed.
"""

from __future__ import annotations

import time
import uuid

import structlog

from bookbuddy.interfaces.blob_store import IBlobStore
from bookbuddy.interfaces.chunk_store import IChunkStore
from bookbuddy.interfaces.record_store import IRecordStore
from bookbuddy.models.book import Book, FileType, LibraryEntry
from bookbuddy.models.ingestion import IngestionJob
from bookbuddy.services.ingestion.job_queue import IngestionQueue
from bookbuddy.utils.errors import (
    InputValidationError,
    NotFoundError,
    PermissionDeniedError,
    UnsupportedFileTypeError,
)

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_MAX_UPLOAD_MB = 100


class LibraryService:
    """Manages the lifecycle of uploaded books.

    Parameters
    ----------
    record_store:
        Book rows.
    chunk_store:
        Vectors removed on delete.
    blob_store:
        Raw upload bytes.
    queue:
        Receives an ingestion job per upload.
    max_upload_mb:
        Largest accepted upload, in megabytes.
    """

    def __init__(
        self,
        record_store: IRecordStore,
        chunk_store: IChunkStore,
        blob_store: IBlobStore,
        queue: IngestionQueue,
        max_upload_mb: int = DEFAULT_MAX_UPLOAD_MB,
    ) -> None:
        self._records = record_store
        self._chunks = chunk_store
        self._blobs = blob_store
        self._queue = queue
        self._max_bytes = max_upload_mb * 1024 * 1024

    @property
    def max_upload_bytes(self) -> int:
        return self._max_bytes

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def upload_book(
        self,
        filename: str,
        data: bytes,
        caller_id: str | None = None,
        title: str | None = None,
        author: str | None = None,
        language: str | None = None,
    ) -> tuple[Book, IngestionJob]:
        """Store an upload, create its book row and enqueue ingestion.

        Raises
        ------
        UnsupportedFileTypeError
            If the extension is not .pdf, .epub or .txt.
        InputValidationError
            If the file is empty or larger than the configured cap.
        """
        if not filename:
            raise InputValidationError(message="No file uploaded")
        file_type = FileType.from_filename(filename)
        if file_type is None:
            raise UnsupportedFileTypeError(
                message="Invalid file type. Only PDF, EPUB, and TXT files are allowed."
            )
        if not data:
            raise InputValidationError(message="Uploaded file is empty")
        if len(data) > self._max_bytes:
            raise InputValidationError(
                message=f"File exceeds the {self._max_bytes // (1024 * 1024)} MB upload limit"
            )

        key = f"{caller_id or 'anonymous'}/{int(time.time() * 1000)}-{filename}"
        storage_key = await self._blobs.put(data, key)

        book = Book(
            id=str(uuid.uuid4()),
            title=(title or "").strip() or filename.rsplit(".", 1)[0],
            author=(author or "").strip() or None,
            language=(language or "").strip() or "en",
            file_type=file_type,
            file_size=len(data),
            storage_key=storage_key,
            owner_id=caller_id or None,
        )
        await self._records.save_book(book)
        job = await self._queue.submit(book)

        logger.info(
            "book_uploaded",
            book_id=book.id,
            job_id=job.id,
            file_type=file_type.value,
            size=len(data),
            owner=caller_id or "anonymous",
        )
        return book, job

    async def get_book(self, book_id: str) -> Book:
        book = await self._records.get_book(book_id)
        if book is None:
            raise NotFoundError(message="Book not found")
        return book

    async def list_library(self, caller_id: str | None = None) -> list[LibraryEntry]:
        """All books, newest first, flagged with whether *caller_id* may manage them."""
        books = await self._records.list_books()
        return [LibraryEntry(book=b, is_owner=b.is_manageable_by(caller_id)) for b in books]

    async def list_user_library(self, user_id: str) -> list[Book]:
        """Books uploaded by *user_id*, newest first."""
        if not user_id or not user_id.strip():
            raise InputValidationError(message="user_id is required")
        return await self._records.list_books(owner_id=user_id)

    async def delete_book(self, book_id: str, caller_id: str | None = None) -> None:
        """Delete a book with its blob, chunks, jobs and memory.

        Raises
        ------
        NotFoundError
            If the book does not exist.
        PermissionDeniedError
            If *caller_id* neither owns the book nor is it an orphan.
        """
        book = await self.get_book(book_id)
        if not book.is_manageable_by(caller_id):
            raise PermissionDeniedError(message="You do not have permission to delete this book")

        try:
            await self._blobs.delete(book.storage_key)
        except Exception as exc:
            logger.warning(
                "book_blob_delete_failed",
                book_id=book_id,
                storage_key=book.storage_key,
                error=str(exc),
            )

        await self._chunks.delete_by_book(book_id)
        await self._records.delete_book(book_id)
        logger.info("book_deleted", book_id=book_id, caller_id=caller_id)
