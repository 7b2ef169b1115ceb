"""Unit tests for LibraryService — upload validation, listing, owner-only delete."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from bookbuddy.interfaces.blob_store import IBlobStore
from bookbuddy.interfaces.chunk_store import IChunkStore
from bookbuddy.interfaces.record_store import IRecordStore
from bookbuddy.models.book import FileType
from bookbuddy.models.ingestion import IngestionJob
from bookbuddy.services.ingestion.job_queue import IngestionQueue
from bookbuddy.services.library_service import LibraryService
from bookbuddy.utils.errors import (
    InputValidationError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    UnsupportedFileTypeError,
)


@pytest.fixture
def deps() -> dict[str, MagicMock]:
    records = MagicMock(spec=IRecordStore)
    records.save_book = AsyncMock(side_effect=lambda book: book)
    records.get_book = AsyncMock(return_value=None)
    records.list_books = AsyncMock(return_value=[])
    records.delete_book = AsyncMock(return_value=True)

    chunks = MagicMock(spec=IChunkStore)
    chunks.delete_by_book = AsyncMock(return_value=3)

    blobs = MagicMock(spec=IBlobStore)
    blobs.put = AsyncMock(side_effect=lambda data, key: key)
    blobs.delete = AsyncMock()

    queue = MagicMock(spec=IngestionQueue)
    queue.submit = AsyncMock(side_effect=lambda book: IngestionJob(id="job-1", book_id=book.id))
    return {"records": records, "chunks": chunks, "blobs": blobs, "queue": queue}


@pytest.fixture
def library(deps) -> LibraryService:
    return LibraryService(deps["records"], deps["chunks"], deps["blobs"], deps["queue"], max_upload_mb=1)


class TestUpload:
    @pytest.mark.asyncio
    async def test_upload_creates_book_and_job(self, library, deps) -> None:
        book, job = await library.upload_book("lighthouse.txt", b"the keeper", caller_id="alice")

        assert book.title == "lighthouse"
        assert book.file_type is FileType.TXT
        assert book.file_size == len(b"the keeper")
        assert book.owner_id == "alice"
        assert book.language == "en"
        assert book.total_pages is None
        assert book.storage_key.startswith("alice/")
        assert book.storage_key.endswith("-lighthouse.txt")
        assert job.book_id == book.id
        deps["records"].save_book.assert_awaited_once()
        deps["queue"].submit.assert_awaited_once_with(book)

    @pytest.mark.asyncio
    async def test_caller_metadata_wins(self, library) -> None:
        book, _ = await library.upload_book(
            "x.epub", b"PK", title=" The Lighthouse ", author="Ada Keeper", language="fr"
        )
        assert book.title == "The Lighthouse"
        assert book.author == "Ada Keeper"
        assert book.language == "fr"
        assert book.owner_id is None
        assert book.storage_key.startswith("anonymous/")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("filename", ["notes.docx", "README", "image.png"])
    async def test_unsupported_extension(self, library, deps, filename: str) -> None:
        with pytest.raises(UnsupportedFileTypeError, match="Only PDF, EPUB, and TXT"):
            await library.upload_book(filename, b"data")
        deps["blobs"].put.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_file_rejected(self, library) -> None:
        with pytest.raises(InputValidationError, match="empty"):
            await library.upload_book("empty.txt", b"")

    @pytest.mark.asyncio
    async def test_oversized_file_rejected(self, library, deps) -> None:
        with pytest.raises(InputValidationError, match="1 MB"):
            await library.upload_book("big.pdf", b"x" * (library.max_upload_bytes + 1))
        deps["queue"].submit.assert_not_awaited()


class TestListing:
    @pytest.mark.asyncio
    async def test_is_owner_flags(self, library, deps, make_book) -> None:
        deps["records"].list_books.return_value = [
            make_book(id="a", owner_id="alice"),
            make_book(id="b", owner_id="bob"),
            make_book(id="c", owner_id=None),
        ]

        entries = await library.list_library("alice")

        assert [(e.book.id, e.is_owner) for e in entries] == [("a", True), ("b", False), ("c", True)]

    @pytest.mark.asyncio
    async def test_anonymous_caller_owns_only_orphans(self, library, deps, make_book) -> None:
        deps["records"].list_books.return_value = [make_book(id="a"), make_book(id="c", owner_id=None)]
        entries = await library.list_library(None)
        assert [e.is_owner for e in entries] == [False, True]

    @pytest.mark.asyncio
    async def test_user_library_filters_by_owner(self, library, deps, make_book) -> None:
        deps["records"].list_books.return_value = [make_book(id="a2"), make_book(id="a1")]

        books = await library.list_user_library("alice")

        assert [b.id for b in books] == ["a2", "a1"]
        deps["records"].list_books.assert_awaited_once_with(owner_id="alice")

    @pytest.mark.asyncio
    async def test_user_library_requires_user(self, library, deps) -> None:
        with pytest.raises(InputValidationError):
            await library.list_user_library("  ")
        deps["records"].list_books.assert_not_awaited()


class TestDelete:
    @pytest.mark.asyncio
    async def test_owner_deletes_everything(self, library, deps, make_book) -> None:
        book = make_book()
        deps["records"].get_book.return_value = book

        await library.delete_book(book.id, caller_id="alice")

        deps["blobs"].delete.assert_awaited_once_with(book.storage_key)
        deps["chunks"].delete_by_book.assert_awaited_once_with(book.id)
        deps["records"].delete_book.assert_awaited_once_with(book.id)

    @pytest.mark.asyncio
    async def test_non_owner_denied(self, library, deps, make_book) -> None:
        deps["records"].get_book.return_value = make_book()

        with pytest.raises(PermissionDeniedError):
            await library.delete_book("book-001", caller_id="mallory")
        deps["chunks"].delete_by_book.assert_not_awaited()
        deps["records"].delete_book.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_orphan_deletable_by_anyone(self, library, deps, make_book) -> None:
        deps["records"].get_book.return_value = make_book(owner_id=None)
        await library.delete_book("book-001", caller_id=None)
        deps["records"].delete_book.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_book(self, library) -> None:
        with pytest.raises(NotFoundError):
            await library.delete_book("nope", caller_id="alice")

    @pytest.mark.asyncio
    async def test_blob_failure_does_not_block_delete(self, library, deps, make_book) -> None:
        deps["records"].get_book.return_value = make_book()
        deps["blobs"].delete.side_effect = StorageError("disk gone")

        await library.delete_book("book-001", caller_id="alice")

        deps["chunks"].delete_by_book.assert_awaited_once()
        deps["records"].delete_book.assert_awaited_once()
