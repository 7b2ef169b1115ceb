"""Abstract base class for the relational metadata store.

Holds books, ingestion jobs, conversations and user memory.  Chunk vectors
live in :class:`~bookbuddy.interfaces.chunk_store.IChunkStore`; the two
together form the record store the pipeline talks to.

Implementations are expected to retry transient failures (lock contention,
timeouts, dropped connections) internally and surface anything else as an
exception.  Each call is assumed atomic on its own; no operation here spans
more than one statement's worth of consistency.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from bookbuddy.models.book import Book
from bookbuddy.models.conversation import Conversation, UserMemory
from bookbuddy.models.ingestion import IngestionJob


# Concrete implementations: SQLiteRecordStore
# Located in: bookbuddy/providers/record_store/
class IRecordStore(ABC):
    """Contract for per-entity CRUD over the non-vector data."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables if needed.  Safe to call more than once."""

    # -- Books ---------------------------------------------------------------

    @abstractmethod
    async def save_book(self, book: Book) -> Book:
        """Insert or replace *book* and return it."""

    @abstractmethod
    async def get_book(self, book_id: str) -> Book | None:
        """Return the book with *book_id*, or ``None``."""

    @abstractmethod
    async def update_book(self, book: Book) -> bool:
        """Rewrite an existing book row.

        Never inserts: returns ``False`` when no row with ``book.id`` exists,
        so a book deleted mid-ingestion stays deleted.
        """

    @abstractmethod
    async def list_books(self, owner_id: str | None = None) -> list[Book]:
        """Return every book (or only *owner_id*'s books), newest first."""

    @abstractmethod
    async def delete_book(self, book_id: str) -> bool:
        """Delete a book and cascade to its jobs and memory entries.

        Returns ``True`` if a row was removed.  Chunks are owned by the
        chunk store and must be deleted there by the caller.
        """

    @abstractmethod
    async def find_book_ids_by_author(self, author_fragment: str) -> list[str]:
        """Return ids of books whose author contains *author_fragment* (case-insensitive)."""

    # -- Ingestion jobs ------------------------------------------------------

    @abstractmethod
    async def save_job(self, job: IngestionJob) -> IngestionJob:
        """Insert or replace *job* and return it."""

    @abstractmethod
    async def update_job(self, job: IngestionJob) -> bool:
        """Rewrite progress fields of an existing job; ``False`` if the row is gone."""

    @abstractmethod
    async def get_job(self, job_id: str) -> IngestionJob | None:
        """Return the job with *job_id*, or ``None``."""

    # -- Conversations -------------------------------------------------------

    @abstractmethod
    async def save_conversation(self, conversation: Conversation) -> Conversation:
        """Insert or replace *conversation* (messages included)."""

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Return the conversation, or ``None`` if it was never created."""

    # -- User memory ---------------------------------------------------------

    @abstractmethod
    async def add_memory(self, memory: UserMemory) -> UserMemory:
        """Append a memory entry."""

    @abstractmethod
    async def list_memory(
        self,
        owner_id: str | None = None,
        book_id: str | None = None,
        memory_type: str | None = None,
        limit: int | None = None,
    ) -> list[UserMemory]:
        """Return memory entries matching every given filter, newest first."""
