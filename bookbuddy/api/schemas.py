"""Pydantic request/response schemas for the BookBuddy API.

Request schemas end in ``Request`` and response schemas in ``Response``.
Domain models (``Book``, ``Citation``, ``IngestionJob`` ...) are embedded
directly where their shape is already the public one.

Required text fields such as ``query`` are declared optional here and
checked by the services, so a missing value is a 400 ``ErrorResponse``
rather than FastAPI's 422 validation body.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from bookbuddy.models.book import Book
from bookbuddy.models.conversation import Conversation, MemoryType
from bookbuddy.models.ingestion import JobStatus
from bookbuddy.models.rag import Citation


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


# ---------------------------------------------------------------------------
# Library
# ---------------------------------------------------------------------------


class UploadResponse(BaseModel):
    """Returned as soon as the upload is stored; ingestion continues in the background."""

    book: Book
    ingestion_job_id: str
    message: str = "Book uploaded successfully. Processing in background."


class IngestionStatusResponse(BaseModel):
    job_id: str
    book_id: str
    status: JobStatus
    progress: int = Field(ge=0, le=100)
    total_chunks: int | None = None
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime


class LibraryBook(BaseModel):
    book: Book
    is_owner: bool


class LibraryResponse(BaseModel):
    books: list[LibraryBook] = Field(default_factory=list)


class DeleteBookResponse(BaseModel):
    book_id: str
    message: str = "Book deleted successfully"


# ---------------------------------------------------------------------------
# Query / search
# ---------------------------------------------------------------------------


class QueryRequest(BaseModel):
    """A question over the library, optionally scoped to one book."""

    query: str | None = Field(default=None, max_length=2000)
    book_id: str | None = None
    k: int = Field(default=5, ge=1, le=20, description="Number of passages to retrieve.")
    persona: str | None = Field(default=None, description='"scholar", "friend" or "quizzer".')
    user_id: str | None = None


class QueryResponse(BaseModel):
    answer: str
    citations: list[Citation] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)


class SearchRequest(BaseModel):
    """Hybrid search with optional metadata filters."""

    query: str | None = Field(default=None, max_length=2000)
    book_id: str | None = None
    author: str | None = Field(default=None, description="Case-insensitive author substring.")
    min_page: int | None = Field(default=None, ge=0)
    max_page: int | None = Field(default=None, ge=0)
    limit: int = Field(default=10, ge=1, le=50)
    min_similarity: float | None = Field(default=None, ge=0.0, le=1.0)


class SearchResultItem(BaseModel):
    chunk_id: str
    book_id: str
    book_title: str
    author: str | None = None
    page: int | None = None
    chapter: str | None = None
    text: str
    similarity: float


class SearchResponse(BaseModel):
    query: str
    results: list[SearchResultItem] = Field(default_factory=list)
    total: int = 0


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class ChatMessageRequest(BaseModel):
    message: str | None = Field(default=None, max_length=2000)
    book_id: str | None = None
    persona: str | None = None
    user_id: str | None = None


class ChatMessageResponse(BaseModel):
    conversation_id: str
    answer: str
    citations: list[Citation] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    message_count: int


class ConversationResponse(BaseModel):
    conversation: Conversation


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------


class SaveMemoryRequest(BaseModel):
    memory_type: MemoryType
    text: str | None = Field(default=None, max_length=4000)
    book_id: str | None = None
    page: int | None = Field(default=None, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)
    user_id: str | None = None


class MemoryItem(BaseModel):
    id: str
    memory_type: MemoryType
    text: str | None = None
    book_id: str | None = None
    page: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class QuotesResponse(BaseModel):
    book_id: str
    quotes: list[MemoryItem] = Field(default_factory=list)
