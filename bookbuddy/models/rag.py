"""RAG pipeline data models for the BookBuddy knowledge base.

Defines Pydantic v2 models for chunks, search filters and results,
citations and answers.  All models use frozen config.

Flow overview:

    1. INGESTION: parsed pages are split into overlapping word windows
       (:class:`TextChunk`), then assigned ids and a book
       (:class:`DocumentChunk`).
    2. EMBEDDING: each chunk's text becomes a dense vector.
    3. STORAGE: chunk + vector are written to the chunk store (ChromaDB).
    4. RETRIEVAL: a query is embedded and matched, producing
       :class:`SearchResult` objects scored by vector similarity blended
       with lexical overlap.
    5. GENERATION: results become numbered context blocks and
       :class:`Citation` objects, and the model's reply is assembled into
       a :class:`RAGAnswer`.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Chunks
# ---------------------------------------------------------------------------
class TextChunk(BaseModel):
    """A window of words produced by the chunker, before it is tied to a book."""

    model_config = ConfigDict(frozen=True)

    chunk_index: int = Field(ge=0, description="Dense 0-based index across the whole document.")
    text: str
    page: int | None = None
    chapter: str | None = None
    word_count: int = Field(default=0, ge=0)


class DocumentChunk(BaseModel):
    """A persisted chunk: the fundamental unit of the knowledge base.

    Chunks are immutable once written and are only removed through the
    owning book's delete cascade.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique identifier (UUID) for this chunk.")
    book_id: str = Field(description="Owning book.")
    chunk_index: int = Field(ge=0)
    page: int | None = None
    chapter: str | None = None
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------
class SearchFilters(BaseModel):
    """Optional metadata filters for vector search."""

    model_config = ConfigDict(frozen=True)

    book_id: str | None = None
    # Case-insensitive substring match against the book's author.
    author: str | None = None
    min_page: int | None = Field(default=None, ge=0)
    max_page: int | None = Field(default=None, ge=0)


class SearchResult(BaseModel):
    """A chunk returned by the search engine with its blended score."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    book_id: str
    book_title: str = "Unknown"
    author: str | None = None
    page: int | None = None
    chapter: str | None = None
    text: str
    similarity: float = Field(
        ge=0.0, le=1.0, description="Final score: 0.7 x vector similarity + 0.3 x Jaccard."
    )
    vector_similarity: float = Field(default=0.0, ge=0.0, le=1.0)
    metadata: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Answers
# ---------------------------------------------------------------------------
class Citation(BaseModel):
    """A source reference attached to an answer."""

    model_config = ConfigDict(frozen=True)

    book_id: str
    book_title: str
    page: int | None = None
    chapter: str | None = None
    excerpt: str = Field(default="", max_length=250)


class RAGAnswer(BaseModel):
    """The orchestrator's result for one question."""

    model_config = ConfigDict(frozen=True)

    answer_text: str
    citations: list[Citation] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)


class StructuredGeneration(BaseModel):
    """Parsed form of a structured generation reply."""

    model_config = ConfigDict(frozen=True)

    text: str
    confidence: float = Field(ge=0.0, le=1.0)
    # 1-based indices into the citation list offered to the model.
    used_indices: list[int] = Field(default_factory=list)
    parsed: bool = Field(
        default=True, description="False when the reply was not valid JSON and text is raw output."
    )
