"""Abstract base class for chunk + embedding storage and similarity queries.

This is the vector half of the record store: chunks are written once during
ingestion and read back by nearest-neighbour search.  The single query
primitive returns chunks ordered by ascending cosine distance to a query
vector, filtered by book id and page range, limited to N and cut off at a
minimum similarity.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from bookbuddy.models.rag import DocumentChunk


# Concrete implementations: ChromaChunkStore
# Located in: bookbuddy/providers/vector_store/
class IChunkStore(ABC):
    """Contract for persisting chunks and querying them by vector similarity."""

    @abstractmethod
    async def add_chunk(self, chunk: DocumentChunk, embedding: list[float]) -> None:
        """Persist one chunk with its embedding.

        Raises
        ------
        bookbuddy.utils.errors.RAGError
            If the store rejects the write.
        """

    @abstractmethod
    async def query_by_vector(
        self,
        vector: list[float],
        limit: int,
        min_similarity: float = 0.0,
        book_ids: list[str] | None = None,
        min_page: int | None = None,
        max_page: int | None = None,
    ) -> list[tuple[DocumentChunk, float]]:
        """Return up to *limit* ``(chunk, similarity)`` pairs, most similar first.

        Parameters
        ----------
        vector:
            The query embedding.
        limit:
            Maximum number of pairs returned.
        min_similarity:
            Pairs with ``1 - cosine_distance`` below this are dropped.
        book_ids:
            Restrict to these books.  ``None`` means every book; an empty
            list matches nothing.
        min_page, max_page:
            Inclusive page bounds.  Chunks without a page never match a
            bounded query.
        """

    @abstractmethod
    async def delete_by_book(self, book_id: str) -> int:
        """Delete every chunk of *book_id* and return how many were removed."""

    @abstractmethod
    async def count(self, book_id: str | None = None) -> int:
        """Return the number of stored chunks, optionally for one book."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return an identifier such as ``"chromadb"``."""
