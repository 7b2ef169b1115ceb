"""Vector search engine with lexical-overlap reranking.

:meth:`VectorSearchEngine.search` embeds the query once, asks the chunk
store for the ``2 x limit`` nearest chunks that pass the metadata filters
and the similarity threshold, then reranks them::

    score = 0.7 * vector_similarity + 0.3 * jaccard(query_words, chunk_words)

where words are whitespace-delimited, case-folded and longer than three
characters.  Pure vector similarity can surface topically-related passages
that never mention the query's terms; the lexical share pulls those down
while the semantic match stays dominant.  The sort is stable, so ties keep
their vector-similarity order.
"""

from __future__ import annotations

import structlog

from bookbuddy.interfaces.chunk_store import IChunkStore
from bookbuddy.interfaces.record_store import IRecordStore
from bookbuddy.models.book import Book
from bookbuddy.models.rag import DocumentChunk, SearchFilters, SearchResult
from bookbuddy.services.embedding_service import EmbeddingService
from bookbuddy.utils.errors import InputValidationError

logger = structlog.get_logger(logger_name=__name__)

VECTOR_WEIGHT = 0.7
LEXICAL_WEIGHT = 0.3
_MIN_WORD_LENGTH = 4
_OVERFETCH_FACTOR = 2


def significant_words(text: str) -> set[str]:
    """Return the lowercased whitespace-delimited words longer than three characters."""
    return {w for w in text.lower().split() if len(w) >= _MIN_WORD_LENGTH}


def jaccard_similarity(query_words: set[str], text_words: set[str]) -> float:
    """Return ``|A & B| / |A | B|``, or 0.0 when both sets are empty."""
    union = query_words | text_words
    if not union:
        return 0.0
    return len(query_words & text_words) / len(union)


def blend_scores(vector_similarity: float, lexical_similarity: float) -> float:
    return VECTOR_WEIGHT * vector_similarity + LEXICAL_WEIGHT * lexical_similarity


class VectorSearchEngine:
    """Hybrid semantic search over stored chunks.

    Parameters
    ----------
    embedding_service:
        Embeds the query text.
    chunk_store:
        Nearest-neighbour lookup over chunk vectors.
    record_store:
        Resolves author filters to book ids and supplies book titles.
    default_limit, default_min_similarity:
        Used when the caller does not pass ``limit`` / ``min_similarity``.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        chunk_store: IChunkStore,
        record_store: IRecordStore,
        default_limit: int = 10,
        default_min_similarity: float = 0.5,
    ) -> None:
        self._embedding = embedding_service
        self._chunks = chunk_store
        self._records = record_store
        self._default_limit = default_limit
        self._default_min_similarity = default_min_similarity

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        limit: int | None = None,
        min_similarity: float | None = None,
    ) -> list[SearchResult]:
        """Return up to *limit* results ordered by descending blended score.

        Raises
        ------
        InputValidationError
            If *query* is blank.
        """
        if not query or not query.strip():
            raise InputValidationError(message="Query text is required")

        filters = filters or SearchFilters()
        limit = self._default_limit if limit is None else limit
        threshold = self._default_min_similarity if min_similarity is None else min_similarity
        if limit <= 0:
            return []

        book_ids = await self._resolve_book_ids(filters)
        if book_ids is not None and not book_ids:
            logger.info("search_no_matching_books", author=filters.author, book_id=filters.book_id)
            return []

        vector = await self._embedding.embed_query(query)
        candidates = await self._chunks.query_by_vector(
            vector,
            limit=limit * _OVERFETCH_FACTOR,
            min_similarity=threshold,
            book_ids=book_ids,
            min_page=filters.min_page,
            max_page=filters.max_page,
        )
        if not candidates:
            logger.info("search_no_candidates", min_similarity=threshold)
            return []

        results = await self._to_results(candidates)
        reranked = rerank(results, query)[:limit]

        logger.info(
            "search_completed",
            candidates=len(candidates),
            returned=len(reranked),
            top_score=round(reranked[0].similarity, 4) if reranked else 0.0,
        )
        return reranked

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _resolve_book_ids(self, filters: SearchFilters) -> list[str] | None:
        """Combine the book and author filters; ``None`` means unrestricted."""
        if not filters.author:
            return [filters.book_id] if filters.book_id else None

        author_ids = await self._records.find_book_ids_by_author(filters.author)
        if filters.book_id:
            return [filters.book_id] if filters.book_id in author_ids else []
        return author_ids

    async def _to_results(
        self, candidates: list[tuple[DocumentChunk, float]]
    ) -> list[SearchResult]:
        books: dict[str, Book | None] = {}
        results: list[SearchResult] = []
        for chunk, similarity in candidates:
            if chunk.book_id not in books:
                books[chunk.book_id] = await self._records.get_book(chunk.book_id)
            book = books[chunk.book_id]
            results.append(
                SearchResult(
                    chunk_id=chunk.id,
                    book_id=chunk.book_id,
                    book_title=book.title if book else "Unknown",
                    author=book.author if book else None,
                    page=chunk.page,
                    chapter=chunk.chapter,
                    text=chunk.text,
                    similarity=similarity,
                    vector_similarity=similarity,
                    metadata=chunk.metadata,
                )
            )
        return results


def rerank(results: list[SearchResult], query: str) -> list[SearchResult]:
    """Re-score *results* by blending in query/chunk Jaccard overlap.

    Input order is assumed to be descending vector similarity; Python's
    stable sort keeps that order among equal blended scores.
    """
    query_words = significant_words(query)
    rescored = [
        r.model_copy(
            update={
                "similarity": blend_scores(
                    r.vector_similarity, jaccard_similarity(query_words, significant_words(r.text))
                )
            }
        )
        for r in results
    ]
    return sorted(rescored, key=lambda r: r.similarity, reverse=True)
