"""ChromaDB chunk store adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IChunkStore`.
The collection uses cosine space, so ``1 - distance`` is the cosine
similarity the search engine thresholds on.  Fully local; no external
service required.

Chroma metadata values must be str/int/float/bool, so ``None`` fields
(page, chapter) are omitted rather than stored, and the free-form chunk
metadata is serialized to JSON under ``extra``.
"""

from __future__ import annotations

import asyncio
import json
import os
from typing import Any

# Must be set before chromadb is imported for older releases to honour it.
os.environ.setdefault("ANONYMIZED_TELEMETRY", "False")

import chromadb
import structlog

from bookbuddy.interfaces.chunk_store import IChunkStore
from bookbuddy.models.rag import DocumentChunk
from bookbuddy.utils.errors import RAGError

logger = structlog.get_logger(logger_name=__name__)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Embedding function that is never called.

    BookBuddy always passes pre-computed vectors, so this only stops
    ChromaDB from downloading its default ONNX model on collection creation.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError("BookBuddy stores pre-computed embeddings only.")

    def name(self) -> str:
        return "noop_precomputed"


class ChromaChunkStore(IChunkStore):
    """Chunk store backed by ChromaDB with local persistence."""

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "bookbuddy_chunks",
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # A collection persisted with a different embedding function makes
        # newer ChromaDB raise ValueError; reopen it without one.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

    # ------------------------------------------------------------------
    # IChunkStore implementation
    # ------------------------------------------------------------------

    async def add_chunk(self, chunk: DocumentChunk, embedding: list[float]) -> None:
        try:
            await asyncio.to_thread(
                self._collection.upsert,
                ids=[chunk.id],
                embeddings=[embedding],
                documents=[chunk.text],
                metadatas=[self._chunk_to_metadata(chunk)],
            )
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB add_chunk failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def query_by_vector(
        self,
        vector: list[float],
        limit: int,
        min_similarity: float = 0.0,
        book_ids: list[str] | None = None,
        min_page: int | None = None,
        max_page: int | None = None,
    ) -> list[tuple[DocumentChunk, float]]:
        if limit <= 0 or (book_ids is not None and not book_ids):
            return []

        try:
            total = await asyncio.to_thread(self._collection.count)
            if total == 0:
                return []

            kwargs: dict[str, Any] = {
                "query_embeddings": [vector],
                "n_results": min(limit, total),
                "include": ["documents", "metadatas", "distances"],
            }
            where = self._build_where(book_ids, min_page, max_page)
            if where:
                kwargs["where"] = where

            results = await asyncio.to_thread(self._collection.query, **kwargs)
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["ids"] or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0] if results["documents"] else [""] * len(ids)
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(ids)
        distances = results["distances"][0] if results["distances"] else [1.0] * len(ids)

        matches: list[tuple[DocumentChunk, float]] = []
        for chunk_id, text, meta, distance in zip(ids, documents, metadatas, distances, strict=True):
            similarity = max(0.0, min(1.0, 1.0 - distance))
            if similarity < min_similarity:
                continue
            matches.append((self._metadata_to_chunk(chunk_id, text or "", meta or {}), similarity))

        logger.debug(
            "chromadb_query",
            raw_results=len(ids),
            kept=len(matches),
            top_similarity=matches[0][1] if matches else 0.0,
        )
        return matches

    async def delete_by_book(self, book_id: str) -> int:
        try:
            existing = await asyncio.to_thread(
                self._collection.get, where={"book_id": book_id}, include=[]
            )
            count = len(existing["ids"]) if existing["ids"] else 0
            if count > 0:
                await asyncio.to_thread(self._collection.delete, where={"book_id": book_id})
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB delete_by_book failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_delete_by_book", book_id=book_id, deleted_count=count)
        return count

    async def count(self, book_id: str | None = None) -> int:
        try:
            if book_id is None:
                return await asyncio.to_thread(self._collection.count)
            existing = await asyncio.to_thread(
                self._collection.get, where={"book_id": book_id}, include=[]
            )
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return len(existing["ids"]) if existing["ids"] else 0

    def get_provider_name(self) -> str:
        return "chromadb"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _chunk_to_metadata(chunk: DocumentChunk) -> dict[str, str | int | float | bool]:
        meta: dict[str, str | int | float | bool] = {
            "book_id": chunk.book_id,
            "chunk_index": chunk.chunk_index,
        }
        if chunk.page is not None:
            meta["page"] = chunk.page
        if chunk.chapter:
            meta["chapter"] = chunk.chapter
        if chunk.metadata:
            meta["extra"] = json.dumps(chunk.metadata, default=str)
        return meta

    @staticmethod
    def _metadata_to_chunk(chunk_id: str, text: str, meta: dict[str, Any]) -> DocumentChunk:
        extra: dict[str, Any] = {}
        raw_extra = meta.get("extra")
        if raw_extra:
            try:
                extra = json.loads(raw_extra)
            except (TypeError, ValueError):
                logger.warning("chromadb_bad_extra_metadata", chunk_id=chunk_id)
        page = meta.get("page")
        return DocumentChunk(
            id=chunk_id,
            book_id=str(meta.get("book_id", "")),
            chunk_index=int(meta.get("chunk_index", 0)),
            page=int(page) if page is not None else None,
            chapter=meta.get("chapter") or None,
            text=text,
            metadata=extra,
        )

    @staticmethod
    def _build_where(
        book_ids: list[str] | None,
        min_page: int | None,
        max_page: int | None,
    ) -> dict[str, Any] | None:
        """Translate filters to a ChromaDB ``where`` clause.

        - ``book_ids`` -> ``book_id`` equality (one id) or ``$in``
        - ``min_page`` / ``max_page`` -> ``page`` ``$gte`` / ``$lte``
        """
        clauses: list[dict[str, Any]] = []
        if book_ids:
            if len(book_ids) == 1:
                clauses.append({"book_id": book_ids[0]})
            else:
                clauses.append({"book_id": {"$in": list(book_ids)}})
        if min_page is not None:
            clauses.append({"page": {"$gte": min_page}})
        if max_page is not None:
            clauses.append({"page": {"$lte": max_page}})

        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}
