"""Embedding client: batched, rate-friendly access to an embedding provider.

Texts are embedded in bounded batches.  Inside a batch every text is sent
as its own ``embed_single`` call and the calls run concurrently (throttled
by a semaphore); between batches the service sleeps for a short fixed
delay as crude backpressure against provider rate limits.

Errors are not swallowed: a failing call aborts the batch, and callers
such as the ingestion pipeline treat that as a hard failure so no chunk is
ever persisted without its vector.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import structlog

from bookbuddy.interfaces.embedding_provider import IEmbeddingProvider
from bookbuddy.utils.concurrency import DEFAULT_MAX_IN_FLIGHT, throttled_gather
from bookbuddy.utils.errors import RAGError

logger = structlog.get_logger(logger_name=__name__)


class EmbeddingService:
    """Batches embedding requests against an :class:`IEmbeddingProvider`.

    Parameters
    ----------
    provider:
        The embedding backend.
    batch_size:
        Texts per batch (default 100).
    batch_delay_seconds:
        Pause between consecutive batches (default 0.1 s).
    max_in_flight:
        Cap on concurrent ``embed_single`` calls within a batch.
    """

    def __init__(
        self,
        provider: IEmbeddingProvider,
        batch_size: int = 100,
        batch_delay_seconds: float = 0.1,
        max_in_flight: int = DEFAULT_MAX_IN_FLIGHT,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._provider = provider
        self._batch_size = batch_size
        self._batch_delay = batch_delay_seconds
        self._max_in_flight = max_in_flight

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def dimension(self) -> int:
        return self._provider.get_dimension()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query string."""
        return await self._provider.embed_single(text)

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed every text, preserving order."""
        vectors: list[list[float]] = []
        async for _start, batch_vectors in self.iter_batches(texts):
            vectors.extend(batch_vectors)
        return vectors

    async def iter_batches(self, texts: list[str]) -> AsyncIterator[tuple[int, list[list[float]]]]:
        """Yield ``(start_index, vectors)`` for each batch as soon as it is embedded.

        The inter-batch delay happens before the next batch is requested,
        so a consumer persisting each batch does so before the next one is
        embedded.
        """
        total_batches = (len(texts) + self._batch_size - 1) // self._batch_size
        for batch_number, start in enumerate(range(0, len(texts), self._batch_size), start=1):
            if batch_number > 1 and self._batch_delay > 0:
                await asyncio.sleep(self._batch_delay)

            batch = texts[start : start + self._batch_size]
            semaphore = asyncio.Semaphore(self._max_in_flight)
            vectors = await throttled_gather(
                [self._provider.embed_single(text) for text in batch],
                semaphore=semaphore,
            )
            if len(vectors) != len(batch):
                raise RAGError(
                    message=f"Embedding batch returned {len(vectors)} vectors for {len(batch)} texts",
                    provider_name=self._provider.get_provider_name(),
                )

            logger.info(
                "embedding_batch",
                batch=batch_number,
                total_batches=total_batches,
                size=len(batch),
                provider=self._provider.get_provider_name(),
            )
            yield start, vectors
