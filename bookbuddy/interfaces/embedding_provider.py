"""Interface for turning text into dense vectors.

Chunks are embedded once at ingestion time and queries at search time;
both must come from the same provider and model, otherwise the stored and
query vectors have different dimensions and cosine scores are meaningless.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Implemented in bookbuddy/providers/embedding/: OpenAI(-compatible), Nomic via Ollama.
class IEmbeddingProvider(ABC):
    """A text embedding model."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per input, in input order.

        Batching and pacing across many chunks is the caller's job
        (:class:`~bookbuddy.services.embedding_service.EmbeddingService`);
        implementations only split requests that exceed the vendor's
        per-call input limit.

        Raises
        ------
        bookbuddy.utils.errors.RAGError
            If the embedding API call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Vector for one text, typically a search query."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Vector length, e.g. 1536 for ``text-embedding-3-small``."""

    @abstractmethod
    def get_provider_name(self) -> str: ...

    @abstractmethod
    def is_available(self) -> bool:
        """``True`` when the provider is configured and, where cheap to check, reachable."""
