"""Embedding adapters for servers speaking the OpenAI ``/v1/embeddings`` protocol.

:class:`EmbeddingsEndpointProvider` does the request splitting, ordering
and error mapping.  :class:`OpenAIEmbeddingProvider` configures it for
api.openai.com or a compatible vendor; the Nomic adapter configures it for
a local Ollama server.
"""

from __future__ import annotations

import openai
import structlog

from bookbuddy.config.settings import Settings
from bookbuddy.interfaces.embedding_provider import IEmbeddingProvider
from bookbuddy.utils.errors import RAGError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)

# Dimensions of models we know; anything else is assumed to be 768.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "text-embedding-004": 768,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
    "nomic-embed-text": 768,
}


class EmbeddingsEndpointProvider(IEmbeddingProvider):
    """Shared ``embed`` over an :class:`openai.AsyncOpenAI` client.

    Parameters
    ----------
    client:
        A configured async client.
    model:
        Embedding model name sent with every request.
    label:
        Provider name for logs, errors and ``/health``.
    request_limit:
        Maximum inputs per HTTP request; longer lists are split.
    """

    def __init__(self, client: openai.AsyncOpenAI, model: str, label: str, request_limit: int) -> None:
        self._client = client
        self._model = model
        self._label = label
        self._request_limit = request_limit

    async def embed(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._request_limit):
            part = texts[start : start + self._request_limit]
            try:
                response = await self._client.embeddings.create(input=part, model=self._model)
            except openai.RateLimitError as exc:
                raise RateLimitError(
                    message=f"{self._label} throttled embedding request", provider_name=self._label
                ) from exc
            except openai.APIError as exc:
                raise RAGError(
                    message=f"{self._label} embedding API error: {exc}", provider_name=self._label
                ) from exc
            vectors.extend(item.embedding for item in sorted(response.data, key=lambda d: d.index))
            logger.debug("embedding_request", provider=self._label, model=self._model, inputs=len(part))
        return vectors

    async def embed_single(self, text: str) -> list[float]:
        vectors = await self.embed([text])
        if not vectors:
            raise RAGError(message=f"{self._label} returned no embedding", provider_name=self._label)
        return vectors[0]

    def get_dimension(self) -> int:
        return _MODEL_DIMENSIONS.get(self._model, 768)

    def get_provider_name(self) -> str:
        return self._label


class OpenAIEmbeddingProvider(EmbeddingsEndpointProvider):
    """``OPENAI_EMBEDDING_MODEL`` or ``text-embedding-3-small`` (1536 dims)."""

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        options: dict = {"api_key": self._api_key}
        if settings.openai_base_url:
            options["base_url"] = settings.openai_base_url
        super().__init__(
            openai.AsyncOpenAI(**options),
            model=settings.openai_embedding_model or "text-embedding-3-small",
            label="openai-compatible_embedding" if settings.openai_base_url else "openai_embedding",
            request_limit=2048,
        )

    def is_available(self) -> bool:
        return bool(self._api_key)
