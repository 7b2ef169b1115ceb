"""``nomic-embed-text`` served by a local Ollama server.

Selected when no OpenAI key is configured.  Unlike the LLM adapters,
availability is probed over HTTP, since a missing embedding server makes
every upload fail at the embedding stage.
"""

from __future__ import annotations

import httpx
import openai

from bookbuddy.config.settings import Settings
from bookbuddy.providers.embedding.openai_embedding_provider import EmbeddingsEndpointProvider


class NomicEmbeddingProvider(EmbeddingsEndpointProvider):
    """768-dimension local embeddings; no API key required."""

    def __init__(self, settings: Settings) -> None:
        self._base_url = settings.ollama_base_url.rstrip("/")
        super().__init__(
            openai.AsyncOpenAI(base_url=f"{self._base_url}/v1", api_key="ollama"),
            model="nomic-embed-text",
            label="nomic_embedding",
            request_limit=512,
        )

    def is_available(self) -> bool:
        """``True`` if Ollama answers its ``/api/tags`` listing within 3 seconds."""
        if not self._base_url:
            return False
        try:
            return httpx.get(f"{self._base_url}/api/tags", timeout=3.0).status_code == 200
        except httpx.HTTPError:
            return False
