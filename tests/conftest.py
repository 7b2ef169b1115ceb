"""Shared pytest fixtures for the BookBuddy test suite."""

from __future__ import annotations

import hashlib
import math
import re
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from bookbuddy.interfaces.embedding_provider import IEmbeddingProvider
from bookbuddy.interfaces.llm_provider import ILLMProvider
from bookbuddy.models.book import Book, FileType
from bookbuddy.models.rag import SearchResult

_WORD = re.compile(r"[a-z0-9']+")


class HashingEmbeddingProvider(IEmbeddingProvider):
    """Deterministic bag-of-words embedder for tests.

    Each lowercased word increments one of ``dimension`` buckets picked by
    its MD5 digest; the vector is L2-normalised.  Texts sharing words end up
    close in cosine space, which is all retrieval tests need.
    """

    def __init__(self, dimension: int = 64) -> None:
        self._dimension = dimension
        self.calls: list[str] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_single(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append(text)
        vector = [0.0] * self._dimension
        for word in _WORD.findall(text.lower()):
            bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % self._dimension
            vector[bucket] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            vector[0] = 1.0
            return vector
        return [v / norm for v in vector]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "hashing-test"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Paths / config
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """A complete, small configuration dict for wiring tests."""
    return {
        "chunking": {"window_words": 50, "overlap_percent": 20, "txt_words_per_page": 100},
        "embedding": {"batch_size": 4, "batch_delay_seconds": 0.0},
        "search": {"default_limit": 10, "default_min_similarity": 0.5},
        "rag": {"top_k": 5, "min_similarity": 0.3, "history_turns": 4, "memory_entries": 5},
        "generation": {
            "models": [],
            "provider_models": {"openai": ["gpt-4o-mini"], "anthropic": [], "ollama": []},
            "max_fallback_depth": 3,
            "temperature": 0.7,
            "max_tokens": 512,
        },
        "ingestion": {"workers": 1, "max_upload_mb": 1},
        "record_store": {"retry_attempts": 2, "retry_base_delay": 0.0, "retry_max_delay": 0.0},
        "cache": {"max_size": 64, "ttl_seconds": 60},
    }


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


@pytest.fixture
def hashing_embedder() -> HashingEmbeddingProvider:
    return HashingEmbeddingProvider()


@pytest.fixture
def mock_embedding_provider() -> MagicMock:
    """Embedding provider returning a fixed 4-dim vector."""
    provider = MagicMock(spec=IEmbeddingProvider)
    provider.embed_single = AsyncMock(return_value=[0.1, 0.2, 0.3, 0.4])
    provider.embed = AsyncMock(return_value=[[0.1, 0.2, 0.3, 0.4]])
    provider.get_dimension.return_value = 4
    provider.get_provider_name.return_value = "mock-embedding"
    provider.is_available.return_value = True
    return provider


@pytest.fixture
def mock_llm() -> MagicMock:
    """LLM provider whose ``complete`` is an AsyncMock; set return_value/side_effect per test."""
    llm = MagicMock(spec=ILLMProvider)
    llm.complete = AsyncMock(return_value="")
    llm.get_provider_name.return_value = "mock-llm"
    llm.is_available.return_value = True
    return llm


# ---------------------------------------------------------------------------
# Domain data
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_book_text() -> str:
    """About 1,500 words of plain prose across a few topics."""
    paragraphs = [
        "The lighthouse keeper walked the spiral stairs every evening before dusk. "
        "He trimmed the wick, polished the great lens, and watched the harbour boats return. ",
        "Margaret arrived on the island in early spring with a trunk of books and a letter "
        "from the shipping company. She had come to study the migrating seabirds. ",
        "Storms in the autumn months battered the rocks below the tower. The keeper logged "
        "wind speed, wave height, and the names of every vessel that passed the point. ",
    ]
    words: list[str] = []
    while len(words) < 1500:
        for paragraph in paragraphs:
            words.extend(paragraph.split())
    return " ".join(words[:1500])


@pytest.fixture
def make_book():
    """Factory for :class:`Book` instances with sensible defaults."""

    def _make(**overrides: Any) -> Book:
        defaults: dict[str, Any] = {
            "id": "book-001",
            "title": "The Lighthouse",
            "author": "Ada Keeper",
            "file_type": FileType.TXT,
            "file_size": 1024,
            "storage_key": "alice/1700000000000-lighthouse.txt",
            "owner_id": "alice",
        }
        defaults.update(overrides)
        return Book(**defaults)

    return _make


@pytest.fixture
def make_result():
    """Factory for :class:`SearchResult` instances."""

    def _make(n: int = 1, **overrides: Any) -> SearchResult:
        defaults: dict[str, Any] = {
            "chunk_id": f"chunk-{n}",
            "book_id": "book-001",
            "book_title": "The Lighthouse",
            "author": "Ada Keeper",
            "page": n,
            "chapter": None,
            "text": f"Passage number {n} about the lighthouse keeper and the storm.",
            "similarity": 0.8,
            "vector_similarity": 0.8,
        }
        defaults.update(overrides)
        return SearchResult(**defaults)

    return _make
