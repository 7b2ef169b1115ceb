"""Unit tests for embedding provider adapters — OpenAI, Nomic."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from bookbuddy.config.settings import Settings
from bookbuddy.utils.errors import RAGError


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_embedding_model": "",
        "ollama_base_url": "http://localhost:11434",
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


def _embedding_response(vectors: list[list[float]], reverse: bool = False) -> MagicMock:
    items = [MagicMock(embedding=v, index=i) for i, v in enumerate(vectors)]
    response = MagicMock()
    response.data = list(reversed(items)) if reverse else items
    response.usage = MagicMock(total_tokens=12)
    return response


# ======================================================================
# OpenAI Embedding Provider
# ======================================================================


class TestOpenAIEmbeddingProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_names_and_availability(self, settings: Settings) -> None:
        from bookbuddy.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        assert OpenAIEmbeddingProvider(settings).get_provider_name() == "openai_embedding"
        compatible = OpenAIEmbeddingProvider(_settings(openai_base_url="https://api.together.xyz/v1"))
        assert compatible.get_provider_name() == "openai-compatible_embedding"
        assert OpenAIEmbeddingProvider(_settings(openai_api_key="")).is_available() is False

    @pytest.mark.parametrize(
        ("model", "dimension"),
        [("", 1536), ("text-embedding-3-large", 3072), ("some-unknown-model", 768)],
    )
    def test_dimension_by_model(self, model: str, dimension: int) -> None:
        from bookbuddy.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        assert OpenAIEmbeddingProvider(_settings(openai_embedding_model=model)).get_dimension() == dimension

    @pytest.mark.asyncio
    async def test_embed_orders_by_index(self, settings: Settings) -> None:
        from bookbuddy.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(
            return_value=_embedding_response([[0.1, 0.2], [0.3, 0.4]], reverse=True)
        )

        with patch(
            "bookbuddy.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            result = await provider.embed(["first", "second"])

        assert result == [[0.1, 0.2], [0.3, 0.4]]
        assert mock_client.embeddings.create.await_args.kwargs["model"] == "text-embedding-3-small"

    @pytest.mark.asyncio
    async def test_embed_empty(self, settings: Settings) -> None:
        from bookbuddy.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        assert await OpenAIEmbeddingProvider(settings).embed([]) == []

    @pytest.mark.asyncio
    async def test_embed_single(self, settings: Settings) -> None:
        from bookbuddy.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_embedding_response([[0.5, 0.5]]))

        with patch(
            "bookbuddy.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            assert await OpenAIEmbeddingProvider(settings).embed_single("query") == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self, settings: Settings) -> None:
        from bookbuddy.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
        import openai

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(
            side_effect=openai.APIError(message="Server error", request=MagicMock(), body=None)
        )

        with patch(
            "bookbuddy.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            with pytest.raises(RAGError):
                await provider.embed(["text"])


# ======================================================================
# Nomic Embedding Provider
# ======================================================================


class TestNomicEmbeddingProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_basics(self, settings: Settings) -> None:
        from bookbuddy.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider

        provider = NomicEmbeddingProvider(settings)
        assert provider.get_provider_name() == "nomic_embedding"
        assert provider.get_dimension() == 768

    def test_is_available_when_server_answers(self, settings: Settings) -> None:
        from bookbuddy.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider

        with patch(
            "bookbuddy.providers.embedding.nomic_embedding_provider.httpx.get",
            return_value=MagicMock(status_code=200),
        ):
            assert NomicEmbeddingProvider(settings).is_available() is True

    def test_is_available_when_unreachable(self, settings: Settings) -> None:
        from bookbuddy.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider

        with patch(
            "bookbuddy.providers.embedding.nomic_embedding_provider.httpx.get",
            side_effect=httpx.ConnectError("refused"),
        ):
            assert NomicEmbeddingProvider(settings).is_available() is False

    @pytest.mark.asyncio
    async def test_embed(self, settings: Settings) -> None:
        from bookbuddy.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_embedding_response([[0.1] * 3, [0.2] * 3]))

        with patch(
            "bookbuddy.providers.embedding.nomic_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            result = await NomicEmbeddingProvider(settings).embed(["a", "b"])

        assert result == [[0.1] * 3, [0.2] * 3]
        assert mock_client.embeddings.create.await_args.kwargs["model"] == "nomic-embed-text"
