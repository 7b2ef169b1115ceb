"""BookBuddy FastAPI application entry point.

Wires every provider and service together via constructor injection.
Loads configuration from ``.env`` and ``config/config.yaml``, configures
structured logging, and exposes :func:`create_app` plus a module-level
``app`` for uvicorn.

:func:`build_components` is shared with the CLI, which runs the same
object graph without the web server.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from bookbuddy.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from bookbuddy.api.routes import router as api_router
from bookbuddy.config.loader import load_config
from bookbuddy.config.settings import Settings
from bookbuddy.interfaces.blob_store import IBlobStore
from bookbuddy.interfaces.embedding_provider import IEmbeddingProvider
from bookbuddy.interfaces.llm_provider import ILLMProvider
from bookbuddy.providers.blob.local_blob_store import LocalBlobStore
from bookbuddy.providers.cache.memory_cache import MemoryCacheProvider
from bookbuddy.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from bookbuddy.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from bookbuddy.providers.llm.anthropic_provider import AnthropicLLMProvider
from bookbuddy.providers.llm.ollama_provider import OllamaLLMProvider
from bookbuddy.providers.llm.openai_provider import OpenAILLMProvider
from bookbuddy.providers.record_store.sqlite_record_store import SQLiteRecordStore
from bookbuddy.providers.vector_store.chroma_chunk_store import ChromaChunkStore
from bookbuddy.services.conversation_service import ConversationService
from bookbuddy.services.embedding_service import EmbeddingService
from bookbuddy.services.generation_service import GenerationService
from bookbuddy.services.ingestion.chunker import WordWindowChunker
from bookbuddy.services.ingestion.ingestion_service import IngestionService
from bookbuddy.services.ingestion.job_queue import IngestionQueue
from bookbuddy.services.ingestion.parser import DocumentParser
from bookbuddy.services.intent_classifier import IntentClassifier
from bookbuddy.services.library_service import LibraryService
from bookbuddy.services.memory_service import MemoryService
from bookbuddy.services.rag_service import QueryOrchestrator
from bookbuddy.services.search_service import VectorSearchEngine
from bookbuddy.utils.errors import ConfigurationError, ProviderUnavailableError
from bookbuddy.utils.logging import configure_logging, get_logger

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _select_llm_name(app_settings: Settings) -> str:
    """Priority order: Anthropic -> OpenAI -> Ollama.

    Raises
    ------
    ProviderUnavailableError
        If no API key is set and no Ollama base URL is configured.
    """
    available = app_settings.get_available_llm_providers()
    if not available:
        raise ProviderUnavailableError(
            message="No LLM provider configured: set ANTHROPIC_API_KEY, OPENAI_API_KEY or OLLAMA_BASE_URL",
            provider_name="llm",
        )
    return available[0]


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    name = _select_llm_name(app_settings)
    if name == "anthropic":
        return AnthropicLLMProvider(settings=app_settings)
    if name == "openai":
        return OpenAILLMProvider(settings=app_settings)
    return OllamaLLMProvider(settings=app_settings)


def _resolve_model_chain(app_settings: Settings, app_config: dict[str, Any]) -> list[str]:
    """Explicit chain, else the active provider's default chain.

    An explicit ``OPENAI_TEXT_MODEL`` pins OpenAI-compatible endpoints to
    that model, so the provider chain is skipped there.
    """
    generation = app_config.get("generation", {})
    if generation.get("models"):
        return list(generation["models"])

    name = _select_llm_name(app_settings)
    if name == "openai" and app_settings.openai_text_model:
        return []
    return list(generation.get("provider_models", {}).get(name, []))


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """OpenAI/OpenAI-compatible when an API key is set, else Nomic via Ollama."""
    if app_settings.openai_api_key:
        return OpenAIEmbeddingProvider(settings=app_settings)

    provider = NomicEmbeddingProvider(settings=app_settings)
    if not provider.is_available():
        _logger.warning(
            "embedding_provider_unreachable",
            provider=provider.get_provider_name(),
            base_url=app_settings.ollama_base_url,
        )
    return provider


def _build_blob_store(app_settings: Settings) -> IBlobStore:
    if app_settings.storage_type == "local":
        return LocalBlobStore(root=app_settings.local_storage_path)
    raise ConfigurationError(
        message=f"Unsupported storage_type: {app_settings.storage_type!r}",
        provider_name="blob_store",
    )


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_components(
    app_settings: Settings | None = None,
    app_config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Construct every provider and service instance.

    Returns a flat dict of named components, stored on ``app.state`` by
    the lifespan and used directly by the CLI.
    """
    app_settings = app_settings or settings
    app_config = app_config or config

    chunking_cfg = app_config["chunking"]
    embedding_cfg = app_config["embedding"]
    search_cfg = app_config["search"]
    rag_cfg = app_config["rag"]
    generation_cfg = app_config["generation"]
    ingestion_cfg = app_config["ingestion"]
    store_cfg = app_config["record_store"]
    cache_cfg = app_config["cache"]

    # -- Storage --
    blob_store = _build_blob_store(app_settings)
    record_store = SQLiteRecordStore(
        db_path=app_settings.database_path,
        retry_attempts=store_cfg["retry_attempts"],
        retry_base_delay=store_cfg["retry_base_delay"],
        retry_max_delay=store_cfg["retry_max_delay"],
    )
    chunk_store = ChromaChunkStore(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
    )
    cache = MemoryCacheProvider(max_size=cache_cfg["max_size"], ttl=cache_cfg["ttl_seconds"])

    # -- Model providers --
    llm = _build_llm_provider(app_settings)
    embedding_provider = _build_embedding_provider(app_settings)
    models = _resolve_model_chain(app_settings, app_config)

    embedding_service = EmbeddingService(
        embedding_provider,
        batch_size=embedding_cfg["batch_size"],
        batch_delay_seconds=embedding_cfg["batch_delay_seconds"],
    )
    generation = GenerationService(
        llm,
        models=models,
        max_depth=generation_cfg["max_fallback_depth"],
        temperature=generation_cfg["temperature"],
        max_tokens=generation_cfg["max_tokens"],
    )

    # -- Ingestion --
    ingestion_service = IngestionService(
        record_store=record_store,
        chunk_store=chunk_store,
        blob_store=blob_store,
        parser=DocumentParser(txt_words_per_page=chunking_cfg["txt_words_per_page"]),
        chunker=WordWindowChunker(
            window_words=chunking_cfg["window_words"],
            overlap_percent=chunking_cfg["overlap_percent"],
        ),
        embedding_service=embedding_service,
    )
    ingestion_queue = IngestionQueue(ingestion_service, workers=ingestion_cfg["workers"])

    # -- Query side --
    search_engine = VectorSearchEngine(
        embedding_service,
        chunk_store,
        record_store,
        default_limit=search_cfg["default_limit"],
        default_min_similarity=search_cfg["default_min_similarity"],
    )
    orchestrator = QueryOrchestrator(
        classifier=IntentClassifier(generation, cache=cache, cache_ttl=cache_cfg["ttl_seconds"]),
        search_engine=search_engine,
        generation=generation,
        min_similarity=rag_cfg["min_similarity"],
        history_turns=rag_cfg["history_turns"],
    )
    memory_service = MemoryService(record_store, context_entries=rag_cfg["memory_entries"])

    library_service = LibraryService(
        record_store=record_store,
        chunk_store=chunk_store,
        blob_store=blob_store,
        queue=ingestion_queue,
        max_upload_mb=ingestion_cfg["max_upload_mb"],
    )
    conversation_service = ConversationService(record_store, orchestrator, memory_service)

    # -- Provider registry for /health --
    provider_registry: dict[str, Any] = {
        "llm": llm.is_available(),
        "llm_provider": llm.get_provider_name(),
        "generation_models": [m or "default" for m in generation.model_chain],
        "embedding": embedding_provider.get_provider_name(),
        "record_store": record_store.get_provider_name(),
        "blob_store": blob_store.get_provider_name(),
    }

    return {
        "settings": app_settings,
        "config": app_config,
        "record_store": record_store,
        "chunk_store": chunk_store,
        "blob_store": blob_store,
        "cache": cache,
        "llm": llm,
        "embedding_service": embedding_service,
        "generation_service": generation,
        "ingestion_service": ingestion_service,
        "ingestion_queue": ingestion_queue,
        "search_engine": search_engine,
        "query_orchestrator": orchestrator,
        "memory_service": memory_service,
        "library_service": library_service,
        "conversation_service": conversation_service,
        "provider_registry": provider_registry,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Build components, create tables and start the ingestion workers."""
    components = build_components(settings, config)
    for key, value in components.items():
        setattr(application.state, key, value)

    await components["record_store"].initialize()
    queue: IngestionQueue = components["ingestion_queue"]
    queue.start()

    _logger.info(
        "app_startup",
        version=_VERSION,
        environment=settings.app_env,
        llm=components["provider_registry"]["llm_provider"],
        embedding=components["provider_registry"]["embedding"],
    )

    yield

    await queue.stop()
    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="BookBuddy API",
        version=_VERSION,
        description=(
            "Upload PDF, EPUB or TXT books, then ask questions answered from "
            "their passages with page-level citations."
        ),
        lifespan=_lifespan,
    )

    # Last added runs first: logging wraps error handling.
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)
    return application


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "bookbuddy.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
