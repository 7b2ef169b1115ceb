"""Public interface definitions for all external collaborators.

Every external API or storage backend BookBuddy touches is accessed
through the abstract base classes defined here.  Concrete adapters live in
``bookbuddy/providers/`` and are wired together in ``bookbuddy/main.py``.

    Interface            ->  Concrete implementations
    ----------------------------------------------------------------
    ILLMProvider         ->  OpenAILLMProvider, AnthropicLLMProvider,
                             OllamaLLMProvider
    IEmbeddingProvider   ->  OpenAIEmbeddingProvider, NomicEmbeddingProvider
    IChunkStore          ->  ChromaChunkStore
    IRecordStore         ->  SQLiteRecordStore
    IBlobStore           ->  LocalBlobStore
    ICacheProvider       ->  MemoryCacheProvider
"""

from bookbuddy.interfaces.blob_store import IBlobStore
from bookbuddy.interfaces.cache_provider import ICacheProvider
from bookbuddy.interfaces.chunk_store import IChunkStore
from bookbuddy.interfaces.embedding_provider import IEmbeddingProvider
from bookbuddy.interfaces.llm_provider import ILLMProvider
from bookbuddy.interfaces.record_store import IRecordStore

__all__ = [
    "IBlobStore",
    "ICacheProvider",
    "IChunkStore",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IRecordStore",
]
