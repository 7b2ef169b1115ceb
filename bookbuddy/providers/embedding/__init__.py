"""Embedding provider implementations.

Embeddings turn chunk text and queries into vectors compared by cosine
similarity in the chunk store.

Implementations of IEmbeddingProvider, in selection priority order:
    1. OpenAIEmbeddingProvider -- text-embedding-3-small (1536 dims), or the
       configured model on an OpenAI-compatible endpoint.  Needs an API key.
    2. NomicEmbeddingProvider  -- nomic-embed-text via Ollama (768 dims).
       Free and local, but requires a running Ollama server.
"""

from bookbuddy.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from bookbuddy.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["NomicEmbeddingProvider", "OpenAIEmbeddingProvider"]
