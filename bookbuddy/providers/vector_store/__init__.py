"""Chunk store implementations.

ChromaChunkStore keeps chunk embeddings on disk (CHROMADB_PERSIST_DIR) and
answers cosine-similarity queries filtered by book and page range.  Another
vector database only needs a new IChunkStore registered in main.py.
"""

from bookbuddy.providers.vector_store.chroma_chunk_store import ChromaChunkStore

__all__ = ["ChromaChunkStore"]
