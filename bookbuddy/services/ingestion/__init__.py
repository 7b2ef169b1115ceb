"""Document ingestion pipeline for the BookBuddy knowledge base.

Stages, each a separate collaborator:

1. **Parse** (parser.py / DocumentParser) -- PDF, EPUB or TXT bytes into
   numbered pages with chapter labels and best-effort metadata.
2. **Chunk** (chunker.py / WordWindowChunker) -- overlapping word windows,
   globally renumbered per document.
3. **Embed** (services/embedding_service.py) -- batched vectors.
4. **Persist** (IChunkStore) -- one write per chunk.

IngestionService runs one job through every stage; IngestionQueue feeds
jobs to a pool of asyncio workers.
"""

from bookbuddy.services.ingestion.chunker import WordWindowChunker
from bookbuddy.services.ingestion.ingestion_service import IngestionService
from bookbuddy.services.ingestion.job_queue import IngestionQueue
from bookbuddy.services.ingestion.parser import DocumentParser

__all__ = [
    "DocumentParser",
    "IngestionQueue",
    "IngestionService",
    "WordWindowChunker",
]
