"""BookBuddy domain models, re-exported for ``from bookbuddy.models import X``.

Submodules by concern:
    - book.py          -- uploaded documents and their chapter tables
    - document.py      -- parser output (pages + metadata)
    - rag.py           -- chunks, search filters/results, citations, answers
    - ingestion.py     -- ingestion job state machine
    - conversation.py  -- conversations, user memory, persona, intent
"""

from __future__ import annotations

from bookbuddy.models.book import Book, ChapterEntry, FileType, LibraryEntry
from bookbuddy.models.conversation import (
    Conversation,
    ConversationMessage,
    MemoryType,
    MessageRole,
    Persona,
    QueryIntent,
    UserMemory,
)
from bookbuddy.models.document import DocumentMetadata, ParsedDocument, ParsedPage
from bookbuddy.models.ingestion import IngestionJob, JobStatus
from bookbuddy.models.rag import (
    Citation,
    DocumentChunk,
    RAGAnswer,
    SearchFilters,
    SearchResult,
    StructuredGeneration,
    TextChunk,
)

__all__ = [
    "Book",
    "ChapterEntry",
    "Citation",
    "Conversation",
    "ConversationMessage",
    "DocumentChunk",
    "DocumentMetadata",
    "FileType",
    "IngestionJob",
    "JobStatus",
    "LibraryEntry",
    "MemoryType",
    "MessageRole",
    "ParsedDocument",
    "ParsedPage",
    "Persona",
    "QueryIntent",
    "RAGAnswer",
    "SearchFilters",
    "SearchResult",
    "StructuredGeneration",
    "TextChunk",
]
