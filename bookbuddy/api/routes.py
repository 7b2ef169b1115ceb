"""FastAPI routes for BookBuddy.

Service dependencies are resolved from ``app.state`` via ``Depends`` with
the ``Annotated`` pattern; ``create_app`` populates the state at startup.
Handlers stay thin: they read the request, call one service and shape the
response.  Application errors propagate to ``ErrorHandlingMiddleware``.

# Endpoint                                   Method  Description
# ----------------------------------------------------------------------
# /api/v1/upload                             POST    Store a book, start ingestion
# /api/v1/ingest/status/{job_id}             GET     Poll ingestion progress
# /api/v1/query                              POST    Answer a question with citations
# /api/v1/search                             POST    Hybrid passage search
# /api/v1/chat/{conversation_id}/message     POST    One chat turn
# /api/v1/chat/{conversation_id}             GET     Full conversation
# /api/v1/library                            GET     Books with ownership flags
# /api/v1/users/{user_id}/library            GET     Books uploaded by one user
# /api/v1/books/{book_id}                    DELETE  Delete a book
# /api/v1/user/memory                        POST    Save a memory entry
# /api/v1/books/{book_id}/quotes             GET     Saved quotes for a book
# /api/v1/health                             GET     Health + provider status

Caller identity is the ``X-User-Id`` header, falling back to a ``user_id``
in the body or query string.  It is an identifier, not authentication.
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, File, Form, Header, Query, Request, UploadFile

from bookbuddy.api.schemas import (
    ChatMessageRequest,
    ChatMessageResponse,
    ConversationResponse,
    DeleteBookResponse,
    ErrorResponse,
    HealthResponse,
    IngestionStatusResponse,
    LibraryBook,
    LibraryResponse,
    MemoryItem,
    QueryRequest,
    QueryResponse,
    QuotesResponse,
    SaveMemoryRequest,
    SearchRequest,
    SearchResponse,
    SearchResultItem,
    UploadResponse,
)
from bookbuddy.interfaces.chunk_store import IChunkStore
from bookbuddy.models.conversation import UserMemory
from bookbuddy.models.rag import SearchFilters
from bookbuddy.services.conversation_service import ConversationService
from bookbuddy.services.ingestion.job_queue import IngestionQueue
from bookbuddy.services.library_service import LibraryService
from bookbuddy.services.memory_service import MemoryService
from bookbuddy.services.rag_service import QueryOrchestrator
from bookbuddy.services.search_service import VectorSearchEngine
from bookbuddy.utils.errors import InputValidationError
from bookbuddy.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_VERSION = "0.1.0"

# Uploads are read in 64 KB increments so oversized files are rejected
# after buffering at most one increment past the limit.
_UPLOAD_CHUNK_SIZE = 64 * 1024

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Dependency injection helpers -- resolve singletons from app.state
# ---------------------------------------------------------------------------


def _get_library(request: Request) -> LibraryService:
    return request.app.state.library_service


def _get_queue(request: Request) -> IngestionQueue:
    return request.app.state.ingestion_queue


def _get_orchestrator(request: Request) -> QueryOrchestrator:
    return request.app.state.query_orchestrator


def _get_search_engine(request: Request) -> VectorSearchEngine:
    return request.app.state.search_engine


def _get_conversations(request: Request) -> ConversationService:
    return request.app.state.conversation_service


def _get_memory(request: Request) -> MemoryService:
    return request.app.state.memory_service


def _get_chunk_store(request: Request) -> IChunkStore:
    return request.app.state.chunk_store


LibraryDep = Annotated[LibraryService, Depends(_get_library)]
QueueDep = Annotated[IngestionQueue, Depends(_get_queue)]
OrchestratorDep = Annotated[QueryOrchestrator, Depends(_get_orchestrator)]
SearchDep = Annotated[VectorSearchEngine, Depends(_get_search_engine)]
ConversationDep = Annotated[ConversationService, Depends(_get_conversations)]
MemoryDep = Annotated[MemoryService, Depends(_get_memory)]
ChunkStoreDep = Annotated[IChunkStore, Depends(_get_chunk_store)]
UserIdHeader = Annotated[str | None, Header(alias="X-User-Id")]


def _caller(header_value: str | None, fallback: str | None = None) -> str | None:
    """Header identity wins over a body or query ``user_id``."""
    return (header_value or "").strip() or (fallback or "").strip() or None


# ---------------------------------------------------------------------------
# Library
# ---------------------------------------------------------------------------


@router.post(
    "/upload",
    status_code=201,
    response_model=UploadResponse,
    responses=_ERROR_RESPONSES,
    summary="Upload a PDF, EPUB or TXT book and start ingestion",
)
async def upload_book(
    library: LibraryDep,
    x_user_id: UserIdHeader = None,
    file: Annotated[UploadFile | None, File()] = None,
    title: Annotated[str | None, Form()] = None,
    author: Annotated[str | None, Form()] = None,
    language: Annotated[str | None, Form()] = None,
    user_id: Annotated[str | None, Form()] = None,
) -> UploadResponse:
    if file is None or not file.filename:
        raise InputValidationError(message="No file uploaded")

    limit = library.max_upload_bytes
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        chunks.append(chunk)
        if total > limit:
            break

    book, job = await library.upload_book(
        filename=file.filename,
        data=b"".join(chunks),
        caller_id=_caller(x_user_id, user_id),
        title=title,
        author=author,
        language=language,
    )
    return UploadResponse(book=book, ingestion_job_id=job.id)


@router.get(
    "/ingest/status/{job_id}",
    response_model=IngestionStatusResponse,
    responses=_ERROR_RESPONSES,
    summary="Get ingestion job progress",
)
async def ingestion_status(job_id: str, queue: QueueDep) -> IngestionStatusResponse:
    job = await queue.get_status(job_id)
    return IngestionStatusResponse(
        job_id=job.id,
        book_id=job.book_id,
        status=job.status,
        progress=job.progress,
        total_chunks=job.total_chunks,
        error_message=job.error_message,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


@router.get("/library", response_model=LibraryResponse, summary="List uploaded books")
async def list_library(
    library: LibraryDep,
    x_user_id: UserIdHeader = None,
    user_id: Annotated[str | None, Query()] = None,
) -> LibraryResponse:
    entries = await library.list_library(_caller(x_user_id, user_id))
    return LibraryResponse(
        books=[LibraryBook(book=e.book, is_owner=e.is_owner) for e in entries]
    )


@router.get(
    "/users/{user_id}/library",
    response_model=LibraryResponse,
    responses=_ERROR_RESPONSES,
    summary="List the books one user uploaded",
)
async def list_user_library(user_id: str, library: LibraryDep) -> LibraryResponse:
    books = await library.list_user_library(user_id)
    return LibraryResponse(books=[LibraryBook(book=b, is_owner=True) for b in books])


@router.delete(
    "/books/{book_id}",
    response_model=DeleteBookResponse,
    responses=_ERROR_RESPONSES,
    summary="Delete a book and everything derived from it",
)
async def delete_book(
    book_id: str,
    library: LibraryDep,
    x_user_id: UserIdHeader = None,
    user_id: Annotated[str | None, Query()] = None,
) -> DeleteBookResponse:
    await library.delete_book(book_id, _caller(x_user_id, user_id))
    return DeleteBookResponse(book_id=book_id)


# ---------------------------------------------------------------------------
# Query / search
# ---------------------------------------------------------------------------


@router.post(
    "/query",
    response_model=QueryResponse,
    responses=_ERROR_RESPONSES,
    summary="Answer a question from the uploaded books",
)
async def query_books(
    body: QueryRequest,
    orchestrator: OrchestratorDep,
    memory: MemoryDep,
    x_user_id: UserIdHeader = None,
) -> QueryResponse:
    if not body.query or not body.query.strip():
        raise InputValidationError(message="Query is required")

    caller_id = _caller(x_user_id, body.user_id)
    result = await orchestrator.answer(
        body.query,
        book_id=body.book_id,
        caller_id=caller_id,
        k=body.k,
        persona=body.persona,
        memory_context=await memory.render_context(caller_id),
    )
    return QueryResponse(
        answer=result.answer_text,
        citations=result.citations,
        confidence=result.confidence,
    )


@router.post(
    "/search",
    response_model=SearchResponse,
    responses=_ERROR_RESPONSES,
    summary="Hybrid semantic + lexical passage search",
)
async def search_passages(body: SearchRequest, engine: SearchDep) -> SearchResponse:
    if not body.query or not body.query.strip():
        raise InputValidationError(message="Query is required")

    results = await engine.search(
        body.query,
        filters=SearchFilters(
            book_id=body.book_id,
            author=body.author,
            min_page=body.min_page,
            max_page=body.max_page,
        ),
        limit=body.limit,
        min_similarity=body.min_similarity,
    )
    items = [
        SearchResultItem(
            chunk_id=r.chunk_id,
            book_id=r.book_id,
            book_title=r.book_title,
            author=r.author,
            page=r.page,
            chapter=r.chapter,
            text=r.text,
            similarity=round(r.similarity, 4),
        )
        for r in results
    ]
    return SearchResponse(query=body.query, results=items, total=len(items))


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@router.post(
    "/chat/{conversation_id}/message",
    response_model=ChatMessageResponse,
    responses=_ERROR_RESPONSES,
    summary="Send one chat message",
)
async def send_chat_message(
    conversation_id: str,
    body: ChatMessageRequest,
    conversations: ConversationDep,
    x_user_id: UserIdHeader = None,
) -> ChatMessageResponse:
    conversation, reply = await conversations.send_message(
        conversation_id,
        body.message or "",
        caller_id=_caller(x_user_id, body.user_id),
        book_id=body.book_id,
        persona=body.persona,
    )
    return ChatMessageResponse(
        conversation_id=conversation.id,
        answer=reply.content,
        citations=reply.citations or [],
        confidence=reply.confidence if reply.confidence is not None else 0.0,
        message_count=len(conversation.messages),
    )


@router.get(
    "/chat/{conversation_id}",
    response_model=ConversationResponse,
    responses=_ERROR_RESPONSES,
    summary="Get a conversation",
)
async def get_conversation(
    conversation_id: str, conversations: ConversationDep
) -> ConversationResponse:
    return ConversationResponse(
        conversation=await conversations.get_conversation(conversation_id)
    )


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------


def _memory_item(memory: UserMemory) -> MemoryItem:
    return MemoryItem(
        id=memory.id,
        memory_type=memory.memory_type,
        text=memory.text,
        book_id=memory.book_id,
        page=memory.page,
        metadata=memory.metadata,
        created_at=memory.created_at,
    )


@router.post(
    "/user/memory",
    status_code=201,
    response_model=MemoryItem,
    responses=_ERROR_RESPONSES,
    summary="Save a quote, preference, goal or note",
)
async def save_memory(
    body: SaveMemoryRequest,
    memory: MemoryDep,
    x_user_id: UserIdHeader = None,
) -> MemoryItem:
    saved = await memory.save_memory(
        _caller(x_user_id, body.user_id),
        body.memory_type,
        text=body.text,
        book_id=body.book_id,
        page=body.page,
        metadata=body.metadata,
    )
    return _memory_item(saved)


@router.get(
    "/books/{book_id}/quotes",
    response_model=QuotesResponse,
    summary="List saved quotes for a book",
)
async def list_quotes(
    book_id: str,
    memory: MemoryDep,
    x_user_id: UserIdHeader = None,
    user_id: Annotated[str | None, Query()] = None,
) -> QuotesResponse:
    quotes = await memory.list_quotes(book_id, _caller(x_user_id, user_id))
    return QuotesResponse(book_id=book_id, quotes=[_memory_item(q) for q in quotes])


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(request: Request, chunk_store: ChunkStoreDep) -> HealthResponse:
    """Return health, version and provider availability."""
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))

    try:
        providers["chunks"] = await chunk_store.count()
        providers["chunk_store"] = True
    except Exception as exc:
        _logger.warning("health_chunk_store_failed", error=str(exc))
        providers["chunk_store"] = False
        providers["chunks"] = 0

    if providers.get("llm", False) and providers["chunk_store"]:
        status = "healthy"
    elif providers["chunk_store"]:
        status = "degraded"
    else:
        status = "unhealthy"

    return HealthResponse(status=status, version=_VERSION, providers=providers)
