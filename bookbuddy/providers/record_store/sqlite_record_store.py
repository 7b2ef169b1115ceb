"""SQLite-backed record store.

Persists books, ingestion jobs, conversations and user memory to a local
SQLite database (``data/bookbuddy.db`` by default) using ``aiosqlite``.
List-shaped fields (chapter table, messages, memory metadata) are stored as
JSON text columns.

Every public operation opens its own connection and runs through
:func:`~bookbuddy.utils.retry.retry_async`, so ``database is locked`` and
similar transient failures are retried with exponential backoff before
surfacing.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import aiosqlite
import structlog

from bookbuddy.interfaces.record_store import IRecordStore
from bookbuddy.models.book import Book
from bookbuddy.models.conversation import Conversation, UserMemory
from bookbuddy.models.ingestion import IngestionJob
from bookbuddy.utils.retry import retry_async

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")

_DEFAULT_DB_PATH = Path("data/bookbuddy.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS books (
    id           TEXT PRIMARY KEY,
    title        TEXT NOT NULL,
    author       TEXT,
    language     TEXT NOT NULL DEFAULT 'en',
    file_type    TEXT NOT NULL,
    file_size    INTEGER NOT NULL DEFAULT 0,
    storage_key  TEXT NOT NULL,
    total_pages  INTEGER,
    chapters     TEXT NOT NULL DEFAULT '[]',
    owner_id     TEXT,
    created_at   TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS ingestion_jobs (
    id             TEXT PRIMARY KEY,
    book_id        TEXT NOT NULL,
    status         TEXT NOT NULL,
    progress       INTEGER NOT NULL DEFAULT 0,
    total_chunks   INTEGER,
    error_message  TEXT,
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS conversations (
    id          TEXT PRIMARY KEY,
    owner_id    TEXT,
    title       TEXT,
    messages    TEXT NOT NULL DEFAULT '[]',
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS user_memory (
    id           TEXT PRIMARY KEY,
    owner_id     TEXT NOT NULL,
    book_id      TEXT,
    memory_type  TEXT NOT NULL,
    text         TEXT,
    page         INTEGER,
    metadata     TEXT NOT NULL DEFAULT '{}',
    created_at   TEXT NOT NULL
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_books_owner ON books(owner_id);",
    "CREATE INDEX IF NOT EXISTS idx_jobs_book ON ingestion_jobs(book_id);",
    "CREATE INDEX IF NOT EXISTS idx_memory_owner ON user_memory(owner_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_memory_book ON user_memory(book_id, memory_type);",
]

_UPSERT_BOOK_SQL = """\
INSERT OR REPLACE INTO books
    (id, title, author, language, file_type, file_size, storage_key,
     total_pages, chapters, owner_id, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_UPSERT_JOB_SQL = """\
INSERT OR REPLACE INTO ingestion_jobs
    (id, book_id, status, progress, total_chunks, error_message, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?);
"""

_UPDATE_BOOK_SQL = """\
UPDATE books SET
    title = ?, author = ?, language = ?, file_type = ?, file_size = ?,
    storage_key = ?, total_pages = ?, chapters = ?, owner_id = ?
WHERE id = ?;
"""

_UPDATE_JOB_SQL = """\
UPDATE ingestion_jobs SET
    status = ?, progress = ?, total_chunks = ?, error_message = ?, updated_at = ?
WHERE id = ?;
"""

_UPSERT_CONVERSATION_SQL = """\
INSERT OR REPLACE INTO conversations
    (id, owner_id, title, messages, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?);
"""

_INSERT_MEMORY_SQL = """\
INSERT INTO user_memory
    (id, owner_id, book_id, memory_type, text, page, metadata, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?);
"""


class SQLiteRecordStore(IRecordStore):
    """SQLite-backed persistence for every non-vector entity.

    Parameters
    ----------
    db_path:
        Database file; parent directories are created on :meth:`initialize`.
    retry_attempts, retry_base_delay, retry_max_delay:
        Backoff policy for transient failures (seconds).
    """

    def __init__(
        self,
        db_path: str | Path = _DEFAULT_DB_PATH,
        retry_attempts: int = 3,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 5.0,
    ) -> None:
        self._db_path = Path(db_path)
        self._retry_attempts = retry_attempts
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        async def _op() -> None:
            async with aiosqlite.connect(str(self._db_path)) as db:
                for table_sql in _CREATE_TABLES_SQL:
                    await db.execute(table_sql)
                for idx_sql in _CREATE_INDICES_SQL:
                    await db.execute(idx_sql)
                await db.commit()

        await self._run("initialize", _op)
        logger.info("record_store_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Books
    # ------------------------------------------------------------------

    async def save_book(self, book: Book) -> Book:
        params = (
            book.id,
            book.title,
            book.author,
            book.language,
            book.file_type.value,
            book.file_size,
            book.storage_key,
            book.total_pages,
            json.dumps([c.model_dump() for c in book.chapters]),
            book.owner_id,
            book.created_at.isoformat(),
        )
        await self._execute("save_book", _UPSERT_BOOK_SQL, params)
        return book

    async def get_book(self, book_id: str) -> Book | None:
        rows = await self._fetch("get_book", "SELECT * FROM books WHERE id = ?", (book_id,))
        return self._row_to_book(rows[0]) if rows else None

    async def update_book(self, book: Book) -> bool:
        """Rewrite an existing book row; ``False`` when the row is gone."""
        params = (
            book.title,
            book.author,
            book.language,
            book.file_type.value,
            book.file_size,
            book.storage_key,
            book.total_pages,
            json.dumps([c.model_dump() for c in book.chapters]),
            book.owner_id,
            book.id,
        )
        return await self._execute_count("update_book", _UPDATE_BOOK_SQL, params) > 0

    async def list_books(self, owner_id: str | None = None) -> list[Book]:
        if owner_id is None:
            rows = await self._fetch(
                "list_books", "SELECT * FROM books ORDER BY created_at DESC", ()
            )
        else:
            rows = await self._fetch(
                "list_books",
                "SELECT * FROM books WHERE owner_id = ? ORDER BY created_at DESC",
                (owner_id,),
            )
        return [self._row_to_book(r) for r in rows]

    async def delete_book(self, book_id: str) -> bool:
        """Delete the book row plus its jobs and memory entries in one transaction."""

        async def _op() -> bool:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute("DELETE FROM ingestion_jobs WHERE book_id = ?", (book_id,))
                await db.execute("DELETE FROM user_memory WHERE book_id = ?", (book_id,))
                cursor = await db.execute("DELETE FROM books WHERE id = ?", (book_id,))
                await db.commit()
                return cursor.rowcount > 0

        deleted = await self._run("delete_book", _op)
        logger.info("book_record_deleted", book_id=book_id, deleted=deleted)
        return deleted

    async def find_book_ids_by_author(self, author_fragment: str) -> list[str]:
        # instr() avoids LIKE wildcard escaping for fragments containing % or _.
        rows = await self._fetch(
            "find_book_ids_by_author",
            "SELECT id FROM books WHERE author IS NOT NULL "
            "AND instr(lower(author), lower(?)) > 0",
            (author_fragment,),
        )
        return [r["id"] for r in rows]

    # ------------------------------------------------------------------
    # Ingestion jobs
    # ------------------------------------------------------------------

    async def save_job(self, job: IngestionJob) -> IngestionJob:
        params = (
            job.id,
            job.book_id,
            job.status.value,
            job.progress,
            job.total_chunks,
            job.error_message,
            job.created_at.isoformat(),
            job.updated_at.isoformat(),
        )
        await self._execute("save_job", _UPSERT_JOB_SQL, params)
        return job

    async def update_job(self, job: IngestionJob) -> bool:
        params = (
            job.status.value,
            job.progress,
            job.total_chunks,
            job.error_message,
            job.updated_at.isoformat(),
            job.id,
        )
        return await self._execute_count("update_job", _UPDATE_JOB_SQL, params) > 0

    async def get_job(self, job_id: str) -> IngestionJob | None:
        rows = await self._fetch(
            "get_job", "SELECT * FROM ingestion_jobs WHERE id = ?", (job_id,)
        )
        return IngestionJob.model_validate(dict(rows[0])) if rows else None

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def save_conversation(self, conversation: Conversation) -> Conversation:
        params = (
            conversation.id,
            conversation.owner_id,
            conversation.title,
            json.dumps([m.model_dump(mode="json") for m in conversation.messages]),
            conversation.created_at.isoformat(),
            conversation.updated_at.isoformat(),
        )
        await self._execute("save_conversation", _UPSERT_CONVERSATION_SQL, params)
        return conversation

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        rows = await self._fetch(
            "get_conversation", "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
        )
        if not rows:
            return None
        data = dict(rows[0])
        data["messages"] = json.loads(data["messages"] or "[]")
        return Conversation.model_validate(data)

    # ------------------------------------------------------------------
    # User memory
    # ------------------------------------------------------------------

    async def add_memory(self, memory: UserMemory) -> UserMemory:
        params = (
            memory.id,
            memory.owner_id,
            memory.book_id,
            memory.memory_type.value,
            memory.text,
            memory.page,
            json.dumps(memory.metadata, default=str),
            memory.created_at.isoformat(),
        )
        await self._execute("add_memory", _INSERT_MEMORY_SQL, params)
        return memory

    async def list_memory(
        self,
        owner_id: str | None = None,
        book_id: str | None = None,
        memory_type: str | None = None,
        limit: int | None = None,
    ) -> list[UserMemory]:
        clauses: list[str] = []
        params: list[Any] = []
        for column, value in (
            ("owner_id", owner_id),
            ("book_id", book_id),
            ("memory_type", memory_type),
        ):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)

        sql = "SELECT * FROM user_memory"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        rows = await self._fetch("list_memory", sql, tuple(params))
        memories: list[UserMemory] = []
        for row in rows:
            data = dict(row)
            data["metadata"] = json.loads(data["metadata"] or "{}")
            memories.append(UserMemory.model_validate(data))
        return memories

    def get_provider_name(self) -> str:
        return "sqlite"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _run(self, op_name: str, operation: Callable[[], Awaitable[_T]]) -> _T:
        return await retry_async(
            operation,
            attempts=self._retry_attempts,
            base_delay=self._retry_base_delay,
            max_delay=self._retry_max_delay,
            op_name=op_name,
        )

    async def _execute(self, op_name: str, sql: str, params: tuple) -> None:
        async def _op() -> None:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(sql, params)
                await db.commit()

        await self._run(op_name, _op)

    async def _execute_count(self, op_name: str, sql: str, params: tuple) -> int:
        async def _op() -> int:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(sql, params)
                await db.commit()
                return cursor.rowcount

        return await self._run(op_name, _op)

    async def _fetch(self, op_name: str, sql: str, params: tuple) -> list[aiosqlite.Row]:
        async def _op() -> list[aiosqlite.Row]:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, params)
                return list(await cursor.fetchall())

        return await self._run(op_name, _op)

    @staticmethod
    def _row_to_book(row: aiosqlite.Row) -> Book:
        data = dict(row)
        data["chapters"] = json.loads(data["chapters"] or "[]")
        return Book.model_validate(data)
