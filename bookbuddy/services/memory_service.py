"""User memory: saved quotes, preferences, goals and notes.

Memory is append-only.  Besides serving the quotes listing, the most
recent entries are rendered into a short context string that the query
orchestrator appends to its system prompt.
"""

from __future__ import annotations

import json
import uuid
from typing import Any

import structlog

from bookbuddy.interfaces.record_store import IRecordStore
from bookbuddy.models.conversation import MemoryType, UserMemory
from bookbuddy.utils.errors import InputValidationError

logger = structlog.get_logger(logger_name=__name__)


class MemoryService:
    """Reads and writes :class:`UserMemory` entries."""

    def __init__(self, record_store: IRecordStore, context_entries: int = 5) -> None:
        self._records = record_store
        self._context_entries = context_entries

    async def save_memory(
        self,
        caller_id: str | None,
        memory_type: MemoryType | str,
        text: str | None = None,
        book_id: str | None = None,
        page: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> UserMemory:
        """Append a memory entry for *caller_id*.

        Raises
        ------
        InputValidationError
            If there is no caller or *memory_type* is unknown.
        """
        if not caller_id:
            raise InputValidationError(message="user_id is required to save memory")
        try:
            kind = MemoryType(memory_type)
        except ValueError as exc:
            raise InputValidationError(message=f"Unknown memory type: {memory_type}") from exc

        memory = UserMemory(
            id=str(uuid.uuid4()),
            owner_id=caller_id,
            book_id=book_id,
            memory_type=kind,
            text=text,
            page=page,
            metadata=metadata or {},
        )
        saved = await self._records.add_memory(memory)
        logger.info("memory_saved", memory_type=kind.value, book_id=book_id, owner=caller_id)
        return saved

    async def list_quotes(self, book_id: str, caller_id: str | None = None) -> list[UserMemory]:
        """Quotes saved for *book_id*, newest first; all callers when *caller_id* is None."""
        return await self._records.list_memory(
            owner_id=caller_id, book_id=book_id, memory_type=MemoryType.QUOTE.value
        )

    async def render_context(self, caller_id: str | None) -> str | None:
        """Render the caller's latest entries as ``type: text`` joined by ``"; "``."""
        if not caller_id:
            return None
        entries = await self._records.list_memory(owner_id=caller_id, limit=self._context_entries)
        if not entries:
            return None
        return "; ".join(
            f"{m.memory_type.value}: {m.text if m.text else json.dumps(m.metadata)}"
            for m in entries
        )
