"""Conversation, user memory, persona and intent models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from bookbuddy.models.rag import Citation


class Persona(str, Enum):  # noqa: UP042
    """Tonal modifier applied to the answer system prompt."""

    SCHOLAR = "scholar"
    FRIEND = "friend"
    QUIZZER = "quizzer"

    @classmethod
    def parse(cls, value: str | Persona | None) -> Persona:
        """Coerce *value* to a persona; unknown or empty values map to FRIEND."""
        if isinstance(value, Persona):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.FRIEND


class QueryIntent(str, Enum):  # noqa: UP042
    CHAT = "CHAT"
    SEARCH = "SEARCH"


class MessageRole(str, Enum):  # noqa: UP042
    USER = "user"
    ASSISTANT = "assistant"


class ConversationMessage(BaseModel):
    """One turn entry in a conversation."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str
    citations: list[Citation] | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )


class Conversation(BaseModel):
    """A chat thread keyed by a caller-supplied id."""

    model_config = ConfigDict(frozen=True)

    id: str
    owner_id: str | None = None
    title: str | None = None
    messages: list[ConversationMessage] = Field(default_factory=list)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )

    def with_message(self, message: ConversationMessage) -> Conversation:
        """Return a copy with *message* appended."""
        return self.model_copy(
            update={
                "messages": [*self.messages, message],
                "updated_at": datetime.now(tz=timezone.utc),  # noqa: UP017
            }
        )


class MemoryType(str, Enum):  # noqa: UP042
    QUOTE = "quote"
    PREFERENCE = "preference"
    GOAL = "goal"
    NOTE = "note"


class UserMemory(BaseModel):
    """An append-only memory entry used as auxiliary grounding context."""

    model_config = ConfigDict(frozen=True)

    id: str
    owner_id: str
    book_id: str | None = None
    memory_type: MemoryType
    text: str | None = None
    page: int | None = Field(default=None, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
