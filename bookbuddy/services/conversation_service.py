"""Multi-turn chat on top of the query orchestrator.

Conversations are created lazily on the first message to an unknown id.
Each turn appends the user message, answers with the recent history and
the caller's stored memory as context, appends the assistant reply with
its citations and confidence, and saves the whole thread.
"""

from __future__ import annotations

import structlog

from bookbuddy.interfaces.record_store import IRecordStore
from bookbuddy.models.conversation import (
    Conversation,
    ConversationMessage,
    MessageRole,
    Persona,
)
from bookbuddy.services.memory_service import MemoryService
from bookbuddy.services.rag_service import QueryOrchestrator
from bookbuddy.utils.errors import InputValidationError, NotFoundError

logger = structlog.get_logger(logger_name=__name__)


class ConversationService:
    """Runs chat turns and persists conversation threads."""

    def __init__(
        self,
        record_store: IRecordStore,
        orchestrator: QueryOrchestrator,
        memory: MemoryService,
    ) -> None:
        self._records = record_store
        self._orchestrator = orchestrator
        self._memory = memory

    async def send_message(
        self,
        conversation_id: str,
        message: str,
        caller_id: str | None = None,
        book_id: str | None = None,
        persona: Persona | str | None = Persona.FRIEND,
    ) -> tuple[Conversation, ConversationMessage]:
        """Run one turn and return the saved conversation and the assistant reply."""
        if not message or not message.strip():
            raise InputValidationError(message="Message is required")

        conversation = await self._records.get_conversation(conversation_id)
        if conversation is None:
            conversation = Conversation(
                id=conversation_id, owner_id=caller_id, title=message.strip()[:80]
            )
            logger.info("conversation_created", conversation_id=conversation_id)

        conversation = conversation.with_message(
            ConversationMessage(role=MessageRole.USER, content=message)
        )

        memory_context = await self._memory.render_context(caller_id)
        result = await self._orchestrator.answer_with_history(
            message,
            conversation.messages,
            book_id=book_id,
            caller_id=caller_id,
            persona=persona,
            memory_context=memory_context,
        )

        reply = ConversationMessage(
            role=MessageRole.ASSISTANT,
            content=result.answer_text,
            citations=result.citations,
            confidence=result.confidence,
        )
        conversation = await self._records.save_conversation(conversation.with_message(reply))
        logger.info(
            "conversation_turn",
            conversation_id=conversation_id,
            messages=len(conversation.messages),
            confidence=result.confidence,
        )
        return conversation, reply

    async def get_conversation(self, conversation_id: str) -> Conversation:
        conversation = await self._records.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError(message="Conversation not found")
        return conversation
