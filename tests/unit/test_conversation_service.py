"""Unit tests for ConversationService chat turns."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from bookbuddy.interfaces.record_store import IRecordStore
from bookbuddy.models.conversation import Conversation, ConversationMessage, MessageRole
from bookbuddy.models.rag import Citation, RAGAnswer
from bookbuddy.services.conversation_service import ConversationService
from bookbuddy.services.memory_service import MemoryService
from bookbuddy.services.rag_service import QueryOrchestrator
from bookbuddy.utils.errors import InputValidationError, NotFoundError


@pytest.fixture
def records() -> MagicMock:
    store = MagicMock(spec=IRecordStore)
    store.get_conversation = AsyncMock(return_value=None)
    store.save_conversation = AsyncMock(side_effect=lambda conversation: conversation)
    return store


@pytest.fixture
def orchestrator() -> MagicMock:
    mock = MagicMock(spec=QueryOrchestrator)
    mock.answer_with_history = AsyncMock(
        return_value=RAGAnswer(
            answer_text="The keeper [1].",
            citations=[Citation(book_id="book-001", book_title="The Lighthouse", page=3)],
            confidence=0.8,
        )
    )
    return mock


@pytest.fixture
def memory() -> MagicMock:
    mock = MagicMock(spec=MemoryService)
    mock.render_context = AsyncMock(return_value="goal: finish")
    return mock


@pytest.fixture
def service(records, orchestrator, memory) -> ConversationService:
    return ConversationService(records, orchestrator, memory)


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_first_message_creates_conversation(self, service, records, orchestrator) -> None:
        conversation, reply = await service.send_message("conv-1", "Who keeps the light?", caller_id="alice")

        assert conversation.id == "conv-1"
        assert conversation.owner_id == "alice"
        assert conversation.title == "Who keeps the light?"
        assert [m.role for m in conversation.messages] == [MessageRole.USER, MessageRole.ASSISTANT]
        assert reply.content == "The keeper [1]."
        assert reply.confidence == pytest.approx(0.8)
        assert reply.citations and reply.citations[0].page == 3
        records.save_conversation.assert_awaited_once()

        kwargs = orchestrator.answer_with_history.await_args.kwargs
        assert kwargs["memory_context"] == "goal: finish"
        assert kwargs["caller_id"] == "alice"

    @pytest.mark.asyncio
    async def test_existing_conversation_extended(self, service, records, orchestrator) -> None:
        records.get_conversation.return_value = Conversation(
            id="conv-1",
            owner_id="alice",
            title="Earlier",
            messages=[
                ConversationMessage(role=MessageRole.USER, content="Hello"),
                ConversationMessage(role=MessageRole.ASSISTANT, content="Hi!"),
            ],
        )

        conversation, _ = await service.send_message("conv-1", "Tell me about Margaret", book_id="book-001")

        assert conversation.title == "Earlier"
        assert len(conversation.messages) == 4
        history = orchestrator.answer_with_history.await_args.args[1]
        assert [m.content for m in history] == ["Hello", "Hi!", "Tell me about Margaret"]
        assert orchestrator.answer_with_history.await_args.kwargs["book_id"] == "book-001"

    @pytest.mark.asyncio
    async def test_long_first_message_title_truncated(self, service) -> None:
        conversation, _ = await service.send_message("conv-2", "w" * 200)
        assert conversation.title == "w" * 80

    @pytest.mark.asyncio
    async def test_blank_message_rejected(self, service, records) -> None:
        with pytest.raises(InputValidationError):
            await service.send_message("conv-1", "   ")
        records.save_conversation.assert_not_awaited()


class TestGetConversation:
    @pytest.mark.asyncio
    async def test_missing(self, service) -> None:
        with pytest.raises(NotFoundError):
            await service.get_conversation("nope")

    @pytest.mark.asyncio
    async def test_found(self, service, records) -> None:
        records.get_conversation.return_value = Conversation(id="conv-1")
        assert (await service.get_conversation("conv-1")).id == "conv-1"
