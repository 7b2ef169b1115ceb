"""Unit tests for the BookBuddy Pydantic models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from bookbuddy.models.book import FileType
from bookbuddy.models.conversation import (
    Conversation,
    ConversationMessage,
    MessageRole,
    Persona,
)
from bookbuddy.models.ingestion import IngestionJob, JobStatus
from bookbuddy.models.rag import Citation, RAGAnswer, SearchResult


class TestFileType:
    @pytest.mark.parametrize(
        ("filename", "expected"),
        [
            ("book.pdf", FileType.PDF),
            ("Book.EPUB", FileType.EPUB),
            ("notes.v2.txt", FileType.TXT),
            ("archive.zip", None),
            ("README", None),
        ],
    )
    def test_from_filename(self, filename: str, expected: FileType | None) -> None:
        assert FileType.from_filename(filename) is expected


class TestBook:
    def test_frozen(self, make_book) -> None:
        book = make_book()
        with pytest.raises(ValidationError):
            book.title = "Changed"

    def test_model_copy_update(self, make_book) -> None:
        book = make_book()
        updated = book.model_copy(update={"total_pages": 12})
        assert updated.total_pages == 12
        assert book.total_pages is None

    @pytest.mark.parametrize(
        ("owner", "caller", "allowed"),
        [("alice", "alice", True), ("alice", "bob", False), ("alice", None, False), (None, None, True), (None, "bob", True)],
    )
    def test_is_manageable_by(self, make_book, owner, caller, allowed: bool) -> None:
        assert make_book(owner_id=owner).is_manageable_by(caller) is allowed


class TestIngestionJob:
    def test_defaults(self) -> None:
        job = IngestionJob(id="j", book_id="b")
        assert job.status is JobStatus.PENDING
        assert job.progress == 0
        assert job.total_chunks is None

    def test_happy_path_transitions(self) -> None:
        job = IngestionJob(id="j", book_id="b")
        job = job.advance(status=JobStatus.PROCESSING, progress=10)
        job = job.advance(progress=50, total_chunks=4)
        job = job.advance(status=JobStatus.COMPLETED, progress=100)
        assert job.status is JobStatus.COMPLETED
        assert job.status.is_terminal

    def test_progress_never_decreases(self) -> None:
        job = IngestionJob(id="j", book_id="b").advance(status=JobStatus.PROCESSING, progress=60)
        assert job.advance(progress=30).progress == 60
        assert job.advance(progress=250).progress == 100

    @pytest.mark.parametrize(
        ("start", "target"),
        [
            (JobStatus.PENDING, JobStatus.COMPLETED),
            (JobStatus.COMPLETED, JobStatus.PROCESSING),
            (JobStatus.FAILED, JobStatus.PENDING),
            (JobStatus.COMPLETED, JobStatus.FAILED),
        ],
    )
    def test_invalid_transitions(self, start: JobStatus, target: JobStatus) -> None:
        job = IngestionJob(id="j", book_id="b", status=start)
        with pytest.raises(ValueError, match="Invalid job transition"):
            job.advance(status=target)

    def test_progress_bounds_validated(self) -> None:
        with pytest.raises(ValidationError):
            IngestionJob(id="j", book_id="b", progress=101)


class TestPersona:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("scholar", Persona.SCHOLAR), (" Quizzer ", Persona.QUIZZER), ("pirate", Persona.FRIEND), (None, Persona.FRIEND)],
    )
    def test_parse(self, value, expected: Persona) -> None:
        assert Persona.parse(value) is expected


class TestConversation:
    def test_with_message_appends_copy(self) -> None:
        conversation = Conversation(id="c")
        extended = conversation.with_message(ConversationMessage(role=MessageRole.USER, content="hi"))
        assert conversation.messages == []
        assert [m.content for m in extended.messages] == ["hi"]
        assert extended.updated_at >= conversation.updated_at


class TestRagModels:
    def test_similarity_bounds(self) -> None:
        with pytest.raises(ValidationError):
            SearchResult(chunk_id="c", book_id="b", text="t", similarity=1.5)

    def test_excerpt_limit(self) -> None:
        with pytest.raises(ValidationError):
            Citation(book_id="b", book_title="T", excerpt="x" * 251)

    def test_answer_confidence_bounds(self) -> None:
        with pytest.raises(ValidationError):
            RAGAnswer(answer_text="a", confidence=-0.1)
