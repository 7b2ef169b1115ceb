"""Unit tests for the bookbuddy command-line interface."""

from __future__ import annotations

from argparse import Namespace
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from bookbuddy.cli.commands import _handle_ask, _handle_ingest, _handle_library, build_parser, main
from bookbuddy.models.book import LibraryEntry
from bookbuddy.models.ingestion import IngestionJob, JobStatus
from bookbuddy.models.rag import Citation, RAGAnswer


@pytest.fixture
def components(make_book) -> dict:
    record_store = MagicMock()
    record_store.initialize = AsyncMock()

    library = MagicMock()
    library.upload_book = AsyncMock(
        return_value=(make_book(), IngestionJob(id="job-1", book_id="book-001"))
    )
    library.list_library = AsyncMock(return_value=[])

    queue = MagicMock()
    queue.drain = AsyncMock(return_value=[])
    queue.get_status = AsyncMock(
        return_value=IngestionJob(
            id="job-1", book_id="book-001", status=JobStatus.COMPLETED, progress=100, total_chunks=7
        )
    )

    orchestrator = MagicMock()
    orchestrator.answer = AsyncMock(
        return_value=RAGAnswer(
            answer_text="The keeper lit the lamp [1].",
            citations=[Citation(book_id="book-001", book_title="The Lighthouse", page=3)],
            confidence=0.82,
        )
    )
    return {
        "record_store": record_store,
        "library_service": library,
        "ingestion_queue": queue,
        "query_orchestrator": orchestrator,
    }


class TestParser:
    def test_ingest_arguments(self) -> None:
        args = build_parser().parse_args(
            ["ingest", "--file", "book.epub", "--title", "T", "--author", "A", "--user-id", "alice"]
        )
        assert args.command == "ingest"
        assert args.file == "book.epub"
        assert args.user_id == "alice"
        assert args.language is None

    def test_ask_defaults(self) -> None:
        args = build_parser().parse_args(["ask", "Who is Margaret?"])
        assert args.question == "Who is Margaret?"
        assert args.persona == "friend"
        assert args.k == 5
        assert args.book_id is None

    def test_ask_rejects_unknown_persona(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["ask", "q", "--persona", "pirate"])

    def test_no_command_prints_help(self, capsys) -> None:
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()


class TestHandlers:
    @pytest.mark.asyncio
    async def test_ingest_success(self, components, tmp_path: Path, capsys) -> None:
        book_file = tmp_path / "lighthouse.txt"
        book_file.write_text("the keeper climbed the stairs", encoding="utf-8")
        args = build_parser().parse_args(["ingest", "--file", str(book_file), "--user-id", "alice"])

        code = await _handle_ingest(args, components)

        assert code == 0
        call = components["library_service"].upload_book.await_args.kwargs
        assert call["filename"] == "lighthouse.txt"
        assert call["caller_id"] == "alice"
        components["ingestion_queue"].drain.assert_awaited_once()
        out = capsys.readouterr().out
        assert "Ingestion completed" in out
        assert "Chunks:   7" in out

    @pytest.mark.asyncio
    async def test_ingest_failure_exit_code(self, components, tmp_path: Path, capsys) -> None:
        book_file = tmp_path / "broken.pdf"
        book_file.write_bytes(b"not a pdf")
        components["ingestion_queue"].get_status.return_value = IngestionJob(
            id="job-1", book_id="book-001", status=JobStatus.FAILED, progress=10, error_message="Failed to parse PDF"
        )
        args = build_parser().parse_args(["ingest", "--file", str(book_file)])

        assert await _handle_ingest(args, components) == 1
        assert "Failed to parse PDF" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_ingest_missing_file(self, components, capsys) -> None:
        args = Namespace(file="/nonexistent/book.pdf", user_id=None, title=None, author=None, language=None)
        assert await _handle_ingest(args, components) == 1
        assert "file not found" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_ask_prints_answer_and_citations(self, components, capsys) -> None:
        args = build_parser().parse_args(["ask", "Who lit the lamp?", "--persona", "scholar", "--k", "3"])

        assert await _handle_ask(args, components) == 0

        kwargs = components["query_orchestrator"].answer.await_args.kwargs
        assert kwargs["persona"] == "scholar"
        assert kwargs["k"] == 3
        out = capsys.readouterr().out
        assert "The keeper lit the lamp [1]." in out
        assert "Confidence: 0.82" in out
        assert "[1] The Lighthouse, p. 3" in out

    @pytest.mark.asyncio
    async def test_library_listing(self, components, make_book, capsys) -> None:
        components["library_service"].list_library.return_value = [
            LibraryEntry(book=make_book(total_pages=12), is_owner=True)
        ]
        args = build_parser().parse_args(["library", "--user-id", "alice"])

        assert await _handle_library(args, components) == 0
        out = capsys.readouterr().out
        assert "The Lighthouse" in out
        assert "yes" in out

    @pytest.mark.asyncio
    async def test_empty_library(self, components, capsys) -> None:
        args = build_parser().parse_args(["library"])
        assert await _handle_library(args, components) == 0
        assert "Library is empty." in capsys.readouterr().out


def test_main_dispatches(components) -> None:
    with patch("bookbuddy.cli.commands._build_components", return_value=components):
        assert main(["ask", "Who lit the lamp?"]) == 0
    components["query_orchestrator"].answer.assert_awaited_once()
