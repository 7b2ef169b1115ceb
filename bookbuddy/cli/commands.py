"""Command-line access to the BookBuddy pipeline without the web server.

Usage::

    python -m bookbuddy.cli ingest --file /path/to/book.epub --user-id alice
    python -m bookbuddy.cli ask "Who narrates the story?" --book-id <id> --persona scholar
    python -m bookbuddy.cli library --user-id alice

``ingest`` runs the ingestion job inline (no worker pool) and prints the
final job status, so the command returns once the book is searchable or
the job has failed.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from bookbuddy.models.conversation import Persona
from bookbuddy.models.ingestion import JobStatus


def _build_components() -> dict[str, Any]:
    # Deferred: importing main configures logging and reads settings.
    from bookbuddy.main import build_components

    return build_components()


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, components: dict[str, Any]) -> int:
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    await components["record_store"].initialize()
    book, job = await components["library_service"].upload_book(
        filename=path.name,
        data=path.read_bytes(),
        caller_id=args.user_id,
        title=args.title,
        author=args.author,
        language=args.language,
    )
    print(f"Uploaded: {book.title} ({book.file_type.value}, {book.file_size} bytes)")
    print(f"  Book ID: {book.id}")
    print(f"  Job ID:  {job.id}")

    await components["ingestion_queue"].drain()
    final = await components["ingestion_queue"].get_status(job.id)

    print(f"\nIngestion {final.status.value}:")
    print(f"  Progress: {final.progress}%")
    print(f"  Chunks:   {final.total_chunks if final.total_chunks is not None else 0}")
    if final.error_message:
        print(f"  Error:    {final.error_message}")
    return 0 if final.status is JobStatus.COMPLETED else 1


async def _handle_ask(args: argparse.Namespace, components: dict[str, Any]) -> int:
    await components["record_store"].initialize()
    result = await components["query_orchestrator"].answer(
        args.question,
        book_id=args.book_id,
        k=args.k,
        persona=args.persona,
    )
    print(result.answer_text)
    print(f"\nConfidence: {result.confidence:.2f}")
    if result.citations:
        print("Citations:")
        for n, citation in enumerate(result.citations, start=1):
            page = f"p. {citation.page}" if citation.page is not None else "page unknown"
            print(f"  [{n}] {citation.book_title}, {page}")
    return 0


async def _handle_library(args: argparse.Namespace, components: dict[str, Any]) -> int:
    await components["record_store"].initialize()
    entries = await components["library_service"].list_library(args.user_id)
    if not entries:
        print("Library is empty.")
        return 0

    print(f"{'ID':<38} {'Type':<5} {'Pages':>5}  {'Owner':<5}  Title")
    print("-" * 80)
    for entry in entries:
        book = entry.book
        pages = book.total_pages if book.total_pages is not None else "-"
        owner = "yes" if entry.is_owner else "no"
        print(f"{book.id:<38} {book.file_type.value:<5} {pages!s:>5}  {owner:<5}  {book.title}")
    return 0


_HANDLERS = {
    "ingest": _handle_ingest,
    "ask": _handle_ask,
    "library": _handle_library,
}


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bookbuddy",
        description="Ingest books and ask questions about them.",
    )
    subparsers = parser.add_subparsers(dest="command")

    ingest = subparsers.add_parser("ingest", help="Upload and ingest a PDF, EPUB or TXT file")
    ingest.add_argument("--file", required=True, help="Path to the book file")
    ingest.add_argument("--title", default=None, help="Title (default: file name)")
    ingest.add_argument("--author", default=None, help="Author name")
    ingest.add_argument("--language", default=None, help="ISO language code (default: en)")
    ingest.add_argument("--user-id", default=None, help="Owner id; omit for a shared book")

    ask = subparsers.add_parser("ask", help="Ask a question about the library")
    ask.add_argument("question", help="The question to answer")
    ask.add_argument("--book-id", default=None, help="Restrict retrieval to one book")
    ask.add_argument(
        "--persona",
        default=Persona.FRIEND.value,
        choices=[p.value for p in Persona],
        help="Answer tone",
    )
    ask.add_argument("--k", type=int, default=5, help="Passages to retrieve")

    library = subparsers.add_parser("library", help="List uploaded books")
    library.add_argument("--user-id", default=None, help="Caller id for ownership flags")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the chosen command and return its exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    components = _build_components()
    return asyncio.run(_HANDLERS[args.command](args, components))


if __name__ == "__main__":
    sys.exit(main())
