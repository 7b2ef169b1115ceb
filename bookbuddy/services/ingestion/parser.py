"""Document parser: raw upload bytes -> page-structured text + metadata.

One entry point, :meth:`DocumentParser.parse`, dispatches on the declared
file type:

- **PDF** (PyMuPDF): the concatenated text is split proportionally by
  character count across the reported page count.  Per-page extraction
  would be more exact but text layers often disagree with page geometry;
  proportional spans are deterministic, monotonic and always in range,
  which is all citations need.
- **EPUB** (ebooklib + BeautifulSoup): every spine document in reading
  order becomes one page, numbered from 1, labelled with its TOC title or
  first heading.
- **TXT**: pages are synthesized from fixed-size groups of words.

Parsing is synchronous and CPU-bound; the ingestion service runs it via
``asyncio.to_thread``.  Corrupt input fails the whole parse with
:class:`~bookbuddy.utils.errors.ParseError`; there is no partial recovery.
"""

from __future__ import annotations

import math
import os
import re
import tempfile
from typing import Any

import ebooklib
import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog
from bs4 import BeautifulSoup
from ebooklib import epub

from bookbuddy.models.book import FileType
from bookbuddy.models.document import DocumentMetadata, ParsedDocument, ParsedPage
from bookbuddy.utils.errors import ParseError, UnsupportedFileTypeError

logger = structlog.get_logger(logger_name=__name__)

_WHITESPACE = re.compile(r"\s+")
_HEADING = re.compile(r"^h[1-3]$")

DEFAULT_TXT_WORDS_PER_PAGE = 500


class DocumentParser:
    """Parses PDF, EPUB and TXT bytes into :class:`ParsedDocument` objects.

    Parameters
    ----------
    txt_words_per_page:
        Words grouped into one synthetic page for plain-text input.
    """

    def __init__(self, txt_words_per_page: int = DEFAULT_TXT_WORDS_PER_PAGE) -> None:
        if txt_words_per_page <= 0:
            raise ValueError("txt_words_per_page must be positive")
        self._txt_words_per_page = txt_words_per_page

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse(self, data: bytes, file_type: FileType | str) -> ParsedDocument:
        """Parse *data* according to *file_type*.

        Raises
        ------
        UnsupportedFileTypeError
            If *file_type* is not pdf, epub or txt.
        ParseError
            If the document is corrupt or unreadable.
        """
        try:
            kind = FileType(str(getattr(file_type, "value", file_type)).lower())
        except ValueError as exc:
            raise UnsupportedFileTypeError(
                message=f"Unsupported file type: {file_type}"
            ) from exc

        if kind is FileType.PDF:
            document = self._parse_pdf(data)
        elif kind is FileType.EPUB:
            document = self._parse_epub(data)
        else:
            document = self._parse_txt(data)

        logger.info(
            "document_parsed",
            file_type=kind.value,
            pages=len(document.pages),
            chars=len(document.full_text),
            has_title=document.metadata.title is not None,
        )
        return document

    # ------------------------------------------------------------------
    # PDF
    # ------------------------------------------------------------------

    def _parse_pdf(self, data: bytes) -> ParsedDocument:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise ParseError(message=f"Failed to parse PDF file: {exc}", provider_name="pymupdf") from exc

        try:
            if doc.needs_pass:
                raise ParseError(message="PDF is password protected", provider_name="pymupdf")
            page_count = doc.page_count
            full_text = "".join(page.get_text("text") for page in doc)
            info = doc.metadata or {}
        except ParseError:
            raise
        except Exception as exc:
            raise ParseError(message=f"Failed to read PDF text: {exc}", provider_name="pymupdf") from exc
        finally:
            doc.close()

        pages = split_proportionally(full_text, page_count)
        return ParsedDocument(
            full_text=full_text,
            pages=pages,
            metadata=DocumentMetadata(
                title=_clean(info.get("title")),
                author=_clean(info.get("author")),
                language=None,
                total_pages=page_count,
            ),
        )

    # ------------------------------------------------------------------
    # EPUB
    # ------------------------------------------------------------------

    def _parse_epub(self, data: bytes) -> ParsedDocument:
        book = self._read_epub(data)

        toc_titles = _toc_titles(book.toc)
        pages: list[ParsedPage] = []
        texts: list[str] = []
        for idref, *_ in book.spine:
            item = book.get_item_with_id(idref)
            if item is None or item.get_type() != ebooklib.ITEM_DOCUMENT:
                continue

            soup = BeautifulSoup(item.get_content(), "html.parser")
            text = _WHITESPACE.sub(" ", soup.get_text(" ")).strip()

            chapter = toc_titles.get(_strip_fragment(item.get_name()))
            if not chapter:
                heading = soup.find(_HEADING)
                chapter = _clean(heading.get_text(" ", strip=True)) if heading else None

            pages.append(ParsedPage(page_number=len(pages) + 1, text=text, chapter=chapter))
            texts.append(text)

        return ParsedDocument(
            full_text="\n\n".join(texts),
            pages=pages,
            metadata=DocumentMetadata(
                title=_first_dc(book, "title"),
                author=_first_dc(book, "creator"),
                language=_first_dc(book, "language"),
                total_pages=len(pages),
            ),
        )

    @staticmethod
    def _read_epub(data: bytes) -> epub.EpubBook:
        """Load an EPUB from bytes; ebooklib needs a filesystem path."""
        fd, path = tempfile.mkstemp(suffix=".epub")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            return epub.read_epub(path, options={"ignore_ncx": False})
        except Exception as exc:
            raise ParseError(message=f"Failed to parse EPUB file: {exc}", provider_name="ebooklib") from exc
        finally:
            os.unlink(path)

    # ------------------------------------------------------------------
    # TXT
    # ------------------------------------------------------------------

    def _parse_txt(self, data: bytes) -> ParsedDocument:
        text = data.decode("utf-8", errors="replace")
        words = text.split()
        size = self._txt_words_per_page
        pages = [
            ParsedPage(page_number=n + 1, text=" ".join(words[start : start + size]))
            for n, start in enumerate(range(0, len(words), size))
        ]
        return ParsedDocument(
            full_text=text,
            pages=pages,
            metadata=DocumentMetadata(total_pages=len(pages)),
        )


# ---------------------------------------------------------------------------
# Module helpers
# ---------------------------------------------------------------------------

def split_proportionally(text: str, page_count: int) -> list[ParsedPage]:
    """Split *text* into *page_count* contiguous spans of ``ceil(len / count)`` chars.

    Each span is stripped; trailing pages may be empty when the text is short.
    """
    if page_count <= 0:
        return []
    per_page = math.ceil(len(text) / page_count)
    pages: list[ParsedPage] = []
    for i in range(page_count):
        start = i * per_page
        end = min((i + 1) * per_page, len(text))
        pages.append(ParsedPage(page_number=i + 1, text=text[start:end].strip()))
    return pages


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = _WHITESPACE.sub(" ", str(value)).strip()
    return text or None


def _first_dc(book: epub.EpubBook, name: str) -> str | None:
    entries = book.get_metadata("DC", name)
    return _clean(entries[0][0]) if entries else None


def _strip_fragment(href: str) -> str:
    return href.split("#", 1)[0]


def _toc_titles(toc: Any) -> dict[str, str]:
    """Flatten ebooklib's nested TOC into ``{href_without_fragment: title}``.

    The first title seen for a file wins, so a chapter link beats the
    section links nested under it.
    """
    titles: dict[str, str] = {}

    def _walk(entries: Any) -> None:
        for entry in entries:
            if isinstance(entry, (tuple, list)):
                section, children = entry[0], entry[1] if len(entry) > 1 else []
                _add(section)
                _walk(children)
            else:
                _add(entry)

    def _add(node: Any) -> None:
        href = getattr(node, "href", None)
        title = _clean(getattr(node, "title", None))
        if href and title:
            titles.setdefault(_strip_fragment(href), title)

    _walk(toc or [])
    return titles
