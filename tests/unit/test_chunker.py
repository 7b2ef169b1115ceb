"""Unit tests for WordWindowChunker — overlapping word windows per page."""

from __future__ import annotations

import pytest

from bookbuddy.models.document import ParsedPage
from bookbuddy.services.ingestion.chunker import WordWindowChunker
from bookbuddy.services.ingestion.parser import DocumentParser

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _page(words: int, page_number: int = 1, chapter: str | None = None, prefix: str = "w") -> ParsedPage:
    text = " ".join(f"{prefix}{i}" for i in range(words))
    return ParsedPage(page_number=page_number, text=text, chapter=chapter)


def _reconstruct(chunks, overlap: int) -> list[str]:
    """Drop the overlapping lead of every chunk after the first."""
    words: list[str] = []
    for i, chunk in enumerate(chunks):
        chunk_words = chunk.text.split()
        words.extend(chunk_words if i == 0 else chunk_words[overlap:])
    return words


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_defaults(self) -> None:
        chunker = WordWindowChunker()
        assert chunker.window_words == 400
        assert chunker.overlap_words == 80

    @pytest.mark.parametrize(("window", "overlap"), [(0, 20), (-5, 20), (100, 100), (100, -1)])
    def test_invalid_arguments_rejected(self, window: int, overlap: int) -> None:
        with pytest.raises(ValueError):
            WordWindowChunker(window_words=window, overlap_percent=overlap)


class TestWindows:
    def test_short_page_yields_single_chunk(self) -> None:
        chunks = WordWindowChunker(window_words=400).chunk([_page(120)])
        assert len(chunks) == 1
        assert chunks[0].word_count == 120
        assert chunks[0].page == 1

    def test_empty_page_yields_nothing(self) -> None:
        chunks = WordWindowChunker().chunk([ParsedPage(page_number=1, text="   ")])
        assert chunks == []

    def test_consecutive_chunks_share_overlap(self) -> None:
        chunker = WordWindowChunker(window_words=100, overlap_percent=20)
        chunks = chunker.chunk([_page(350)])

        assert len(chunks) > 1
        for current, following in zip(chunks, chunks[1:]):
            assert current.text.split()[-20:] == following.text.split()[:20]

    def test_no_chunk_exceeds_window(self) -> None:
        chunks = WordWindowChunker(window_words=64, overlap_percent=25).chunk([_page(1000)])
        assert all(c.word_count <= 64 for c in chunks)
        assert all(len(c.text.split()) == c.word_count for c in chunks)

    def test_removing_overlap_reconstructs_page(self) -> None:
        page = _page(777)
        chunker = WordWindowChunker(window_words=90, overlap_percent=30)
        chunks = chunker.chunk([page])
        assert _reconstruct(chunks, chunker.overlap_words) == page.text.split()

    def test_exact_multiple_has_no_trailing_fragment(self) -> None:
        # 400 words, window 100, step 80: windows start at 0, 80, 160, 240, 320.
        chunks = WordWindowChunker(window_words=100, overlap_percent=20).chunk([_page(400)])
        assert len(chunks) == 5
        assert chunks[-1].text.split()[-1] == "w399"

    def test_zero_overlap(self) -> None:
        chunks = WordWindowChunker(window_words=10, overlap_percent=0).chunk([_page(25)])
        assert [c.word_count for c in chunks] == [10, 10, 5]


class TestPagesAndIndices:
    def test_windows_never_cross_pages(self) -> None:
        pages = [
            _page(150, page_number=1, prefix="a"),
            _page(150, page_number=2, prefix="b"),
        ]
        chunks = WordWindowChunker(window_words=100, overlap_percent=20).chunk(pages)

        for chunk in chunks:
            prefixes = {word[0] for word in chunk.text.split()}
            expected = {"a"} if chunk.page == 1 else {"b"}
            assert prefixes == expected

    def test_indices_are_dense_across_pages(self) -> None:
        pages = [_page(230, page_number=n) for n in range(1, 4)]
        chunks = WordWindowChunker(window_words=100, overlap_percent=20).chunk(pages)
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
        assert [c.page for c in chunks] == sorted(c.page for c in chunks)

    def test_chapter_carried_to_chunks(self) -> None:
        chunks = WordWindowChunker(window_words=50).chunk([_page(120, chapter="Chapter One")])
        assert {c.chapter for c in chunks} == {"Chapter One"}


class TestTxtScenario:
    """1,500-word TXT -> 3 pages; window 400 / overlap 20% -> 80-word overlaps per page."""

    def test_fifteen_hundred_words(self, sample_book_text: str) -> None:
        parsed = DocumentParser().parse(sample_book_text.encode("utf-8"), "txt")
        assert len(parsed.pages) == 3

        chunker = WordWindowChunker(window_words=400, overlap_percent=20)
        chunks = chunker.chunk(parsed.pages)

        for page in parsed.pages:
            page_chunks = [c for c in chunks if c.page == page.page_number]
            assert page_chunks
            assert all(c.word_count <= 400 for c in page_chunks)
            for current, following in zip(page_chunks, page_chunks[1:]):
                assert current.text.split()[-80:] == following.text.split()[:80]
            assert _reconstruct(page_chunks, 80) == page.text.split()
