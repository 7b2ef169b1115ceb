"""Word-window text chunking with fixed overlap.

Splits parsed pages into :class:`~bookbuddy.models.rag.TextChunk` objects.
The unit is the whitespace-delimited word, an approximation of model
tokens that needs no tokenizer download.

Per page, a window of ``window_words`` words slides forward by
``window_words - overlap`` where ``overlap = floor(window_words *
overlap_percent / 100)``.  The final partial window is kept; the loop stops
as soon as a window reaches the end of the page.  Consecutive windows share
``overlap`` words, so a sentence straddling a boundary is whole in at least
one chunk.

Windows never cross page boundaries, which keeps every chunk's page number
exact for citations.  Once all pages are chunked, indices are renumbered
``0..N-1`` in page order.
"""

from __future__ import annotations

import structlog

from bookbuddy.models.document import ParsedPage
from bookbuddy.models.rag import TextChunk

logger = structlog.get_logger(logger_name=__name__)


class WordWindowChunker:
    """Splits pages into overlapping word windows.

    Parameters
    ----------
    window_words:
        Maximum words per chunk (default 400).
    overlap_percent:
        Share of the window repeated at the start of the next chunk, in
        ``[0, 100)`` (default 20).

    Raises
    ------
    ValueError
        If ``window_words`` is not positive or ``overlap_percent`` is out of range.
    """

    def __init__(self, window_words: int = 400, overlap_percent: int = 20) -> None:
        if window_words <= 0:
            raise ValueError(f"window_words must be positive, got {window_words}")
        if not 0 <= overlap_percent < 100:
            raise ValueError(f"overlap_percent must be in [0, 100), got {overlap_percent}")
        self._window = window_words
        self._overlap = (window_words * overlap_percent) // 100
        # Always >= 1 because overlap_percent < 100.
        self._step = window_words - self._overlap

    @property
    def window_words(self) -> int:
        return self._window

    @property
    def overlap_words(self) -> int:
        return self._overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, pages: list[ParsedPage]) -> list[TextChunk]:
        """Chunk every page and renumber the result densely from 0.

        Empty pages contribute no chunks.
        """
        windows: list[tuple[str, int, ParsedPage]] = []
        for page in pages:
            words = page.text.split()
            for window in self._windows(words):
                windows.append((" ".join(window), len(window), page))

        chunks = [
            TextChunk(
                chunk_index=index,
                text=text,
                page=page.page_number,
                chapter=page.chapter,
                word_count=word_count,
            )
            for index, (text, word_count, page) in enumerate(windows)
        ]

        logger.debug(
            "chunking_complete",
            pages=len(pages),
            num_chunks=len(chunks),
            window_words=self._window,
            overlap_words=self._overlap,
        )
        return chunks

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _windows(self, words: list[str]) -> list[list[str]]:
        windows: list[list[str]] = []
        start = 0
        while start < len(words):
            windows.append(words[start : start + self._window])
            if start + self._window >= len(words):
                break
            start += self._step
        return windows
