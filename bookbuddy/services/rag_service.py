"""Query orchestrator: intent gate -> retrieval -> grounded generation.

Architecture overview
---------------------
:meth:`QueryOrchestrator.answer` handles one question:

  1. INTENT   -- :class:`IntentClassifier` decides CHAT or SEARCH.  CHAT
                 skips retrieval and replies directly (no citations,
                 confidence 1.0).
  2. RETRIEVE -- :class:`VectorSearchEngine` returns the top ``k`` chunks
                 at similarity >= 0.3.  No hits means a fixed "couldn't
                 find" answer without calling the model.
  3. CONTEXT  -- each hit becomes a numbered block (``[1] From "Title"
                 (Page 12, Chapter: ...)``) and a :class:`Citation`.
  4. GENERATE -- persona-specific system prompt, optional user memory,
                 structured JSON generation over the context.
  5. ASSEMBLE -- cited indices are mapped back to citations; confidence
                 is clamped to [0, 1].

Query-time failures never propagate: a failed search or a model chain
that is exhausted produces an apology answer with confidence 0.  Only a
missing query raises.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from bookbuddy.models.conversation import ConversationMessage, Persona, QueryIntent
from bookbuddy.models.rag import Citation, RAGAnswer, SearchFilters, SearchResult
from bookbuddy.services.generation_service import GenerationService
from bookbuddy.services.intent_classifier import IntentClassifier
from bookbuddy.services.search_service import VectorSearchEngine
from bookbuddy.utils.errors import InputValidationError

logger = structlog.get_logger(logger_name=__name__)

BASE_SYSTEM_PROMPT = """You are BookBuddy — a helpful, accurate assistant that answers questions based ONLY on the provided book excerpts.

IMPORTANT RULES:
1. Always cite your sources using [1], [2], etc. to reference the provided citations
2. Only answer based on the information in the provided context
3. If you cannot confidently answer using the passages, state your uncertainty and show the closest relevant passage
4. Include the book title and page number when citing
5. Keep quotes under 250 characters to respect copyright
6. Be conversational but accurate

Your goal is to help users understand and engage with their books through accurate, citation-backed answers."""

PERSONA_DIRECTIVES: dict[Persona, str] = {
    Persona.SCHOLAR: (
        "Adopt a scholarly, analytical tone. Provide detailed explanations with academic "
        "rigor. Reference literary techniques, themes, and historical context where relevant."
    ),
    Persona.FRIEND: (
        "Adopt a friendly, conversational tone. Explain concepts in an accessible way, as if "
        "chatting with a friend about a book you both love. Use analogies and relatable examples."
    ),
    Persona.QUIZZER: (
        "Adopt an engaging, educational tone. After answering, pose a thought-provoking "
        "follow-up question to deepen understanding. Encourage critical thinking about the text."
    ),
}

CHAT_DIRECTIVE = (
    "The user's message is conversational and does not need the book excerpts. "
    "Reply briefly and naturally without inventing book content. If they want details "
    "from a book, ask them which book they mean or invite them to upload it."
)

NO_RESULTS_ANSWER = (
    "I couldn't find any relevant information in the uploaded books to answer your "
    "question. Could you try rephrasing or asking about a different topic?"
)

APOLOGY_ANSWER = (
    "I apologize, but I'm currently experiencing high demand. Please try again in a few "
    "moments. If you have uploaded a book, I can still search through it, but response "
    "generation is temporarily limited."
)

EXCERPT_CHARS = 250


def build_system_prompt(persona: Persona | str | None, memory_context: str | None = None) -> str:
    """Base prompt + persona directive (+ user memory when given)."""
    directive = PERSONA_DIRECTIVES[Persona.parse(persona)]
    prompt = f"{BASE_SYSTEM_PROMPT}\n\n{directive}"
    if memory_context:
        prompt = f"{prompt}\n\nUser Context: {memory_context}"
    return prompt


def build_context(results: Sequence[SearchResult]) -> tuple[str, list[Citation]]:
    """Render numbered context blocks and the matching citation list."""
    blocks: list[str] = []
    citations: list[Citation] = []
    for n, result in enumerate(results, start=1):
        location = f"Page {result.page}" if result.page is not None else "Unknown Page"
        if result.chapter:
            location += f", Chapter: {result.chapter}"
        blocks.append(f'[{n}] From "{result.book_title}" ({location}):\n{result.text}\n')
        citations.append(
            Citation(
                book_id=result.book_id,
                book_title=result.book_title,
                page=result.page,
                chapter=result.chapter,
                excerpt=result.text[:EXCERPT_CHARS],
            )
        )
    return "\n---\n\n".join(blocks), citations


def render_history(messages: Sequence[ConversationMessage], turns: int = 4) -> str:
    lines = [f"{m.role.value}: {m.content}" for m in list(messages)[-turns:]]
    return "Recent conversation:\n" + "\n".join(lines)


class QueryOrchestrator:
    """Answers questions over the library with citations.

    Parameters
    ----------
    classifier:
        CHAT/SEARCH router.
    search_engine:
        Hybrid retrieval over stored chunks.
    generation:
        Model-fallback generation service.
    min_similarity:
        Retrieval threshold for answers (default 0.3).
    history_turns:
        Messages of recent conversation folded into the memory context.
    """

    def __init__(
        self,
        classifier: IntentClassifier,
        search_engine: VectorSearchEngine,
        generation: GenerationService,
        min_similarity: float = 0.3,
        history_turns: int = 4,
    ) -> None:
        self._classifier = classifier
        self._search = search_engine
        self._generation = generation
        self._min_similarity = min_similarity
        self._history_turns = history_turns

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def answer(
        self,
        query: str,
        book_id: str | None = None,
        caller_id: str | None = None,
        k: int = 5,
        persona: Persona | str | None = Persona.FRIEND,
        memory_context: str | None = None,
    ) -> RAGAnswer:
        """Answer *query*, optionally restricted to one book.

        Raises
        ------
        InputValidationError
            If *query* is missing or blank.
        """
        if not query or not query.strip():
            raise InputValidationError(message="Query is required")

        persona = Persona.parse(persona)
        system_prompt = build_system_prompt(persona, memory_context)

        intent = await self._classifier.classify(query)
        if intent is QueryIntent.CHAT:
            return await self._chat(query, system_prompt, caller_id)

        try:
            results = await self._search.search(
                query,
                filters=SearchFilters(book_id=book_id),
                limit=k,
                min_similarity=self._min_similarity,
            )
        except Exception as exc:
            logger.error("rag_search_failed", error=str(exc), book_id=book_id)
            return RAGAnswer(answer_text=APOLOGY_ANSWER, citations=[], confidence=0.0)

        if not results:
            logger.info("rag_no_results", book_id=book_id, caller_id=caller_id)
            return RAGAnswer(answer_text=NO_RESULTS_ANSWER, citations=[], confidence=0.0)

        context, citations = build_context(results)
        try:
            generated = await self._generation.generate_structured(
                query, context, citations, system_prompt=system_prompt
            )
        except Exception as exc:
            logger.error("rag_generation_failed", error=str(exc), citations=len(citations))
            return RAGAnswer(answer_text=APOLOGY_ANSWER, citations=citations, confidence=0.0)

        used = [citations[i - 1] for i in generated.used_indices]
        logger.info(
            "rag_answered",
            persona=persona.value,
            results=len(results),
            cited=len(used),
            confidence=generated.confidence,
            structured=generated.parsed,
        )
        return RAGAnswer(
            answer_text=generated.text,
            citations=used,
            confidence=generated.confidence,
        )

    async def answer_with_history(
        self,
        query: str,
        history: Sequence[ConversationMessage],
        book_id: str | None = None,
        caller_id: str | None = None,
        k: int = 5,
        persona: Persona | str | None = Persona.FRIEND,
        memory_context: str | None = None,
    ) -> RAGAnswer:
        """:meth:`answer` with recent conversation appended to the memory context."""
        context = memory_context
        if history:
            recent = render_history(history, self._history_turns)
            context = f"{memory_context}\n\n{recent}" if memory_context else recent
        return await self.answer(
            query,
            book_id=book_id,
            caller_id=caller_id,
            k=k,
            persona=persona,
            memory_context=context,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _chat(self, query: str, system_prompt: str, caller_id: str | None) -> RAGAnswer:
        try:
            reply = await self._generation.generate(
                f"User Question: {query}",
                system_prompt=f"{system_prompt}\n\n{CHAT_DIRECTIVE}",
            )
        except Exception as exc:
            logger.error("rag_chat_failed", error=str(exc))
            return RAGAnswer(answer_text=APOLOGY_ANSWER, citations=[], confidence=0.0)

        logger.info("rag_chat_answered", caller_id=caller_id)
        return RAGAnswer(answer_text=reply.strip(), citations=[], confidence=1.0)
