"""Binary query router: does this message need the books at all?

Greetings and small talk (``CHAT``) are answered directly; everything else
(``SEARCH``) goes through retrieval.  Classification fails open: if the
model call errors the query is treated as ``SEARCH``, so the worst case
is an unnecessary search rather than an ungrounded answer.

Results are cached per normalized query (lowercased, trimmed, internal
whitespace collapsed), so repeated questions skip the classifier call and
classifying the same query twice always agrees.
"""

from __future__ import annotations

import hashlib
import re

import structlog

from bookbuddy.interfaces.cache_provider import ICacheProvider
from bookbuddy.models.conversation import QueryIntent
from bookbuddy.services.generation_service import GenerationService

logger = structlog.get_logger(logger_name=__name__)

_ROUTER_PROMPT = """You are a router. Classify the user's query into one of two categories:
1. SEARCH: The user is asking for specific information, facts, summaries, or details that would be found in a book or document.
2. CHAT: The user is greeting, thanking, asking about you, or making small talk that doesn't require looking up external information.

Return ONLY the word "SEARCH" or "CHAT".

Query: "Hello there"
Intent: CHAT

Query: "Who is the main character?"
Intent: SEARCH

Query: "Summarize chapter 1"
Intent: SEARCH

Query: "Thanks for the help"
Intent: CHAT

Query: "What is the theme of this book?"
Intent: SEARCH

Query: "{query}"
Intent:"""

_WHITESPACE = re.compile(r"\s+")


class IntentClassifier:
    """Few-shot CHAT/SEARCH classifier with a result cache.

    Parameters
    ----------
    generation:
        Generation service used for the classification call.
    cache:
        Optional cache for classifications; ``None`` disables caching.
    cache_ttl:
        Seconds a cached classification stays valid.
    """

    def __init__(
        self,
        generation: GenerationService,
        cache: ICacheProvider | None = None,
        cache_ttl: int | None = None,
    ) -> None:
        self._generation = generation
        self._cache = cache
        self._cache_ttl = cache_ttl

    async def classify(self, query: str) -> QueryIntent:
        key = self._cache_key(query)
        if self._cache is not None:
            cached = await self._cache.get(key)
            if cached is not None:
                return QueryIntent(cached)

        try:
            reply = await self._generation.generate(
                _ROUTER_PROMPT.replace("{query}", query),
                temperature=0.1,
                max_tokens=10,
            )
        except Exception as exc:
            logger.warning("intent_classification_failed", error=str(exc))
            return QueryIntent.SEARCH

        intent = QueryIntent.SEARCH if "SEARCH" in reply.strip().upper() else QueryIntent.CHAT
        if self._cache is not None:
            await self._cache.set(key, intent.value, ttl=self._cache_ttl)
        logger.debug("intent_classified", intent=intent.value, query=query[:80])
        return intent

    @staticmethod
    def _cache_key(query: str) -> str:
        normalized = _WHITESPACE.sub(" ", query.strip().lower())
        return "intent:" + hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:32]
