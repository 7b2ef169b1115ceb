"""Answer generation with an ordered model fallback chain.

:class:`GenerationService` wraps a single :class:`ILLMProvider` and tries
each configured model in turn (bounded by ``max_depth``) until one
returns.  Two call shapes are offered:

- :meth:`GenerationService.generate` -- plain text in, plain text out.
- :meth:`GenerationService.generate_structured` -- asks for a JSON object
  ``{"answer", "confidence", "usedCitations"}`` and parses it with
  :func:`parse_structured`.  The JSON contract is advisory: a reply that
  is not JSON still yields a usable answer (the raw text at a default
  confidence).
"""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

from bookbuddy.interfaces.llm_provider import ILLMProvider
from bookbuddy.models.rag import Citation, StructuredGeneration
from bookbuddy.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_CONFIDENCE = 0.7

_DEFAULT_STRUCTURED_SYSTEM = (
    "You are a helpful AI assistant that answers questions based on provided context."
)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

_RESPONSE_FORMAT = """Please provide a response in the following JSON format:
{
  "answer": "Your detailed answer here, referencing citations as [1], [2], etc.",
  "confidence": 0.85,
  "usedCitations": [1, 2]
}

Confidence should be between 0 and 1, where 1 is completely confident."""


class GenerationService:
    """Runs prompts through an LLM provider, falling back across models.

    Parameters
    ----------
    llm:
        The provider every attempt goes through.
    models:
        Ordered model identifiers.  An empty list means a single attempt
        with the provider's own default model.
    max_depth:
        Upper bound on the number of models tried.
    temperature, max_tokens:
        Sampling parameters for every attempt.
    """

    def __init__(
        self,
        llm: ILLMProvider,
        models: list[str] | None = None,
        max_depth: int = 3,
        temperature: float = 0.7,
        max_tokens: int = 2048,
    ) -> None:
        self._llm = llm
        self._models: list[str | None] = list(models) if models else [None]
        self._max_depth = max(1, max_depth)
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def model_chain(self) -> list[str | None]:
        return self._models[: self._max_depth]

    @property
    def provider_name(self) -> str:
        return self._llm.get_provider_name()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Return the first successful completion across the model chain.

        Raises
        ------
        LLMError
            If every model in the chain fails.
        """
        return await self._complete(
            system_prompt or "",
            prompt,
            temperature=self._temperature if temperature is None else temperature,
            max_tokens=self._max_tokens if max_tokens is None else max_tokens,
        )

    async def generate_structured(
        self,
        query: str,
        context: str,
        citations: list[Citation],
        system_prompt: str | None = None,
    ) -> StructuredGeneration:
        """Ask for a JSON answer over *context* and parse the reply.

        Raises
        ------
        LLMError
            If every model in the chain fails.  Parse problems never raise.
        """
        raw = await self._complete(
            system_prompt or _DEFAULT_STRUCTURED_SYSTEM,
            build_structured_prompt(query, context, citations),
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        result = parse_structured(raw, len(citations))
        if not result.parsed:
            logger.warning("generation_json_parse_failed", response_preview=raw[:200])
        return result

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _complete(
        self, system_prompt: str, user_prompt: str, temperature: float, max_tokens: int
    ) -> str:
        last_error: Exception | None = None
        for attempt, model in enumerate(self.model_chain, start=1):
            try:
                text = await self._llm.complete(
                    system_prompt=system_prompt,
                    user_prompt=user_prompt,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    model=model,
                )
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "generation_model_failed",
                    model=model or "default",
                    attempt=attempt,
                    error=str(exc),
                )
                continue
            logger.debug("generation_model_succeeded", model=model or "default", attempt=attempt)
            return text

        raise LLMError(
            message=f"All {len(self.model_chain)} models failed; last error: {last_error}",
            provider_name=self._llm.get_provider_name(),
        )


def build_structured_prompt(query: str, context: str, citations: list[Citation]) -> str:
    citation_lines = "\n".join(
        f'[{i}] {c.book_title}, Page {c.page if c.page is not None else "N/A"}: "{c.excerpt[:100]}..."'
        for i, c in enumerate(citations, start=1)
    )
    return (
        f"Context from books:\n{context}\n\n"
        f"Available Citations:\n{citation_lines}\n\n"
        f"User Question: {query}\n\n"
        f"{_RESPONSE_FORMAT}"
    )


def parse_structured(raw: str, citation_count: int) -> StructuredGeneration:
    """Parse a structured reply into text, confidence and used citation indices.

    - The first ``{`` through the last ``}`` is decoded as JSON.
    - ``usedCitations`` entries outside ``1..citation_count`` are dropped.
    - Confidence is clamped to ``[0, 1]``; missing or non-numeric becomes
      :data:`DEFAULT_CONFIDENCE`.
    - Anything that is not a JSON object yields the raw text, every
      citation index and :data:`DEFAULT_CONFIDENCE` with ``parsed=False``.
    """
    fallback = StructuredGeneration(
        text=raw.strip(),
        confidence=DEFAULT_CONFIDENCE,
        used_indices=list(range(1, citation_count + 1)),
        parsed=False,
    )

    match = _JSON_OBJECT.search(raw)
    if not match:
        return fallback
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return fallback
    if not isinstance(data, dict):
        return fallback

    answer = data.get("answer")
    text = answer if isinstance(answer, str) and answer.strip() else raw.strip()

    used = data.get("usedCitations") or []
    indices: list[int] = []
    if isinstance(used, list):
        for value in used:
            if isinstance(value, bool) or not isinstance(value, int):
                continue
            if 1 <= value <= citation_count and value not in indices:
                indices.append(value)

    return StructuredGeneration(
        text=text,
        confidence=_coerce_confidence(data.get("confidence")),
        used_indices=indices,
    )


def _coerce_confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE
    if value != value:  # NaN
        return DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, float(value)))
