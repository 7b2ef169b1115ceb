"""Local LLM through an Ollama server.

Ollama exposes the chat-completions protocol under ``/v1``, so this adapter
is :class:`ChatCompletionsProvider` pointed at ``OLLAMA_BASE_URL``.  It is
the last resort in provider selection and needs no API key.
"""

from __future__ import annotations

import openai

from bookbuddy.config.settings import Settings
from bookbuddy.providers.llm.openai_provider import ChatCompletionsProvider


class OllamaLLMProvider(ChatCompletionsProvider):
    """``llama3.1`` (or the requested model) on a local Ollama server."""

    DEFAULT_MODEL = "llama3.1"

    def __init__(self, settings: Settings) -> None:
        self._base_url = settings.ollama_base_url
        # The SDK rejects an empty key; Ollama never checks it.
        client = openai.AsyncOpenAI(base_url=f"{self._base_url.rstrip('/')}/v1", api_key="ollama")
        super().__init__(client, label="ollama", default_model=self.DEFAULT_MODEL)

    def is_available(self) -> bool:
        return bool(self._base_url)
