"""LLM provider adapters.

Concrete implementations of ILLMProvider (bookbuddy/interfaces/llm_provider.py):
    - AnthropicLLMProvider -- Claude via the Messages API
    - OpenAILLMProvider    -- gpt-4o-mini, or any OpenAI-compatible endpoint
    - OllamaLLMProvider    -- local models via an Ollama server

main.py picks the first configured provider in that order.
"""

from bookbuddy.providers.llm.anthropic_provider import AnthropicLLMProvider
from bookbuddy.providers.llm.ollama_provider import OllamaLLMProvider
from bookbuddy.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "OllamaLLMProvider", "OpenAILLMProvider"]
