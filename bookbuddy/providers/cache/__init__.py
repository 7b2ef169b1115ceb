"""Cache providers.

MemoryCacheProvider holds intent classifications for repeated questions.
It is process-local; a shared backend only needs to implement ICacheProvider.
"""

from bookbuddy.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
