"""In-memory cache provider using cachetools.

Single-process only; swap in a Redis adapter implementing ICacheProvider
for multi-worker deployments.  Per-entry TTLs are honoured through
``cachetools.TLRUCache``, whose time-to-use function reads the TTL stored
alongside each value.
"""

from __future__ import annotations

import time
from typing import Any, NamedTuple

import structlog
from cachetools import TLRUCache

from bookbuddy.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class _Entry(NamedTuple):
    value: Any
    ttl: float | None


class MemoryCacheProvider(ICacheProvider):
    """In-memory TTL cache.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    ttl:
        Default time-to-live in seconds, used when :meth:`set` is called
        without one.
    """

    def __init__(self, max_size: int = 1024, ttl: int = 3600) -> None:
        self._default_ttl = ttl
        self._cache: TLRUCache[str, _Entry] = TLRUCache(
            maxsize=max_size, ttu=self._expires_at, timer=time.monotonic
        )

    @staticmethod
    def _expires_at(_key: str, entry: _Entry, now: float) -> float:
        return now + entry.ttl if entry.ttl is not None else float("inf")

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        entry = self._cache.get(key)
        logger.debug("cache_hit" if entry is not None else "cache_miss", key=key)
        return entry.value if entry is not None else None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        self._cache[key] = _Entry(value, ttl if ttl is not None else self._default_ttl)
        logger.debug("cache_set", key=key)

    async def delete(self, key: str) -> None:
        self._cache.pop(key, None)

    async def exists(self, key: str) -> bool:
        return key in self._cache
