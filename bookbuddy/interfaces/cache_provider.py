"""Interface for the key-value cache in front of intent classification.

Keys are ``intent:<sha256 prefix>`` strings built from the normalized
query; values are the ``QueryIntent`` value strings.  Methods are async so
a networked backend can be swapped in without touching callers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ICacheProvider(ABC):
    """Key-value store with optional per-entry expiry."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Stored value, or ``None`` when missing or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value*; ``ttl`` is in seconds and ``None`` uses the backend default."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Drop *key*; missing keys are ignored."""

    @abstractmethod
    async def exists(self, key: str) -> bool: ...
