"""Abstract base class for raw upload storage.

The ingestion pipeline only ever sees an opaque string key: where the bytes
live (local disk, an S3-compatible bucket, a cloud object store) is decided
once at startup from ``storage_type`` and hidden behind this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: LocalBlobStore
# Located in: bookbuddy/providers/blob/
class IBlobStore(ABC):
    """Contract for binary object storage keyed by opaque paths."""

    @abstractmethod
    async def put(self, data: bytes, key: str) -> str:
        """Store *data* under *key* and return the key actually used.

        Raises
        ------
        bookbuddy.utils.errors.StorageError
            If the key is invalid or the write fails.
        """

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Return the bytes stored under *key*.

        Raises
        ------
        bookbuddy.utils.errors.NotFoundError
            If nothing is stored under *key*.
        bookbuddy.utils.errors.StorageError
            If the read fails.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the object stored under *key*; a missing key is a no-op."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return an identifier such as ``"local"``."""
