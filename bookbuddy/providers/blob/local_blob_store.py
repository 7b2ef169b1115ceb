"""Local-disk blob store.

Uploads are written below a root directory using the key as a relative
path (``{owner}/{epoch_ms}-{filename}``).  File I/O runs in worker threads
via ``asyncio.to_thread`` so large uploads never block the event loop.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from bookbuddy.interfaces.blob_store import IBlobStore
from bookbuddy.utils.errors import NotFoundError, StorageError

logger = structlog.get_logger(logger_name=__name__)


class LocalBlobStore(IBlobStore):
    """Blob store rooted at a local directory."""

    def __init__(self, root: str | Path = "data/uploads") -> None:
        self._root = Path(root).resolve()

    # -- Sync helpers (executed via asyncio.to_thread) -------------------------

    def _resolve(self, key: str) -> Path:
        """Map *key* to a path under the root, rejecting escapes like ``../``."""
        if not key or key.startswith(("/", "\\")):
            raise StorageError(message=f"Invalid storage key: {key!r}", provider_name="local")
        path = (self._root / key).resolve()
        if not path.is_relative_to(self._root):
            raise StorageError(
                message=f"Storage key escapes the storage root: {key!r}",
                provider_name="local",
            )
        return path

    def _write_sync(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    # -- IBlobStore implementation ---------------------------------------------

    async def put(self, data: bytes, key: str) -> str:
        path = self._resolve(key)
        try:
            await asyncio.to_thread(self._write_sync, path, data)
        except OSError as exc:
            raise StorageError(
                message=f"Failed to write {key}: {exc}", provider_name="local"
            ) from exc
        logger.info("blob_stored", key=key, size=len(data))
        return key

    async def get(self, key: str) -> bytes:
        path = self._resolve(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise NotFoundError(message=f"No stored file for key {key}", provider_name="local") from exc
        except OSError as exc:
            raise StorageError(
                message=f"Failed to read {key}: {exc}", provider_name="local"
            ) from exc

    async def delete(self, key: str) -> None:
        path = self._resolve(key)
        try:
            await asyncio.to_thread(path.unlink, True)
        except OSError as exc:
            raise StorageError(
                message=f"Failed to delete {key}: {exc}", provider_name="local"
            ) from exc
        logger.info("blob_deleted", key=key)

    def get_provider_name(self) -> str:
        return "local"
