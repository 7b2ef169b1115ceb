"""Blob store implementations for raw uploads.

Only LocalBlobStore ships today; main.py selects it when STORAGE_TYPE=local
and rejects any other value at startup.
"""

from bookbuddy.providers.blob.local_blob_store import LocalBlobStore

__all__ = ["LocalBlobStore"]
