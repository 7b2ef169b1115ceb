"""Record store implementations.

SQLiteRecordStore keeps books, ingestion jobs, conversations and user
memory in a single aiosqlite database (DATABASE_PATH, default
data/bookbuddy.db).  Chunk vectors live in the chunk store instead.
"""

from bookbuddy.providers.record_store.sqlite_record_store import SQLiteRecordStore

__all__ = ["SQLiteRecordStore"]
