"""Book (uploaded document) models.

A :class:`Book` is created at upload time with placeholder metadata and
mutated exactly once by the ingestion pipeline when parsing completes.
Mutation is expressed as ``book.model_copy(update={...})`` followed by a
record-store save, since every model here is frozen.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class FileType(str, Enum):  # noqa: UP042
    """Document formats the parser understands."""

    PDF = "pdf"
    EPUB = "epub"
    TXT = "txt"

    @classmethod
    def from_filename(cls, filename: str) -> FileType | None:
        """Return the type matching *filename*'s extension, or ``None``."""
        _, dot, ext = filename.rpartition(".")
        if not dot:
            return None
        try:
            return cls(ext.lower())
        except ValueError:
            return None


class ChapterEntry(BaseModel):
    """One row of a book's page -> chapter table."""

    model_config = ConfigDict(frozen=True)

    page: int = Field(ge=1, description="1-based page number.")
    chapter: str | None = Field(default=None, description="Chapter label for this page, if known.")


class Book(BaseModel):
    """An uploaded document and its derived metadata."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="UUID of the book.")
    title: str = Field(description="Display title; defaults to the filename stem.")
    author: str | None = Field(default=None, description="Author, when known.")
    language: str = Field(default="en", description="ISO language code.")
    file_type: FileType
    file_size: int = Field(default=0, ge=0, description="Size of the uploaded file in bytes.")
    storage_key: str = Field(description="Blob store key of the raw upload.")
    total_pages: int | None = Field(
        default=None, ge=0, description="Page count; None until the parser has run."
    )
    chapters: list[ChapterEntry] = Field(default_factory=list)
    # None marks an orphan (anonymous upload) which any caller may manage.
    owner_id: str | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )

    def is_manageable_by(self, caller_id: str | None) -> bool:
        """Return ``True`` if *caller_id* owns this book or the book is an orphan."""
        return self.owner_id is None or (caller_id is not None and self.owner_id == caller_id)


class LibraryEntry(BaseModel):
    """A book as seen by one caller in the library listing."""

    model_config = ConfigDict(frozen=True)

    book: Book
    is_owner: bool = Field(description="True when the caller may manage (delete) this book.")
