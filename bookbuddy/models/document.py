"""Parser output models: normalized page-structured text plus metadata."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ParsedPage(BaseModel):
    """A single page (or EPUB spine document) of extracted text."""

    model_config = ConfigDict(frozen=True)

    page_number: int = Field(ge=1)
    text: str = ""
    chapter: str | None = None


class DocumentMetadata(BaseModel):
    """Best-effort metadata; absent values stay ``None``."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    author: str | None = None
    language: str | None = None
    total_pages: int = Field(default=0, ge=0)


class ParsedDocument(BaseModel):
    """Complete result of parsing one uploaded file."""

    model_config = ConfigDict(frozen=True)

    full_text: str = ""
    pages: list[ParsedPage] = Field(default_factory=list)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
