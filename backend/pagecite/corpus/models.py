"""Corpus and citation models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


@dataclass(frozen=True)
class Page:
    """One page of a source document.

    ``page_number`` is the 1-based position in the document's original
    pagination, kept even when neighbouring empty pages were dropped.
    """

    document_name: str
    page_number: int
    text: str

    def __post_init__(self) -> None:
        if self.page_number < 1:
            raise ValueError(f"page_number must be >= 1, got {self.page_number}")


@dataclass(frozen=True)
class Source:
    """A citation: a document and optionally a page within it."""

    document: str
    page: int | None = None
    snippet: str | None = None

    @property
    def key(self) -> tuple[str, int]:
        """Identity used for deduplication; a missing page counts as 0."""
        return (self.document, self.page or 0)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"document": self.document, "page": self.page}
        if self.snippet:
            data["snippet"] = self.snippet
        return data


@dataclass
class CorpusEntry:
    """A document registered in the retrieval index."""

    name: str
    content_hash: str
    page_count: int
    index_file_id: str | None = None
    ingested_at: datetime = field(default_factory=lambda: datetime.now(UTC))
