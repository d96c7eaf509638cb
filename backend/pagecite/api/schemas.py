"""Request and response schemas for the API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

# --- Request Models ---


class ChatRequest(BaseModel):
    """Chat request schema.

    Length and content are enforced by the content filter so that rejected
    questions get a categorized 400 instead of a validation error.
    """

    message: str = Field(..., description="User question")
    locale: Literal["en", "ar"] | None = Field(
        default=None, description="Answer locale; detected from the question when omitted"
    )


class PageIn(BaseModel):
    """One page of an ingested document."""

    page_number: int = Field(..., ge=1, description="1-based page number in the original")
    text: str = Field(default="", description="Extracted page text")


class CorpusIngestRequest(BaseModel):
    """Paginated document to tag and index."""

    document_name: str = Field(..., min_length=1, max_length=255, description="Document name")
    pages: list[PageIn] = Field(..., min_length=1, description="Pages in original order")


# --- Response Models ---


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    upstream_provider: str = Field(..., description="Active upstream provider")
    upstream_model: str = Field(..., description="Active model")
    index_configured: bool = Field(..., description="Whether a retrieval index is set")
    corpus_documents: int = Field(..., description="Documents in the catalog")


class CorpusDocumentInfo(BaseModel):
    """Catalogued document information."""

    name: str
    page_count: int
    content_hash: str
    index_file_id: str | None = None
    ingested_at: datetime


class CorpusListResponse(BaseModel):
    """Catalogued documents."""

    documents: list[CorpusDocumentInfo] = Field(default_factory=list)
    total: int = 0
    default_document: str | None = None


class CorpusIngestResponse(BaseModel):
    """Result of one ingestion."""

    document: CorpusDocumentInfo
    uploaded: bool = Field(..., description="False when the content was already indexed")
    blob_length: int
