"""API routes for cited chat and corpus management."""

import contextlib
import time

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, HTTPException
from sse_starlette.sse import EventSourceResponse

from pagecite.api.dependencies import client_key
from pagecite.api.schemas import (
    ChatRequest,
    CorpusDocumentInfo,
    CorpusIngestRequest,
    CorpusIngestResponse,
    CorpusListResponse,
    HealthResponse,
)
from pagecite.core.config import AppConfig
from pagecite.core.di_container import DIContainer
from pagecite.core.exceptions import AdmissionError, RateLimitedError
from pagecite.core.logging import log_request
from pagecite.core.rate_limiter import RateLimiter
from pagecite.corpus.catalog import CorpusCatalog
from pagecite.corpus.models import CorpusEntry, Page
from pagecite.corpus.service import CorpusService
from pagecite.streaming.coordinator import StreamCoordinator
from pagecite.streaming.frames import DoneFrame, ErrorFrame, to_sse

router = APIRouter()

CHAT_STREAM_PATH = "/api/v1/chat/stream"


def _document_info(entry: CorpusEntry) -> CorpusDocumentInfo:
    return CorpusDocumentInfo(
        name=entry.name,
        page_count=entry.page_count,
        content_hash=entry.content_hash,
        index_file_id=entry.index_file_id,
        ingested_at=entry.ingested_at,
    )


@router.post("/chat/stream")
@inject
async def chat_stream(
    request: ChatRequest,
    key: str = Depends(client_key),  # noqa: B008
    coordinator: StreamCoordinator = Depends(Provide[DIContainer.coordinator]),  # noqa: B008
):
    """Answer a question as an SSE stream of delta frames and one terminal frame.

    Rate-limited and content-blocked questions are rejected with a JSON
    error before any upstream call.
    """
    coordinator.upstream.check_ready()

    try:
        session = coordinator.admit(key, request.message, request.locale)
    except AdmissionError as e:
        log_request(
            method="POST",
            path=CHAT_STREAM_PATH,
            client_key=key,
            question=request.message,
            duration_ms=0,
            status="rate_limited" if isinstance(e, RateLimitedError) else "blocked",
            error=e.message,
        )
        raise

    async def event_generator():
        status = "aborted"
        answer = None
        error = None
        source_count = None
        try:
            async with contextlib.aclosing(coordinator.stream(session)) as frames:
                async for frame in frames:
                    if isinstance(frame, DoneFrame):
                        status, answer, source_count = "success", frame.answer, len(frame.sources)
                    elif isinstance(frame, ErrorFrame):
                        status, answer, error = "error", frame.answer, frame.error
                    yield to_sse(frame)
        finally:
            log_request(
                method="POST",
                path=CHAT_STREAM_PATH,
                client_key=key,
                question=session.question,
                answer=answer,
                source_count=source_count,
                duration_ms=session.elapsed_ms,
                status=status,
                error=error,
            )

    return EventSourceResponse(event_generator(), sep="\n")


@router.get("/health", response_model=HealthResponse)
@inject
async def health(
    config: AppConfig = Depends(Provide[DIContainer.config]),  # noqa: B008
    catalog: CorpusCatalog = Depends(Provide[DIContainer.catalog]),  # noqa: B008
) -> HealthResponse:
    """Check service health and configuration."""
    return HealthResponse(
        status="ok",
        upstream_provider=config.upstream.provider,
        upstream_model=config.upstream.model,
        index_configured=bool(config.upstream.vector_store_id),
        corpus_documents=len(catalog),
    )


@router.get("/corpus", response_model=CorpusListResponse)
@inject
async def list_corpus(
    catalog: CorpusCatalog = Depends(Provide[DIContainer.catalog]),  # noqa: B008
) -> CorpusListResponse:
    """List catalogued documents."""
    documents = [_document_info(entry) for entry in catalog.list_entries()]
    return CorpusListResponse(
        documents=documents,
        total=len(documents),
        default_document=catalog.default_document,
    )


@router.post("/corpus", response_model=CorpusIngestResponse)
@inject
async def ingest_document(
    request: CorpusIngestRequest,
    key: str = Depends(client_key),  # noqa: B008
    rate_limiter: RateLimiter = Depends(Provide[DIContainer.rate_limiter]),  # noqa: B008
    corpus_service: CorpusService = Depends(Provide[DIContainer.corpus_service]),  # noqa: B008
) -> CorpusIngestResponse:
    """Tag a paginated document and upload it to the retrieval index.

    Unchanged content (same tagged blob hash) is not uploaded again.
    """
    start_time = time.perf_counter()

    admission = rate_limiter.admit(key, "upload")
    if not admission.allowed:
        raise RateLimitedError(admission.reason, admission.retry_after_ms, endpoint="upload")

    pages = [
        Page(document_name=request.document_name, page_number=page.page_number, text=page.text)
        for page in request.pages
    ]
    try:
        result = await corpus_service.ingest(request.document_name, pages)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    log_request(
        method="POST",
        path="/api/v1/corpus",
        client_key=key,
        question=f"ingest {result.entry.name}",
        duration_ms=(time.perf_counter() - start_time) * 1000,
        status="success" if result.uploaded else "unchanged",
    )

    return CorpusIngestResponse(
        document=_document_info(result.entry),
        uploaded=result.uploaded,
        blob_length=result.blob_length,
    )
