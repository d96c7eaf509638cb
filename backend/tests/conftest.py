"""Common test fixtures."""

import asyncio

import pytest

from pagecite.citations.extractor import CitationExtractor
from pagecite.core.config import (
    AppConfig,
    CorpusConfig,
    FilterConfig,
    RateLimitConfig,
    StreamConfig,
    UpstreamConfig,
)
from pagecite.core.content_filter import ContentFilter
from pagecite.core.di_container import container as di_container
from pagecite.core.rate_limiter import RateLimiter
from pagecite.corpus.catalog import CorpusCatalog
from pagecite.streaming.coordinator import StreamCoordinator
from pagecite.upstream.prompts import SYSTEM_INSTRUCTIONS


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MockUpstream:
    """Scripted upstream stream for testing.

    ``events`` are yielded in order; an exception instance in the list is
    raised at that point instead.
    """

    name = "mock"

    def __init__(self, events=None, hold: asyncio.Event | None = None):
        self.events = list(events or [])
        self.hold = hold
        self.requests = []
        self.closed = False
        self.ready_error: Exception | None = None

    def check_ready(self) -> None:
        if self.ready_error is not None:
            raise self.ready_error

    async def stream(self, request):
        self.requests.append(request)
        try:
            for event in self.events:
                await asyncio.sleep(0)
                if isinstance(event, Exception):
                    raise event
                yield event
            if self.hold is not None:
                await self.hold.wait()
        finally:
            self.closed = True


class MockIndexer:
    """In-memory corpus indexer for testing."""

    def __init__(self):
        self.uploads: dict[str, tuple[str, str]] = {}
        self.removed: list[str] = []

    async def upload(self, document_name: str, blob: str) -> str:
        file_id = f"file-{len(self.uploads) + 1}"
        self.uploads[file_id] = (document_name, blob)
        return file_id

    async def remove(self, file_id: str) -> None:
        self.removed.append(file_id)


@pytest.fixture
def test_config() -> AppConfig:
    """Create test configuration."""
    return AppConfig(
        debug=True,
        log_level="DEBUG",
        upstream=UpstreamConfig(
            provider="openai",
            model="gpt-4.1",
            api_key="test-key",
            vector_store_id="vs_test",
        ),
        rate_limit=RateLimitConfig(chat_burst=3, chat_daily=5, upload_per_minute=2),
        filter=FilterConfig(max_input_length=2000),
        stream=StreamConfig(frame_buffer_size=4),
        corpus=CorpusConfig(documents=[]),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limiter(test_config: AppConfig, clock: FakeClock) -> RateLimiter:
    return RateLimiter.from_config(test_config.rate_limit, clock=clock)


@pytest.fixture
def content_filter() -> ContentFilter:
    return ContentFilter(instructions=SYSTEM_INSTRUCTIONS)


@pytest.fixture
def catalog() -> CorpusCatalog:
    return CorpusCatalog()


@pytest.fixture
def mock_upstream() -> MockUpstream:
    return MockUpstream()


@pytest.fixture
def mock_indexer() -> MockIndexer:
    return MockIndexer()


@pytest.fixture
def make_coordinator(rate_limiter, content_filter, catalog):
    """Build a coordinator around a scripted upstream."""

    def _make(upstream: MockUpstream, frame_buffer_size: int = 4) -> StreamCoordinator:
        return StreamCoordinator(
            upstream=upstream,
            rate_limiter=rate_limiter,
            content_filter=content_filter,
            extractor=CitationExtractor(),
            catalog=catalog,
            index_ref="vs_test",
            frame_buffer_size=frame_buffer_size,
        )

    return _make


@pytest.fixture
def di_container_fixture():
    """Provide the DI container for testing."""
    yield di_container


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """sse-starlette keeps a module-level exit event bound to the first loop."""
    from sse_starlette.sse import AppStatus

    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
    yield
    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None


@pytest.fixture
def make_upstream():
    """Factory for scripted upstream streams."""
    return MockUpstream
