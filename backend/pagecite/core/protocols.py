"""Protocol interfaces for dependency injection."""

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from pagecite.upstream.events import UpstreamEvent, UpstreamRequest


@runtime_checkable
class UpstreamStream(Protocol):
    """Completion + retrieval service that answers as an ordered event stream."""

    name: str

    def check_ready(self) -> None:
        """Raise ConfigurationError if the service cannot be called."""
        ...

    def stream(self, request: UpstreamRequest) -> AsyncIterator[UpstreamEvent]:
        """Open a stream for one question.

        Events are yielded in upstream order. Closing the iterator
        (``aclose``) must release the underlying connection.

        Raises:
            UpstreamError: On transport or service failure
        """
        ...


@runtime_checkable
class CorpusIndexer(Protocol):
    """Writes tagged corpus blobs into the retrieval index."""

    async def upload(self, document_name: str, blob: str) -> str:
        """Upload a blob and wait until it is searchable.

        Returns:
            Index file identifier
        """
        ...

    async def remove(self, file_id: str) -> None:
        """Remove a previously uploaded blob from the index."""
        ...
