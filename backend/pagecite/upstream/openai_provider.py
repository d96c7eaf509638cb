"""OpenAI Responses API provider with the file_search tool."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from pagecite.core.config import UpstreamConfig
from pagecite.core.exceptions import ConfigurationError, UpstreamError
from pagecite.core.logging import get_logger
from pagecite.corpus.tagger import document_name_from_index
from pagecite.upstream.events import (
    Completed,
    OtherEvent,
    RetrievalResult,
    RetrievalResults,
    TextDelta,
    UpstreamEvent,
    UpstreamRequest,
)
from pagecite.upstream.factory import UpstreamFactory

if TYPE_CHECKING:
    from openai import AsyncOpenAI

logger = get_logger(__name__)


@UpstreamFactory.register("openai")
class OpenAIResponsesProvider:
    """Streams answers from the Responses API, searching one vector store."""

    name = "openai"

    def __init__(self, config: UpstreamConfig):
        self.config = config
        self._client: AsyncOpenAI | None = None

    def _get_client(self) -> AsyncOpenAI:
        """Get or create async OpenAI client."""
        if self._client is None:
            from openai import AsyncOpenAI

            client_kwargs: dict[str, Any] = {"api_key": self.config.api_key}
            if self.config.base_url:
                client_kwargs["base_url"] = self.config.base_url
            self._client = AsyncOpenAI(**client_kwargs)
        return self._client

    def check_ready(self) -> None:
        if not self.config.api_key:
            raise ConfigurationError("UPSTREAM_API_KEY is not set")
        if not self.config.vector_store_id:
            raise ConfigurationError("UPSTREAM_VECTOR_STORE_ID is not set")

    async def stream(self, request: UpstreamRequest) -> AsyncIterator[UpstreamEvent]:
        """Open a streaming response and translate its events."""
        import openai

        index_ref = request.index_ref or self.config.vector_store_id
        if not index_ref:
            raise ConfigurationError("No retrieval index reference configured")

        try:
            response_stream = await self._get_client().responses.create(
                model=self.config.model,
                temperature=self.config.temperature,
                input=[
                    {"role": "developer", "content": request.system_instructions},
                    {"role": "user", "content": request.question},
                ],
                tools=[
                    {
                        "type": "file_search",
                        "vector_store_ids": [index_ref],
                        "max_num_results": request.max_results,
                    }
                ],
                tool_choice="required",
                include=["file_search_call.results"],
                stream=True,
            )
        except openai.OpenAIError as e:
            raise UpstreamError(f"Failed to open stream: {e}", provider=self.name) from e

        try:
            async for event in response_stream:
                yield self._translate(event)
        except openai.OpenAIError as e:
            raise UpstreamError(f"Stream interrupted: {e}", provider=self.name) from e
        finally:
            await response_stream.close()

    def _translate(self, event: Any) -> UpstreamEvent:
        kind = getattr(event, "type", "unknown")

        if kind == "response.output_text.delta":
            return TextDelta(text=event.delta)

        if kind == "response.output_item.done" and getattr(event.item, "type", None) == "file_search_call":
            results = [
                RetrievalResult(
                    filename=document_name_from_index(result.filename or ""),
                    text=result.text or "",
                    score=result.score,
                )
                for result in (event.item.results or [])
            ]
            logger.debug("retrieval_results_received", count=len(results))
            return RetrievalResults(results=results)

        if kind == "response.completed":
            return Completed(final_output=getattr(event.response, "output_text", "") or "")

        if kind == "response.failed":
            error = getattr(event.response, "error", None)
            message = getattr(error, "message", None) or "response failed"
            raise UpstreamError(message, provider=self.name)

        if kind == "error":
            raise UpstreamError(getattr(event, "message", "stream error"), provider=self.name)

        return OtherEvent(kind=kind)
