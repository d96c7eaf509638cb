"""Upload tagged corpus blobs into an OpenAI vector store."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pagecite.core.config import UpstreamConfig
from pagecite.core.exceptions import ConfigurationError, UpstreamError
from pagecite.core.logging import get_logger
from pagecite.corpus.tagger import index_filename

if TYPE_CHECKING:
    from openai import AsyncOpenAI

logger = get_logger(__name__)

VECTOR_STORE_NAME = "pagecite-corpus"


class OpenAICorpusIndexer:
    """Writes blobs as text files into the configured vector store."""

    provider = "openai"

    def __init__(self, config: UpstreamConfig):
        self.config = config
        self._client: AsyncOpenAI | None = None

    def _get_client(self) -> AsyncOpenAI:
        """Get or create async OpenAI client."""
        if self._client is None:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(api_key=self.config.api_key, base_url=self.config.base_url)
        return self._client

    async def ensure_vector_store(self) -> str:
        """Return the configured vector store id, creating a store if none is set."""
        if self.config.vector_store_id:
            return self.config.vector_store_id

        import openai

        try:
            store = await self._get_client().vector_stores.create(name=VECTOR_STORE_NAME)
        except openai.OpenAIError as e:
            raise UpstreamError(f"Failed to create vector store: {e}", provider=self.provider) from e

        self.config.vector_store_id = store.id
        logger.info("vector_store_created", vector_store_id=store.id)
        return store.id

    async def upload(self, document_name: str, blob: str) -> str:
        """Upload one blob and poll until the vector store has processed it."""
        import openai

        if not self.config.vector_store_id:
            raise ConfigurationError("UPSTREAM_VECTOR_STORE_ID is not set")

        client = self._get_client()
        filename = index_filename(document_name)
        try:
            uploaded = await client.files.create(
                file=(filename, blob.encode("utf-8"), "text/plain"),
                purpose="assistants",
            )
            indexed = await client.vector_stores.files.create_and_poll(
                vector_store_id=self.config.vector_store_id,
                file_id=uploaded.id,
            )
        except openai.OpenAIError as e:
            raise UpstreamError(f"Upload of {filename} failed: {e}", provider=self.provider) from e

        if indexed.status != "completed":
            raise UpstreamError(
                f"File processing did not complete. Final status: {indexed.status}",
                provider=self.provider,
            )

        logger.info("corpus_blob_indexed", document=document_name, file_id=uploaded.id)
        return uploaded.id

    async def remove(self, file_id: str) -> None:
        """Detach a file from the vector store and delete it."""
        import openai

        client = self._get_client()
        try:
            await client.vector_stores.files.delete(file_id, vector_store_id=self.config.vector_store_id)
            await client.files.delete(file_id)
        except openai.OpenAIError as e:
            raise UpstreamError(f"Removal of {file_id} failed: {e}", provider=self.provider) from e

        logger.info("corpus_blob_removed", file_id=file_id)
