"""Corpus ingestion: tag, hash, index and catalogue one document."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from pagecite.core.logging import get_logger
from pagecite.core.protocols import CorpusIndexer
from pagecite.corpus.catalog import CorpusCatalog
from pagecite.corpus.models import CorpusEntry, Page
from pagecite.corpus.tagger import content_hash, tag_document, validate_document_name

logger = get_logger(__name__)


@dataclass(frozen=True)
class IngestResult:
    """What happened to one ingested document."""

    entry: CorpusEntry
    uploaded: bool
    blob_length: int


class CorpusService:
    """Turns page lists into indexed, catalogued corpus blobs.

    Re-ingesting a document whose tagged blob hashes the same as the
    catalogued one is a no-op. A changed document replaces its previous
    index file.
    """

    def __init__(self, indexer: CorpusIndexer, catalog: CorpusCatalog):
        self.indexer = indexer
        self.catalog = catalog

    async def ingest(self, document_name: str, pages: Iterable[Page]) -> IngestResult:
        name = validate_document_name(document_name)
        page_list = list(pages)
        blob = tag_document(name, page_list)
        if not blob:
            raise ValueError(f"Document '{name}' has no page text to index")

        digest = content_hash(blob)
        existing = self.catalog.get(name)
        if existing is not None and self.catalog.is_current(name, digest):
            logger.info("corpus_document_unchanged", document=name, content_hash=digest[:12])
            return IngestResult(entry=existing, uploaded=False, blob_length=len(blob))

        file_id = await self.indexer.upload(name, blob)
        entry = CorpusEntry(
            name=name,
            content_hash=digest,
            page_count=sum(1 for page in page_list if page.text.strip()),
            index_file_id=file_id,
        )
        previous = self.catalog.register(entry)
        if previous is not None and previous.index_file_id and previous.index_file_id != file_id:
            await self.indexer.remove(previous.index_file_id)

        logger.info(
            "corpus_document_ingested",
            document=name,
            pages=entry.page_count,
            blob_length=len(blob),
            replaced=previous is not None,
        )
        return IngestResult(entry=entry, uploaded=True, blob_length=len(blob))
