"""In-memory catalog of documents present in the retrieval index."""

import threading

from pagecite.core.logging import get_logger
from pagecite.corpus.models import CorpusEntry

logger = get_logger(__name__)


class CorpusCatalog:
    """Registry of indexed documents with thread-safe access.

    Seeded from configuration at startup and updated by ingestion. Lost on
    restart; the retrieval index itself is the durable copy.
    """

    def __init__(self, documents: list[str] | None = None, default_document: str | None = None):
        self._entries: dict[str, CorpusEntry] = {}
        self._default = default_document
        self._lock = threading.Lock()
        for name in documents or []:
            self._entries[name] = CorpusEntry(name=name, content_hash="", page_count=0)

    def get(self, name: str) -> CorpusEntry | None:
        """Get a document entry by name."""
        with self._lock:
            return self._entries.get(name)

    def is_current(self, name: str, content_hash: str) -> bool:
        """True if ``name`` is already indexed with exactly this content."""
        entry = self.get(name)
        return entry is not None and entry.content_hash == content_hash

    def register(self, entry: CorpusEntry) -> CorpusEntry | None:
        """Add or replace a document.

        Returns:
            The replaced entry, if one existed
        """
        with self._lock:
            previous = self._entries.get(entry.name)
            self._entries[entry.name] = entry
        logger.info(
            "corpus_document_registered",
            document=entry.name,
            pages=entry.page_count,
            replaced=previous is not None,
        )
        return previous

    def list_entries(self) -> list[CorpusEntry]:
        """All entries sorted by name."""
        with self._lock:
            return sorted(self._entries.values(), key=lambda e: e.name)

    def document_names(self) -> list[str]:
        """Known document names sorted ascending."""
        return [entry.name for entry in self.list_entries()]

    @property
    def default_document(self) -> str | None:
        """Configured default, else the first document by name."""
        if self._default:
            return self._default
        names = self.document_names()
        return names[0] if names else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
