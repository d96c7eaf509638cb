"""Page tagging: turn paginated text into a page-addressable corpus blob.

Every non-empty page becomes a block headed by a canonical marker::

    [DOCUMENT: Policy.pdf | PAGE: 5]
    <page text>

Blocks are joined by ``BLOCK_SEPARATOR``. The marker is the only way page
provenance survives indexing, so document names that would break the
marker grammar are rejected.
"""

import hashlib
import re
import time
from collections.abc import Iterable

from pagecite.corpus.models import Page

BLOCK_SEPARATOR = "\n\n---\n\n"
MARKER_TEMPLATE = "[DOCUMENT: {name} | PAGE: {page}]"
INDEX_SUFFIX = ".txt"

_FORBIDDEN_NAME_CHARS = re.compile(r"[\[\]|\r\n]")
_UNSAFE_NAME_CHARS = re.compile(r"[<>:\"/|?*\x00-\x1f`~!@#$%^&()+={}\[\];',]")
_MAX_NAME_LENGTH = 200


def format_marker(document_name: str, page_number: int) -> str:
    """Render the canonical marker for one page."""
    return MARKER_TEMPLATE.format(name=document_name, page=page_number)


def validate_document_name(document_name: str) -> str:
    """Return the stripped name or raise ValueError if it cannot be tagged."""
    name = document_name.strip()
    if not name:
        raise ValueError("Document name must not be empty")
    if _FORBIDDEN_NAME_CHARS.search(name):
        raise ValueError(f"Document name contains marker characters: {document_name!r}")
    return name


def tag_document(document_name: str, pages: Iterable[Page]) -> str:
    """Build a Tagged Corpus Blob from pages carrying their own numbers.

    Pages whose text is empty after trimming contribute nothing.
    """
    name = validate_document_name(document_name)
    blocks = []
    for page in pages:
        text = page.text.strip()
        if not text:
            continue
        blocks.append(f"{format_marker(name, page.page_number)}\n{text}")
    return BLOCK_SEPARATOR.join(blocks)


def tag_pages(document_name: str, page_texts: list[str]) -> str:
    """Build a Tagged Corpus Blob from raw per-page texts.

    ``page_texts`` is the full original page sequence, with empty strings
    for pages that had no extractable text; marker numbers are the 1-based
    positions in that sequence.
    """
    pages = [
        Page(document_name=document_name, page_number=index, text=text)
        for index, text in enumerate(page_texts, start=1)
    ]
    return tag_document(document_name, pages)


def content_hash(blob: str) -> str:
    """SHA-256 of a tagged blob, used to detect unchanged re-ingestion."""
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()


def sanitize_document_name(filename: str) -> str:
    """Make an uploaded filename safe for storage and for the marker grammar.

    Strips path components and special characters, collapses whitespace and
    underscores, caps the length, and lower-cases the extension. Arabic and
    other Unicode letters are kept.
    """
    sanitized = re.sub(r"[/\\]", "", filename).replace("\0", "")

    last_dot = sanitized.rfind(".")
    name = sanitized[:last_dot] if last_dot > 0 else sanitized
    ext = sanitized[last_dot:] if last_dot > 0 else ""

    name = _UNSAFE_NAME_CHARS.sub("", name)
    name = re.sub(r"[\s_]+", "_", name).strip("_")
    name = name[:_MAX_NAME_LENGTH]
    if not name:
        name = f"document_{int(time.time() * 1000)}"

    return name + _UNSAFE_NAME_CHARS.sub("", ext.lower())


def index_filename(document_name: str) -> str:
    """Filename used when uploading a blob to the retrieval index."""
    return document_name + INDEX_SUFFIX


def document_name_from_index(filename: str) -> str:
    """Map a retrieval-index filename back to its document name.

    ``Policy.pdf.txt`` becomes ``Policy.pdf``; a plain ``notes.txt`` is
    left alone since its stem has no extension of its own.
    """
    name = filename.strip()
    if name.lower().endswith(INDEX_SUFFIX):
        stem = name[: -len(INDEX_SUFFIX)]
        if "." in stem.lstrip("."):
            return stem
    return name
