"""Per-page text extraction from PDF files."""

from __future__ import annotations

import io
from pathlib import Path


def extract_page_texts(source: str | Path | bytes) -> list[str]:
    """Extract text page by page using pdfplumber.

    Returns the full page sequence; pages without extractable text come
    back as empty strings so callers keep original page numbering.

    Args:
        source: Path to a PDF or its raw bytes

    Raises:
        ImportError: If pdfplumber is not installed
    """
    try:
        import pdfplumber
    except ImportError as e:
        raise ImportError(
            "pdfplumber is required for PDF parsing. Install with: pip install pdfplumber"
        ) from e

    handle = io.BytesIO(source) if isinstance(source, bytes) else Path(source)

    page_texts = []
    with pdfplumber.open(handle) as pdf:
        for page in pdf.pages:
            text = page.extract_text() or ""
            page_texts.append(" ".join(text.split()))

    return page_texts
