"""Citation grammars and extraction."""

from pagecite.citations.extractor import (
    CitationExtractor,
    SourceSet,
    clean_answer,
    sort_sources,
    strip_citations,
    strip_markers,
    strip_sources_trailer,
)
from pagecite.citations.grammars import CitationMatch, MarkerGrammar

__all__ = [
    "CitationExtractor",
    "CitationMatch",
    "MarkerGrammar",
    "SourceSet",
    "clean_answer",
    "sort_sources",
    "strip_citations",
    "strip_markers",
    "strip_sources_trailer",
]
