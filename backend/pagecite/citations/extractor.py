"""Citation extraction, deduplication and answer cleanup."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, replace

from pagecite.citations.grammars import (
    GRAMMAR_ORDER,
    GRAMMARS,
    PROSE_GRAMMARS,
    STRIPPABLE,
    CitationMatch,
    ExtractionContext,
    MarkerGrammar,
)
from pagecite.corpus.models import Source


SOURCES_HEADING = re.compile(
    r"^[ \t>#*_\-]*(?:sources?|references?|citations?|المصادر|المصدر|المراجع)[ \t*_]*[:：]",
    re.IGNORECASE | re.MULTILINE,
)
_BLANK_LINE = re.compile(r"\n[ \t]*\n")
_CLAUSE_END = re.compile(r"[ \t]*(?:$|[.,;:!?،)\]\n])")
_DANGLING_LEAD = re.compile(
    r"(?<!\w)(?:see(?:\s+also)?|cf\.|per|according\s+to"
    r"|as\s+(?:stated|noted|shown|described|mentioned)(?:\s+(?:on|in))?"
    r"|on|in|at|from|انظر|راجع|في|من)[ \t]*[,:]?[ \t]*$",
    re.IGNORECASE,
)


def sort_sources(sources: Iterable[Source]) -> list[Source]:
    """Order by document name, then page ascending (page-less first)."""
    return sorted(sources, key=lambda s: (s.document.casefold(), s.document, s.page or 0))


@dataclass
class _Evidence:
    source: Source
    canonical: bool


class SourceSet:
    """Deduplicated accumulation of sources for one answer.

    Keyed on ``(document, page)``. A snippet from a canonical marker
    replaces any other; otherwise the first non-empty snippet is kept.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[str, int], _Evidence] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, source: Source, *, canonical: bool = False) -> None:
        existing = self._entries.get(source.key)
        if existing is None:
            self._entries[source.key] = _Evidence(source, canonical)
            return

        if source.snippet and ((canonical and not existing.canonical) or not existing.source.snippet):
            existing.source = replace(existing.source, snippet=source.snippet)
            existing.canonical = existing.canonical or canonical
        elif canonical:
            existing.canonical = True

    def add_matches(self, matches: Iterable[CitationMatch]) -> None:
        for match in matches:
            self.add(match.source, canonical=match.grammar is MarkerGrammar.CANONICAL)

    def merge(self, other: SourceSet) -> None:
        for evidence in other._entries.values():
            self.add(evidence.source, canonical=evidence.canonical)

    def finalize(self) -> list[Source]:
        """Fold page-less entries into paged siblings and return them sorted.

        A page-less source survives only when nothing more specific was
        found for the same document. Its snippet, if any, moves to the
        lowest page of that document when that page has none.
        """
        by_document: dict[str, list[Source]] = {}
        for evidence in self._entries.values():
            by_document.setdefault(evidence.source.document, []).append(evidence.source)

        result: list[Source] = []
        for sources in by_document.values():
            paged = sort_sources(s for s in sources if s.page is not None)
            pageless = [s for s in sources if s.page is None]
            if not paged:
                result.extend(pageless)
                continue
            carried = next((s.snippet for s in pageless if s.snippet), None)
            if carried and not paged[0].snippet:
                paged[0] = replace(paged[0], snippet=carried)
            result.extend(paged)

        return sort_sources(result)


class CitationExtractor:
    """Runs every citation grammar over a text and unions the results.

    Grammars run in their fixed order. A match overlapping a span already
    claimed by an earlier grammar is discarded, so a bare "page 3" inside
    "page 3 of Policy.pdf" is not attributed twice.
    """

    def __init__(self, window: int = 200, snippet_length: int = 240):
        self.window = window
        self.snippet_length = snippet_length

    def _context(
        self,
        known_documents: Iterable[str],
        default_document: str | None,
        with_snippets: bool,
    ) -> ExtractionContext:
        return ExtractionContext(
            known_documents=tuple(sorted({d for d in known_documents if d})),
            default_document=default_document,
            with_snippets=with_snippets,
            window=self.window,
            snippet_length=self.snippet_length,
        )

    def find(
        self,
        text: str,
        known_documents: Iterable[str] = (),
        default_document: str | None = None,
        with_snippets: bool = False,
    ) -> list[CitationMatch]:
        """Return all non-overlapping matches in grammar order."""
        if not text:
            return []

        context = self._context(known_documents, default_document, with_snippets)
        claimed: list[CitationMatch] = []
        for grammar in GRAMMAR_ORDER:
            fresh = [
                match
                for match in GRAMMARS[grammar](text, context)
                if not any(match.overlaps(prior) for prior in claimed)
            ]
            claimed.extend(fresh)
        return claimed

    def extract(
        self,
        text: str,
        known_documents: Iterable[str] = (),
        default_document: str | None = None,
        with_snippets: bool = False,
    ) -> SourceSet:
        """Extract sources from text into a fresh ``SourceSet``."""
        sources = SourceSet()
        sources.add_matches(self.find(text, known_documents, default_document, with_snippets))
        return sources

    def extract_sources(
        self,
        text: str,
        known_documents: Iterable[str] = (),
        default_document: str | None = None,
        with_snippets: bool = False,
    ) -> list[Source]:
        """Extract, deduplicate and sort in one call."""
        return self.extract(text, known_documents, default_document, with_snippets).finalize()


def _tidy(text: str) -> str:
    text = re.sub(r"\(\s*\)|\[\s*\]", "", text)
    text = re.sub(r"[ \t]+([.,;:!?،])", r"\1", text)
    text = re.sub(r"[,،;:]+([.!?])", r"\1", text)
    text = re.sub(r"^[ \t]*[,،;:][ \t]*", "", text, flags=re.MULTILINE)
    text = re.sub(r"[ \t]{2,}", " ", text)
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def strip_markers(text: str) -> str:
    """Remove canonical and annotation markers from display text."""
    for pattern in STRIPPABLE:
        text = pattern.sub("", text)
    return _tidy(text)


def strip_citations(text: str, matches: Iterable[CitationMatch]) -> str:
    """Cut every matched citation span out of ``text``.

    ``matches`` must come from ``CitationExtractor.find`` on this same text.
    When a prose citation ends its clause, a lead-in left hanging before it
    ("see", "as noted on", "في") goes too.
    """
    spans: dict[tuple[int, int], bool] = {}
    for match in matches:
        key = (match.start, match.end)
        spans[key] = spans.get(key, False) or match.grammar in PROSE_GRAMMARS

    for (start, end), prose in sorted(spans.items(), reverse=True):
        head, tail = text[:start], text[end:]
        if prose and _CLAUSE_END.match(tail):
            head = _DANGLING_LEAD.sub("", head)
        text = head + tail
    return text


def strip_sources_trailer(text: str) -> str:
    """Cut a trailing "Sources:" / "المصادر:" block.

    Only the last heading counts, and only when no blank-line separated
    paragraph follows it.
    """
    headings = list(SOURCES_HEADING.finditer(text))
    if not headings:
        return text
    last = headings[-1]
    if _BLANK_LINE.search(text[last.start() :].rstrip()):
        return text
    return text[: last.start()].rstrip()


def clean_answer(text: str, has_sources: bool, matches: Iterable[CitationMatch] = ()) -> str:
    """Display text for a finished answer, with the cited spans in ``matches`` removed."""
    cleaned = strip_markers(strip_citations(text, matches))
    if has_sources:
        cleaned = strip_sources_trailer(cleaned)
    return cleaned
