"""Citation marker grammars.

Each grammar is a pure function ``(text, context) -> list[CitationMatch]``
recognising one family of provenance markers. The set is closed and
ordered; ``pagecite.citations.extractor`` unions them in ``GRAMMAR_ORDER``.

Dialects, most to least authoritative:

* ``CANONICAL``         ``[DOCUMENT: Policy.pdf | PAGE: 5]``
* ``ANNOTATION_PAGED``  ``【4:0†Policy.pdf†p5】`` / ``【4:0†Policy.pdf†page 5】``
* ``ANNOTATION``        ``【4:0†Policy.pdf】`` (no page)
* ``NATURAL_LANGUAGE``  ``page 3 of Policy.pdf``, ``Policy.pdf, pages 3, 5``,
                        ``صفحة 3 من Policy.pdf``, ``[Policy.pdf] صفحة 3``
* ``HEURISTIC_PAGE``    bare ``page 7`` / ``صفحة 7``, attributed to the nearest
                        known filename within the context window, else the
                        default document
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache

from pagecite.corpus.models import Source
from pagecite.corpus.tagger import BLOCK_SEPARATOR, document_name_from_index


class MarkerGrammar(str, Enum):  # noqa: UP042
    """Named citation marker dialects."""

    CANONICAL = "canonical"
    ANNOTATION_PAGED = "annotation_paged"
    ANNOTATION = "annotation"
    NATURAL_LANGUAGE = "natural_language"
    HEURISTIC_PAGE = "heuristic_page"


@dataclass(frozen=True)
class CitationMatch:
    """One recognised citation and where it sits in the text."""

    source: Source
    grammar: MarkerGrammar
    start: int
    end: int

    def overlaps(self, other: CitationMatch) -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class ExtractionContext:
    """What a grammar may know beyond the text itself."""

    known_documents: tuple[str, ...] = ()
    default_document: str | None = None
    with_snippets: bool = False
    window: int = 200
    snippet_length: int = 240


CANONICAL_PATTERN = re.compile(
    r"\[DOCUMENT:\s*(?P<document>[^\]\n|]+?)\s*\|\s*PAGE:\s*(?P<page>\d+)\s*\]",
    re.IGNORECASE,
)
ANNOTATION_PAGED_PATTERN = re.compile(
    r"【(?:\d+(?::\d+)?†)?(?P<document>[^†】\n]+?)†\s*(?:p\.?|pg\.?|page|صفحة)\s*(?P<page>\d+)\s*】",
    re.IGNORECASE,
)
ANNOTATION_PATTERN = re.compile(r"【(?:\d+(?::\d+)?†)?(?P<document>[^†】\n]+?)】")

# Comma-separated page lists only after a plural page word
_PAGE_WORD = r"(?:(?P<plural>(?<!\w)(?:pages|pp\.)|صفحات)|(?<!\w)(?:page|p\.)|صفحة)"
_PAGE_LIST = (
    r"(?P<pages>\d+(?(plural)"
    r"(?:\s*(?:,|،|and|&|و)\s*\d+)*"
    r"|(?:\s*(?:and|&|و)\s*\d+)*))"
)
_GENERIC_FILENAME = r"[^\s\[\]【】|,،;()\"']+?\.(?:pdf|txt|docx?|md|html?)(?!\w|\.\w)"
_LINKER = r"(?:of|from|in|من|في)"

HEURISTIC_PATTERN = re.compile(rf"{_PAGE_WORD}\s*{_PAGE_LIST}(?!\w)", re.IGNORECASE)
_PAGE_NUMBER = re.compile(r"\d+")


def _filename_pattern(known_documents: tuple[str, ...]) -> str:
    known = sorted(known_documents, key=len, reverse=True)
    alternatives = [re.escape(name) for name in known if name]
    alternatives.append(_GENERIC_FILENAME)
    return "(?:" + "|".join(alternatives) + ")"


@lru_cache(maxsize=64)
def _natural_language_patterns(known_documents: tuple[str, ...]) -> tuple[re.Pattern, ...]:
    filename = _filename_pattern(known_documents)
    forward = rf"{_PAGE_WORD}\s*{_PAGE_LIST}\s+{_LINKER}\s+(?:the\s+)?\[?(?P<document>{filename})\]?"
    reverse = rf"\[?(?P<document>{filename})\]?\s*(?:[,:\-–—(]\s*)?{_PAGE_WORD}\s*{_PAGE_LIST}(?!\w)"
    return (re.compile(forward, re.IGNORECASE), re.compile(reverse, re.IGNORECASE))


def _resolve_document(name: str, context: ExtractionContext) -> str:
    """Map a matched filename to the known spelling, if there is one."""
    candidate = document_name_from_index(name.strip())
    lowered = candidate.casefold()
    for known in context.known_documents:
        if known.casefold() == lowered:
            return known
    return candidate


def _looks_like_document(name: str, context: ExtractionContext) -> bool:
    if "." in name.strip(". "):
        return True
    lowered = name.casefold()
    return any(known.casefold() == lowered for known in context.known_documents)


def _window_snippet(text: str, start: int, end: int, context: ExtractionContext) -> str | None:
    half = context.snippet_length // 2
    snippet = " ".join(text[max(0, start - half) : end + half].split())
    return snippet or None


def _marker_snippet(text: str, end: int, context: ExtractionContext) -> str | None:
    """Page text following a canonical marker, up to the next block."""
    following = text[end:]
    cut = len(following)
    next_marker = CANONICAL_PATTERN.search(following)
    if next_marker:
        cut = next_marker.start()
    separator = following.find(BLOCK_SEPARATOR.strip())
    if separator != -1:
        cut = min(cut, separator)
    snippet = " ".join(following[:cut].split())
    if len(snippet) > context.snippet_length:
        snippet = snippet[: context.snippet_length].rsplit(" ", 1)[0]
    return snippet or None


def _pages(raw: str) -> list[int]:
    return [int(number) for number in _PAGE_NUMBER.findall(raw) if int(number) > 0]


def match_canonical(text: str, context: ExtractionContext) -> list[CitationMatch]:
    """``[DOCUMENT: name | PAGE: n]`` markers written by the page tagger."""
    matches = []
    for m in CANONICAL_PATTERN.finditer(text):
        page = int(m.group("page"))
        if page < 1:
            continue
        snippet = _marker_snippet(text, m.end(), context) if context.with_snippets else None
        source = Source(document=m.group("document").strip(), page=page, snippet=snippet)
        matches.append(CitationMatch(source, MarkerGrammar.CANONICAL, m.start(), m.end()))
    return matches


def match_annotation_paged(text: str, context: ExtractionContext) -> list[CitationMatch]:
    """Provider-native annotations carrying a page segment."""
    matches = []
    for m in ANNOTATION_PAGED_PATTERN.finditer(text):
        page = int(m.group("page"))
        name = m.group("document")
        if page < 1 or not _looks_like_document(name, context):
            continue
        snippet = _window_snippet(text, m.start(), m.end(), context) if context.with_snippets else None
        source = Source(document=_resolve_document(name, context), page=page, snippet=snippet)
        matches.append(CitationMatch(source, MarkerGrammar.ANNOTATION_PAGED, m.start(), m.end()))
    return matches


def match_annotation(text: str, context: ExtractionContext) -> list[CitationMatch]:
    """Provider-native annotations naming only a file."""
    matches = []
    for m in ANNOTATION_PATTERN.finditer(text):
        name = m.group("document")
        if not _looks_like_document(name, context):
            continue
        snippet = _window_snippet(text, m.start(), m.end(), context) if context.with_snippets else None
        source = Source(document=_resolve_document(name, context), snippet=snippet)
        matches.append(CitationMatch(source, MarkerGrammar.ANNOTATION, m.start(), m.end()))
    return matches


def match_natural_language(text: str, context: ExtractionContext) -> list[CitationMatch]:
    """Localized "page N of <file>" / "<file> page N" phrasing, page lists included."""
    matches: list[CitationMatch] = []
    for pattern in _natural_language_patterns(context.known_documents):
        for m in pattern.finditer(text):
            candidate_span = (m.start(), m.end())
            if any(c.start < candidate_span[1] and candidate_span[0] < c.end for c in matches):
                continue
            document = _resolve_document(m.group("document"), context)
            snippet = _window_snippet(text, m.start(), m.end(), context) if context.with_snippets else None
            for page in _pages(m.group("pages")):
                source = Source(document=document, page=page, snippet=snippet)
                matches.append(
                    CitationMatch(source, MarkerGrammar.NATURAL_LANGUAGE, m.start(), m.end())
                )
    return matches


def match_heuristic_page(text: str, context: ExtractionContext) -> list[CitationMatch]:
    """Bare page references attributed by proximity.

    The nearest known filename inside ``context.window`` characters on
    either side wins; otherwise the default document. Without either the
    reference is dropped rather than guessed.

    Known gap: when two documents are discussed in one answer, a bare
    reference far from both names goes to the default document.
    """
    if not context.known_documents and not context.default_document:
        return []

    known_pattern = None
    if context.known_documents:
        names = sorted(context.known_documents, key=len, reverse=True)
        known_pattern = re.compile("|".join(re.escape(n) for n in names if n), re.IGNORECASE)

    matches = []
    for m in HEURISTIC_PATTERN.finditer(text):
        document = None
        if known_pattern is not None:
            lo = max(0, m.start() - context.window)
            hi = min(len(text), m.end() + context.window)
            best_distance = None
            for mention in known_pattern.finditer(text, lo, hi):
                if mention.end() <= m.start():
                    distance = m.start() - mention.end()
                elif mention.start() >= m.end():
                    distance = mention.start() - m.end()
                else:
                    distance = 0
                if best_distance is None or distance < best_distance:
                    best_distance = distance
                    document = _resolve_document(mention.group(), context)
        if document is None:
            document = context.default_document
        if document is None:
            continue

        snippet = _window_snippet(text, m.start(), m.end(), context) if context.with_snippets else None
        for page in _pages(m.group("pages")):
            source = Source(document=document, page=page, snippet=snippet)
            matches.append(CitationMatch(source, MarkerGrammar.HEURISTIC_PAGE, m.start(), m.end()))
    return matches


GrammarFn = Callable[[str, ExtractionContext], list[CitationMatch]]

GRAMMARS: dict[MarkerGrammar, GrammarFn] = {
    MarkerGrammar.CANONICAL: match_canonical,
    MarkerGrammar.ANNOTATION_PAGED: match_annotation_paged,
    MarkerGrammar.ANNOTATION: match_annotation,
    MarkerGrammar.NATURAL_LANGUAGE: match_natural_language,
    MarkerGrammar.HEURISTIC_PAGE: match_heuristic_page,
}

GRAMMAR_ORDER: tuple[MarkerGrammar, ...] = tuple(GRAMMARS)

# Grammars whose citations are worded into a sentence
PROSE_GRAMMARS = frozenset({MarkerGrammar.NATURAL_LANGUAGE, MarkerGrammar.HEURISTIC_PAGE})

# Grammars whose matched text is markup rather than prose
STRIPPABLE: tuple[re.Pattern, ...] = (
    CANONICAL_PATTERN,
    ANNOTATION_PAGED_PATTERN,
    ANNOTATION_PATTERN,
)
