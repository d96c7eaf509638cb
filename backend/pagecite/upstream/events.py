"""Events produced by a completion+retrieval service stream."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class UpstreamRequest:
    """One question sent to the completion+retrieval service."""

    system_instructions: str
    question: str
    index_ref: str | None
    max_results: int = 20


@dataclass(frozen=True)
class TextDelta:
    """Incremental answer text."""

    text: str


@dataclass(frozen=True)
class RetrievalResult:
    """One chunk returned by the retrieval index."""

    filename: str
    text: str
    score: float | None = None


@dataclass(frozen=True)
class RetrievalResults:
    """Retrieval results for the current question."""

    results: list[RetrievalResult] = field(default_factory=list)


@dataclass(frozen=True)
class Completed:
    """The upstream answer is finished."""

    final_output: str = ""


@dataclass(frozen=True)
class OtherEvent:
    """Any event kind the relay does not act on."""

    kind: str
    payload: Any = None


UpstreamEvent = TextDelta | RetrievalResults | Completed | OtherEvent
