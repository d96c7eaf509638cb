"""Per-request stream session state."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from uuid import uuid4

from pagecite.citations.extractor import SourceSet


class Phase(str, Enum):  # noqa: UP042
    """Lifecycle of one chat answer."""

    IDLE = "idle"
    ADMITTED = "admitted"
    SEARCHING = "searching"
    GENERATING = "generating"
    DONE = "done"
    ERROR = "error"
    ABORTED = "aborted"

    @property
    def terminal(self) -> bool:
        return self in (Phase.DONE, Phase.ERROR, Phase.ABORTED)


_TRANSITIONS: dict[Phase, frozenset[Phase]] = {
    Phase.IDLE: frozenset({Phase.ADMITTED, Phase.ERROR}),
    Phase.ADMITTED: frozenset({Phase.SEARCHING, Phase.ERROR, Phase.ABORTED}),
    Phase.SEARCHING: frozenset({Phase.GENERATING, Phase.DONE, Phase.ERROR, Phase.ABORTED}),
    Phase.GENERATING: frozenset({Phase.DONE, Phase.ERROR, Phase.ABORTED}),
    Phase.DONE: frozenset(),
    Phase.ERROR: frozenset(),
    Phase.ABORTED: frozenset(),
}


@dataclass
class StreamSession:
    """Mutable state owned by exactly one in-flight chat request."""

    client_key: str
    question: str
    locale: str = "en"
    session_id: str = field(default_factory=lambda: uuid4().hex)
    phase: Phase = Phase.IDLE
    answer_parts: list[str] = field(default_factory=list)
    sources: SourceSet = field(default_factory=SourceSet)
    retrieved_documents: set[str] = field(default_factory=set)
    final_output: str = ""
    error: str | None = None
    started_at: float = field(default_factory=time.perf_counter)

    def advance(self, phase: Phase) -> None:
        """Move to ``phase``; illegal transitions raise ``RuntimeError``."""
        if phase is self.phase:
            return
        if phase not in _TRANSITIONS[self.phase]:
            raise RuntimeError(f"Illegal stream transition {self.phase.value} -> {phase.value}")
        self.phase = phase

    @property
    def partial_answer(self) -> str:
        return "".join(self.answer_parts)

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started_at) * 1000
