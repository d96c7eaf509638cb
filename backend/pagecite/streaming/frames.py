"""Client-facing stream frames."""

import json
from dataclasses import dataclass, field
from typing import Any

from pagecite.corpus.models import Source


@dataclass(frozen=True)
class DeltaFrame:
    """Raw incremental answer text, forwarded unfiltered."""

    text: str
    type: str = field(default="delta", init=False)

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True)
class DoneFrame:
    """Terminal frame: cleaned answer plus sorted sources."""

    answer: str
    sources: list[Source] = field(default_factory=list)
    type: str = field(default="done", init=False)

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "answer": self.answer,
            "sources": [source.to_dict() for source in self.sources],
        }


@dataclass(frozen=True)
class ErrorFrame:
    """Terminal frame for a failed stream; keeps the partial answer."""

    error: str
    answer: str = ""
    type: str = field(default="error", init=False)

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.type, "error": self.error, "answer": self.answer}


Frame = DeltaFrame | DoneFrame | ErrorFrame


def to_sse(frame: Frame) -> dict[str, str]:
    """Render a frame as an sse-starlette message (``data`` only)."""
    return {"data": json.dumps(frame.to_payload(), ensure_ascii=False)}
