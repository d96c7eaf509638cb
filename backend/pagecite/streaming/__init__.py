"""Per-request streaming orchestration."""

from pagecite.streaming.coordinator import StreamCoordinator
from pagecite.streaming.frames import DeltaFrame, DoneFrame, ErrorFrame, Frame
from pagecite.streaming.session import Phase, StreamSession

__all__ = [
    "StreamCoordinator",
    "StreamSession",
    "Phase",
    "Frame",
    "DeltaFrame",
    "DoneFrame",
    "ErrorFrame",
]
