"""Sliding-window admission control per client and endpoint.

One ``RateLimiter`` is built per process and shared by every request
handler. Entries are keyed by ``(endpoint, client_key)`` and hold the
timestamps of admitted requests, oldest first.
"""

import asyncio
import contextlib
import math
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal

from pagecite.core.config import RateLimitConfig
from pagecite.core.logging import get_logger

logger = get_logger(__name__)

Endpoint = Literal["chat", "upload"]
LimitReason = Literal["minute", "daily"]

MINUTE_SECONDS = 60.0
DAY_SECONDS = 24 * 60 * 60.0


@dataclass(frozen=True)
class Window:
    """A trailing window that admits at most ``limit`` requests."""

    seconds: float
    limit: int
    reason: LimitReason


@dataclass(frozen=True)
class Admission:
    """Result of one admission check."""

    allowed: bool
    retry_after_ms: int | None = None
    reason: LimitReason | None = None


@dataclass
class _Entry:
    endpoint: str
    timestamps: deque[float] = field(default_factory=deque)
    lock: threading.Lock = field(default_factory=threading.Lock)


class RateLimiter:
    """Per-client, per-endpoint sliding-window rate limiter.

    Windows for an endpoint are evaluated in policy order and the first
    violated one decides the reason. For ``chat`` the daily window comes
    first, so a client over its daily quota always sees ``"daily"``.
    """

    def __init__(
        self,
        policies: dict[str, list[Window]],
        sweep_interval_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not policies:
            raise ValueError("At least one endpoint policy is required")
        self._policies = policies
        self._retention = {
            endpoint: max(window.seconds for window in windows)
            for endpoint, windows in policies.items()
        }
        self._sweep_interval = sweep_interval_seconds
        self._clock = clock
        self._entries: dict[tuple[str, str], _Entry] = {}
        self._table_lock = threading.Lock()
        self._sweep_task: asyncio.Task | None = None

    @classmethod
    def from_config(cls, config: RateLimitConfig, clock: Callable[[], float] = time.monotonic):
        """Build the standard chat/upload policies from configuration."""
        policies = {
            "chat": [
                Window(seconds=DAY_SECONDS, limit=config.chat_daily, reason="daily"),
                Window(seconds=MINUTE_SECONDS, limit=config.chat_burst, reason="minute"),
            ],
            "upload": [
                Window(seconds=MINUTE_SECONDS, limit=config.upload_per_minute, reason="minute"),
            ],
        }
        return cls(policies, sweep_interval_seconds=config.sweep_interval_seconds, clock=clock)

    def admit(self, client_key: str, endpoint: Endpoint) -> Admission:
        """Check and record one request.

        The read-modify-write of a client's timestamps happens under that
        entry's lock, so two concurrent requests can never both take the
        last free slot.
        """
        windows = self._policies.get(endpoint)
        if windows is None:
            raise ValueError(f"Unknown rate-limited endpoint: {endpoint}")

        key = (endpoint, client_key)
        with self._table_lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry(endpoint=endpoint)
                self._entries[key] = entry
            # Acquired before releasing the table lock so a concurrent
            # sweep cannot drop this entry mid-check.
            entry.lock.acquire()

        try:
            now = self._clock()
            self._prune(entry, now)

            for window in windows:
                in_window = [t for t in entry.timestamps if now - t < window.seconds]
                if len(in_window) >= window.limit:
                    oldest = in_window[0]
                    retry_after_ms = math.ceil((window.seconds - (now - oldest)) * 1000)
                    logger.warning(
                        "rate_limited",
                        endpoint=endpoint,
                        reason=window.reason,
                        retry_after_ms=retry_after_ms,
                    )
                    return Admission(
                        allowed=False, retry_after_ms=max(retry_after_ms, 0), reason=window.reason
                    )

            entry.timestamps.append(now)
            return Admission(allowed=True)
        finally:
            entry.lock.release()

    def sweep(self) -> int:
        """Prune every entry and drop the empty ones.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        removed = 0
        with self._table_lock:
            for key, entry in list(self._entries.items()):
                with entry.lock:
                    self._prune(entry, now)
                    if not entry.timestamps:
                        del self._entries[key]
                        removed += 1
        if removed:
            logger.debug("rate_limit_sweep", removed=removed, remaining=len(self._entries))
        return removed

    def entry_count(self) -> int:
        """Number of tracked (endpoint, client) entries (for monitoring)."""
        return len(self._entries)

    async def start(self) -> None:
        """Start the periodic background sweep."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        """Cancel the background sweep and wait for it to finish."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweep_task
            self._sweep_task = None

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("rate_limit_sweep_failed")

    def _prune(self, entry: _Entry, now: float) -> None:
        retention = self._retention[entry.endpoint]
        timestamps = entry.timestamps
        while timestamps and now - timestamps[0] >= retention:
            timestamps.popleft()
