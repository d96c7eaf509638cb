"""Tests for the sliding-window rate limiter."""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from pagecite.core.config import RateLimitConfig
from pagecite.core.rate_limiter import RateLimiter, Window


class TestChatWindows:
    """Test cases for chat admission (burst 3/min, daily 5)."""

    def test_burst_plus_one_rejected_with_minute(self, rate_limiter, clock):
        """The request after the burst cap within one second is a minute rejection."""
        for _ in range(3):
            assert rate_limiter.admit("1.2.3.4", "chat").allowed
            clock.advance(0.1)

        result = rate_limiter.admit("1.2.3.4", "chat")

        assert result.allowed is False
        assert result.reason == "minute"
        assert 59_000 < result.retry_after_ms <= 60_000

    def test_daily_cap_rejected_outside_burst_window(self, rate_limiter, clock):
        """After the daily cap, a request hours later is still rejected as daily."""
        for _ in range(5):
            assert rate_limiter.admit("1.2.3.4", "chat").allowed
            clock.advance(61)

        clock.advance(2 * 60 * 60)
        result = rate_limiter.admit("1.2.3.4", "chat")

        assert result.allowed is False
        assert result.reason == "daily"
        expected_ms = (86400 - (5 * 61 + 2 * 60 * 60)) * 1000
        assert result.retry_after_ms == expected_ms

    def test_daily_window_reported_before_minute(self, clock):
        """When both windows are full the daily reason wins."""
        limiter = RateLimiter.from_config(RateLimitConfig(chat_burst=2, chat_daily=2), clock=clock)
        limiter.admit("c", "chat")
        limiter.admit("c", "chat")

        assert limiter.admit("c", "chat").reason == "daily"

    def test_burst_window_slides(self, rate_limiter, clock):
        """A full minute later the burst slots are free again."""
        for _ in range(3):
            rate_limiter.admit("1.2.3.4", "chat")
        assert not rate_limiter.admit("1.2.3.4", "chat").allowed

        clock.advance(60)

        assert rate_limiter.admit("1.2.3.4", "chat").allowed

    def test_rejected_requests_do_not_consume_slots(self, rate_limiter, clock):
        for _ in range(3):
            rate_limiter.admit("1.2.3.4", "chat")
        for _ in range(10):
            rate_limiter.admit("1.2.3.4", "chat")

        clock.advance(60)
        # Only the three admitted requests count toward the daily cap of 5
        assert rate_limiter.admit("1.2.3.4", "chat").allowed
        assert rate_limiter.admit("1.2.3.4", "chat").allowed
        assert rate_limiter.admit("1.2.3.4", "chat").reason == "daily"


class TestIsolation:
    """Test cases for per-client and per-endpoint separation."""

    def test_clients_are_independent(self, rate_limiter):
        for _ in range(3):
            rate_limiter.admit("a", "chat")

        assert not rate_limiter.admit("a", "chat").allowed
        assert rate_limiter.admit("b", "chat").allowed

    def test_endpoints_are_independent(self, rate_limiter):
        for _ in range(3):
            rate_limiter.admit("a", "chat")

        assert rate_limiter.admit("a", "upload").allowed
        assert rate_limiter.admit("a", "upload").allowed
        result = rate_limiter.admit("a", "upload")
        assert result.allowed is False
        assert result.reason == "minute"

    def test_unknown_endpoint_raises(self, rate_limiter):
        with pytest.raises(ValueError):
            rate_limiter.admit("a", "search")

    def test_empty_policies_rejected(self):
        with pytest.raises(ValueError):
            RateLimiter({})


class TestConcurrency:
    """Test cases for concurrent admission of one client."""

    def test_last_slot_admitted_once(self, clock):
        """Concurrent requests never over-admit a client."""
        limiter = RateLimiter({"chat": [Window(seconds=60, limit=5, reason="minute")]}, clock=clock)

        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(lambda _: limiter.admit("same", "chat"), range(64)))

        assert sum(1 for r in results if r.allowed) == 5


class TestSweep:
    """Test cases for expired-entry cleanup."""

    def test_sweep_drops_expired_entries(self, rate_limiter, clock):
        rate_limiter.admit("a", "upload")
        rate_limiter.admit("b", "chat")
        assert rate_limiter.entry_count() == 2

        clock.advance(61)
        assert rate_limiter.sweep() == 1
        assert rate_limiter.entry_count() == 1

        clock.advance(24 * 60 * 60)
        assert rate_limiter.sweep() == 1
        assert rate_limiter.entry_count() == 0

    @pytest.mark.asyncio
    async def test_start_and_stop_background_sweep(self, test_config, clock):
        limiter = RateLimiter.from_config(test_config.rate_limit, clock=clock)

        await limiter.start()
        await limiter.start()
        await limiter.stop()
        await limiter.stop()

    @pytest.mark.asyncio
    async def test_sweep_loop_survives_failed_sweep(self, clock):
        """A failing sweep is logged and the next one still runs."""
        limiter = RateLimiter(
            {"chat": [Window(seconds=60, limit=5, reason="minute")]},
            sweep_interval_seconds=0.001,
            clock=clock,
        )
        calls = []
        ran_twice = asyncio.Event()

        def flaky_sweep():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("table changed during sweep")
            ran_twice.set()
            return 0

        limiter.sweep = flaky_sweep
        await limiter.start()
        try:
            await asyncio.wait_for(ran_twice.wait(), timeout=2)
        finally:
            await limiter.stop()

        assert len(calls) >= 2
