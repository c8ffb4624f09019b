"""
Test Module: test_reaper.py
Description: Tests for the background eviction sweep.

Author: Smart Budget Team
"""

import asyncio

import pytest

from services.observability import metrics
from services.rate_limiter import FixedWindowRateLimiter
from services.reaper import BackgroundReaper
from services.response_cache import ResponseCache


@pytest.fixture
def state(clock):
    cache = ResponseCache(ttl_seconds=300, clock=clock)
    limiter = FixedWindowRateLimiter(max_calls=3, window_seconds=60, clock=clock)
    return cache, limiter


class TestSweep:

    def test_sweep_evicts_expired_entries(self, state, clock):
        cache, limiter = state
        cache.put("u1", "old question", "old reply")
        limiter.check_and_consume("u1")
        clock.advance(301)
        cache.put("u2", "new question", "new reply")
        limiter.check_and_consume("u2")

        reaper = BackgroundReaper(cache, limiter, interval_seconds=60)

        assert reaper.sweep() == (1, 1)
        assert len(cache) == 1
        assert len(limiter) == 1
        assert metrics.gauges["chat.cache_size"] == 1
        assert metrics.counters["reaper.evicted"] == 2

    def test_sweep_with_nothing_to_do(self, state):
        cache, limiter = state
        assert BackgroundReaper(cache, limiter).sweep() == (0, 0)

    def test_invalid_interval(self, state):
        cache, limiter = state
        with pytest.raises(ValueError):
            BackgroundReaper(cache, limiter, interval_seconds=0)


class TestBackgroundLoop:

    @pytest.mark.asyncio
    async def test_loop_runs_periodically_and_stops(self, state):
        cache, limiter = state
        reaper = BackgroundReaper(cache, limiter, interval_seconds=0.01)

        reaper.start()
        assert reaper.running
        await asyncio.sleep(0.1)
        await reaper.stop()

        assert not reaper.running
        assert metrics.counters["reaper.sweeps"] >= 2

    @pytest.mark.asyncio
    async def test_failed_tick_does_not_stop_loop(self, state, monkeypatch):
        cache, limiter = state
        reaper = BackgroundReaper(cache, limiter, interval_seconds=0.01)
        calls = {"n": 0}
        original = cache.evict_expired

        def flaky():
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("first tick fails")
            return original()

        monkeypatch.setattr(cache, "evict_expired", flaky)

        reaper.start()
        await asyncio.sleep(0.1)
        await reaper.stop()

        assert calls["n"] >= 2
        assert metrics.counters["reaper.sweeps"] >= 1

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, state):
        cache, limiter = state
        reaper = BackgroundReaper(cache, limiter, interval_seconds=10)
        reaper.start()
        task = reaper._task
        reaper.start()
        assert reaper._task is task
        await reaper.stop()
        await reaper.stop()
