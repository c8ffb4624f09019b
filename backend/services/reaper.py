"""
Module: reaper.py
Description: Periodic sweep that evicts expired cache and rate-limit entries.

Runs as an asyncio task on the application's event loop. Each sweep only
touches in-memory maps, taking their locks for the duration of the eviction
pass, and never does I/O.

Author: Smart Budget Team
"""

import asyncio
from typing import Optional

from .observability import logger, log_reaper_sweep
from .rate_limiter import FixedWindowRateLimiter
from .response_cache import ResponseCache


class BackgroundReaper:
    """
    Evicts stale ResponseCache and FixedWindowRateLimiter entries every interval.

    Usage:
        reaper = BackgroundReaper(cache, limiter, interval_seconds=60)
        reaper.start()
        ...
        await reaper.stop()
    """

    def __init__(
        self,
        cache: ResponseCache,
        rate_limiter: FixedWindowRateLimiter,
        interval_seconds: float = 60.0,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep(self) -> tuple[int, int]:
        """Run one eviction pass. Returns (cache_evicted, limiter_evicted)."""
        cache_evicted = self.cache.evict_expired()
        limiter_evicted = self.rate_limiter.evict_expired()
        log_reaper_sweep(
            cache_evicted, limiter_evicted, len(self.cache), len(self.rate_limiter)
        )
        return cache_evicted, limiter_evicted

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.sweep()
            except Exception:
                # Keep ticking; one bad pass must not end the loop.
                logger.exception("Reaper sweep failed")

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Reaper started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Reaper stopped")
