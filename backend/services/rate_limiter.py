"""
Module: rate_limiter.py
Description: Per-user fixed-window limiter guarding language-model calls.

Each user gets max_calls attempts per window. The window starts at the
first attempt and resets once it has fully elapsed; there is no sliding.
A consequence is burst-at-boundary behaviour: a user can make max_calls
attempts at the end of one window and max_calls more right after it resets.

State is process-local and lost on restart.

Author: Smart Budget Team
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single check_and_consume() call."""
    allowed: bool
    remaining: int
    retry_after_seconds: Optional[int] = None


@dataclass
class RateLimitEntry:
    count: int
    window_reset_at: float


class FixedWindowRateLimiter:
    """
    Thread-safe fixed-window rate limiter keyed by user id.

    Args:
        max_calls: Attempts allowed per window.
        window_seconds: Window length in seconds.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        max_calls: int = 3,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_calls < 1:
            raise ValueError("max_calls must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def check_and_consume(self, user_id) -> RateLimitDecision:
        """
        Record an attempt for the user and say whether it may proceed.

        The read and the update happen under one lock, so concurrent requests
        from the same user cannot both take the last slot.
        """
        key = str(user_id)
        now = self._clock()

        with self._lock:
            entry = self._entries.get(key)

            if entry is None or now > entry.window_reset_at:
                self._entries[key] = RateLimitEntry(
                    count=1, window_reset_at=now + self.window_seconds
                )
                return RateLimitDecision(allowed=True, remaining=self.max_calls - 1)

            if entry.count < self.max_calls:
                entry.count += 1
                return RateLimitDecision(
                    allowed=True, remaining=self.max_calls - entry.count
                )

            retry_after = max(1, math.ceil(entry.window_reset_at - now))
            return RateLimitDecision(
                allowed=False, remaining=0, retry_after_seconds=retry_after
            )

    def get_remaining(self, user_id) -> int:
        """Attempts left in the user's current window without consuming one."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(str(user_id))
            if entry is None or now > entry.window_reset_at:
                return self.max_calls
            return max(0, self.max_calls - entry.count)

    def evict_expired(self) -> int:
        """Drop entries whose window has ended. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now > e.window_reset_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
