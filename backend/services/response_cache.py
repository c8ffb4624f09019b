"""
Module: response_cache.py
Description: Short-lived memo of assistant replies keyed by (user, message).

Repeated questions within the TTL are answered from memory instead of
paying for another language-model call. Only final reply text is cached;
the financial summary is always rebuilt.

Key derivation uses message_hash(), a 32-bit polynomial string hash. It is
NOT cryptographic: two different messages can collide and the second would
be served the first one's reply. That only affects answer quality for the
same user, never stored financial data, and the hash is cheap, so the
trade-off is accepted. Do not swap in a cryptographic digest unless the
per-request cost has been re-checked.

Author: Smart Budget Team
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple


def normalize_message(message: str) -> str:
    """Lowercase, trim and collapse whitespace."""
    return " ".join((message or "").lower().split())


def message_hash(text: str) -> int:
    """
    Order-sensitive 32-bit string hash (h = h * 31 + ord(c), signed wrap).

    Non-cryptographic and collision tolerant; see module docstring.
    """
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


@dataclass
class CacheEntry:
    response_text: str
    created_at: float


class ResponseCache:
    """
    Thread-safe TTL cache of assistant replies.

    Args:
        ttl_seconds: How long an entry stays valid after creation.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Tuple[str, int], CacheEntry] = {}
        self._lock = threading.Lock()

    @staticmethod
    def make_key(user_id, message: str) -> Tuple[str, int]:
        return (str(user_id), message_hash(normalize_message(message)))

    def _is_fresh(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at < self.ttl_seconds

    def get(self, user_id, message: str) -> Optional[str]:
        """Return the cached reply, or None on a miss or a stale entry."""
        key = self.make_key(user_id, message)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not self._is_fresh(entry, now):
                # The reaper may not have run yet.
                del self._entries[key]
                return None
            return entry.response_text

    def put(self, user_id, message: str, response: str) -> None:
        key = self.make_key(user_id, message)
        with self._lock:
            self._entries[key] = CacheEntry(response_text=response, created_at=self._clock())

    def evict_expired(self) -> int:
        """Drop stale entries. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            stale = [k for k, e in self._entries.items() if not self._is_fresh(e, now)]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def clear_user(self, user_id) -> None:
        """Forget every cached reply for one user."""
        uid = str(user_id)
        with self._lock:
            for key in [k for k in self._entries if k[0] == uid]:
                del self._entries[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
