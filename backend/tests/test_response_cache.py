"""
Test Module: test_response_cache.py
Description: Unit tests for the TTL response cache and its message hash.

Author: Smart Budget Team
"""

import pytest

from services.response_cache import ResponseCache, message_hash, normalize_message


@pytest.fixture
def cache(clock):
    return ResponseCache(ttl_seconds=300, clock=clock)


class TestMessageHash:
    """Tests for key derivation."""

    def test_hash_is_stable(self):
        assert message_hash("what's my balance") == message_hash("what's my balance")

    def test_hash_is_order_sensitive(self):
        assert message_hash("ab") != message_hash("ba")

    def test_hash_matches_31_polynomial(self):
        # "ab" -> 97 * 31 + 98
        assert message_hash("ab") == 3105
        assert message_hash("") == 0

    def test_hash_wraps_to_signed_32_bits(self):
        value = message_hash("how much did I spend on groceries last month?" * 4)
        assert -(2 ** 31) <= value < 2 ** 31

    def test_normalize_collapses_case_and_whitespace(self):
        assert normalize_message("  What's   MY\tbalance ") == "what's my balance"


class TestCacheReadWrite:
    """Tests for put/get semantics."""

    def test_put_then_get_returns_value(self, cache):
        cache.put("u1", "How much did I spend?", "You spent $165.50.")
        assert cache.get("u1", "How much did I spend?") == "You spent $165.50."

    def test_get_uses_normalized_message(self, cache):
        cache.put("u1", "How much did I spend?", "reply")
        assert cache.get("u1", "  how much   did i SPEND? ") == "reply"

    def test_miss_returns_none(self, cache):
        assert cache.get("u1", "anything") is None

    def test_entries_are_per_user(self, cache):
        cache.put("u1", "same question", "for u1")
        assert cache.get("u2", "same question") is None

    def test_put_overwrites(self, cache):
        cache.put("u1", "q", "first")
        cache.put("u1", "q", "second")
        assert cache.get("u1", "q") == "second"


class TestCacheExpiry:
    """Tests for TTL handling without relying on the reaper."""

    def test_get_within_ttl_hits(self, cache, clock):
        cache.put("u1", "q", "reply")
        clock.advance(299)
        assert cache.get("u1", "q") == "reply"

    def test_get_after_ttl_misses_and_drops_entry(self, cache, clock):
        cache.put("u1", "q", "reply")
        clock.advance(300)
        assert cache.get("u1", "q") is None
        assert len(cache) == 0

    def test_evict_expired_counts_removed(self, cache, clock):
        cache.put("u1", "old", "reply")
        clock.advance(200)
        cache.put("u1", "new", "reply")
        clock.advance(150)

        assert cache.evict_expired() == 1
        assert cache.get("u1", "new") == "reply"

    def test_clear_user(self, cache):
        cache.put("u1", "a", "x")
        cache.put("u1", "b", "y")
        cache.put("u2", "a", "z")

        cache.clear_user("u1")

        assert len(cache) == 1
        assert cache.get("u2", "a") == "z"
