"""Tests for the bounded TTL cache."""

import pytest
from utils.ttl_cache import TTLCache

from conftest import FakeTimer


class TestTTLCache:
    """Expiry, capacity and stats."""

    def setup_method(self):
        self.clock = FakeTimer()
        self.cache = TTLCache(max_entries=3, ttl_seconds=10, clock=self.clock)

    def test_get_set(self):
        self.cache.set("a", 1)
        assert self.cache.get("a") == 1
        assert "a" in self.cache
        assert self.cache.get("missing") is None

    def test_expiry(self):
        self.cache.set("a", 1)
        self.clock.advance(11)
        assert self.cache.get("a") is None
        assert len(self.cache) == 0

    def test_capacity_evicts_least_recent(self):
        for key in ("a", "b", "c"):
            self.cache.set(key, key)
        self.cache.get("a")  # refresh "a"
        self.cache.set("d", "d")

        assert self.cache.get("b") is None
        assert self.cache.get("a") == "a"
        assert len(self.cache) == 3

    def test_stats(self):
        self.cache.set("a", 1)
        self.cache.get("a")
        self.cache.get("b")
        stats = self.cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["size"] == 1

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            TTLCache(max_entries=0)
