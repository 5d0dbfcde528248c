"""
Tests for ttl_cache.py.

Covers:
  - round trip before expiry returns the identical object
  - reads after expiry return None and drop the entry
  - expiry boundary: an entry is still served at exactly expires_at
  - per-call TTL override, overwrite, delete, clear
  - cleanup() sweeps only expired entries
"""
from __future__ import annotations

import pytest

from ttl_cache import CacheEntry, TTLCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(ttl=300, clock=clock)


class TestTTLCache:
    def test_round_trip_before_expiry(self, cache, clock):
        record = {"name": "Nutella"}
        cache.set("product_1", record)
        clock.now += 299
        assert cache.get("product_1") is record

    def test_absent_after_expiry(self, cache, clock):
        cache.set("product_1", "x")
        clock.now += 300.5
        assert cache.get("product_1") is None
        assert len(cache) == 0   # lazily removed on read

    def test_served_at_exact_expiry(self, cache, clock):
        cache.set("k", "v")
        clock.now += 300
        assert cache.get("k") == "v"

    def test_missing_key(self, cache):
        assert cache.get("nope") is None

    def test_ttl_override(self, cache, clock):
        cache.set("short", "v", ttl=5)
        clock.now += 6
        assert cache.get("short") is None

    def test_overwrite_resets_expiry(self, cache, clock):
        cache.set("k", "old")
        clock.now += 200
        cache.set("k", "new")
        clock.now += 200
        assert cache.get("k") == "new"

    def test_delete_and_clear(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.delete("a")
        cache.delete("missing")     # no error
        assert "a" not in cache
        assert "b" in cache
        cache.clear()
        assert len(cache) == 0

    def test_cleanup_removes_only_expired(self, cache, clock):
        cache.set("old", 1, ttl=10)
        cache.set("fresh", 2, ttl=1000)
        clock.now += 11
        assert cache.cleanup() == 1
        assert len(cache) == 1
        assert cache.get("fresh") == 2

    def test_contains_respects_expiry(self, cache, clock):
        cache.set("k", "v")
        assert "k" in cache
        clock.now += 301
        assert "k" not in cache


class TestCacheEntry:
    def test_expired_is_strictly_after(self):
        entry = CacheEntry("k", "v", expires_at=10.0)
        assert not entry.expired(10.0)
        assert entry.expired(10.001)
