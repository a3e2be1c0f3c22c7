"""Tests for the TTL cache layer.

Covers:
* TTLCache      – TTL boundary, overwrite, peek of stale entries, negatives
* CacheRegistry – namespaces and TTLs from settings
"""
from chatbridge.cache import MISS, CacheRegistry, TTLCache
from chatbridge.config import CacheSettings

from conftest import FakeClock


class TestTTLCache:
    def test_fresh_value_returned_until_ttl(self):
        clock = FakeClock()
        cache = TTLCache(10, clock=clock)
        cache.put("k", {"v": 1})

        clock.advance(9.999)
        assert cache.get("k") == {"v": 1}

    def test_value_absent_at_exactly_ttl(self):
        clock = FakeClock()
        cache = TTLCache(10, clock=clock)
        cache.put("k", "v")

        clock.advance(10)
        assert cache.get("k") is MISS
        assert "k" not in cache

    def test_missing_key_is_miss(self):
        assert TTLCache(10).get("nope") is MISS

    def test_none_is_a_cached_value(self):
        cache = TTLCache(10)
        cache.put("k", None)
        assert cache.get("k") is None
        assert "k" in cache

    def test_put_resets_age(self):
        clock = FakeClock()
        cache = TTLCache(10, clock=clock)
        cache.put("k", "old")
        clock.advance(8)
        cache.put("k", "new")
        clock.advance(8)
        assert cache.get("k") == "new"

    def test_expired_entry_kept_for_peek(self):
        clock = FakeClock()
        cache = TTLCache(10, clock=clock)
        cache.put("k", "stale")
        clock.advance(60)

        assert cache.get("k") is MISS
        assert cache.peek("k") == "stale"
        assert len(cache) == 1

    def test_invalidate_and_clear(self):
        cache = TTLCache(10)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.invalidate("a")
        assert cache.peek("a") is MISS
        cache.clear()
        assert len(cache) == 0

    def test_generation_bumped_by_invalidation_only(self):
        cache = TTLCache(10)
        cache.put("a", 1)
        assert cache.generation == 0
        cache.invalidate("a")
        cache.clear()
        assert cache.generation == 2

    def test_miss_is_falsy_singleton(self):
        assert not MISS
        assert repr(MISS) == "MISS"


class TestCacheRegistry:
    def test_default_ttls(self):
        registry = CacheRegistry()
        assert registry.stats.ttl_seconds == 10
        assert registry.avatars.ttl_seconds == 3600
        assert registry.contacts.ttl_seconds == 1800

    def test_from_settings(self):
        registry = CacheRegistry.from_settings(
            CacheSettings(stats_ttl_seconds=1, avatar_ttl_seconds=2, contact_ttl_seconds=3)
        )
        assert (registry.stats.ttl_seconds, registry.avatars.ttl_seconds, registry.contacts.ttl_seconds) == (1, 2, 3)

    def test_namespaces_are_independent(self):
        clock = FakeClock()
        registry = CacheRegistry(stats_ttl=10, avatar_ttl=3600, clock=clock)
        registry.stats.put("x", 1)
        registry.avatars.put("x", "url")
        clock.advance(10)
        assert registry.stats.get("x") is MISS
        assert registry.avatars.get("x") == "url"
