"""Tests for the caching utilities."""

import pytest

from src.utils.cache import TTLCache, cache, make_cache_key, stats_cache_key


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestTTLCache:
    """Tests for the bounded in-process cache."""

    def test_get_returns_stored_value(self):
        """Test a basic set/get within the TTL."""
        store = TTLCache(max_size=3, ttl_seconds=60, clock=FakeClock())
        store.set("movie:550", {"title": "Fight Club"})

        assert store.get("movie:550") == {"title": "Fight Club"}
        assert store.stats()["hits"] == 1

    def test_entry_expires_after_ttl(self):
        """Test that reads after the TTL miss and drop the entry."""
        clock = FakeClock()
        store = TTLCache(max_size=3, ttl_seconds=60, clock=clock)
        store.set("movie:550", "x")

        clock.advance(59)
        assert store.get("movie:550") == "x"
        clock.advance(1)
        assert store.get("movie:550") is None
        assert len(store) == 0

    def test_evicts_oldest_written_when_full(self):
        """Test that the oldest entry makes room for a new one."""
        store = TTLCache(max_size=2, ttl_seconds=60, clock=FakeClock())
        store.set("a", 1)
        store.set("b", 2)
        store.set("c", 3)

        assert store.get("a") is None
        assert store.get("b") == 2
        assert store.get("c") == 3

    def test_rewrite_refreshes_position(self):
        """Test that rewriting a key makes it the newest."""
        store = TTLCache(max_size=2, ttl_seconds=60, clock=FakeClock())
        store.set("a", 1)
        store.set("b", 2)
        store.set("a", 10)
        store.set("c", 3)

        assert store.get("a") == 10
        assert store.get("b") is None

    def test_cleanup_removes_only_expired(self):
        """Test bulk expiry."""
        clock = FakeClock()
        store = TTLCache(max_size=10, ttl_seconds=30, clock=clock)
        store.set("old", 1)
        clock.advance(20)
        store.set("new", 2)
        clock.advance(15)

        assert store.cleanup() == 1
        assert "new" in store
        assert len(store) == 1

    def test_invalid_configuration(self):
        """Test that capacity and TTL must be positive."""
        with pytest.raises(ValueError):
            TTLCache(max_size=0, ttl_seconds=60)
        with pytest.raises(ValueError):
            TTLCache(max_size=10, ttl_seconds=0)


class TestCacheKeys:
    """Tests for cache key helpers."""

    def test_make_cache_key_skips_none(self):
        """Test key layout with positional and keyword parts."""
        assert make_cache_key("recs", 1, None, window="7") == "recs:1:window=7"

    def test_stats_cache_key(self):
        """Test the per-user stats key matches the invalidation pattern."""
        assert stats_cache_key(42, "30") == "recs:stats:42:30"


class TestRedisCacheOffline:
    """Tests for RedisCache without a connection."""

    @pytest.mark.asyncio
    async def test_unconnected_cache_is_a_no_op(self):
        """Test that reads miss and writes are skipped while disconnected."""
        assert not cache.connected
        assert await cache.get("recs:stats:1:30") is None
        assert await cache.set("recs:stats:1:30", {"a": 1}) is False
        assert await cache.delete_pattern("recs:stats:1:*") == 0
