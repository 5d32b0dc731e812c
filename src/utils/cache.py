"""Caching utilities.

Two layers:
- RedisCache: shared, async, JSON-serialized cache for API responses (stats
  dashboards). Degrades to "no cache" when Redis is unreachable.
- TTLCache: bounded in-process cache with per-entry TTL and oldest-first
  eviction, injected into the metadata client.
"""

import hashlib
import json
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from datetime import timedelta
from typing import Any

import redis.asyncio as redis

from src.config import get_settings
from src.constants import CACHE_TTL_STATS
from src.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

CACHE_TTL_DEFAULT = timedelta(seconds=CACHE_TTL_STATS)


class RedisCache:
    """Async Redis cache client with JSON serialization."""

    def __init__(self) -> None:
        self._client: redis.Redis | None = None
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def _get_client(self) -> redis.Redis:
        """Get or create Redis client."""
        if self._client is None:
            self._client = redis.from_url(
                str(settings.redis_url),
                encoding="utf-8",
                decode_responses=True,
            )
        return self._client

    async def connect(self) -> bool:
        """Test Redis connection."""
        try:
            client = await self._get_client()
            await client.ping()
            self._connected = True
            return True
        except Exception as e:
            logger.warning(f"Redis cache unavailable: {e}")
            self._connected = False
            return False

    async def ping(self) -> bool:
        """Ping Redis to check connection health."""
        client = await self._get_client()
        return await client.ping()

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None
            self._connected = False

    async def get(self, key: str) -> Any | None:
        """Get value from cache.

        Returns:
            Cached value or None if not found/expired/unavailable
        """
        if not self._connected:
            return None

        try:
            client = await self._get_client()
            data = await client.get(key)
            if data:
                return json.loads(data)
            return None
        except Exception as e:
            logger.debug(f"Cache get error for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: timedelta | None = None) -> bool:
        """Set value in cache (value must be JSON serializable)."""
        if not self._connected:
            return False

        try:
            client = await self._get_client()
            serialized = json.dumps(value, default=str)
            expire_seconds = int((ttl or CACHE_TTL_DEFAULT).total_seconds())
            await client.setex(key, expire_seconds, serialized)
            return True
        except Exception as e:
            logger.debug(f"Cache set error for {key}: {e}")
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching a glob pattern (e.g. "recs:stats:42:*").

        Returns:
            Number of keys deleted
        """
        if not self._connected:
            return 0

        try:
            client = await self._get_client()
            keys = []
            async for key in client.scan_iter(match=pattern):
                keys.append(key)
            if keys:
                return await client.delete(*keys)
            return 0
        except Exception as e:
            logger.debug(f"Cache delete pattern error for {pattern}: {e}")
            return 0


# Global cache instance
cache = RedisCache()


def make_cache_key(namespace: str, *args: Any, **kwargs: Any) -> str:
    """Generate a cache key from a namespace and arguments.

    None values are skipped, kwargs are sorted. Keys longer than 200 chars
    are replaced by a hash suffix.
    """
    parts = [namespace]

    for arg in args:
        if arg is not None:
            parts.append(str(arg))

    for key, value in sorted(kwargs.items()):
        if value is not None:
            parts.append(f"{key}={value}")

    key_str = ":".join(parts)

    if len(key_str) > 200:
        hash_suffix = hashlib.md5(key_str.encode()).hexdigest()[:12]
        key_str = f"{namespace}:{hash_suffix}"

    return key_str


def stats_cache_key(user_id: int, window: str) -> str:
    return make_cache_key("recs:stats", user_id, window)


async def invalidate_stats_cache(user_id: int) -> None:
    """Drop every cached stats window for a user (call after recording an action)."""
    deleted = await cache.delete_pattern(f"recs:stats:{user_id}:*")
    if deleted:
        logger.info(f"Invalidated {deleted} stats cache entries for user {user_id}")


class TTLCache:
    """Bounded in-process cache with per-entry TTL.

    Entries are evicted oldest-written first once ``max_size`` is reached.
    Expired entries are dropped lazily on read, or in bulk by ``cleanup()``.
    A miss is never an error: callers fall back to a live fetch.
    """

    def __init__(
        self,
        max_size: int,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._data: OrderedDict[str, tuple[Any, float]] = OrderedDict()
        self._lock = threading.Lock()
        self._max_size = max_size
        self._ttl = ttl_seconds
        self._clock = clock
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                self.misses += 1
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._data[key]
                self.misses += 1
                return None
            self.hits += 1
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if key in self._data:
                del self._data[key]
            while len(self._data) >= self._max_size:
                self._data.popitem(last=False)  # Remove oldest
            self._data[key] = (value, self._clock() + self._ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self.hits = 0
            self.misses = 0

    def cleanup(self) -> int:
        """Remove expired entries, returning how many were dropped."""
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, expires_at) in self._data.items() if now >= expires_at]
            for key in expired:
                del self._data[key]
        return len(expired)

    def stats(self) -> dict[str, Any]:
        return {
            "size": len(self._data),
            "max_size": self._max_size,
            "ttl_seconds": self._ttl,
            "hits": self.hits,
            "misses": self.misses,
        }
