"""Token-bucket rate limiting.

Used two ways:
- outbound: ``await rate_limiter.acquire("tmdb")`` blocks until a metadata
  request may be sent;
- inbound: ``rate_limiter.try_acquire("recommendations_api", key)`` answers
  immediately whether a caller may hit an expensive endpoint (429 otherwise).
"""

import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""

    requests_per_second: float = 2.0  # Max requests per second
    burst_size: int = 5  # Allow short bursts
    min_interval: float = 0.1  # Minimum time between requests (seconds)


@dataclass
class TokenBucket:
    """Token bucket for rate limiting."""

    capacity: int
    refill_rate: float  # tokens per second
    tokens: float = field(default=0.0)
    last_refill: float = field(default_factory=time.monotonic)

    def __post_init__(self):
        self.tokens = float(self.capacity)

    def _refill(self) -> None:
        """Refill tokens based on elapsed time."""
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    def acquire(self, tokens: int = 1) -> float:
        """Try to acquire tokens.

        Returns:
            Wait time in seconds (0 if tokens acquired immediately)
        """
        self._refill()

        if self.tokens >= tokens:
            self.tokens -= tokens
            return 0.0

        tokens_needed = tokens - self.tokens
        return tokens_needed / self.refill_rate

    async def acquire_async(self, tokens: int = 1) -> None:
        """Acquire tokens, waiting if necessary."""
        wait_time = self.acquire(tokens)
        if wait_time > 0:
            logger.debug(f"Rate limited, waiting {wait_time:.2f}s")
            await asyncio.sleep(wait_time)
            self._refill()
            self.tokens -= tokens


class RateLimiter:
    """Process-wide rate limiter with per-service (and optionally per-key) buckets."""

    def __init__(self):
        self._buckets: dict[str, TokenBucket] = {}
        self._configs: dict[str, RateLimitConfig] = {}
        self._lock = asyncio.Lock()
        self._last_request: dict[str, float] = defaultdict(float)

        # Default configurations for known services
        self._default_configs = {
            "tmdb": RateLimitConfig(requests_per_second=4.0, burst_size=10),
            # Per user; the stats dashboard runs several aggregate queries
            "recommendations_api": RateLimitConfig(requests_per_second=0.5, burst_size=10, min_interval=0.0),
            "default": RateLimitConfig(requests_per_second=2.0, burst_size=5),
        }

    def configure(self, service: str, config: RateLimitConfig) -> None:
        """Configure rate limits for a specific service (drops its existing buckets)."""
        self._configs[service] = config
        for bucket_key in [k for k in self._buckets if k == service or k.startswith(f"{service}:")]:
            del self._buckets[bucket_key]

    def reset(self) -> None:
        """Forget all buckets and overrides."""
        self._buckets.clear()
        self._configs.clear()
        self._last_request.clear()

    def _get_config(self, service: str) -> RateLimitConfig:
        return self._configs.get(
            service, self._default_configs.get(service, self._default_configs["default"])
        )

    def _get_bucket(self, service: str, key: str | None = None) -> TokenBucket:
        """Get or create a token bucket for a service (and caller key)."""
        bucket_key = f"{service}:{key}" if key is not None else service
        if bucket_key not in self._buckets:
            config = self._get_config(service)
            self._buckets[bucket_key] = TokenBucket(
                capacity=config.burst_size,
                refill_rate=config.requests_per_second,
            )
        return self._buckets[bucket_key]

    async def acquire(self, service: str = "default", tokens: int = 1) -> None:
        """Acquire rate limit tokens for a service, blocking if the limit is exceeded."""
        async with self._lock:
            bucket = self._get_bucket(service)
            min_interval = self._get_config(service).min_interval

            # Ensure minimum interval between requests
            now = time.monotonic()
            elapsed = now - self._last_request[service]
            if elapsed < min_interval:
                wait = min_interval - elapsed
                logger.debug(f"Rate limit [{service}]: waiting {wait:.3f}s (min interval)")
                await asyncio.sleep(wait)

            await bucket.acquire_async(tokens)
            self._last_request[service] = time.monotonic()

    def try_acquire(self, service: str, key: str | int, tokens: int = 1) -> bool:
        """Take tokens from a caller's bucket without waiting.

        Returns:
            False when the caller is over its limit
        """
        bucket = self._get_bucket(service, str(key))
        allowed = bucket.acquire(tokens) == 0.0
        if not allowed:
            logger.info(f"Rate limit [{service}] exceeded for {key}")
        return allowed

    def get_stats(self) -> dict[str, dict[str, float]]:
        """Get current rate limiter statistics."""
        stats = {}
        for bucket_key, bucket in self._buckets.items():
            bucket._refill()
            stats[bucket_key] = {
                "available_tokens": bucket.tokens,
                "capacity": bucket.capacity,
                "refill_rate": bucket.refill_rate,
            }
        return stats


# Global rate limiter instance
rate_limiter = RateLimiter()
