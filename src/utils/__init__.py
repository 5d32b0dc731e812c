"""Utility modules for the CineChance recommendation service."""

from src.utils.cache import TTLCache, cache, make_cache_key
from src.utils.logging import LogContext, get_logger, setup_logging
from src.utils.rate_limiter import RateLimitConfig, rate_limiter
from src.utils.retry import RetryConfig, retry_async

__all__ = [
    # Caching
    "TTLCache",
    "cache",
    "make_cache_key",
    # Logging
    "get_logger",
    "LogContext",
    "setup_logging",
    # Rate limiting
    "rate_limiter",
    "RateLimitConfig",
    # Retry
    "retry_async",
    "RetryConfig",
]
