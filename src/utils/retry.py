"""Retry with exponential backoff for metadata provider calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 30.0  # seconds
    exponential_base: float = 2.0
    retryable_exceptions: tuple = (
        httpx.TimeoutException,
        httpx.ConnectError,
        httpx.ReadError,
        ConnectionError,
        TimeoutError,
    )
    retryable_status_codes: tuple = (429, 500, 502, 503, 504)

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (self.exponential_base**attempt), self.max_delay)


DEFAULT_RETRY_CONFIG = RetryConfig()

# Recommendation runs carry a deadline, so metadata lookups give up quickly
METADATA_RETRY_CONFIG = RetryConfig(max_retries=2, base_delay=0.25, max_delay=2.0)


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: RetryConfig = DEFAULT_RETRY_CONFIG,
    operation_name: str = "operation",
    **kwargs: Any,
) -> T | None:
    """Execute an async function with retry logic and exponential backoff.

    Retryable exceptions and retryable HTTP status codes are retried up to
    ``config.max_retries`` times. Other exceptions propagate.

    Returns:
        The result of the function, or None if all retries failed
    """
    attempts = config.max_retries + 1

    for attempt in range(attempts):
        try:
            result = await func(*args, **kwargs)
        except config.retryable_exceptions as e:
            if attempt < config.max_retries:
                delay = config.delay_for(attempt)
                logger.warning(
                    f"{operation_name}: {type(e).__name__}, "
                    f"retrying in {delay:.1f}s (attempt {attempt + 1}/{attempts})"
                )
                await asyncio.sleep(delay)
                continue
            logger.error(f"{operation_name}: Failed after {attempts} attempts: {e}")
            return None

        if isinstance(result, httpx.Response) and result.status_code in config.retryable_status_codes:
            if attempt < config.max_retries:
                delay = config.delay_for(attempt)
                logger.warning(
                    f"{operation_name}: Got status {result.status_code}, "
                    f"retrying in {delay:.1f}s (attempt {attempt + 1}/{attempts})"
                )
                await asyncio.sleep(delay)
                continue
            logger.error(
                f"{operation_name}: Failed after {attempts} attempts with status {result.status_code}"
            )
            return None

        return result

    return None
