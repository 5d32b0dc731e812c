"""Pooled httpx clients for upstream services, one per service per process."""

import logging

import httpx

from src.constants import HTTPX_TIMEOUT

logger = logging.getLogger(__name__)

_POOL_LIMITS = httpx.Limits(
    max_connections=20,
    max_keepalive_connections=10,
    keepalive_expiry=30,
)

_clients: dict[str, httpx.AsyncClient] = {}


def get_client(service: str, timeout: float = HTTPX_TIMEOUT) -> httpx.AsyncClient:
    """Client for an upstream service, created on first use."""
    client = _clients.get(service)
    if client is None or client.is_closed:
        client = httpx.AsyncClient(timeout=timeout, limits=_POOL_LIMITS)
        _clients[service] = client
    return client


def get_tmdb_client() -> httpx.AsyncClient:
    return get_client("tmdb")


async def close_all_clients() -> None:
    """Close every pooled client. Call during app shutdown."""
    while _clients:
        service, client = _clients.popitem()
        await client.aclose()
        logger.debug(f"Closed HTTP client for {service}")
