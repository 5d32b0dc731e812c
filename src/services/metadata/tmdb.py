"""TMDB API integration: title details the recommender needs.

The client is built around an injected ``TTLCache`` so cache size, TTL and
eviction are owned (and testable) outside the HTTP code.
"""

import logging
from collections.abc import Callable
from functools import lru_cache
from typing import Any

import httpx

from src.config import get_settings
from src.constants import PROFILE_MAX_CAST, TMDB_API_BASE_URL
from src.utils.cache import TTLCache
from src.utils.http_client import get_tmdb_client
from src.utils.metrics import metrics
from src.utils.rate_limiter import rate_limiter
from src.utils.retry import METADATA_RETRY_CONFIG, retry_async

logger = logging.getLogger(__name__)

MEDIA_TYPES = ("movie", "tv")


class TMDBService:
    """Fetch-by-id metadata lookups with an in-process TTL cache."""

    def __init__(
        self,
        cache: TTLCache,
        api_key: str,
        client_factory: Callable[[], httpx.AsyncClient] = get_tmdb_client,
    ) -> None:
        self.cache = cache
        self.api_key = api_key
        self._client_factory = client_factory
        # Support both API key v3 and Bearer token
        if api_key and api_key.startswith("eyJ"):
            self.headers = {
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            }
            self.use_api_key_param = False
        else:
            self.headers = {"Accept": "application/json"}
            self.use_api_key_param = True

    def _add_api_key(self, params: dict) -> dict:
        """Add API key to params if using v3 key."""
        if self.use_api_key_param:
            params["api_key"] = self.api_key
        return params

    @staticmethod
    def cache_key(tmdb_id: int, media_type: str) -> str:
        return f"{media_type}:{tmdb_id}"

    async def get_details(self, tmdb_id: int, media_type: str) -> dict[str, Any] | None:
        """Get title, vote average/count, genre ids and credits for a title.

        Returns:
            ``{title, vote_average, vote_count, genre_ids, cast, directors}``
            or None when the title is unknown or the provider is unreachable.
        """
        if not self.api_key or media_type not in MEDIA_TYPES:
            return None

        key = self.cache_key(tmdb_id, media_type)
        cached = self.cache.get(key)
        if cached is not None:
            metrics.metadata_cache_requests_total.inc(result="hit")
            return cached
        metrics.metadata_cache_requests_total.inc(result="miss")

        details = await self._fetch_details(tmdb_id, media_type)
        if details is not None:
            self.cache.set(key, details)
        return details

    async def _fetch_details(self, tmdb_id: int, media_type: str) -> dict[str, Any] | None:
        client = self._client_factory()
        params = self._add_api_key({"append_to_response": "credits"})

        await rate_limiter.acquire("tmdb")
        response = await retry_async(
            client.get,
            f"{TMDB_API_BASE_URL}/{media_type}/{tmdb_id}",
            params=params,
            headers=self.headers,
            config=METADATA_RETRY_CONFIG,
            operation_name=f"TMDB {media_type} {tmdb_id}",
        )

        if response is None:
            metrics.external_api_requests_total.inc(service="tmdb", status="error")
            return None
        metrics.external_api_requests_total.inc(service="tmdb", status=str(response.status_code))
        if response.status_code != 200:
            logger.debug(f"TMDB returned {response.status_code} for {media_type} {tmdb_id}")
            return None

        return parse_details(response.json(), media_type)


def parse_details(payload: dict[str, Any], media_type: str) -> dict[str, Any]:
    """Reduce a TMDB details payload (with appended credits) to what the recommender reads."""
    credits = payload.get("credits") or {}

    cast = [member["id"] for member in credits.get("cast", [])[:PROFILE_MAX_CAST] if "id" in member]

    directors = [
        member["id"]
        for member in credits.get("crew", [])
        if member.get("job") == "Director" and "id" in member
    ]
    # Series have no single director; creators fill that role
    if media_type == "tv":
        directors.extend(c["id"] for c in payload.get("created_by", []) if "id" in c)
    directors = list(dict.fromkeys(directors))

    return {
        "title": payload.get("title") or payload.get("name") or payload.get("original_title"),
        "vote_average": payload.get("vote_average"),
        "vote_count": payload.get("vote_count"),
        "genre_ids": [g["id"] for g in payload.get("genres", []) if "id" in g],
        "cast": cast,
        "directors": directors,
    }


@lru_cache
def get_tmdb_service() -> TMDBService:
    """Process-wide metadata client with a cache sized from settings."""
    settings = get_settings()
    return TMDBService(
        cache=TTLCache(
            max_size=settings.metadata_cache_max_size,
            ttl_seconds=settings.metadata_cache_ttl_seconds,
        ),
        api_key=settings.tmdb_api_key,
    )
