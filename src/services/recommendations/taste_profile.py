"""Taste profiles: per-user affinity for actors, directors and genres.

A profile is rebuilt from the user's rated watch history and stored
wholesale. Each person or genre gets a weight mixing how much the user liked
the titles featuring it with how often it appears:

    weight = avg_rating * 0.7 + min(sqrt(count) / 3, 1) * 0.3

where ``avg_rating`` is on [0, 1]. Frequency saturates at 9 titles.
"""

import logging
import math
from collections import defaultdict
from collections.abc import Iterable
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession

from src.constants import PROFILE_MAX_CAST, PROFILE_MAX_ENTRIES, RATING_MAX
from src.db.crud import (
    apply_details,
    count_watched,
    get_all_user_ids,
    get_other_taste_profile_records,
    get_taste_profile_record,
    get_watched_entries,
    save_taste_profile_record,
)
from src.models.watchlist import WatchListEntry
from src.services.recommendations.types import TasteProfile

if TYPE_CHECKING:
    from src.services.metadata.tmdb import TMDBService

logger = logging.getLogger(__name__)

QUALITY_WEIGHT = 0.7
FREQUENCY_WEIGHT = 0.3


def affinity_weight(ratings: list[float]) -> float:
    """Blend of average normalized rating and (saturating) frequency."""
    if not ratings:
        return 0.0
    avg = sum(ratings) / len(ratings)
    frequency = min(math.sqrt(len(ratings)) / 3, 1.0)
    return round(avg * QUALITY_WEIGHT + frequency * FREQUENCY_WEIGHT, 4)


def _top_weights(collected: dict[int, list[float]], limit: int) -> dict[int, float]:
    weights = {key: affinity_weight(ratings) for key, ratings in collected.items()}
    ranked = sorted(weights.items(), key=lambda item: (-item[1], item[0]))[:limit]
    return {key: weight for key, weight in ranked if weight > 0}


def build_taste_profile(
    entries: Iterable[WatchListEntry],
    *,
    max_cast: int = PROFILE_MAX_CAST,
    max_entries: int = PROFILE_MAX_ENTRIES,
) -> TasteProfile:
    """Build a profile from list entries. Only rated, watched titles count."""
    actors: dict[int, list[float]] = defaultdict(list)
    directors: dict[int, list[float]] = defaultdict(list)
    genres: dict[int, list[float]] = defaultdict(list)

    for entry in entries:
        if not entry.is_watched or entry.user_rating is None or entry.user_rating <= 0:
            continue
        normalized = min(entry.user_rating, RATING_MAX) / RATING_MAX

        for person_id in list(dict.fromkeys(entry.cast or []))[:max_cast]:
            actors[int(person_id)].append(normalized)
        for person_id in dict.fromkeys(entry.directors or []):
            directors[int(person_id)].append(normalized)
        for genre_id in dict.fromkeys(entry.genre_ids or []):
            genres[int(genre_id)].append(normalized)

    return TasteProfile(
        actors=_top_weights(actors, max_entries),
        directors=_top_weights(directors, max_entries),
        genres=_top_weights(genres, max_entries),
    )


class TasteProfileStore:
    """Reads and rebuilds stored taste profiles."""

    def __init__(self, db: AsyncSession, metadata: "TMDBService | None" = None) -> None:
        self.db = db
        self.metadata = metadata

    async def get(self, user_id: int) -> TasteProfile | None:
        record = await get_taste_profile_record(self.db, user_id)
        if record is None:
            return None
        return TasteProfile.from_maps(record.actors, record.directors, record.genres)

    async def get_others(self, user_id: int) -> list[tuple[int, TasteProfile]]:
        """Every other user's stored profile, ordered by user id."""
        records = await get_other_taste_profile_records(self.db, user_id)
        return [
            (record.user_id, TasteProfile.from_maps(record.actors, record.directors, record.genres))
            for record in records
        ]

    async def count_watched(self, user_id: int) -> int:
        return await count_watched(self.db, user_id)

    async def refresh(self, user_id: int) -> TasteProfile:
        """Rebuild a user's profile from their watch list and overwrite the stored one."""
        entries = await get_watched_entries(self.db, user_id)

        if self.metadata is not None:
            await self._backfill_credits(entries)

        profile = build_taste_profile(entries)
        maps = profile.to_maps()
        await save_taste_profile_record(
            self.db,
            user_id,
            actors=maps["actors"],
            directors=maps["directors"],
            genres=maps["genres"],
        )
        logger.debug(
            f"Refreshed taste profile for user {user_id}: "
            f"{len(profile.actors)} actors, {len(profile.directors)} directors, {len(profile.genres)} genres"
        )
        return profile

    async def _backfill_credits(self, entries: Iterable[WatchListEntry]) -> None:
        """Fetch credits for rated entries that have none. Failures are skipped."""
        for entry in entries:
            if entry.user_rating is None or (entry.has_credits and entry.genre_ids):
                continue
            try:
                details = await self.metadata.get_details(entry.tmdb_id, entry.key[1])
            except Exception as e:
                logger.warning(f"Metadata lookup failed for {entry.key}: {e}")
                continue
            if details and apply_details(entry, details):
                await self.db.flush()

    async def refresh_all(self) -> int:
        """Refresh every user's profile, committing per user.

        Returns:
            Number of profiles refreshed
        """
        refreshed = 0
        for user_id in await get_all_user_ids(self.db):
            try:
                await self.refresh(user_id)
                await self.db.commit()
                refreshed += 1
            except Exception as e:
                await self.db.rollback()
                logger.warning(f"Taste profile refresh failed for user {user_id}: {e}", exc_info=True)
        return refreshed
