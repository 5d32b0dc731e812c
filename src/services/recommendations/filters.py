"""Exclusion filters applied to scored candidates.

A candidate is dropped when its title was shown to the user within the
cooldown window (whatever the response), is already in the user's list
(any status), was already shown in the current session, or does not match
the viewer's own filters (media types, genres, minimum rating).
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import timedelta
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from src.constants import DEFAULT_COOLDOWN_DAYS, MAX_FILTER_GENRES, RATING_MAX
from src.db.crud import get_list_keys, get_recent_log_keys
from src.models.base import utcnow
from src.models.watchlist import MediaType, TitleKey
from src.services.recommendations.types import CandidateMovie, ScoredCandidate, SessionState, UserFilters

logger = logging.getLogger(__name__)

T = TypeVar("T")


def exclude_keys(candidates: Sequence[T], *key_sets: Iterable[TitleKey]) -> list[T]:
    """Keep candidates whose ``key`` is in none of the given sets (order preserved)."""
    excluded: set[TitleKey] = set()
    for keys in key_sets:
        excluded.update(keys)
    return [c for c in candidates if c.key not in excluded]


def parse_user_filters(
    media_types: Iterable[str] | None = None,
    genre_ids: Iterable[int] | None = None,
    min_rating: float | None = None,
) -> UserFilters:
    """Validate viewer-chosen filters.

    Raises:
        ValueError: unknown media type, more than MAX_FILTER_GENRES genres,
            a non-positive genre id or a rating outside 0-10
    """
    known = {m.value for m in MediaType}
    types = frozenset(media_types or ())
    unknown = types - known
    if unknown:
        raise ValueError(f"Unknown content types: {', '.join(sorted(unknown))}")

    genres = frozenset(genre_ids or ())
    if len(genres) > MAX_FILTER_GENRES:
        raise ValueError(f"At most {MAX_FILTER_GENRES} genres can be selected")
    if any(g <= 0 for g in genres):
        raise ValueError("Genre ids must be positive")

    rating = float(min_rating or 0.0)
    if not 0 <= rating <= RATING_MAX:
        raise ValueError(f"Minimum rating must be between 0 and {RATING_MAX:g}")

    return UserFilters(media_types=types, genre_ids=genres, min_rating=rating)


def _movie(item: CandidateMovie | ScoredCandidate) -> CandidateMovie:
    return item.candidate if isinstance(item, ScoredCandidate) else item


class FilterPipeline:
    """Cooldown, list, session and viewer-filter exclusion for one user."""

    def __init__(self, db: AsyncSession, cooldown_days: int = DEFAULT_COOLDOWN_DAYS) -> None:
        self.db = db
        self.cooldown_days = cooldown_days

    async def cooldown_keys(self, user_id: int) -> set[TitleKey]:
        since = utcnow() - timedelta(days=self.cooldown_days)
        return await get_recent_log_keys(self.db, user_id, since)

    async def filter(
        self,
        candidates: Sequence[T],
        user_id: int,
        session_state: SessionState | None = None,
        user_filters: UserFilters | None = None,
    ) -> list[T]:
        """Candidates still eligible. An empty result is a normal outcome."""
        if not candidates:
            return []

        recent = await self.cooldown_keys(user_id)
        in_list = await get_list_keys(self.db, user_id)
        in_session = session_state.shown if session_state else set()

        kept = exclude_keys(candidates, recent, in_list, in_session)
        if user_filters is not None and not user_filters.is_empty:
            kept = [c for c in kept if user_filters.matches(_movie(c))]
        logger.debug(
            f"Filters for user {user_id}: {len(candidates)} -> {len(kept)} "
            f"(cooldown={len(recent)}, list={len(in_list)}, session={len(in_session)}, user_filters={user_filters})"
        )
        return kept
