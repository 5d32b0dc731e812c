"""Watch list queries used by the recommendation pipeline."""

from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.user import User
from src.models.watchlist import (
    WATCHED_STATUSES,
    MediaType,
    TitleKey,
    WatchListEntry,
    title_key,
)


def _title_filter(keys: Iterable[TitleKey]):
    """WHERE clause matching any of the given (tmdb_id, media_type) keys."""
    clauses = [
        and_(WatchListEntry.tmdb_id == tmdb_id, WatchListEntry.media_type == MediaType(media_type))
        for tmdb_id, media_type in keys
    ]
    return or_(*clauses)


async def count_watched(db: AsyncSession, user_id: int) -> int:
    """Number of watched/rewatched titles in a user's list."""
    result = await db.scalar(
        select(func.count(WatchListEntry.id)).where(
            and_(
                WatchListEntry.user_id == user_id,
                WatchListEntry.status.in_(WATCHED_STATUSES),
            )
        )
    )
    return result or 0


async def count_watched_by_user(db: AsyncSession) -> dict[int, int]:
    """Watched count for every user, including users with none."""
    watched = (
        select(WatchListEntry.user_id, func.count(WatchListEntry.id).label("watched"))
        .where(WatchListEntry.status.in_(WATCHED_STATUSES))
        .group_by(WatchListEntry.user_id)
        .subquery()
    )
    result = await db.execute(
        select(User.id, func.coalesce(watched.c.watched, 0)).outerjoin(
            watched, watched.c.user_id == User.id
        )
    )
    return {user_id: count for user_id, count in result.all()}


async def get_watched_entries(db: AsyncSession, user_id: int) -> Sequence[WatchListEntry]:
    """All watched/rewatched entries of a user."""
    result = await db.execute(
        select(WatchListEntry)
        .where(
            and_(
                WatchListEntry.user_id == user_id,
                WatchListEntry.status.in_(WATCHED_STATUSES),
            )
        )
        .order_by(WatchListEntry.id)
    )
    return result.scalars().all()


async def get_top_rated_watched(
    db: AsyncSession,
    user_id: int,
    min_rating: float,
    limit: int,
) -> Sequence[WatchListEntry]:
    """A user's best-rated watched titles, by rating then vote average (desc)."""
    result = await db.execute(
        select(WatchListEntry)
        .where(
            and_(
                WatchListEntry.user_id == user_id,
                WatchListEntry.status.in_(WATCHED_STATUSES),
                WatchListEntry.user_rating >= min_rating,
            )
        )
        .order_by(
            WatchListEntry.user_rating.desc(),
            func.coalesce(WatchListEntry.vote_average, 0).desc(),
            WatchListEntry.tmdb_id,
        )
        .limit(limit)
    )
    return result.scalars().all()


async def get_list_keys(db: AsyncSession, user_id: int) -> set[TitleKey]:
    """Keys of every title in a user's list, whatever its status."""
    result = await db.execute(
        select(WatchListEntry.tmdb_id, WatchListEntry.media_type).where(
            WatchListEntry.user_id == user_id
        )
    )
    return {title_key(tmdb_id, media_type) for tmdb_id, media_type in result.all()}


async def get_entries_for_titles(
    db: AsyncSession,
    user_id: int,
    keys: Iterable[TitleKey],
) -> dict[TitleKey, WatchListEntry]:
    """A user's list entries for the given titles, keyed by title."""
    keys = list(keys)
    if not keys:
        return {}
    result = await db.execute(
        select(WatchListEntry).where(
            and_(WatchListEntry.user_id == user_id, _title_filter(keys))
        )
    )
    return {entry.key: entry for entry in result.scalars().all()}


async def get_community_ratings(
    db: AsyncSession,
    keys: Iterable[TitleKey],
) -> dict[TitleKey, tuple[float, int]]:
    """Platform rating per title: (mean of positive user ratings, rating count).

    Titles nobody rated are absent from the result.
    """
    keys = list(keys)
    if not keys:
        return {}
    result = await db.execute(
        select(
            WatchListEntry.tmdb_id,
            WatchListEntry.media_type,
            func.avg(WatchListEntry.user_rating),
            func.count(WatchListEntry.user_rating),
        )
        .where(and_(WatchListEntry.user_rating > 0, _title_filter(keys)))
        .group_by(WatchListEntry.tmdb_id, WatchListEntry.media_type)
    )
    return {
        title_key(tmdb_id, media_type): (float(avg), int(count))
        for tmdb_id, media_type, avg, count in result.all()
    }


async def get_title_ratings(db: AsyncSession, tmdb_id: int, media_type: MediaType) -> list[float | None]:
    """Every stored user rating of one title (raw, unfiltered)."""
    result = await db.execute(
        select(WatchListEntry.user_rating).where(
            and_(WatchListEntry.tmdb_id == tmdb_id, WatchListEntry.media_type == media_type)
        )
    )
    return list(result.scalars().all())


async def get_external_rating(
    db: AsyncSession,
    tmdb_id: int,
    media_type: MediaType,
) -> tuple[float, int] | None:
    """Provider vote average/count as stored on any list entry for the title."""
    result = await db.execute(
        select(WatchListEntry.vote_average, WatchListEntry.vote_count)
        .where(
            and_(
                WatchListEntry.tmdb_id == tmdb_id,
                WatchListEntry.media_type == media_type,
                WatchListEntry.vote_average.is_not(None),
            )
        )
        .order_by(func.coalesce(WatchListEntry.vote_count, 0).desc())
        .limit(1)
    )
    row = result.first()
    if row is None:
        return None
    return float(row[0]), int(row[1] or 0)


def apply_details(entry: WatchListEntry, details: dict[str, Any]) -> bool:
    """Fill missing metadata on an entry from a provider details dict.

    Returns:
        True if anything changed
    """
    changed = False
    for field in ("cast", "directors", "genre_ids"):
        if not getattr(entry, field) and details.get(field):
            setattr(entry, field, list(details[field]))
            changed = True
    for field in ("title", "vote_average", "vote_count"):
        if getattr(entry, field) is None and details.get(field) is not None:
            setattr(entry, field, details[field])
            changed = True
    return changed
