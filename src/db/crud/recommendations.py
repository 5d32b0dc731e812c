"""Recommendation log queries."""

from collections.abc import Iterable, Sequence
from datetime import datetime

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.base import utcnow
from src.models.recommendation import RecommendationAction, RecommendationLog
from src.models.watchlist import TitleKey, title_key


async def get_recent_log_keys(db: AsyncSession, user_id: int, since: datetime) -> set[TitleKey]:
    """Titles shown to a user at or after ``since``, whatever the outcome."""
    result = await db.execute(
        select(RecommendationLog.tmdb_id, RecommendationLog.media_type)
        .where(
            and_(
                RecommendationLog.user_id == user_id,
                RecommendationLog.shown_at >= since,
            )
        )
        .distinct()
    )
    return {title_key(tmdb_id, media_type) for tmdb_id, media_type in result.all()}


async def add_logs(db: AsyncSession, logs: Iterable[RecommendationLog]) -> list[RecommendationLog]:
    """Append log rows and flush so they get ids (the caller owns the commit)."""
    logs = list(logs)
    db.add_all(logs)
    await db.flush()
    return logs


async def get_log(db: AsyncSession, log_id: int, user_id: int) -> RecommendationLog | None:
    """A log row, only if it belongs to the user."""
    result = await db.execute(
        select(RecommendationLog).where(
            and_(RecommendationLog.id == log_id, RecommendationLog.user_id == user_id)
        )
    )
    return result.scalar_one_or_none()


async def set_log_action(
    db: AsyncSession,
    log: RecommendationLog,
    action: RecommendationAction,
) -> RecommendationLog:
    """Record the user's response on a log row."""
    log.action = action
    log.action_at = utcnow()
    await db.flush()
    return log


async def get_logs(
    db: AsyncSession,
    user_id: int,
    since: datetime | None = None,
    until: datetime | None = None,
    algorithm: str | None = None,
) -> Sequence[RecommendationLog]:
    """A user's log rows, oldest first, optionally bounded and per algorithm."""
    conditions = [RecommendationLog.user_id == user_id]
    if since is not None:
        conditions.append(RecommendationLog.shown_at >= since)
    if until is not None:
        conditions.append(RecommendationLog.shown_at <= until)
    if algorithm is not None:
        conditions.append(RecommendationLog.algorithm == algorithm)

    result = await db.execute(
        select(RecommendationLog)
        .where(and_(*conditions))
        .order_by(RecommendationLog.shown_at, RecommendationLog.id)
    )
    return result.scalars().all()
