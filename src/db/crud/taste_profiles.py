"""Taste profile persistence."""

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.base import utcnow
from src.models.taste_profile import TasteProfileRecord
from src.models.user import User


async def get_taste_profile_record(db: AsyncSession, user_id: int) -> TasteProfileRecord | None:
    result = await db.execute(select(TasteProfileRecord).where(TasteProfileRecord.user_id == user_id))
    return result.scalar_one_or_none()


async def get_other_taste_profile_records(
    db: AsyncSession,
    exclude_user_id: int,
) -> Sequence[TasteProfileRecord]:
    """Stored profiles of every user except one, ordered by user id."""
    result = await db.execute(
        select(TasteProfileRecord)
        .where(TasteProfileRecord.user_id != exclude_user_id)
        .order_by(TasteProfileRecord.user_id)
    )
    return result.scalars().all()


async def save_taste_profile_record(
    db: AsyncSession,
    user_id: int,
    actors: dict[str, float],
    directors: dict[str, float],
    genres: dict[str, float],
) -> TasteProfileRecord:
    """Overwrite (or create) a user's stored profile."""
    record = await get_taste_profile_record(db, user_id)
    if record is None:
        record = TasteProfileRecord(user_id=user_id)
        db.add(record)

    record.actors = actors
    record.directors = directors
    record.genres = genres
    record.refreshed_at = utcnow()
    await db.flush()
    return record


async def get_all_user_ids(db: AsyncSession) -> list[int]:
    result = await db.execute(select(User.id).order_by(User.id))
    return list(result.scalars().all())
