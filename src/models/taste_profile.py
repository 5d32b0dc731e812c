"""Stored taste profile: per-user affinity maps over people and genres."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, utcnow

if TYPE_CHECKING:
    from src.models.user import User


class TasteProfileRecord(Base):
    """One row per user, overwritten wholesale on every refresh.

    Maps are keyed by provider id (stored as JSON object keys, i.e. strings)
    with non-negative weights.
    """

    __tablename__ = "taste_profiles"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    actors: Mapped[dict] = mapped_column(JSON, default=dict)
    directors: Mapped[dict] = mapped_column(JSON, default=dict)
    genres: Mapped[dict] = mapped_column(JSON, default=dict)
    refreshed_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="taste_profile")

    def __repr__(self) -> str:
        return (
            f"<TasteProfileRecord(user_id={self.user_id}, actors={len(self.actors or {})}, "
            f"directors={len(self.directors or {})}, genres={len(self.genres or {})})>"
        )
