"""Recommendation log model: one row per title surfaced to a user."""

import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Enum, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, utcnow
from src.models.watchlist import MediaType, TitleKey, title_key

if TYPE_CHECKING:
    from src.models.user import User


class RecommendationAction(str, enum.Enum):
    """User response to a surfaced recommendation."""

    ACCEPTED_YES = "accepted_yes"
    ACCEPTED_NO = "accepted_no"


class RecommendationLog(Base):
    """Append-only record of a recommendation shown to a user.

    Rows are written once per surfaced item. The only later mutation is the
    ``action`` field, which is set at most once when the user responds.
    """

    __tablename__ = "recommendation_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    tmdb_id: Mapped[int] = mapped_column(Integer, nullable=False)
    media_type: Mapped[MediaType] = mapped_column(Enum(MediaType), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)

    algorithm: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    score: Mapped[float] = mapped_column(Float, nullable=False)  # Normalized 0-100
    context: Mapped[dict] = mapped_column(JSON, default=dict)  # Free-form: source, position, counts

    shown_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    action: Mapped[RecommendationAction | None] = mapped_column(
        Enum(RecommendationAction), nullable=True, default=None
    )
    action_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="recommendation_logs")

    __table_args__ = (
        Index("ix_recommendation_log_user_shown", "user_id", "shown_at"),  # Cooldown window scans
        Index("ix_recommendation_log_user_title", "user_id", "tmdb_id", "media_type"),
        Index("ix_recommendation_log_algorithm_shown", "algorithm", "shown_at"),
    )

    @property
    def key(self) -> TitleKey:
        return title_key(self.tmdb_id, self.media_type)

    def __repr__(self) -> str:
        return f"<RecommendationLog(id={self.id}, tmdb_id={self.tmdb_id}, score={self.score:.1f})>"
