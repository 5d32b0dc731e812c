"""Watch list model: the titles a user keeps in their personal lists."""

import enum
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Enum, Float, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from src.models.user import User


class MediaType(str, enum.Enum):
    """Type of title, mirrors the metadata provider's media types."""

    MOVIE = "movie"
    TV = "tv"


class WatchStatus(str, enum.Enum):
    """List a title sits in."""

    WANT = "want"
    WATCHED = "watched"
    REWATCHED = "rewatched"
    DROPPED = "dropped"


# Statuses that count toward watch history
WATCHED_STATUSES = (WatchStatus.WATCHED, WatchStatus.REWATCHED)


class WatchListEntry(Base, TimestampMixin):
    """One title in one user's list, with the metadata the recommender reads."""

    __tablename__ = "watch_list"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    tmdb_id: Mapped[int] = mapped_column(Integer, nullable=False)
    media_type: Mapped[MediaType] = mapped_column(Enum(MediaType), nullable=False)
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)

    status: Mapped[WatchStatus] = mapped_column(
        Enum(WatchStatus), default=WatchStatus.WANT, nullable=False, index=True
    )
    user_rating: Mapped[float | None] = mapped_column(Float, nullable=True)  # 0-10

    # External aggregate (provider vote average / count)
    vote_average: Mapped[float | None] = mapped_column(Float, nullable=True)
    vote_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Credits, as provider person ids. Cast is billing order.
    cast: Mapped[list] = mapped_column(JSON, default=list)
    directors: Mapped[list] = mapped_column(JSON, default=list)
    genre_ids: Mapped[list] = mapped_column(JSON, default=list)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="watch_list")

    __table_args__ = (
        UniqueConstraint("user_id", "tmdb_id", "media_type", name="uq_watch_list_user_title"),
        Index("ix_watch_list_user_status", "user_id", "status"),
        Index("ix_watch_list_user_rating", "user_id", "user_rating"),
        Index("ix_watch_list_title", "tmdb_id", "media_type"),
    )

    @property
    def key(self) -> "TitleKey":
        return title_key(self.tmdb_id, self.media_type)

    @property
    def is_watched(self) -> bool:
        return self.status in WATCHED_STATUSES

    @property
    def has_credits(self) -> bool:
        return bool(self.cast or self.directors)

    def __repr__(self) -> str:
        return f"<WatchListEntry(id={self.id}, tmdb_id={self.tmdb_id}, status={self.status})>"


TitleKey = tuple[int, str]


def title_key(tmdb_id: int, media_type: "MediaType | str") -> TitleKey:
    """Identity of a title across users: (tmdb id, media type value)."""
    return (int(tmdb_id), MediaType(media_type).value)
