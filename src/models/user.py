"""User model."""

from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from src.models.recommendation import RecommendationLog
    from src.models.taste_profile import TasteProfileRecord
    from src.models.watchlist import WatchListEntry


class User(Base, TimestampMixin):
    """Platform user. Identity is owned by the external auth layer."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Relationships
    # lazy="select" keeps user lookups from pulling whole watch lists
    watch_list: Mapped[list["WatchListEntry"]] = relationship(
        "WatchListEntry",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="select",
    )
    recommendation_logs: Mapped[list["RecommendationLog"]] = relationship(
        "RecommendationLog",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="select",
    )
    taste_profile: Mapped["TasteProfileRecord | None"] = relationship(
        "TasteProfileRecord",
        back_populates="user",
        cascade="all, delete-orphan",
        uselist=False,
        lazy="select",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username})>"
