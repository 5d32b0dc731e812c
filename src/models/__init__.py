"""SQLAlchemy models."""

from src.models.base import Base, TimestampMixin, utcnow
from src.models.recommendation import RecommendationAction, RecommendationLog
from src.models.taste_profile import TasteProfileRecord
from src.models.user import User
from src.models.watchlist import (
    WATCHED_STATUSES,
    MediaType,
    TitleKey,
    WatchListEntry,
    WatchStatus,
    title_key,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "utcnow",
    "User",
    "MediaType",
    "WatchStatus",
    "WATCHED_STATUSES",
    "WatchListEntry",
    "TitleKey",
    "title_key",
    "RecommendationAction",
    "RecommendationLog",
    "TasteProfileRecord",
]
