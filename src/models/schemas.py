"""Pydantic schemas for API validation and serialization.

Response bodies use camelCase keys, matching the JSON the web client reads.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.recommendation import RecommendationAction as RecommendationActionEnum
from src.models.watchlist import MediaType as MediaTypeEnum


class CamelModel(BaseModel):
    """Base schema serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Recommendation run
class RecommendationItemRead(CamelModel):
    """A surfaced recommendation."""

    log_id: int | None = None
    tmdb_id: int
    media_type: MediaTypeEnum
    title: str
    algorithm: str
    score: float = Field(ge=0, le=100)
    display_rating: float | None = None
    similarity_score: float
    cooccurrence_count: int
    sources: list[int] = Field(default_factory=list)


class RecommendationMetricsRead(CamelModel):
    """Pool sizes and mean score of a run."""

    candidates_pool_size: int = 0
    after_filters: int = 0
    avg_score: float = 0.0


class RecommendationRunResponse(CamelModel):
    """Response of GET /api/recommendations."""

    success: bool = True
    items: list[RecommendationItemRead]
    metrics: RecommendationMetricsRead


# Actions
class RecommendationActionRequest(BaseModel):
    """Body of POST /api/recommendations/{log_id}/action."""

    action: RecommendationActionEnum


class RecommendationActionResponse(CamelModel):
    """Log state after an action was recorded."""

    success: bool = True
    log_id: int
    action: RecommendationActionEnum
    changed: bool


# Taste profile
class TasteProfileSummary(CamelModel):
    """Sizes of a freshly rebuilt taste profile."""

    success: bool = True
    actors: int
    directors: int
    genres: int
    watched_count: int


# Stats dashboard
class OverviewStats(CamelModel):
    """Headline outcome numbers."""

    total_shown: int
    total_added_to_want: int
    total_watched: int
    acceptance_rate: float
    want_rate: float
    watch_rate: float


class AlgorithmStats(CamelModel):
    """Shown vs accepted counts for one algorithm."""

    total: int
    success: int
    failure: int
    success_rate: float


class UserSegmentStats(CamelModel):
    """Partition of all users by watch history size."""

    total_users: int
    cold_start: int
    active_users: int
    heavy_users: int
    cold_start_threshold: int
    heavy_user_threshold: int


class DayStatsRead(CamelModel):
    """One per-day outcome bucket."""

    date: str
    total: int
    added: int
    rated: int
    acceptance_rate: float


class RecommendationStatsResponse(CamelModel):
    """Response of GET /api/recommendations/stats."""

    success: bool = True
    window: Literal["7", "30", "all"]
    overview: OverviewStats
    algorithm_performance: dict[str, AlgorithmStats]
    user_segments: UserSegmentStats
    daily: list[DayStatsRead] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Failure envelope used by the recommendation endpoints."""

    success: bool = False
    error: str


# Ratings
class CommunityRatingResponse(CamelModel):
    """Platform rating and blended display score for one title."""

    tmdb_id: int
    media_type: MediaTypeEnum
    average_rating: float | None
    count: int
    tmdb_rating: float | None
    tmdb_votes: int | None
    cine_chance_score: float | None
