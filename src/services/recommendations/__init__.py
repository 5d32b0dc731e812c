"""Recommendation services package."""

from src.services.recommendations.filters import FilterPipeline, parse_user_filters
from src.services.recommendations.generators import (
    GenreTwinsAlgorithm,
    PersonTwinsAlgorithm,
    RecommendationAlgorithm,
    merge_twin_movies,
)
from src.services.recommendations.orchestrator import RecommendationOrchestrator, normalize_context
from src.services.recommendations.outcomes import OutcomeTracker
from src.services.recommendations.rating_blend import (
    calculate_cine_chance_score,
    community_rating,
    round_rating,
)
from src.services.recommendations.scoring import ScoreWeights, ScoringEngine
from src.services.recommendations.similarity import genre_similarity, overlap, person_similarity
from src.services.recommendations.taste_profile import TasteProfileStore, build_taste_profile
from src.services.recommendations.types import (
    CandidateMovie,
    RecommendationResult,
    SessionState,
    TasteProfile,
    UserFilters,
)

__all__ = [
    "CandidateMovie",
    "FilterPipeline",
    "GenreTwinsAlgorithm",
    "OutcomeTracker",
    "PersonTwinsAlgorithm",
    "RecommendationAlgorithm",
    "RecommendationOrchestrator",
    "RecommendationResult",
    "ScoreWeights",
    "ScoringEngine",
    "SessionState",
    "TasteProfile",
    "TasteProfileStore",
    "UserFilters",
    "build_taste_profile",
    "calculate_cine_chance_score",
    "community_rating",
    "genre_similarity",
    "merge_twin_movies",
    "normalize_context",
    "overlap",
    "parse_user_filters",
    "person_similarity",
    "round_rating",
]
