"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import PostgresDsn, RedisDsn, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.constants import (
    BLEND_MAX_WEIGHT,
    BLEND_MIN_WEIGHT,
    BLEND_PRIOR_STRENGTH,
    BLEND_TRANSITION_VOTES,
    DEFAULT_COLD_START_THRESHOLD,
    DEFAULT_COOLDOWN_DAYS,
    DEFAULT_GENRE_SIMILARITY_THRESHOLD,
    DEFAULT_HEAVY_USER_THRESHOLD,
    DEFAULT_MAX_RECOMMENDATIONS,
    DEFAULT_MAX_TASTE_TWINS,
    DEFAULT_MIN_USER_HISTORY,
    DEFAULT_PERSON_SIMILARITY_THRESHOLD,
    DEFAULT_RECOMMENDATION_TIMEOUT,
    DEFAULT_TOP_MOVIES_PER_TWIN,
    DEFAULT_TWIN_MIN_RATING,
    METADATA_CACHE_MAX_SIZE,
    METADATA_CACHE_TTL,
    SESSION_SHOWN_MAX,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_env: Literal["development", "production", "test"] = "development"
    app_secret_key: str

    @field_validator("app_secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """Ensure secret key is strong enough."""
        if len(v) < 32:
            raise ValueError("APP_SECRET_KEY must be at least 32 characters long")
        if v == "change-me-to-a-secure-random-string":
            raise ValueError("APP_SECRET_KEY must be changed from the default value")
        return v

    app_url: str = "http://localhost:8080"
    app_name: str = "CineChance"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None

    # Database
    database_url: PostgresDsn

    # Redis
    redis_url: RedisDsn

    # External APIs
    tmdb_api_key: str = ""

    # Recommendation pipeline
    recommendation_cooldown_days: int = DEFAULT_COOLDOWN_DAYS
    min_user_history: int = DEFAULT_MIN_USER_HISTORY
    person_similarity_threshold: float = DEFAULT_PERSON_SIMILARITY_THRESHOLD
    genre_similarity_threshold: float = DEFAULT_GENRE_SIMILARITY_THRESHOLD
    max_taste_twins: int = DEFAULT_MAX_TASTE_TWINS
    top_movies_per_twin: int = DEFAULT_TOP_MOVIES_PER_TWIN
    twin_min_rating: float = DEFAULT_TWIN_MIN_RATING
    max_recommendations: int = DEFAULT_MAX_RECOMMENDATIONS
    recommendation_timeout_seconds: float = DEFAULT_RECOMMENDATION_TIMEOUT
    session_shown_max: int = SESSION_SHOWN_MAX

    # User cohorts
    cold_start_threshold: int = DEFAULT_COLD_START_THRESHOLD
    heavy_user_threshold: int = DEFAULT_HEAVY_USER_THRESHOLD

    # Rating blend
    blend_transition_votes: int = BLEND_TRANSITION_VOTES
    blend_min_weight: float = BLEND_MIN_WEIGHT
    blend_max_weight: float = BLEND_MAX_WEIGHT
    blend_prior_strength: float = BLEND_PRIOR_STRENGTH

    # Metadata cache
    metadata_cache_max_size: int = METADATA_CACHE_MAX_SIZE
    metadata_cache_ttl_seconds: float = METADATA_CACHE_TTL

    @model_validator(mode="after")
    def validate_thresholds(self) -> "Settings":
        """Reject knob combinations the pipeline cannot honour."""
        if not 0 <= self.blend_min_weight <= self.blend_max_weight <= 1:
            raise ValueError("BLEND_MIN_WEIGHT must be <= BLEND_MAX_WEIGHT, both within [0, 1]")
        if self.cold_start_threshold > self.heavy_user_threshold:
            raise ValueError("COLD_START_THRESHOLD must not exceed HEAVY_USER_THRESHOLD")
        if self.max_recommendations < 1:
            raise ValueError("MAX_RECOMMENDATIONS must be at least 1")
        if not 0 <= self.session_shown_max <= SESSION_SHOWN_MAX:
            raise ValueError(f"SESSION_SHOWN_MAX must be within [0, {SESSION_SHOWN_MAX}]")
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    @property
    def database_url_async(self) -> str:
        """Get async database URL (postgresql+asyncpg)."""
        url = str(self.database_url)
        return url.replace("postgresql://", "postgresql+asyncpg://")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]
