"""External metadata providers."""

from src.services.metadata.tmdb import TMDBService, get_tmdb_service

__all__ = ["TMDBService", "get_tmdb_service"]
