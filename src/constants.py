"""Application constants - centralized configuration values."""

# =============================================================================
# Recommendation pipeline defaults (overridable through Settings)
# =============================================================================
DEFAULT_COOLDOWN_DAYS = 7
DEFAULT_MIN_USER_HISTORY = 10  # Watched titles needed before twins are searched
DEFAULT_PERSON_SIMILARITY_THRESHOLD = 0.5
DEFAULT_GENRE_SIMILARITY_THRESHOLD = 0.6
DEFAULT_MAX_TASTE_TWINS = 15
DEFAULT_TOP_MOVIES_PER_TWIN = 10
DEFAULT_TWIN_MIN_RATING = 7.0  # 0-10 scale
DEFAULT_MAX_RECOMMENDATIONS = 12
DEFAULT_RECOMMENDATION_TIMEOUT = 10.0  # seconds
MAX_PROVENANCE_SOURCES = 3
MAX_FILTER_GENRES = 10  # Genres a viewer may select at once

# Taste profile
PROFILE_MAX_CAST = 5  # Top-billed actors per title that count toward affinity
PROFILE_MAX_ENTRIES = 100  # Per weight map

# =============================================================================
# Outcome tracking / dashboard
# =============================================================================
DEFAULT_COLD_START_THRESHOLD = 10
DEFAULT_HEAVY_USER_THRESHOLD = 500
STATS_WINDOWS = {"7": 7, "30": 30, "all": None}

# =============================================================================
# Rating blend
# =============================================================================
BLEND_TRANSITION_VOTES = 50
BLEND_MIN_WEIGHT = 0.15
BLEND_MAX_WEIGHT = 0.80
BLEND_PRIOR_STRENGTH = 2

# =============================================================================
# Cache TTLs (in seconds)
# =============================================================================
CACHE_TTL_STATS = 300  # 5 minutes
METADATA_CACHE_TTL = 30 * 60  # 30 minutes
METADATA_CACHE_MAX_SIZE = 1000

# =============================================================================
# API Timeouts (in seconds)
# =============================================================================
HTTPX_TIMEOUT = 10.0

# =============================================================================
# Background Task Intervals (in seconds)
# =============================================================================
SYNC_INTERVAL_TASTE_PROFILES = 12 * 60 * 60  # 12 hours (2x/day)
SYNC_INTERVAL_CACHE_CLEANUP = 10 * 60  # 10 minutes
MAX_CONSECUTIVE_FAILURES = 5

# =============================================================================
# Session & Security
# =============================================================================
SESSION_TIMEOUT_DAYS = 7
SESSION_COOKIE_NAME = "cinechance_session"
SESSION_SHOWN_KEY = "recommendations_shown"
SESSION_SHOWN_MAX = 100  # Keys kept in the session cookie; more overflows the 4 KB cookie limit

# =============================================================================
# Rating
# =============================================================================
RATING_MAX = 10.0

# =============================================================================
# External API URLs
# =============================================================================
TMDB_API_BASE_URL = "https://api.themoviedb.org/3"
