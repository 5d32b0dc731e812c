"""In-memory types flowing through the recommendation pipeline."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from src.models.watchlist import TitleKey, title_key


@dataclass
class TasteProfile:
    """Per-user affinity maps. Absent key means zero affinity."""

    actors: dict[int, float] = field(default_factory=dict)
    directors: dict[int, float] = field(default_factory=dict)
    genres: dict[int, float] = field(default_factory=dict)

    @property
    def has_people(self) -> bool:
        return any(w > 0 for w in self.actors.values()) or any(w > 0 for w in self.directors.values())

    @property
    def has_genres(self) -> bool:
        return any(w > 0 for w in self.genres.values())

    @classmethod
    def from_maps(
        cls,
        actors: dict | None,
        directors: dict | None,
        genres: dict | None,
    ) -> "TasteProfile":
        """Build from stored JSON maps (whose keys come back as strings)."""

        def _convert(raw: dict | None) -> dict[int, float]:
            return {int(k): float(v) for k, v in (raw or {}).items()}

        return cls(actors=_convert(actors), directors=_convert(directors), genres=_convert(genres))

    def to_maps(self) -> dict[str, dict[str, float]]:
        return {
            "actors": {str(k): v for k, v in self.actors.items()},
            "directors": {str(k): v for k, v in self.directors.items()},
            "genres": {str(k): v for k, v in self.genres.items()},
        }


@dataclass
class CandidateMovie:
    """A title under consideration, with the raw signals its generator found."""

    tmdb_id: int
    media_type: str
    title: str
    user_rating: float | None  # Rating given by the contributing twin, 0-10
    vote_average: float | None  # Provider vote average, 0-10
    similarity_score: float  # Mean similarity of contributing twins
    cooccurrence_count: int = 1
    source_user_ids: list[int] = field(default_factory=list)
    external_vote_count: int | None = None
    genre_ids: list[int] = field(default_factory=list)

    @property
    def key(self) -> TitleKey:
        return title_key(self.tmdb_id, self.media_type)


@dataclass(frozen=True)
class UserFilters:
    """Narrowing chosen by the viewer for one run. Empty fields do not filter.

    A title passes when its media type is selected, it has at least one of
    the selected genres, and its rating reaches ``min_rating``. The rating is
    the one the twins gave, else the provider vote average; a title with
    neither fails any ``min_rating`` above zero.
    """

    media_types: frozenset[str] = frozenset()
    genre_ids: frozenset[int] = frozenset()
    min_rating: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.media_types and not self.genre_ids and self.min_rating <= 0

    def matches(self, candidate: CandidateMovie) -> bool:
        if self.media_types and candidate.media_type not in self.media_types:
            return False
        if self.genre_ids and self.genre_ids.isdisjoint(candidate.genre_ids):
            return False
        if self.min_rating > 0:
            rating = candidate.user_rating if candidate.user_rating is not None else candidate.vote_average
            if rating is None or rating < self.min_rating:
                return False
        return True

    def to_context(self) -> dict[str, Any]:
        """JSON-friendly form stored with each log row."""
        return {
            "types": sorted(self.media_types),
            "genres": sorted(self.genre_ids),
            "minRating": self.min_rating,
        }


@dataclass
class ScoredCandidate:
    """A candidate with its raw weighted score and its pool-normalized score."""

    candidate: CandidateMovie
    algorithm: str
    raw_score: float
    score: float = 0.0

    @property
    def key(self) -> TitleKey:
        return self.candidate.key


@dataclass
class SessionState:
    """Titles already shown in the current browsing session.

    ``shown`` is the set the filters read. Insertion order is tracked
    separately so the cookie keeps the most recent keys when trimmed.
    """

    shown: set[TitleKey] = field(default_factory=set)
    _order: list[TitleKey] = field(default_factory=list, repr=False, compare=False)

    def add(self, keys: Iterable[TitleKey]) -> None:
        for key in keys:
            if key not in self.shown:
                self.shown.add(key)
                self._order.append(key)

    def to_session(self, limit: int) -> list[str]:
        """Serialize for the session cookie, keeping the ``limit`` most recent keys."""
        ordered = set(self._order)
        keys = sorted(k for k in self.shown if k not in ordered) + [k for k in self._order if k in self.shown]
        if limit <= 0:
            return []
        return [f"{tmdb_id}_{media_type}" for tmdb_id, media_type in keys[-limit:]]

    @classmethod
    def from_session(cls, raw: Any) -> "SessionState":
        """Parse the session cookie value; malformed entries are ignored."""
        state = cls()
        if not isinstance(raw, list):
            return state
        for item in raw:
            if not isinstance(item, str) or "_" not in item:
                continue
            tmdb_id, _, media_type = item.partition("_")
            try:
                state.add([title_key(int(tmdb_id), media_type)])
            except ValueError:
                continue
        return state


@dataclass
class RecommendationItem:
    """One surfaced recommendation, as returned to the caller."""

    log_id: int | None
    tmdb_id: int
    media_type: str
    title: str
    algorithm: str
    score: float
    similarity_score: float
    cooccurrence_count: int
    sources: list[int]
    display_rating: float | None = None


@dataclass
class RecommendationMetrics:
    candidates_pool_size: int = 0
    after_filters: int = 0
    avg_score: float = 0.0


@dataclass
class RecommendationResult:
    items: list[RecommendationItem] = field(default_factory=list)
    metrics: RecommendationMetrics = field(default_factory=RecommendationMetrics)

    @classmethod
    def empty(cls) -> "RecommendationResult":
        return cls()
