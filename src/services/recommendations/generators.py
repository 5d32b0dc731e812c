"""Candidate generators.

Each generator turns a user id and taste profile into a pool of candidate
titles with raw signals. The "twins" generators find users whose stored
profiles are similar enough, then pool the titles those twins rated highest.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.constants import (
    DEFAULT_GENRE_SIMILARITY_THRESHOLD,
    DEFAULT_MAX_TASTE_TWINS,
    DEFAULT_MIN_USER_HISTORY,
    DEFAULT_PERSON_SIMILARITY_THRESHOLD,
    DEFAULT_TOP_MOVIES_PER_TWIN,
    DEFAULT_TWIN_MIN_RATING,
)
from src.db.crud import get_top_rated_watched
from src.models.watchlist import MediaType, TitleKey, title_key
from src.services.recommendations.similarity import genre_similarity, person_similarity
from src.services.recommendations.taste_profile import TasteProfileStore
from src.services.recommendations.types import CandidateMovie, TasteProfile
from src.utils.logging import LogContext

if TYPE_CHECKING:
    from src.services.metadata.tmdb import TMDBService

logger = logging.getLogger(__name__)

Twin = tuple[int, float]  # (user_id, similarity)


class TwinMovie(Protocol):
    """What the merge step reads from a twin's rated title."""

    tmdb_id: int
    media_type: MediaType | str
    title: str | None
    user_rating: float | None
    vote_average: float | None
    vote_count: int | None
    genre_ids: list[int] | None


def placeholder_title(tmdb_id: int) -> str:
    return f"Movie {tmdb_id}"


def select_twins(
    profile: TasteProfile,
    others: Sequence[tuple[int, TasteProfile]],
    similarity: Callable[[TasteProfile, TasteProfile], float],
    threshold: float,
    max_twins: int,
) -> list[Twin]:
    """Users at or above the threshold, most similar first (ties by user id), capped."""
    scored = []
    for user_id, other in others:
        value = similarity(profile, other)
        if value >= threshold:
            scored.append((user_id, value))
    scored.sort(key=lambda twin: (-twin[1], twin[0]))
    return scored[:max_twins]


def merge_twin_movies(
    twins: Sequence[Twin],
    movies_by_twin: Mapping[int, Sequence[TwinMovie]],
) -> list[CandidateMovie]:
    """Deduplicate twins' titles into one candidate pool.

    Twins are processed in the given order. The first twin to surface a title
    seeds the candidate. Each further twin adds one to the cooccurrence count,
    is appended to the sources, and moves the similarity to the running mean
    of every contributing twin.
    """
    pool: dict[TitleKey, CandidateMovie] = {}

    for twin_id, twin_similarity in twins:
        seen_for_twin: set[TitleKey] = set()
        for movie in movies_by_twin.get(twin_id, ()):
            key = title_key(movie.tmdb_id, movie.media_type)
            if key in seen_for_twin:
                continue
            seen_for_twin.add(key)

            candidate = pool.get(key)
            if candidate is None:
                pool[key] = CandidateMovie(
                    tmdb_id=key[0],
                    media_type=key[1],
                    title=movie.title or placeholder_title(key[0]),
                    user_rating=movie.user_rating,
                    vote_average=movie.vote_average,
                    similarity_score=twin_similarity,
                    cooccurrence_count=1,
                    source_user_ids=[twin_id],
                    external_vote_count=movie.vote_count,
                    genre_ids=list(movie.genre_ids or []),
                )
                continue

            candidate.cooccurrence_count += 1
            count = candidate.cooccurrence_count
            candidate.similarity_score = (candidate.similarity_score * (count - 1) + twin_similarity) / count
            candidate.source_user_ids.append(twin_id)
            for genre_id in movie.genre_ids or ():
                if genre_id not in candidate.genre_ids:
                    candidate.genre_ids.append(genre_id)
            if candidate.title == placeholder_title(key[0]) and movie.title:
                candidate.title = movie.title
            if candidate.vote_average is None and movie.vote_average is not None:
                candidate.vote_average = movie.vote_average
                candidate.external_vote_count = movie.vote_count

    return list(pool.values())


class RecommendationAlgorithm(ABC):
    """A strategy producing a candidate pool for one user."""

    name: str
    min_user_history: int = DEFAULT_MIN_USER_HISTORY

    @abstractmethod
    async def generate(self, user_id: int, profile: TasteProfile | None) -> list[CandidateMovie]:
        """Candidate pool for a user. Empty on cold start, never an error."""


class TwinsAlgorithm(RecommendationAlgorithm):
    """Shared "taste twins" pipeline; subclasses choose the similarity signal."""

    default_threshold: float = DEFAULT_PERSON_SIMILARITY_THRESHOLD

    def __init__(
        self,
        db: AsyncSession,
        store: TasteProfileStore,
        metadata: "TMDBService | None" = None,
        *,
        min_user_history: int = DEFAULT_MIN_USER_HISTORY,
        threshold: float | None = None,
        max_twins: int = DEFAULT_MAX_TASTE_TWINS,
        top_per_twin: int = DEFAULT_TOP_MOVIES_PER_TWIN,
        min_rating: float = DEFAULT_TWIN_MIN_RATING,
    ) -> None:
        self.db = db
        self.store = store
        self.metadata = metadata
        self.min_user_history = min_user_history
        self.threshold = self.default_threshold if threshold is None else threshold
        self.max_twins = max_twins
        self.top_per_twin = top_per_twin
        self.min_rating = min_rating

    @abstractmethod
    def similarity(self, a: TasteProfile, b: TasteProfile) -> float:
        """Similarity used to pick twins."""

    @abstractmethod
    def has_signal(self, profile: TasteProfile) -> bool:
        """Whether the profile has anything to compare on."""

    async def generate(self, user_id: int, profile: TasteProfile | None) -> list[CandidateMovie]:
        log = LogContext(logger, user_id=user_id, algorithm=self.name)

        watched = await self.store.count_watched(user_id)
        if watched < self.min_user_history:
            log.info(f"Cold start: {watched} watched < {self.min_user_history}")
            return []

        if profile is None or not self.has_signal(profile):
            log.info("Empty taste profile, no twins to look for")
            return []

        twins = await self.find_twins(user_id, profile)
        if not twins:
            log.info(f"No taste twins at threshold {self.threshold}")
            return []

        movies_by_twin = await self.fetch_twin_movies(twins)
        candidates = merge_twin_movies(twins, movies_by_twin)
        await self._resolve_titles(candidates, movies_by_twin)

        log.debug(f"{len(twins)} twins surfaced {len(candidates)} candidates")
        return candidates

    async def find_twins(self, user_id: int, profile: TasteProfile) -> list[Twin]:
        """Full scan of the other users' stored profiles."""
        others = await self.store.get_others(user_id)
        return select_twins(profile, others, self.similarity, self.threshold, self.max_twins)

    async def fetch_twin_movies(self, twins: Sequence[Twin]) -> dict[int, list[TwinMovie]]:
        """Each twin's top-rated watched titles, fetched in twin order."""
        movies: dict[int, list[TwinMovie]] = {}
        for twin_id, _ in twins:
            movies[twin_id] = list(
                await get_top_rated_watched(self.db, twin_id, self.min_rating, self.top_per_twin)
            )
        return movies

    async def _resolve_titles(
        self,
        candidates: Sequence[CandidateMovie],
        movies_by_twin: Mapping[int, Sequence[TwinMovie]],
    ) -> None:
        """Look up titles (and missing genres) no twin's entry carried; the placeholder stays on failure."""
        if self.metadata is None:
            return
        titled = {
            title_key(m.tmdb_id, m.media_type)
            for movies in movies_by_twin.values()
            for m in movies
            if m.title
        }
        for candidate in candidates:
            if candidate.key in titled:
                continue
            try:
                details = await self.metadata.get_details(candidate.tmdb_id, candidate.media_type)
            except Exception as e:
                logger.debug(f"Title lookup failed for {candidate.key}: {e}")
                continue
            if not details:
                continue
            if details.get("title"):
                candidate.title = details["title"]
            if not candidate.genre_ids:
                candidate.genre_ids = list(details.get("genre_ids") or [])


class PersonTwinsAlgorithm(TwinsAlgorithm):
    """Twins by shared favorite actors and directors."""

    name = "person_twins_v1"
    default_threshold = DEFAULT_PERSON_SIMILARITY_THRESHOLD

    def similarity(self, a: TasteProfile, b: TasteProfile) -> float:
        return person_similarity(a, b)

    def has_signal(self, profile: TasteProfile) -> bool:
        return profile.has_people


class GenreTwinsAlgorithm(TwinsAlgorithm):
    """Twins by shared genre affinity. Genres overlap easily, so the bar is higher."""

    name = "genre_twins_v1"
    default_threshold = DEFAULT_GENRE_SIMILARITY_THRESHOLD

    def similarity(self, a: TasteProfile, b: TasteProfile) -> float:
        return genre_similarity(a, b)

    def has_signal(self, profile: TasteProfile) -> bool:
        return profile.has_genres
