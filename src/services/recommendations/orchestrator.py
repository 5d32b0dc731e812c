"""Recommendation orchestration.

One run: cold-start guard, every generator in turn, per-pool scoring, merge,
exclusion filters, ranking, truncation, display ratings, one log row per
surfaced title. Any failure (including the run deadline) degrades to an empty
result so recommendation problems never break the page around them.
"""

import asyncio
import logging
import time
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, get_settings
from src.constants import MAX_PROVENANCE_SOURCES
from src.db.crud import add_logs, get_community_ratings
from src.models.recommendation import RecommendationLog
from src.models.watchlist import MediaType
from src.services.recommendations.filters import FilterPipeline
from src.services.recommendations.generators import (
    GenreTwinsAlgorithm,
    PersonTwinsAlgorithm,
    RecommendationAlgorithm,
)
from src.services.recommendations.rating_blend import calculate_cine_chance_score, round_rating
from src.services.recommendations.scoring import ScoringEngine
from src.services.recommendations.taste_profile import TasteProfileStore
from src.services.recommendations.types import (
    RecommendationItem,
    RecommendationMetrics,
    RecommendationResult,
    ScoredCandidate,
    SessionState,
    UserFilters,
)
from src.utils.logging import LogContext
from src.utils.metrics import metrics

if TYPE_CHECKING:
    from src.services.metadata.tmdb import TMDBService

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "recommendations_page"


def normalize_context(context: Mapping[str, Any] | None) -> dict[str, Any]:
    """Validate the fields of the context bag the pipeline reads; pass the rest through.

    Raises:
        ValueError: ``source`` is not a non-empty string or ``position`` is not
            a non-negative integer
    """
    if context is None:
        return {"source": DEFAULT_SOURCE}
    if not isinstance(context, Mapping):
        raise ValueError("context must be an object")

    normalized = {str(k): v for k, v in context.items()}

    source = normalized.get("source", DEFAULT_SOURCE)
    if not isinstance(source, str) or not source.strip():
        raise ValueError("context.source must be a non-empty string")
    normalized["source"] = source.strip()

    if "position" in normalized and normalized["position"] is not None:
        position = normalized["position"]
        if isinstance(position, bool) or not isinstance(position, int) or position < 0:
            raise ValueError("context.position must be a non-negative integer")

    return normalized


def merge_pools(pools: Sequence[Sequence[ScoredCandidate]]) -> list[ScoredCandidate]:
    """Merge generator pools by title: highest score wins, earlier pool on ties."""
    merged: dict = {}
    for pool in pools:
        for scored in pool:
            current = merged.get(scored.key)
            if current is None or scored.score > current.score:
                merged[scored.key] = scored
    return list(merged.values())


def rank(candidates: Sequence[ScoredCandidate], limit: int) -> list[ScoredCandidate]:
    """Score descending, ties by tmdb id then media type, truncated."""
    ordered = sorted(candidates, key=lambda s: (-s.score, s.candidate.tmdb_id, s.candidate.media_type))
    return ordered[:limit]


class RecommendationOrchestrator:
    """Runs the recommendation pipeline for one user."""

    def __init__(
        self,
        db: AsyncSession,
        store: TasteProfileStore,
        generators: Sequence[RecommendationAlgorithm],
        filters: FilterPipeline,
        scoring: ScoringEngine | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.store = store
        self.generators = list(generators)
        self.filters = filters
        self.scoring = scoring or ScoringEngine()
        self.settings = settings or get_settings()

    @classmethod
    def build(
        cls,
        db: AsyncSession,
        metadata: "TMDBService | None" = None,
        settings: Settings | None = None,
    ) -> "RecommendationOrchestrator":
        """Orchestrator with the default generators, configured from settings."""
        settings = settings or get_settings()
        store = TasteProfileStore(db, metadata)
        twin_options = {
            "min_user_history": settings.min_user_history,
            "max_twins": settings.max_taste_twins,
            "top_per_twin": settings.top_movies_per_twin,
            "min_rating": settings.twin_min_rating,
        }
        generators = [
            PersonTwinsAlgorithm(
                db, store, metadata, threshold=settings.person_similarity_threshold, **twin_options
            ),
            GenreTwinsAlgorithm(
                db, store, metadata, threshold=settings.genre_similarity_threshold, **twin_options
            ),
        ]
        return cls(
            db=db,
            store=store,
            generators=generators,
            filters=FilterPipeline(db, settings.recommendation_cooldown_days),
            settings=settings,
        )

    async def run(
        self,
        user_id: int,
        context: Mapping[str, Any] | None = None,
        session_state: SessionState | None = None,
        user_filters: UserFilters | None = None,
    ) -> RecommendationResult:
        """Recommend titles for a user, narrowed by the viewer's filters if given.

        Raises:
            ValueError: malformed context (checked before any work)
        """
        context = normalize_context(context)
        if user_filters is not None and not user_filters.is_empty:
            context["filters"] = user_filters.to_context()
        progress = {"stage": "start"}
        start = time.monotonic()
        status = "error"

        try:
            result, status = await asyncio.wait_for(
                self._run(user_id, context, session_state, user_filters, progress),
                timeout=self.settings.recommendation_timeout_seconds,
            )
            return result
        except TimeoutError:
            status = "timeout"
            logger.error(
                f"Recommendation run timed out for user {user_id} at stage {progress['stage']} "
                f"after {self.settings.recommendation_timeout_seconds}s"
            )
        except Exception as e:
            logger.error(
                f"Recommendation run failed for user {user_id} at stage {progress['stage']}: {e}",
                exc_info=True,
            )
        finally:
            metrics.recommendation_runs_total.inc(status=status)
            metrics.recommendation_run_duration_seconds.observe(time.monotonic() - start)

        await self._rollback(user_id)
        return RecommendationResult.empty()

    async def _rollback(self, user_id: int) -> None:
        try:
            await self.db.rollback()
        except Exception as e:
            logger.warning(f"Rollback after failed run for user {user_id} failed: {e}")

    async def _run(
        self,
        user_id: int,
        context: dict[str, Any],
        session_state: SessionState | None,
        user_filters: UserFilters | None,
        progress: dict[str, str],
    ) -> tuple[RecommendationResult, str]:
        log = LogContext(logger, user_id=user_id)

        progress["stage"] = "cold_start"
        watched = await self.store.count_watched(user_id)
        if watched < self.settings.min_user_history:
            log.info(f"Cold start: {watched} watched < {self.settings.min_user_history}, nothing to recommend")
            return RecommendationResult.empty(), "cold_start"

        progress["stage"] = "profile"
        profile = await self.store.get(user_id)
        if profile is None:
            profile = await self.store.refresh(user_id)

        progress["stage"] = "generate"
        pools = []
        for generator in self.generators:
            try:
                candidates = await generator.generate(user_id, profile)
            except Exception as e:
                metrics.generator_failures_total.inc(algorithm=generator.name)
                log.bind(algorithm=generator.name).warning(f"Generator failed, skipping: {e}")
                continue
            pools.append(self.scoring.score_and_normalize(candidates, generator.name))

        merged = merge_pools(pools)
        pool_size = len(merged)

        progress["stage"] = "filter"
        filtered = await self.filters.filter(merged, user_id, session_state, user_filters)
        top = rank(filtered, self.settings.max_recommendations)

        if not top:
            log.info(f"No fresh recommendations (pool={pool_size}, after filters={len(filtered)})")
            metrics_out = RecommendationMetrics(candidates_pool_size=pool_size, after_filters=len(filtered))
            return RecommendationResult(items=[], metrics=metrics_out), "empty"

        progress["stage"] = "blend"
        display = await self._display_ratings(top)

        progress["stage"] = "log"
        logs = await add_logs(self.db, self._build_logs(user_id, top, context, pool_size))
        await self.db.commit()

        items = [
            RecommendationItem(
                log_id=entry.id,
                tmdb_id=s.candidate.tmdb_id,
                media_type=s.candidate.media_type,
                title=s.candidate.title,
                algorithm=s.algorithm,
                score=s.score,
                similarity_score=round(s.candidate.similarity_score, 4),
                cooccurrence_count=s.candidate.cooccurrence_count,
                sources=s.candidate.source_user_ids[:MAX_PROVENANCE_SOURCES],
                display_rating=display.get(s.key),
            )
            for s, entry in zip(top, logs)
        ]

        if session_state is not None:
            session_state.add(s.key for s in top)

        for item in items:
            metrics.recommendation_items_total.inc(algorithm=item.algorithm)

        avg_score = round(sum(i.score for i in items) / len(items), 2)
        log.info(f"Surfaced {len(items)} recommendations (pool={pool_size}, after filters={len(filtered)})")
        return (
            RecommendationResult(
                items=items,
                metrics=RecommendationMetrics(
                    candidates_pool_size=pool_size,
                    after_filters=len(filtered),
                    avg_score=avg_score,
                ),
            ),
            "ok",
        )

    async def _display_ratings(self, top: Sequence[ScoredCandidate]) -> dict:
        """Blended provider/community rating per title (one grouped query)."""
        community = await get_community_ratings(self.db, [s.key for s in top])
        display = {}
        for s in top:
            avg, count = community.get(s.key, (None, 0))
            # Same one-decimal community average as the ratings endpoint
            if avg is not None:
                avg = round_rating(avg)
            vote_average = s.candidate.vote_average
            if vote_average is None:
                display[s.key] = avg
                continue
            display[s.key] = calculate_cine_chance_score(
                vote_average,
                s.candidate.external_vote_count or 0,
                avg,
                count,
                transition_votes=self.settings.blend_transition_votes,
                prior_strength=self.settings.blend_prior_strength,
                min_weight=self.settings.blend_min_weight,
                max_weight=self.settings.blend_max_weight,
            )
        return display

    @staticmethod
    def _build_logs(
        user_id: int,
        top: Sequence[ScoredCandidate],
        context: dict[str, Any],
        pool_size: int,
    ) -> list[RecommendationLog]:
        offset = context.get("position") or 0
        return [
            RecommendationLog(
                user_id=user_id,
                tmdb_id=s.candidate.tmdb_id,
                media_type=MediaType(s.candidate.media_type),
                title=s.candidate.title,
                algorithm=s.algorithm,
                score=s.score,
                context={
                    **context,
                    "position": offset + index,
                    "candidatesCount": pool_size,
                    "sources": s.candidate.source_user_ids[:MAX_PROVENANCE_SOURCES],
                },
            )
            for index, s in enumerate(top)
        ]
