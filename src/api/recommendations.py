"""Recommendations API endpoints."""

import logging
from dataclasses import asdict
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import get_current_user
from src.config import get_settings
from src.constants import RATING_MAX, SESSION_SHOWN_KEY
from src.db import get_db
from src.models.schemas import (
    ErrorResponse,
    RecommendationActionRequest,
    RecommendationActionResponse,
    RecommendationItemRead,
    RecommendationMetricsRead,
    RecommendationRunResponse,
    RecommendationStatsResponse,
    TasteProfileSummary,
)
from src.models.user import User
from src.models.watchlist import MediaType
from src.services.metadata.tmdb import TMDBService, get_tmdb_service
from src.services.recommendations import (
    OutcomeTracker,
    RecommendationOrchestrator,
    SessionState,
    TasteProfileStore,
    parse_user_filters,
)
from src.services.recommendations.orchestrator import DEFAULT_SOURCE
from src.services.recommendations.outcomes import ActionConflictError, LogNotFoundError
from src.utils.cache import cache, invalidate_stats_cache, stats_cache_key
from src.utils.rate_limiter import rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter()


def get_metadata_service() -> TMDBService:
    """Dependency for the process-wide metadata client."""
    return get_tmdb_service()


@router.get("", response_model=RecommendationRunResponse)
async def get_recommendations(
    request: Request,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    metadata: Annotated[TMDBService, Depends(get_metadata_service)],
    source: Annotated[str, Query(max_length=100)] = DEFAULT_SOURCE,
    position: Annotated[int | None, Query(ge=0)] = None,
    types: Annotated[list[MediaType] | None, Query()] = None,
    genres: Annotated[list[int] | None, Query()] = None,
    min_rating: Annotated[float | None, Query(alias="minRating", ge=0, le=RATING_MAX)] = None,
) -> RecommendationRunResponse:
    """Recommend fresh titles for the current user.

    Titles returned here are excluded from later calls in the same session
    and, for the cooldown window, from every later call. ``types``,
    ``genres`` (any of, at most 10) and ``minRating`` narrow the list.
    """
    settings = get_settings()
    try:
        user_filters = parse_user_filters([t.value for t in types or ()], genres, min_rating)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    context: dict = {"source": source}
    if position is not None:
        context["position"] = position

    session_state = SessionState.from_session(request.session.get(SESSION_SHOWN_KEY))
    orchestrator = RecommendationOrchestrator.build(db, metadata=metadata, settings=settings)

    try:
        result = await orchestrator.run(
            user.id, context=context, session_state=session_state, user_filters=user_filters
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    request.session[SESSION_SHOWN_KEY] = session_state.to_session(settings.session_shown_max)

    return RecommendationRunResponse(
        items=[RecommendationItemRead(**asdict(item)) for item in result.items],
        metrics=RecommendationMetricsRead(**asdict(result.metrics)),
    )


@router.post("/reset-session")
async def reset_session(
    request: Request,
    user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """Forget which titles were shown in this session."""
    request.session.pop(SESSION_SHOWN_KEY, None)
    logger.debug(f"Reset recommendation session for user {user.id}")
    return {"success": True}


@router.post("/taste-profile/refresh", response_model=TasteProfileSummary)
async def refresh_taste_profile(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    metadata: Annotated[TMDBService, Depends(get_metadata_service)],
) -> TasteProfileSummary:
    """Rebuild the current user's taste profile from their watch list."""
    store = TasteProfileStore(db, metadata)
    profile = await store.refresh(user.id)
    watched = await store.count_watched(user.id)
    await db.commit()

    return TasteProfileSummary(
        actors=len(profile.actors),
        directors=len(profile.directors),
        genres=len(profile.genres),
        watched_count=watched,
    )


@router.get(
    "/stats",
    response_model=RecommendationStatsResponse,
    responses={429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def get_recommendation_stats(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    window: Annotated[Literal["7", "30", "all"], Query()] = "30",
):
    """Outcome dashboard: overview, per-algorithm performance and user segments."""
    if not rate_limiter.try_acquire("recommendations_api", user.id):
        return JSONResponse(status_code=429, content={"success": False, "error": "Too Many Requests"})

    key = stats_cache_key(user.id, window)
    cached = await cache.get(key)
    if cached is not None:
        return cached

    try:
        data = await OutcomeTracker(db).build_dashboard(user.id, window)
        response = RecommendationStatsResponse(**data)
    except Exception as e:
        logger.error(f"Failed to build recommendation stats for user {user.id}: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Failed to fetch recommendation stats"},
        )

    await cache.set(key, response.model_dump(by_alias=True))
    return response


@router.post("/{log_id}/action", response_model=RecommendationActionResponse)
async def record_recommendation_action(
    log_id: int,
    body: RecommendationActionRequest,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> RecommendationActionResponse:
    """Record the user's answer to a recommendation (once)."""
    tracker = OutcomeTracker(db)
    try:
        log, changed = await tracker.record_action(user.id, log_id, body.action)
    except LogNotFoundError:
        raise HTTPException(status_code=404, detail="Recommendation not found")
    except ActionConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if changed:
        await db.commit()
        await invalidate_stats_cache(user.id)

    return RecommendationActionResponse(log_id=log.id, action=log.action, changed=changed)
