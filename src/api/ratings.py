"""Community rating endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.recommendations import get_metadata_service
from src.auth.dependencies import get_current_user
from src.config import get_settings
from src.db import get_db
from src.db.crud import get_external_rating, get_title_ratings
from src.models.schemas import CommunityRatingResponse
from src.models.user import User
from src.models.watchlist import MediaType
from src.services.metadata.tmdb import TMDBService
from src.services.recommendations import calculate_cine_chance_score, community_rating

router = APIRouter()


@router.get("/{media_type}/{tmdb_id}", response_model=CommunityRatingResponse)
async def get_title_rating(
    media_type: MediaType,
    tmdb_id: int,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    metadata: Annotated[TMDBService, Depends(get_metadata_service)],
) -> CommunityRatingResponse:
    """Platform rating of a title and its blended display score."""
    settings = get_settings()
    average, count = community_rating(await get_title_ratings(db, tmdb_id, media_type))

    external = await get_external_rating(db, tmdb_id, media_type)
    if external is None:
        details = await metadata.get_details(tmdb_id, media_type.value)
        if details and details.get("vote_average") is not None:
            external = (float(details["vote_average"]), int(details.get("vote_count") or 0))

    if external is not None:
        tmdb_rating, tmdb_votes = external
        score = calculate_cine_chance_score(
            tmdb_rating,
            tmdb_votes,
            average,
            count,
            transition_votes=settings.blend_transition_votes,
            prior_strength=settings.blend_prior_strength,
            min_weight=settings.blend_min_weight,
            max_weight=settings.blend_max_weight,
        )
    else:
        tmdb_rating, tmdb_votes, score = None, None, average

    return CommunityRatingResponse(
        tmdb_id=tmdb_id,
        media_type=media_type,
        average_rating=average,
        count=count,
        tmdb_rating=tmdb_rating,
        tmdb_votes=tmdb_votes,
        cine_chance_score=score,
    )
