"""Main API router."""

from fastapi import APIRouter

from src.api.ratings import router as ratings_router
from src.api.recommendations import router as recommendations_router

api_router = APIRouter(prefix="/api")

api_router.include_router(recommendations_router, prefix="/recommendations", tags=["recommendations"])
api_router.include_router(ratings_router, prefix="/ratings", tags=["ratings"])
