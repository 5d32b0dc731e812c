"""Tests for the community rating endpoint."""

import pytest
from httpx import AsyncClient

from src.models.user import User
from src.models.watchlist import MediaType, WatchStatus
from src.services.recommendations import TasteProfileStore


class TestTitleRating:
    """Tests for GET /api/ratings/{media_type}/{tmdb_id}."""

    @pytest.mark.asyncio
    async def test_blends_community_and_provider(
        self, authenticated_client: AsyncClient, test_user, other_user, add_entries
    ):
        """Test the blended score for a title with two community ratings."""
        await add_entries(test_user, [550], rating=8.0, vote_average=8.4, vote_count=1000)
        await add_entries(other_user, [550], rating=6.0)

        response = await authenticated_client.get("/api/ratings/movie/550")

        assert response.status_code == 200
        data = response.json()
        assert data["tmdbId"] == 550
        assert data["mediaType"] == "movie"
        assert data["averageRating"] == 7.0
        assert data["count"] == 2
        assert data["tmdbRating"] == 8.4
        assert data["tmdbVotes"] == 1000
        # Two votes: Bayesian weight 2 / (2 + 2)
        assert data["cineChanceScore"] == pytest.approx(7.7)

    @pytest.mark.asyncio
    async def test_provider_rating_only(self, authenticated_client: AsyncClient, test_user, add_entries):
        """Test that unrated titles show the provider rating."""
        await add_entries(
            test_user,
            [1396],
            rating=None,
            status=WatchStatus.WANT,
            media_type=MediaType.TV,
            vote_average=8.9,
            vote_count=12000,
        )

        response = await authenticated_client.get("/api/ratings/tv/1396")

        data = response.json()
        assert data["averageRating"] is None
        assert data["count"] == 0
        assert data["cineChanceScore"] == 8.9

    @pytest.mark.asyncio
    async def test_unknown_title(self, authenticated_client: AsyncClient):
        """Test a title nobody has and the provider cannot resolve."""
        response = await authenticated_client.get("/api/ratings/movie/42")

        assert response.status_code == 200
        data = response.json()
        assert data["averageRating"] is None
        assert data["tmdbRating"] is None
        assert data["cineChanceScore"] is None

    @pytest.mark.asyncio
    async def test_unknown_media_type(self, authenticated_client: AsyncClient):
        """Test path validation of the media type."""
        response = await authenticated_client.get("/api/ratings/book/42")

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client: AsyncClient):
        """Test that anonymous callers get 401."""
        response = await client.get("/api/ratings/movie/550")

        assert response.status_code == 401


class TestDisplayRatingConsistency:
    """The recommendation list and the ratings endpoint agree on a title's score."""

    @pytest.mark.asyncio
    async def test_recommended_item_matches_ratings_endpoint(
        self, authenticated_client: AsyncClient, db_session, test_user, other_user, add_entries
    ):
        """Test that a recommended title shows the same blended score as its rating page."""
        people = {"cast": [1, 2, 3], "directors": [100]}
        await add_entries(test_user, range(1, 11), rating=8.0, **people)
        await add_entries(other_user, range(1, 11), rating=6.0, **people)
        await add_entries(other_user, [201], rating=7.0, vote_average=5.21, vote_count=1000)

        third = User(username="thirduser", email="third@example.com")
        db_session.add(third)
        await db_session.commit()
        await db_session.refresh(third)
        await add_entries(third, [201], rating=7.5)

        store = TasteProfileStore(db_session)
        await store.refresh(test_user.id)
        await store.refresh(other_user.id)
        await db_session.commit()

        recommendations = await authenticated_client.get("/api/recommendations")
        rating = await authenticated_client.get("/api/ratings/movie/201")

        items = {item["tmdbId"]: item for item in recommendations.json()["items"]}
        data = rating.json()
        # Community average 7.25 is shown as 7.3; 0.5 * 7.3 + 0.5 * 5.21 = 6.255
        assert data["averageRating"] == 7.3
        assert data["cineChanceScore"] == 6.3
        assert items[201]["displayRating"] == data["cineChanceScore"]
