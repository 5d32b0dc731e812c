"""Tests for taste profile building and storage."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.crud import get_taste_profile_record
from src.models.user import User
from src.models.watchlist import MediaType, WatchListEntry, WatchStatus
from src.services.recommendations import TasteProfileStore, build_taste_profile
from src.services.recommendations.taste_profile import affinity_weight
from src.services.recommendations.types import TasteProfile


def entry(tmdb_id: int, rating: float | None, status=WatchStatus.WATCHED, **credits) -> WatchListEntry:
    return WatchListEntry(
        tmdb_id=tmdb_id,
        media_type=MediaType.MOVIE,
        status=status,
        user_rating=rating,
        cast=credits.get("cast", []),
        directors=credits.get("directors", []),
        genre_ids=credits.get("genre_ids", []),
    )


class TestAffinityWeight:
    """Tests for affinity_weight."""

    def test_single_rating(self):
        """Test quality and frequency parts for one title."""
        # 0.9 * 0.7 + (1 / 3) * 0.3
        assert affinity_weight([0.9]) == pytest.approx(0.73)

    def test_frequency_saturates(self):
        """Test that nine titles already give the full frequency part."""
        assert affinity_weight([0.8] * 9) == affinity_weight([0.8] * 30) == pytest.approx(0.86)

    def test_no_ratings(self):
        """Test that nothing rated means no affinity."""
        assert affinity_weight([]) == 0.0


class TestBuildTasteProfile:
    """Tests for build_taste_profile."""

    def test_only_rated_watched_entries_count(self):
        """Test that want-list and unrated titles are ignored."""
        profile = build_taste_profile(
            [
                entry(1, 8.0, cast=[10], directors=[20], genre_ids=[28]),
                entry(2, None, cast=[11]),
                entry(3, 9.0, status=WatchStatus.WANT, cast=[12]),
                entry(4, 0.0, cast=[13]),
            ]
        )

        assert set(profile.actors) == {10}
        assert set(profile.directors) == {20}
        assert set(profile.genres) == {28}

    def test_cast_is_limited_to_top_billed(self):
        """Test that only the first billed actors are used."""
        profile = build_taste_profile([entry(1, 8.0, cast=[1, 2, 3, 4, 5, 6, 7])], max_cast=3)

        assert set(profile.actors) == {1, 2, 3}

    def test_map_size_is_capped_by_weight(self):
        """Test that the strongest affinities are kept."""
        profile = build_taste_profile(
            [entry(1, 10.0, genre_ids=[1]), entry(2, 5.0, genre_ids=[2]), entry(3, 7.0, genre_ids=[3])],
            max_entries=2,
        )

        assert set(profile.genres) == {1, 3}

    def test_round_trip_through_maps(self):
        """Test that stored JSON maps load back with integer keys."""
        profile = TasteProfile(actors={1: 0.5}, directors={2: 0.25}, genres={3: 1.0})

        restored = TasteProfile.from_maps(**profile.to_maps())

        assert restored == profile


class TestTasteProfileStore:
    """Tests for TasteProfileStore."""

    @pytest.mark.asyncio
    async def test_refresh_overwrites_stored_profile(
        self, db_session: AsyncSession, test_user: User, add_entries
    ):
        """Test that refresh rebuilds from the current list."""
        store = TasteProfileStore(db_session)
        await add_entries(test_user, [1], rating=8.0, cast=[10], genre_ids=[28])
        await store.refresh(test_user.id)
        await add_entries(test_user, [2], rating=9.0, cast=[11], genre_ids=[35])
        profile = await store.refresh(test_user.id)
        await db_session.commit()

        stored = await store.get(test_user.id)
        assert stored == profile
        assert set(stored.actors) == {10, 11}
        assert set(stored.genres) == {28, 35}

    @pytest.mark.asyncio
    async def test_get_missing_profile(self, db_session: AsyncSession, test_user: User):
        """Test that a user without a stored profile gets None."""
        assert await TasteProfileStore(db_session).get(test_user.id) is None

    @pytest.mark.asyncio
    async def test_get_others_excludes_the_user(
        self, db_session: AsyncSession, test_user: User, other_user: User, add_entries
    ):
        """Test that twin lookups never include the user themselves."""
        store = TasteProfileStore(db_session)
        await add_entries(test_user, [1], cast=[10])
        await add_entries(other_user, [1], cast=[10])
        await store.refresh(test_user.id)
        await store.refresh(other_user.id)

        others = await store.get_others(test_user.id)

        assert [user_id for user_id, _ in others] == [other_user.id]

    @pytest.mark.asyncio
    async def test_refresh_all(self, db_session: AsyncSession, test_user: User, other_user: User, add_entries):
        """Test that every user gets a stored profile."""
        await add_entries(test_user, [1], cast=[10])

        refreshed = await TasteProfileStore(db_session).refresh_all()

        assert refreshed == 2
        assert await get_taste_profile_record(db_session, other_user.id) is not None

    @pytest.mark.asyncio
    async def test_refresh_backfills_missing_credits(
        self, db_session: AsyncSession, test_user: User, add_entries
    ):
        """Test that entries without credits are completed from metadata."""

        class FakeMetadata:
            def __init__(self):
                self.calls = []

            async def get_details(self, tmdb_id, media_type):
                self.calls.append((tmdb_id, media_type))
                return {"cast": [42], "directors": [7], "genre_ids": [18]}

        metadata = FakeMetadata()
        await add_entries(test_user, [550], rating=9.0)

        profile = await TasteProfileStore(db_session, metadata).refresh(test_user.id)

        assert metadata.calls == [(550, "movie")]
        assert set(profile.actors) == {42}
        assert set(profile.directors) == {7}
        assert set(profile.genres) == {18}
