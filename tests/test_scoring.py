"""Tests for candidate scoring and normalization."""

import pytest

from src.services.recommendations import CandidateMovie, ScoreWeights, ScoringEngine
from src.services.recommendations.scoring import rating_signal


def make_candidate(tmdb_id: int, **overrides) -> CandidateMovie:
    values = {
        "tmdb_id": tmdb_id,
        "media_type": "movie",
        "title": f"Title {tmdb_id}",
        "user_rating": 8.0,
        "vote_average": 7.0,
        "similarity_score": 0.8,
    }
    values.update(overrides)
    return CandidateMovie(**values)


class TestScoreWeights:
    """Tests for ScoreWeights validation."""

    def test_defaults_sum_to_one(self):
        """Test the default weights."""
        weights = ScoreWeights()
        assert (weights.person_similarity, weights.rating, weights.cooccurrence) == (0.5, 0.3, 0.2)

    def test_rejects_weights_not_summing_to_one(self):
        """Test that unbounded weightings are refused."""
        with pytest.raises(ValueError):
            ScoreWeights(person_similarity=0.6, rating=0.3, cooccurrence=0.2)

    def test_rejects_negative_weight(self):
        """Test that negative weights are refused."""
        with pytest.raises(ValueError):
            ScoreWeights(person_similarity=1.2, rating=-0.4, cooccurrence=0.2)


class TestRatingSignal:
    """Tests for the rating input of the score."""

    def test_uses_twin_rating(self):
        """Test that the contributing twin's rating is preferred."""
        assert rating_signal(make_candidate(1, user_rating=9.0, vote_average=5.0)) == pytest.approx(0.9)

    def test_falls_back_to_half_provider_average(self):
        """Test the fallback when no twin rating exists."""
        assert rating_signal(make_candidate(1, user_rating=None, vote_average=8.0)) == pytest.approx(0.4)

    def test_no_rating_at_all(self):
        """Test that a candidate without any rating contributes zero."""
        assert rating_signal(make_candidate(1, user_rating=None, vote_average=None)) == 0.0


class TestScoringEngine:
    """Tests for ScoringEngine."""

    def test_raw_score_combines_signals(self):
        """Test the weighted sum for a single candidate."""
        engine = ScoringEngine()
        scored = engine.score([make_candidate(1, similarity_score=0.6, user_rating=7.0)], "person_twins_v1")

        # 0.5 * 0.6 + 0.3 * 0.7 + 0.2 * 1.0
        assert scored[0].raw_score == pytest.approx(0.71)
        assert scored[0].algorithm == "person_twins_v1"

    def test_cooccurrence_is_relative_to_pool_max(self):
        """Test that the most shared title gets the full cooccurrence signal."""
        engine = ScoringEngine(ScoreWeights(person_similarity=0.0, rating=0.0, cooccurrence=1.0))
        scored = engine.score(
            [make_candidate(1, cooccurrence_count=4), make_candidate(2, cooccurrence_count=1)],
            "person_twins_v1",
        )

        assert [s.raw_score for s in scored] == pytest.approx([1.0, 0.25])

    def test_normalize_maps_min_and_max(self):
        """Test that normalized scores span [0, 100] with the best at 100."""
        engine = ScoringEngine()
        scored = engine.score_and_normalize(
            [
                make_candidate(1, similarity_score=0.9),
                make_candidate(2, similarity_score=0.5),
                make_candidate(3, similarity_score=0.7),
            ],
            "person_twins_v1",
        )

        scores = {s.candidate.tmdb_id: s.score for s in scored}
        assert scores[1] == 100
        assert scores[2] == 0
        assert scores[3] == pytest.approx(50)
        assert all(0 <= s <= 100 for s in scores.values())

    def test_equal_scores_map_to_midpoint(self):
        """Test the tie-safe midpoint when all raw scores are equal."""
        engine = ScoringEngine()
        scored = engine.score_and_normalize([make_candidate(1), make_candidate(2)], "genre_twins_v1")

        assert [s.score for s in scored] == [50.0, 50.0]

    def test_empty_pool(self):
        """Test that an empty pool stays empty."""
        assert ScoringEngine().score_and_normalize([], "person_twins_v1") == []
