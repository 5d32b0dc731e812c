"""Tests for taste profile similarity."""

import pytest

from src.services.recommendations import TasteProfile, genre_similarity, overlap, person_similarity


class TestOverlap:
    """Tests for the weighted overlap of two affinity maps."""

    def test_identical_maps_score_one(self):
        """Test that a non-empty map is fully similar to itself."""
        weights = {1: 0.9, 2: 0.4, 3: 0.7}
        assert overlap(weights, weights) == pytest.approx(1.0)

    def test_disjoint_maps_score_zero(self):
        """Test that maps sharing no key score zero."""
        assert overlap({1: 0.9, 2: 0.5}, {3: 0.9, 4: 0.5}) == 0.0

    def test_empty_maps_score_zero(self):
        """Test that empty maps have nothing in common."""
        assert overlap({}, {}) == 0.0
        assert overlap({1: 0.5}, {}) == 0.0

    def test_weighted_jaccard_value(self):
        """Test the numeric value of a partial overlap."""
        a = {1: 1.0, 2: 0.5}
        b = {1: 0.5, 3: 1.0}
        # min sum 0.5, max sum 1.0 + 0.5 + 1.0
        assert overlap(a, b) == pytest.approx(0.2)

    def test_symmetry(self):
        """Test that overlap does not depend on argument order."""
        a = {1: 0.3, 2: 0.8, 5: 0.1}
        b = {2: 0.6, 5: 0.9, 7: 0.2}
        assert overlap(a, b) == overlap(b, a)

    def test_non_positive_weights_are_ignored(self):
        """Test that zero weights do not count as shared keys."""
        assert overlap({1: 0.0, 2: 0.5}, {1: 0.7, 3: 0.5}) == 0.0


class TestProfileSimilarity:
    """Tests for person and genre similarity between profiles."""

    def test_person_similarity_is_mean_of_actor_and_director_overlap(self):
        """Test that actors and directors count equally."""
        a = TasteProfile(actors={1: 0.8}, directors={10: 0.8})
        b = TasteProfile(actors={1: 0.8}, directors={11: 0.8})

        assert person_similarity(a, b) == pytest.approx(0.5)

    def test_person_similarity_ignores_genres(self):
        """Test that shared genres alone do not make person twins."""
        a = TasteProfile(genres={28: 0.9})
        b = TasteProfile(genres={28: 0.9})

        assert person_similarity(a, b) == 0.0
        assert genre_similarity(a, b) == pytest.approx(1.0)
