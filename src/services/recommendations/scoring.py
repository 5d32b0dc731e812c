"""Candidate scoring: weighted raw score, then min-max normalization onto [0, 100]."""

import math
from collections.abc import Sequence
from dataclasses import dataclass

from src.services.recommendations.types import CandidateMovie, ScoredCandidate

NORMALIZED_MIDPOINT = 50.0


@dataclass(frozen=True)
class ScoreWeights:
    """Weights of the three signals. They must sum to 1 to keep scores bounded."""

    person_similarity: float = 0.5
    rating: float = 0.3
    cooccurrence: float = 0.2

    def __post_init__(self) -> None:
        weights = (self.person_similarity, self.rating, self.cooccurrence)
        if any(w < 0 for w in weights):
            raise ValueError("Score weights must be non-negative")
        if not math.isclose(sum(weights), 1.0, abs_tol=1e-9):
            raise ValueError(f"Score weights must sum to 1.0, got {sum(weights):.3f}")


def rating_signal(candidate: CandidateMovie) -> float:
    """Source twin's rating, falling back to half the provider average, on [0, 1]."""
    if candidate.user_rating is not None:
        rating = candidate.user_rating
    else:
        rating = (candidate.vote_average or 0.0) / 2
    return max(0.0, min(1.0, rating / 10))


class ScoringEngine:
    """Turns a generator's pool into scored candidates."""

    def __init__(self, weights: ScoreWeights | None = None) -> None:
        self.weights = weights or ScoreWeights()

    def score(self, candidates: Sequence[CandidateMovie], algorithm: str) -> list[ScoredCandidate]:
        """Raw score per candidate, in [0, 1]. Cooccurrence is relative to the pool max."""
        max_cooccurrence = max((c.cooccurrence_count for c in candidates), default=1) or 1
        scored = []
        for candidate in candidates:
            similarity = max(0.0, min(1.0, candidate.similarity_score))
            cooccurrence = candidate.cooccurrence_count / max_cooccurrence
            raw = (
                self.weights.person_similarity * similarity
                + self.weights.rating * rating_signal(candidate)
                + self.weights.cooccurrence * cooccurrence
            )
            scored.append(ScoredCandidate(candidate=candidate, algorithm=algorithm, raw_score=raw))
        return scored

    @staticmethod
    def normalize(scored: Sequence[ScoredCandidate]) -> list[ScoredCandidate]:
        """Rescale raw scores linearly: pool min to 0, pool max to 100.

        A pool whose raw scores are all equal maps everything to 50.
        """
        if not scored:
            return []
        low = min(s.raw_score for s in scored)
        high = max(s.raw_score for s in scored)
        spread = high - low
        for s in scored:
            if spread <= 1e-12:
                s.score = NORMALIZED_MIDPOINT
            else:
                s.score = round((s.raw_score - low) / spread * 100, 2)
        return list(scored)

    def score_and_normalize(self, candidates: Sequence[CandidateMovie], algorithm: str) -> list[ScoredCandidate]:
        return self.normalize(self.score(candidates, algorithm))
