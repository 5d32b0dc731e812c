"""Blend the provider rating with the platform's own community rating.

Small communities are shrunk toward the provider rating (Bayesian prior);
once the community has enough votes, its weight is its share of all votes.
The community weight is always clamped to [min_weight, max_weight].
"""

import math
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from src.constants import (
    BLEND_MAX_WEIGHT,
    BLEND_MIN_WEIGHT,
    BLEND_PRIOR_STRENGTH,
    BLEND_TRANSITION_VOTES,
)

RATING_STEP = Decimal("0.1")


def round_rating(value: float) -> float:
    """Round to one decimal with ties going up (6.25 -> 6.3).

    Works on the exact binary value of the float, so 1.45 (stored as
    1.4499...) still rounds down.
    """
    return float(Decimal(value).quantize(RATING_STEP, rounding=ROUND_HALF_UP))


def calculate_cine_chance_score(
    tmdb_rating: float,
    tmdb_votes: int,
    cine_chance_rating: float | None,
    cine_chance_votes: int,
    *,
    transition_votes: int = BLEND_TRANSITION_VOTES,
    prior_strength: float = BLEND_PRIOR_STRENGTH,
    min_weight: float = BLEND_MIN_WEIGHT,
    max_weight: float = BLEND_MAX_WEIGHT,
) -> float:
    """Display score on the 0-10 scale, rounded to one decimal.

    Without community data (no rating, zero community votes or zero provider
    votes) the provider rating is returned as is.
    """
    if not cine_chance_rating or not cine_chance_votes or not tmdb_votes:
        return round_rating(tmdb_rating)

    if cine_chance_votes < transition_votes:
        weight = cine_chance_votes / (cine_chance_votes + prior_strength)
    else:
        weight = cine_chance_votes / (cine_chance_votes + tmdb_votes)

    weight = max(min_weight, min(max_weight, weight))

    return round_rating(weight * cine_chance_rating + (1 - weight) * tmdb_rating)


def community_rating(ratings: Iterable[float | None]) -> tuple[float | None, int]:
    """Average of the usable user ratings of a title and how many there were.

    Missing, NaN and non-positive ratings are skipped. The average is rounded
    to one decimal; None when nobody rated the title.
    """
    valid = [r for r in ratings if r is not None and not math.isnan(r) and r > 0]
    if not valid:
        return None, 0
    return round_rating(sum(valid) / len(valid)), len(valid)
