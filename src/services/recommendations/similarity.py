"""Taste profile similarity.

Weighted Jaccard over positively-weighted keys:

    overlap(a, b) = sum(min(a_k, b_k)) / sum(max(a_k, b_k))

It is symmetric, equals 1 for identical non-empty maps and 0 when no key is
shared. Two empty maps have nothing in common, so they score 0.
"""

from collections.abc import Mapping

from src.services.recommendations.types import TasteProfile


def overlap(a: Mapping, b: Mapping) -> float:
    """Similarity in [0, 1] between two weight maps. Non-positive weights are ignored."""
    a_pos = {k: w for k, w in a.items() if w > 0}
    b_pos = {k: w for k, w in b.items() if w > 0}
    if not a_pos or not b_pos or a_pos.keys().isdisjoint(b_pos.keys()):
        return 0.0

    intersection = 0.0
    union = 0.0
    for key in a_pos.keys() | b_pos.keys():
        wa = a_pos.get(key, 0.0)
        wb = b_pos.get(key, 0.0)
        intersection += min(wa, wb)
        union += max(wa, wb)

    if union <= 0:
        return 0.0
    return min(1.0, intersection / union)


def person_similarity(a: TasteProfile, b: TasteProfile) -> float:
    """Mean of actor overlap and director overlap."""
    return (overlap(a.actors, b.actors) + overlap(a.directors, b.directors)) / 2


def genre_similarity(a: TasteProfile, b: TasteProfile) -> float:
    return overlap(a.genres, b.genres)
