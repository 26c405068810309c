"""Neighbour-weighted rating prediction and recommendation ranking.

Neighbour lists come from the KNN search and carry similarity weights
(typically Pearson). Ratings of the neighbours are passed in separately as a
corpus-like mapping so the caller decides where they come from.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Hashable, Mapping, Sequence

from ..neighbors.topk import ScoredCandidate
from ..similarity.metrics import RatingVector, is_defined


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recommendation:
    id: Hashable
    score: float
    support: int


def _usable(neighbors: Sequence[ScoredCandidate]) -> list[ScoredCandidate]:
    return [n for n in neighbors if is_defined(n.score)]


def predict_rating(
    neighbors: Sequence[ScoredCandidate],
    item_id: Hashable,
    neighbor_ratings: Mapping[Hashable, RatingVector],
) -> float | None:
    """Weighted average of neighbour ratings for `item_id`.

    Only neighbours that rated the item and carry a finite weight count.
    Returns None when nobody qualifies or the weights cancel out to zero;
    None means "no prediction", never 0.0.
    """
    weighted_sum = 0.0
    weight_sum = 0.0
    support = 0
    for n in _usable(neighbors):
        rating = neighbor_ratings.get(n.id, {}).get(item_id)
        if rating is None:
            continue
        weighted_sum += float(rating) * n.score
        weight_sum += n.score
        support += 1

    if support == 0 or weight_sum == 0.0:
        logger.debug("no prediction for item=%s (support=%d weight_sum=%.4f)", item_id, support, weight_sum)
        return None
    return weighted_sum / weight_sum


def recommend(
    neighbors: Sequence[ScoredCandidate],
    target_ratings: RatingVector,
    neighbor_ratings: Mapping[Hashable, RatingVector],
    top_n: int,
    *,
    normalize: bool = False,
) -> list[Recommendation]:
    """Rank items the target has not rated by accumulated neighbour score.

    Scoring:
    - Candidates: every item rated by at least one neighbour and not by the target
    - Score: sum of (neighbour rating * neighbour weight), not normalised per item
    - normalize=True divides every score by the total neighbour weight; this is
      a constant divisor and does not change the ranking
    - Ties: more supporting neighbours first, then first-seen order
    """
    if int(top_n) <= 0:
        raise ValueError(f"top_n must be positive, got {top_n}")

    usable = _usable(neighbors)
    scores: dict[Hashable, float] = {}
    support: dict[Hashable, int] = {}
    for n in usable:
        for item_id, rating in neighbor_ratings.get(n.id, {}).items():
            if item_id in target_ratings:
                continue
            scores[item_id] = scores.get(item_id, 0.0) + float(rating) * n.score
            support[item_id] = support.get(item_id, 0) + 1

    if not scores:
        return []

    divisor = 1.0
    if normalize:
        divisor = sum(n.score for n in usable)
        if divisor <= 0.0:
            logger.debug("total neighbour weight %.4f is not positive; returning unnormalised scores", divisor)
            divisor = 1.0

    ranked = sorted(scores.items(), key=lambda x: (x[1], support[x[0]]), reverse=True)
    # reverse=True keeps equal keys in first-seen order.
    return [
        Recommendation(id=item_id, score=score / divisor, support=support[item_id])
        for item_id, score in ranked[: int(top_n)]
    ]
