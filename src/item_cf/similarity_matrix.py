"""Item-item adjusted cosine similarity, precomputed in one batch pass.

Ratings are centred on each user's mean before the cosine is taken, so a user
who rates everything high does not make all items look alike.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Hashable, Mapping, Sequence

import numpy as np

from ..neighbors.topk import BoundedTopK, ScoredCandidate
from ..similarity.metrics import Polarity, RatingVector


logger = logging.getLogger(__name__)

UNDEFINED = float("-inf")


def _deviations(
    corpus: Mapping[Hashable, RatingVector],
) -> tuple[list[Hashable], np.ndarray, np.ndarray]:
    """Item order (first appearance), plus dense (users x items) deviation and rated-mask arrays.

    Users without ratings get no row. Unrated cells hold 0.0 in both arrays.
    """
    item_order: list[Hashable] = []
    item_to_idx: dict[Hashable, int] = {}
    rows: list[tuple[float, RatingVector]] = []

    for user_ratings in corpus.values():
        if not user_ratings:
            continue
        mean = sum(float(r) for r in user_ratings.values()) / len(user_ratings)
        for item_id in user_ratings:
            if item_id not in item_to_idx:
                item_to_idx[item_id] = len(item_order)
                item_order.append(item_id)
        rows.append((mean, user_ratings))

    deviations = np.zeros((len(rows), len(item_order)), dtype=np.float64)
    rated = np.zeros_like(deviations)
    for u, (mean, user_ratings) in enumerate(rows):
        for item_id, rating in user_ratings.items():
            j = item_to_idx[item_id]
            deviations[u, j] = float(rating) - mean
            rated[u, j] = 1.0

    return item_order, deviations, rated


def _fill_row(table: np.ndarray, i: int, deviations: np.ndarray, rated: np.ndarray) -> int:
    """Populate table[i, i:] in one pass; returns how many cells got a defined value."""
    dev_i = deviations[:, i]
    rated_i = rated[:, i]
    tail_dev = deviations[:, i:]
    tail_rated = rated[:, i:]

    # Unrated cells are 0.0, so each product only collects common raters.
    numerator = dev_i @ tail_dev
    first_square = (dev_i * dev_i) @ tail_rated
    second_square = rated_i @ (tail_dev * tail_dev)
    common = rated_i @ tail_rated

    denominator = np.sqrt(first_square) * np.sqrt(second_square)
    defined = (common > 0) & (denominator > 0.0)
    values = np.full(denominator.shape, UNDEFINED)
    np.divide(numerator, denominator, out=values, where=defined)

    table[i, i:] = values
    return int(defined.sum())


def build_item_similarity_matrix(
    corpus: Mapping[Hashable, RatingVector],
) -> tuple[list[Hashable], np.ndarray]:
    """Adjusted cosine similarity for every item pair with at least one common rater.

    Returns
    -------
    (item_order, table)
        `item_order[i]` is the item of row/column i. Only the upper triangle
        (diagonal included) is populated; everything else, and any pair without
        common raters or with zero deviation, is -inf. Read cells through
        `similarity_between`, never directly.
    """
    item_order, deviations, rated = _deviations(corpus)
    n_items = len(item_order)

    table = np.full((n_items, n_items), UNDEFINED, dtype=np.float64)
    filled = 0
    for i in range(n_items):
        filled += _fill_row(table, i, deviations, rated)

    logger.info(
        "Item similarity matrix: users=%d items=%d defined_cells=%d",
        deviations.shape[0],
        n_items,
        filled,
    )
    return item_order, table


def similarity_between(
    item_order: Sequence[Hashable],
    table: np.ndarray,
    item_a: Hashable,
    item_b: Hashable,
    *,
    item_to_idx: Mapping[Hashable, int] | None = None,
) -> float:
    """Symmetric lookup; -inf means the similarity is undefined.

    Without `item_to_idx` each call scans `item_order`; pass the index map (or
    use `ItemSimilarityMatrix`) for repeated lookups.
    """
    if item_to_idx is None:
        item_to_idx = {item_id: idx for idx, item_id in enumerate(item_order)}
    i = item_to_idx.get(item_a)
    if i is None:
        raise KeyError(f"Unknown itemId: {item_a}")
    j = item_to_idx.get(item_b)
    if j is None:
        raise KeyError(f"Unknown itemId: {item_b}")
    return float(max(table[i, j], table[j, i]))


@dataclass(frozen=True)
class ItemSimilarityMatrix:
    """Built matrix plus an id -> index map for O(1) lookups."""

    item_order: list[Hashable]
    table: np.ndarray
    item_to_idx: dict[Hashable, int]

    @classmethod
    def build(cls, corpus: Mapping[Hashable, RatingVector]) -> "ItemSimilarityMatrix":
        item_order, table = build_item_similarity_matrix(corpus)
        table.setflags(write=False)
        return cls(
            item_order=item_order,
            table=table,
            item_to_idx={item_id: idx for idx, item_id in enumerate(item_order)},
        )

    def __len__(self) -> int:
        return len(self.item_order)

    def has_item(self, item_id: Hashable) -> bool:
        return item_id in self.item_to_idx

    def _index(self, item_id: Hashable) -> int:
        idx = self.item_to_idx.get(item_id)
        if idx is None:
            raise KeyError(f"Unknown itemId: {item_id}")
        return idx

    def similarity(self, item_a: Hashable, item_b: Hashable) -> float:
        return similarity_between(self.item_order, self.table, item_a, item_b, item_to_idx=self.item_to_idx)

    def most_similar(self, item_id: Hashable, top_n: int = 10) -> list[ScoredCandidate]:
        """Items with the highest defined similarity to `item_id`, best first."""
        i = self._index(item_id)
        # Row i holds j >= i, column i holds j < i; together they are the full row.
        row = np.maximum(self.table[i, :], self.table[:, i])

        selector = BoundedTopK(int(top_n), Polarity.MAXIMIZE)
        for j, value in enumerate(row.tolist()):
            if j == i:
                continue
            selector.push(self.item_order[j], value)
        return selector.results()


def predict_from_items(
    matrix: ItemSimilarityMatrix,
    target_ratings: RatingVector,
    item_id: Hashable,
    *,
    k: int = 20,
) -> float | None:
    """Item-based prediction: weighted average of the user's own ratings.

    Uses the (at most) k rated items most similar to `item_id`, positive
    similarities only. None if the item is unknown to the matrix or no rated
    item is positively similar to it.
    """
    if int(k) <= 0:
        raise ValueError(f"k must be positive, got {k}")
    if not matrix.has_item(item_id):
        return None

    selector = BoundedTopK(int(k), Polarity.MAXIMIZE)
    for rated_id in target_ratings:
        if rated_id == item_id or not matrix.has_item(rated_id):
            continue
        sim = matrix.similarity(item_id, rated_id)
        if sim > 0.0:
            selector.push(rated_id, sim)

    neighbors = selector.results()
    weight_sum = sum(n.score for n in neighbors)
    if not neighbors or weight_sum == 0.0:
        return None
    return sum(float(target_ratings[n.id]) * n.score for n in neighbors) / weight_sum
