"""Distance and similarity scores between two sparse rating vectors.

Every metric is restricted to the items both vectors rated. Jaccard is the
exception: it works on the rated-item sets, so items rated by one side only
count towards the union.

Scores that cannot be computed (no overlap, zero variance, zero norm) come back
as NaN. Use `is_defined` to drop them before ranking anything.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Hashable, Mapping


RatingVector = Mapping[Hashable, float]

_NAN = float("nan")


class Polarity(Enum):
    MINIMIZE = "minimize"
    MAXIMIZE = "maximize"


class MetricKind(Enum):
    MANHATTAN = "manhattan"
    EUCLIDEAN = "euclidean"
    MINKOWSKI = "minkowski"
    PEARSON = "pearson"
    COSINE = "cosine"
    JACCARD_DISTANCE = "jaccard_distance"
    JACCARD_INDEX = "jaccard_index"


_POLARITY: dict[MetricKind, Polarity] = {
    MetricKind.MANHATTAN: Polarity.MINIMIZE,
    MetricKind.EUCLIDEAN: Polarity.MINIMIZE,
    MetricKind.MINKOWSKI: Polarity.MINIMIZE,
    MetricKind.JACCARD_DISTANCE: Polarity.MINIMIZE,
    MetricKind.PEARSON: Polarity.MAXIMIZE,
    MetricKind.COSINE: Polarity.MAXIMIZE,
    MetricKind.JACCARD_INDEX: Polarity.MAXIMIZE,
}


def is_defined(score: float) -> bool:
    """True if `score` can take part in ranking (not NaN, not +/-inf)."""
    return math.isfinite(score)


def _smaller_first(first: RatingVector, second: RatingVector) -> tuple[RatingVector, RatingVector, bool]:
    if len(first) <= len(second):
        return first, second, False
    return second, first, True


def _common_pairs(first: RatingVector, second: RatingVector) -> list[tuple[float, float]]:
    """(first_rating, second_rating) for every co-rated item, scanning the smaller vector."""
    small, large, swapped = _smaller_first(first, second)
    pairs: list[tuple[float, float]] = []
    for item_id, r_small in small.items():
        r_large = large.get(item_id)
        if r_large is None:
            continue
        if swapped:
            pairs.append((float(r_large), float(r_small)))
        else:
            pairs.append((float(r_small), float(r_large)))
    return pairs


def _intersection_size(first: RatingVector, second: RatingVector) -> int:
    small, large, _ = _smaller_first(first, second)
    return sum(1 for item_id in small if item_id in large)


def common_rated(first: RatingVector, second: RatingVector) -> int:
    """Number of items rated by both vectors."""
    return _intersection_size(first, second)


def minkowski_distance(first: RatingVector, second: RatingVector, grade: int) -> float:
    if int(grade) < 1:
        raise ValueError(f"Minkowski grade must be >= 1, got {grade}")
    grade = int(grade)
    pairs = _common_pairs(first, second)
    # No co-rated items: nothing to measure, not a perfect match.
    if not pairs:
        return _NAN
    total = 0.0
    for x, y in pairs:
        total += abs(x - y) ** grade
    return total ** (1.0 / grade)


def manhattan_distance(first: RatingVector, second: RatingVector) -> float:
    return minkowski_distance(first, second, 1)


def euclidean_distance(first: RatingVector, second: RatingVector) -> float:
    return minkowski_distance(first, second, 2)


def pearson_correlation(first: RatingVector, second: RatingVector) -> float:
    """Sample Pearson correlation over co-rated items.

    Two passes (means, then centred sums) so a constant vector gives an exact
    zero variance instead of a small rounding residue. NaN when undefined.
    """
    pairs = _common_pairs(first, second)
    n = len(pairs)
    if n == 0:
        return _NAN

    mean_x = sum(x for x, _ in pairs) / n
    mean_y = sum(y for _, y in pairs) / n

    cov = 0.0
    var_x = 0.0
    var_y = 0.0
    for x, y in pairs:
        dx = x - mean_x
        dy = y - mean_y
        cov += dx * dy
        var_x += dx * dx
        var_y += dy * dy

    denominator = math.sqrt(var_x) * math.sqrt(var_y)
    if denominator == 0.0:
        return _NAN
    return cov / denominator


def cosine_similarity(first: RatingVector, second: RatingVector) -> float:
    """Cosine over co-rated items; norms are restricted to the intersection too."""
    dot = 0.0
    first_sq = 0.0
    second_sq = 0.0
    for x, y in _common_pairs(first, second):
        dot += x * y
        first_sq += x * x
        second_sq += y * y

    denominator = math.sqrt(first_sq) * math.sqrt(second_sq)
    if denominator == 0.0:
        return _NAN
    return dot / denominator


def jaccard_index(first: RatingVector, second: RatingVector) -> float:
    intersection = _intersection_size(first, second)
    union = len(first) + len(second) - intersection
    if union == 0:
        return _NAN
    return intersection / union


def jaccard_distance(first: RatingVector, second: RatingVector) -> float:
    return 1.0 - jaccard_index(first, second)


@dataclass(frozen=True)
class Metric:
    """A metric choice: the kind plus its grade (Minkowski only)."""

    kind: MetricKind
    grade: int | None = None

    def __post_init__(self) -> None:
        if self.kind is MetricKind.MINKOWSKI:
            if self.grade is None or int(self.grade) < 1:
                raise ValueError(f"Minkowski grade must be >= 1, got {self.grade}")
        elif self.grade is not None:
            raise ValueError(f"grade is only valid for minkowski, not {self.kind.value}")

    @classmethod
    def manhattan(cls) -> "Metric":
        return cls(MetricKind.MANHATTAN)

    @classmethod
    def euclidean(cls) -> "Metric":
        return cls(MetricKind.EUCLIDEAN)

    @classmethod
    def minkowski(cls, grade: int) -> "Metric":
        return cls(MetricKind.MINKOWSKI, int(grade))

    @classmethod
    def pearson(cls) -> "Metric":
        return cls(MetricKind.PEARSON)

    @classmethod
    def cosine(cls) -> "Metric":
        return cls(MetricKind.COSINE)

    @classmethod
    def jaccard_distance(cls) -> "Metric":
        return cls(MetricKind.JACCARD_DISTANCE)

    @classmethod
    def jaccard_index(cls) -> "Metric":
        return cls(MetricKind.JACCARD_INDEX)

    @classmethod
    def parse(cls, name: str, *, grade: int | None = None) -> "Metric":
        """Build a metric from a config/CLI name such as "pearson" or "minkowski"."""
        key = str(name).strip().lower().replace("-", "_")
        try:
            kind = MetricKind(key)
        except ValueError as exc:
            valid = ", ".join(k.value for k in MetricKind)
            raise ValueError(f"Unknown metric {name!r}; expected one of: {valid}") from exc
        if kind is MetricKind.MINKOWSKI:
            return cls(kind, None if grade is None else int(grade))
        return cls(kind)

    @property
    def name(self) -> str:
        if self.kind is MetricKind.MINKOWSKI:
            return f"minkowski(grade={self.grade})"
        return self.kind.value

    @property
    def polarity(self) -> Polarity:
        return _POLARITY[self.kind]

    def is_better(self, a: float, b: float) -> bool:
        """Strictly better under this metric's polarity."""
        if self.polarity is Polarity.MINIMIZE:
            return a < b
        return a > b

    def score(self, first: RatingVector, second: RatingVector) -> float:
        kind = self.kind
        if kind is MetricKind.MANHATTAN:
            return manhattan_distance(first, second)
        if kind is MetricKind.EUCLIDEAN:
            return euclidean_distance(first, second)
        if kind is MetricKind.MINKOWSKI:
            return minkowski_distance(first, second, int(self.grade))
        if kind is MetricKind.PEARSON:
            return pearson_correlation(first, second)
        if kind is MetricKind.COSINE:
            return cosine_similarity(first, second)
        if kind is MetricKind.JACCARD_DISTANCE:
            return jaccard_distance(first, second)
        if kind is MetricKind.JACCARD_INDEX:
            return jaccard_index(first, second)
        raise ValueError(f"Unhandled metric kind: {kind}")
