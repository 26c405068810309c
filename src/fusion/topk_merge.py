"""Merging of independently reduced top-k lists (e.g. one per ratings chunk)."""

from __future__ import annotations

from functools import reduce
from typing import Iterable, Sequence

from ..neighbors.topk import ScoredCandidate
from ..similarity.metrics import Metric, Polarity, is_defined


def _polarity_of(metric: Metric | Polarity) -> Polarity:
    return metric if isinstance(metric, Polarity) else metric.polarity


def merge_top_k(
    k: int,
    first: Sequence[ScoredCandidate],
    second: Sequence[ScoredCandidate],
    metric: Metric | Polarity,
) -> list[ScoredCandidate]:
    """Top-k over the union of two top-k lists.

    Parameters
    ----------
    k:
        Result size bound; must be positive.
    first, second:
        Best-first lists of at most k candidates each, computed over disjoint
        parts of the data.
    metric:
        The metric (or just its polarity) both lists were scored with.

    Returns
    -------
    list[ScoredCandidate]
        At most k candidates, best first. The sort is stable, so on equal scores
        entries of `first` come before entries of `second`.
    """
    if int(k) <= 0:
        raise ValueError(f"k must be positive, got {k}")

    polarity = _polarity_of(metric)
    combined = [c for c in (*first, *second) if is_defined(c.score)]
    combined.sort(key=lambda c: c.score, reverse=(polarity is Polarity.MAXIMIZE))
    return combined[: int(k)]


def merge_all(
    k: int,
    results: Iterable[Sequence[ScoredCandidate]],
    metric: Metric | Polarity,
) -> list[ScoredCandidate]:
    """Fold `merge_top_k` over any number of partial results."""
    return reduce(lambda acc, part: merge_top_k(k, acc, part, metric), results, [])
