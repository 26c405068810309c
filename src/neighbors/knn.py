"""k-nearest-neighbour search over one ratings corpus or a stream of chunks."""

from __future__ import annotations

import logging
from typing import Hashable, Iterable, Mapping

from ..fusion.topk_merge import merge_top_k
from ..similarity.metrics import Metric, RatingVector, common_rated, is_defined
from .topk import BoundedTopK, ScoredCandidate


logger = logging.getLogger(__name__)

Corpus = Mapping[Hashable, RatingVector]


def _validate(k: int, min_common_rated: int) -> None:
    if int(k) <= 0:
        raise ValueError(f"k must be positive, got {k}")
    if int(min_common_rated) < 0:
        raise ValueError(f"min_common_rated must be >= 0, got {min_common_rated}")


def k_nearest_neighbors(
    k: int,
    target_id: Hashable,
    target_ratings: RatingVector,
    corpus: Corpus,
    metric: Metric,
    *,
    min_common_rated: int = 0,
) -> list[ScoredCandidate]:
    """Top-k neighbours of `target_id` within `corpus`, best first.

    The target never appears in its own result; it is fine if the corpus does
    not contain it at all (a chunk without the target). Pairs with an undefined
    score are skipped, as are pairs sharing fewer than `min_common_rated` items.
    A target with no ratings has no neighbours.
    """
    _validate(k, min_common_rated)
    if not target_ratings:
        return []

    selector = BoundedTopK(int(k), metric.polarity)
    skipped = 0
    for other_id, other_ratings in corpus.items():
        if other_id == target_id:
            continue
        if min_common_rated and common_rated(target_ratings, other_ratings) < int(min_common_rated):
            continue
        score = metric.score(target_ratings, other_ratings)
        if not is_defined(score):
            skipped += 1
            continue
        selector.push(other_id, score)

    if skipped:
        logger.debug("knn target=%s metric=%s skipped %d undefined scores", target_id, metric.name, skipped)
    return selector.results()


def chunked_k_nearest_neighbors(
    k: int,
    target_id: Hashable,
    target_ratings: RatingVector,
    chunks: Iterable[Corpus],
    metric: Metric,
    *,
    min_common_rated: int = 0,
) -> list[ScoredCandidate]:
    """Top-k neighbours over a corpus that is only visible one chunk at a time.

    Each chunk is reduced to its own top-k and folded into the running result
    with `merge_top_k`, so memory stays bounded by one chunk plus k candidates.
    """
    _validate(k, min_common_rated)

    running: list[ScoredCandidate] = []
    n_chunks = 0
    n_users = 0
    for chunk in chunks:
        local = k_nearest_neighbors(
            k, target_id, target_ratings, chunk, metric, min_common_rated=min_common_rated
        )
        running = merge_top_k(k, running, local, metric)
        n_chunks += 1
        n_users += len(chunk)
        logger.debug("knn chunk=%d users=%d local=%d running=%d", n_chunks, len(chunk), len(local), len(running))

    logger.info(
        "knn target=%s metric=%s k=%d scanned users=%d chunks=%d neighbors=%d",
        target_id,
        metric.name,
        int(k),
        n_users,
        n_chunks,
        len(running),
    )
    return running
