from __future__ import annotations

import random

import pytest

from src.fusion.topk_merge import merge_top_k
from src.neighbors.knn import chunked_k_nearest_neighbors, k_nearest_neighbors
from src.neighbors.topk import ScoredCandidate
from src.similarity.metrics import Metric
from src.store.ratings import InMemoryRatingStore, iter_chunks


METRICS = [
    Metric.manhattan(),
    Metric.euclidean(),
    Metric.minkowski(3),
    Metric.pearson(),
    Metric.cosine(),
    Metric.jaccard_distance(),
    Metric.jaccard_index(),
]


def _random_corpus(seed: int, n_users: int = 40, n_items: int = 15) -> dict[int, dict[int, float]]:
    rng = random.Random(seed)
    corpus: dict[int, dict[int, float]] = {}
    for uid in range(1, n_users + 1):
        n_rated = rng.randint(0, n_items)
        items = rng.sample(range(1, n_items + 1), n_rated)
        corpus[uid] = {i: rng.choice([0.5 * s for s in range(1, 11)]) for i in items}
    return corpus


def _partition(corpus: dict, chunk_size: int, seed: int | None = None) -> list[dict]:
    user_ids = list(corpus)
    if seed is not None:
        random.Random(seed).shuffle(user_ids)
    return [
        {uid: corpus[uid] for uid in user_ids[start : start + chunk_size]}
        for start in range(0, len(user_ids), chunk_size)
    ]


def assert_same_top_k(chunked: list[ScoredCandidate], full: list[ScoredCandidate]) -> None:
    """Same scores in the same order; ids may differ only among tied scores."""
    assert [c.score for c in chunked] == [c.score for c in full]
    if not full:
        return
    boundary = full[-1].score
    assert {c.id for c in chunked if c.score != boundary} == {c.id for c in full if c.score != boundary}


def test_euclidean_example() -> None:
    corpus = {
        "U1": {"I1": 5.0, "I2": 3.0},
        "U2": {"I1": 4.0, "I2": 3.0},
        "U3": {"I1": 1.0, "I2": 5.0},
    }
    result = k_nearest_neighbors(2, "U1", corpus["U1"], corpus, Metric.euclidean())
    assert [c.id for c in result] == ["U2", "U3"]
    assert result[0].score == pytest.approx(1.0)
    assert result[1].score == pytest.approx(20.0 ** 0.5)


def test_pearson_neighbors_skip_undefined(small_corpus) -> None:
    result = k_nearest_neighbors(10, 1, small_corpus[1], small_corpus, Metric.pearson())
    assert [c.id for c in result] == [2, 4, 3]
    assert result[0].score == pytest.approx(1.0)
    assert result[1].score == pytest.approx(6.0 / 48.0 ** 0.5)
    assert result[2].score == pytest.approx(-1.0)


def test_target_excluded_and_absent_target_is_fine(small_corpus) -> None:
    result = k_nearest_neighbors(10, 1, small_corpus[1], small_corpus, Metric.manhattan())
    assert 1 not in {c.id for c in result}

    chunk_without_target = {uid: v for uid, v in small_corpus.items() if uid != 1}
    assert k_nearest_neighbors(10, 1, small_corpus[1], chunk_without_target, Metric.manhattan()) == result


def test_min_common_rated_filters_low_overlap(small_corpus) -> None:
    result = k_nearest_neighbors(10, 1, small_corpus[1], small_corpus, Metric.manhattan(), min_common_rated=3)
    assert {c.id for c in result} == {2, 3, 4}


def test_empty_target_has_no_valid_neighbors(small_corpus) -> None:
    assert k_nearest_neighbors(5, 99, {}, small_corpus, Metric.pearson()) == []
    assert k_nearest_neighbors(5, 99, {}, small_corpus, Metric.cosine()) == []
    assert k_nearest_neighbors(5, 99, {}, small_corpus, Metric.manhattan()) == []
    assert k_nearest_neighbors(5, 99, {}, small_corpus, Metric.jaccard_index()) == []


@pytest.mark.parametrize("metric", [Metric.manhattan(), Metric.euclidean(), Metric.minkowski(3)], ids=lambda m: m.name)
def test_distance_metrics_never_return_users_without_common_items(metric: Metric) -> None:
    corpus = {
        "U1": {"I1": 5.0, "I2": 3.0},
        "U2": {"I1": 4.0, "I2": 3.0},
        "U9": {"I7": 1.0},
    }
    result = k_nearest_neighbors(1, "U1", corpus["U1"], corpus, metric)
    assert [c.id for c in result] == ["U2"]
    assert result[0].score == pytest.approx(1.0)

    assert [c.id for c in k_nearest_neighbors(5, "U1", corpus["U1"], corpus, metric)] == ["U2"]
    assert k_nearest_neighbors(5, "U0", {}, corpus, metric) == []


def test_invalid_parameters_rejected(small_corpus) -> None:
    with pytest.raises(ValueError):
        k_nearest_neighbors(0, 1, small_corpus[1], small_corpus, Metric.euclidean())
    with pytest.raises(ValueError):
        k_nearest_neighbors(3, 1, small_corpus[1], small_corpus, Metric.euclidean(), min_common_rated=-1)
    with pytest.raises(ValueError):
        chunked_k_nearest_neighbors(0, 1, small_corpus[1], [small_corpus], Metric.euclidean())


@pytest.mark.parametrize("metric", METRICS, ids=lambda m: m.name)
@pytest.mark.parametrize("chunk_size", [1, 3, 7, 40, 100])
@pytest.mark.parametrize("k", [1, 5, 60])
def test_chunked_fold_equals_single_pass(metric: Metric, chunk_size: int, k: int) -> None:
    corpus = _random_corpus(seed=11)
    for target_id in (1, 17, 40):
        target = corpus[target_id]
        full = k_nearest_neighbors(k, target_id, target, corpus, metric)

        running: list[ScoredCandidate] = []
        for chunk in _partition(corpus, chunk_size, seed=chunk_size):
            running = merge_top_k(k, running, k_nearest_neighbors(k, target_id, target, chunk, metric), metric)

        assert_same_top_k(running, full)
        assert_same_top_k(
            chunked_k_nearest_neighbors(k, target_id, target, _partition(corpus, chunk_size), metric), full
        )


def test_chunked_over_store_windows(small_corpus) -> None:
    store = InMemoryRatingStore(small_corpus)
    full = k_nearest_neighbors(3, 1, small_corpus[1], small_corpus, Metric.pearson())
    for chunk_size in (1, 2, 4, 10):
        result = chunked_k_nearest_neighbors(3, 1, small_corpus[1], iter_chunks(store, chunk_size), Metric.pearson())
        assert result == full
