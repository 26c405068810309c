from __future__ import annotations

import math
import random

import numpy as np
import pytest

from src.item_cf.similarity_matrix import (
    ItemSimilarityMatrix,
    build_item_similarity_matrix,
    predict_from_items,
    similarity_between,
)


@pytest.fixture()
def item_corpus() -> dict[str, dict[str, float]]:
    # u1: mean 11/3, u2: mean 3. Items a and b move together, c moves against them.
    return {
        "u1": {"a": 5.0, "b": 5.0, "c": 1.0},
        "u2": {"a": 2.0, "b": 2.0, "c": 5.0},
        "u3": {},
        "u4": {"d": 4.0, "e": 2.0},
    }


def test_item_order_and_upper_triangle(item_corpus) -> None:
    order, table = build_item_similarity_matrix(item_corpus)
    assert order == ["a", "b", "c", "d", "e"]
    assert table.shape == (5, 5)

    lower = table[np.tril_indices(5, k=-1)]
    assert np.all(np.isneginf(lower))


def test_adjusted_cosine_values(item_corpus) -> None:
    order, table = build_item_similarity_matrix(item_corpus)
    assert similarity_between(order, table, "a", "b") == pytest.approx(1.0)
    assert similarity_between(order, table, "a", "c") == pytest.approx(-1.0)
    assert similarity_between(order, table, "d", "e") == pytest.approx(-1.0)
    assert similarity_between(order, table, "a", "a") == pytest.approx(1.0)


def test_lookup_is_symmetric(item_corpus) -> None:
    order, table = build_item_similarity_matrix(item_corpus)
    for a in order:
        for b in order:
            assert similarity_between(order, table, a, b) == similarity_between(order, table, b, a)


def test_no_common_raters_is_negative_infinity_not_zero(item_corpus) -> None:
    order, table = build_item_similarity_matrix(item_corpus)
    value = similarity_between(order, table, "a", "d")
    assert math.isinf(value) and value < 0


def test_zero_deviation_is_undefined() -> None:
    # Single rater with equal ratings: every deviation is 0.
    order, table = build_item_similarity_matrix({"u1": {"x": 3.0, "y": 3.0}})
    assert similarity_between(order, table, "x", "y") == float("-inf")


def test_unknown_item_raises_key_error(item_corpus) -> None:
    order, table = build_item_similarity_matrix(item_corpus)
    with pytest.raises(KeyError):
        similarity_between(order, table, "a", "zzz")


def test_matrix_wrapper_matches_function(item_corpus) -> None:
    order, table = build_item_similarity_matrix(item_corpus)
    matrix = ItemSimilarityMatrix.build(item_corpus)
    assert matrix.item_order == order
    assert len(matrix) == 5
    for a in order:
        for b in order:
            assert matrix.similarity(a, b) == similarity_between(order, table, a, b)

    assert not matrix.table.flags.writeable
    with pytest.raises(KeyError):
        matrix.similarity("zzz", "a")


def test_most_similar_excludes_self_and_undefined(item_corpus) -> None:
    matrix = ItemSimilarityMatrix.build(item_corpus)
    similar = matrix.most_similar("a", top_n=10)
    assert [s.id for s in similar] == ["b", "c"]
    assert similar[0].score == pytest.approx(1.0)

    assert [s.id for s in matrix.most_similar("c", top_n=1)] == ["a"]


def test_predict_from_items_uses_positive_similarities(item_corpus) -> None:
    matrix = ItemSimilarityMatrix.build(item_corpus)
    # b is perfectly similar to a; c is negatively similar and ignored.
    assert predict_from_items(matrix, {"b": 4.0, "c": 2.0}, "a") == pytest.approx(4.0)
    assert predict_from_items(matrix, {"c": 2.0}, "a") is None
    assert predict_from_items(matrix, {"b": 4.0}, "unknown") is None
    with pytest.raises(ValueError):
        predict_from_items(matrix, {"b": 4.0}, "a", k=0)


def _pairwise_adjusted_cosine(corpus, a, b) -> float:
    means = {u: sum(r.values()) / len(r) for u, r in corpus.items() if r}
    common = [u for u, r in corpus.items() if a in r and b in r]
    num = sum((corpus[u][a] - means[u]) * (corpus[u][b] - means[u]) for u in common)
    sq_a = sum((corpus[u][a] - means[u]) ** 2 for u in common)
    sq_b = sum((corpus[u][b] - means[u]) ** 2 for u in common)
    if not common or sq_a == 0.0 or sq_b == 0.0:
        return float("-inf")
    return num / (math.sqrt(sq_a) * math.sqrt(sq_b))


def test_matrix_matches_pairwise_co_rater_computation() -> None:
    rng = random.Random(5)
    corpus = {
        uid: {i: float(rng.randint(1, 5)) for i in rng.sample(range(12), rng.randint(0, 8))}
        for uid in range(30)
    }
    order, table = build_item_similarity_matrix(corpus)
    index = {item_id: idx for idx, item_id in enumerate(order)}
    for a in order:
        for b in order:
            expected = _pairwise_adjusted_cosine(corpus, a, b)
            got = similarity_between(order, table, a, b, item_to_idx=index)
            if math.isinf(expected):
                assert got == expected
            else:
                assert got == pytest.approx(expected)


def test_similarity_between_accepts_index_map(item_corpus) -> None:
    order, table = build_item_similarity_matrix(item_corpus)
    index = {item_id: idx for idx, item_id in enumerate(order)}
    assert similarity_between(order, table, "c", "a", item_to_idx=index) == similarity_between(order, table, "a", "c")
    with pytest.raises(KeyError):
        similarity_between(order, table, "zzz", "a", item_to_idx=index)
