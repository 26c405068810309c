from __future__ import annotations

import logging
from typing import Hashable

from ..config import CFConfig
from ..neighbors.knn import chunked_k_nearest_neighbors
from ..neighbors.topk import ScoredCandidate
from ..ranking.prediction import Recommendation, predict_rating, recommend
from ..similarity.metrics import Metric, Polarity
from ..store.ratings import RatingStore, iter_chunks


logger = logging.getLogger(__name__)


class ChunkedUserCFRecommender:
    """User-user CF over a rating store that is scanned chunk by chunk.

    Nothing is cached between calls: every query re-reads the target's ratings
    and streams the store, so the store may change between requests.
    """

    def __init__(self, store: RatingStore, config: CFConfig | None = None) -> None:
        self.store = store
        self.config = config if config is not None else CFConfig()
        self.metric = self.config.knn.build_metric()

    def has_user(self, user_id: Hashable) -> bool:
        try:
            self.store.ratings_for(user_id)
        except KeyError:
            return False
        return True

    def similar_users(
        self,
        user_id: Hashable,
        *,
        k: int | None = None,
        metric: Metric | None = None,
        min_common_rated: int | None = None,
        chunk_size: int | None = None,
    ) -> list[ScoredCandidate]:
        """Top-k neighbours of `user_id`; raises KeyError for an unknown user."""
        knn_cfg = self.config.knn
        k = int(k if k is not None else knn_cfg.k)
        metric = metric if metric is not None else self.metric
        min_common = int(min_common_rated if min_common_rated is not None else knn_cfg.min_common_rated)
        chunk_size = int(chunk_size if chunk_size is not None else knn_cfg.chunk_size)
        if k <= 0:
            raise ValueError(f"k must be positive, got {k}")
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")

        target_ratings = self.store.ratings_for(user_id)
        if not target_ratings:
            logger.info("userId=%s has no ratings; no neighbors", user_id)
            return []

        return chunked_k_nearest_neighbors(
            k,
            user_id,
            target_ratings,
            iter_chunks(self.store, chunk_size),
            metric,
            min_common_rated=min_common,
        )

    def _neighbor_ratings(self, neighbors: list[ScoredCandidate]) -> dict[Hashable, dict[Hashable, float]]:
        return {n.id: self.store.ratings_for(n.id) for n in neighbors}

    def _weighted_neighbors(self, user_id: Hashable, k: int | None) -> list[ScoredCandidate]:
        """Neighbours usable as weights: similarity metrics only, positive weights."""
        if self.metric.polarity is not Polarity.MAXIMIZE:
            raise ValueError(
                f"Predictions need a similarity metric as weights; {self.metric.name} is a distance"
            )
        neighbors = self.similar_users(user_id, k=k)
        return [n for n in neighbors if n.score > 0.0]

    def predict(self, user_id: Hashable, item_id: Hashable, *, k: int | None = None) -> float | None:
        """Predicted rating of `item_id` for `user_id`, or None if no neighbour rated it."""
        neighbors = self._weighted_neighbors(user_id, k)
        prediction = predict_rating(neighbors, item_id, self._neighbor_ratings(neighbors))
        logger.info(
            "predict userId=%s itemId=%s neighbors=%d prediction=%s",
            user_id,
            item_id,
            len(neighbors),
            prediction,
        )
        return prediction

    def recommend_items(
        self,
        user_id: Hashable,
        *,
        top_n: int | None = None,
        k: int | None = None,
    ) -> list[Recommendation]:
        """Items the user has not rated, ranked by neighbour-weighted score."""
        rec_cfg = self.config.recommend
        top_n = int(top_n if top_n is not None else rec_cfg.top_n)
        if top_n <= 0:
            raise ValueError(f"top_n must be positive, got {top_n}")

        target_ratings = self.store.ratings_for(user_id)
        neighbors = self._weighted_neighbors(user_id, k)
        if not neighbors:
            return []
        return recommend(
            neighbors,
            target_ratings,
            self._neighbor_ratings(neighbors),
            top_n,
            normalize=rec_cfg.normalize,
        )
