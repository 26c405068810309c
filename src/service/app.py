"""FastAPI service entrypoint for user-user and item-item collaborative filtering."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from threading import Lock

from fastapi import FastAPI, HTTPException

from ..config import CFConfig, load_config
from ..data import load_ratings
from ..item_cf.similarity_matrix import ItemSimilarityMatrix
from ..paths import ProjectPaths, get_repo_root
from ..similarity.metrics import Metric
from ..store.ratings import InMemoryRatingStore, RatingStore
from ..user_cf.recommender import ChunkedUserCFRecommender
from ..utils import setup_logging
from .schemas import (
    ItemSimilarityRequest,
    ItemSimilarityResponse,
    NeighborsRequest,
    NeighborsResponse,
    PredictRequest,
    PredictResponse,
    RecommendRequest,
    RecommendResponse,
)

logger = logging.getLogger(__name__)


def _get_env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or str(raw).strip() == "":
        return default
    p = Path(str(raw))
    return p if p.is_absolute() else (get_repo_root() / p).resolve()


class ItemMatrixHolder:
    """Builds the item similarity matrix on first use, once per process."""

    def __init__(self, store: RatingStore) -> None:
        self._store = store
        self._matrix: ItemSimilarityMatrix | None = None
        self._lock = Lock()

    def get(self) -> ItemSimilarityMatrix:
        with self._lock:
            if self._matrix is None:
                logger.info("Building item similarity matrix for %d users", self._store.user_count())
                self._matrix = ItemSimilarityMatrix.build(self._store.all_ratings())
            return self._matrix


def attach_state(app_: FastAPI, store: RatingStore, cfg: CFConfig) -> None:
    app_.state.user_cf = ChunkedUserCFRecommender(store, cfg)
    app_.state.item_cf = ItemMatrixHolder(store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))

    repo_root = get_repo_root()
    config_path = _get_env_path("CONFIG_PATH", repo_root / "config.yaml")
    cfg = load_config(config_path)

    paths = ProjectPaths.from_repo_root(repo_root, raw_dir=cfg.dataset.raw_dir, ratings_file=cfg.dataset.ratings_file)
    ratings_csv = _get_env_path("RATINGS_CSV", paths.ratings_csv)

    logger.info("Starting service with config=%s ratings=%s", config_path, ratings_csv)
    store = InMemoryRatingStore.from_frame(load_ratings(ratings_csv, item_id_dtype=cfg.dataset.item_id_dtype))
    attach_state(app, store, cfg)
    yield


app = FastAPI(title="Chunked Neighborhood CF Service", lifespan=lifespan)


def _user_cf(app_: FastAPI) -> ChunkedUserCFRecommender:
    rec = getattr(app_.state, "user_cf", None)
    if rec is None:
        raise HTTPException(status_code=503, detail="UserCF recommender not initialized")
    return rec


def _item_cf(app_: FastAPI) -> ItemMatrixHolder:
    holder = getattr(app_.state, "item_cf", None)
    if holder is None:
        raise HTTPException(status_code=503, detail="ItemCF matrix not initialized")
    return holder


@app.post("/neighbors", response_model=NeighborsResponse)
def neighbors(req: NeighborsRequest) -> dict:
    """Return the k nearest neighbours of a user under the chosen metric."""
    rec = _user_cf(app)
    try:
        metric = Metric.parse(req.metric, grade=req.grade) if req.metric is not None else rec.metric
        found = rec.similar_users(int(req.userId), k=int(req.k), metric=metric, min_common_rated=req.min_common_rated)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {
        "userId": int(req.userId),
        "metric": metric.name,
        "k": int(req.k),
        "results": [{"userId": n.id, "score": n.score} for n in found],
    }


@app.post("/predict", response_model=PredictResponse)
def predict(req: PredictRequest) -> dict:
    """Predict a user's rating for an item from similarity-weighted neighbours."""
    rec = _user_cf(app)
    try:
        prediction = rec.predict(int(req.userId), req.itemId, k=req.k)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {"userId": int(req.userId), "itemId": req.itemId, "prediction": prediction}


@app.post("/recommend", response_model=RecommendResponse)
def recommend(req: RecommendRequest) -> dict:
    """Recommend items the user has not rated, ranked by neighbour-weighted score."""
    rec = _user_cf(app)
    try:
        recs = rec.recommend_items(int(req.userId), top_n=int(req.top_n), k=req.k)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {
        "userId": int(req.userId),
        "top_n": int(req.top_n),
        "results": [{"itemId": r.id, "score": r.score, "support": r.support} for r in recs],
    }


@app.post("/items/similarity", response_model=ItemSimilarityResponse)
def item_similarity(req: ItemSimilarityRequest) -> dict:
    """Adjusted cosine similarity of an item to another item and its most similar items."""
    matrix = _item_cf(app).get()
    try:
        similar = matrix.most_similar(req.itemId, top_n=int(req.top_n))
        pairwise = None
        if req.otherItemId is not None:
            value = matrix.similarity(req.itemId, req.otherItemId)
            pairwise = value if value != float("-inf") else None
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    return {
        "itemId": req.itemId,
        "similarity": pairwise,
        "results": [{"itemId": s.id, "similarity": s.score} for s in similar],
    }
