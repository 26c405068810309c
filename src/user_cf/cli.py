from __future__ import annotations

import argparse
from dataclasses import asdict
from pathlib import Path

import pandas as pd

from ..config import CFConfig, load_config
from ..data import load_ratings
from ..paths import ProjectPaths, get_repo_root
from ..similarity.metrics import Polarity
from ..store.ratings import InMemoryRatingStore
from ..utils import setup_logging
from .recommender import ChunkedUserCFRecommender


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="User-user collaborative filtering over chunked ratings")
    p.add_argument("--config", type=Path, default=Path("config.yaml"), help="Path to config YAML.")
    p.add_argument("--ratings-csv", type=Path, default=None, help="Override the ratings CSV from config")
    p.add_argument("--user-id", type=int, required=True, help="Target userId")
    p.add_argument("--item-id", type=str, default=None, help="Also predict the rating of this itemId")
    p.add_argument("--k", type=int, default=None, help="How many neighbors to use")
    p.add_argument("--metric", type=str, default=None, help="manhattan/euclidean/minkowski/pearson/cosine/jaccard_index/jaccard_distance")
    p.add_argument("--grade", type=int, default=None, help="Minkowski grade (>= 1)")
    p.add_argument("--chunk-size", type=int, default=None, help="Users per chunk when scanning ratings")
    p.add_argument("--min-common-rated", type=int, default=None, help="Min number of commonly-rated items")
    p.add_argument("--top-n", type=int, default=None, help="How many item recommendations to return")
    p.add_argument("--log-level", type=str, default="INFO")
    return p


def resolve_config(path: Path) -> CFConfig:
    if not path.is_absolute():
        path = (get_repo_root() / path).resolve()
    return load_config(path)


def resolve_ratings_csv(override: Path | None, cfg: CFConfig) -> Path:
    if override is not None:
        return override.resolve()
    paths = ProjectPaths.from_repo_root(
        get_repo_root(), raw_dir=cfg.dataset.raw_dir, ratings_file=cfg.dataset.ratings_file
    )
    return paths.ratings_csv


def parse_item_id(raw: str, item_id_dtype: str) -> int | str:
    return raw if item_id_dtype == "string" else int(raw)


def main(argv: list[str] | None = None) -> None:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level)

    cfg = resolve_config(args.config).with_knn(
        k=args.k,
        metric=args.metric,
        grade=args.grade,
        chunk_size=args.chunk_size,
        min_common_rated=args.min_common_rated,
    )

    ratings_csv = resolve_ratings_csv(args.ratings_csv, cfg)
    store = InMemoryRatingStore.from_frame(load_ratings(ratings_csv, item_id_dtype=cfg.dataset.item_id_dtype))
    rec = ChunkedUserCFRecommender(store, cfg)

    neighbors = rec.similar_users(int(args.user_id))

    print(f"\n=== Nearest Neighbors ({rec.metric.name}) ===")
    if neighbors:
        print(pd.DataFrame([asdict(n) for n in neighbors]).to_string(index=False))
    else:
        print("No neighbors found (try lowering min_common_rated).")

    if rec.metric.polarity is not Polarity.MAXIMIZE:
        print("\nRecommendations need a similarity metric (pearson/cosine/jaccard_index); skipping.")
        return

    if args.item_id is not None:
        item_id = parse_item_id(args.item_id, cfg.dataset.item_id_dtype)
        prediction = rec.predict(int(args.user_id), item_id)
        print("\n=== Predicted Rating ===")
        print("undefined (no neighbor rated this item)" if prediction is None else f"{prediction:.4f}")

    recs = rec.recommend_items(int(args.user_id), top_n=args.top_n)
    print("\n=== Recommended Items ===")
    if recs:
        print(pd.DataFrame([asdict(r) for r in recs]).to_string(index=False))
    else:
        print("No recommendations found.")


if __name__ == "__main__":
    main()
