from __future__ import annotations

import argparse
from dataclasses import asdict
from pathlib import Path

import pandas as pd

from ..data import load_ratings
from ..store.ratings import InMemoryRatingStore
from ..user_cf.cli import parse_item_id, resolve_config, resolve_ratings_csv
from ..utils import setup_logging
from .similarity_matrix import ItemSimilarityMatrix, predict_from_items


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Item-item adjusted cosine similarity")
    p.add_argument("--config", type=Path, default=Path("config.yaml"), help="Path to config YAML.")
    p.add_argument("--ratings-csv", type=Path, default=None, help="Override the ratings CSV from config")
    p.add_argument("--item-id", type=str, required=True, help="Item to inspect")
    p.add_argument("--other-item-id", type=str, default=None, help="Print the similarity to this item")
    p.add_argument("--user-id", type=int, default=None, help="Predict the user's rating of --item-id")
    p.add_argument("--top-n", type=int, default=None, help="How many similar items to show")
    p.add_argument("--log-level", type=str, default="INFO")
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level)

    cfg = resolve_config(args.config)
    ratings_csv = resolve_ratings_csv(args.ratings_csv, cfg)

    dtype = cfg.dataset.item_id_dtype
    store = InMemoryRatingStore.from_frame(load_ratings(ratings_csv, item_id_dtype=dtype))
    matrix = ItemSimilarityMatrix.build(store.all_ratings())

    item_id = parse_item_id(args.item_id, dtype)
    if not matrix.has_item(item_id):
        raise KeyError(f"Unknown itemId: {item_id}")

    if args.other_item_id is not None:
        other_id = parse_item_id(args.other_item_id, dtype)
        sim = matrix.similarity(item_id, other_id)
        print("\n=== Item Similarity ===")
        print(f"{item_id} ~ {other_id}: " + ("undefined (no common raters)" if sim == float("-inf") else f"{sim:.4f}"))

    top_n = int(args.top_n if args.top_n is not None else cfg.item_cf.top_n)
    similar = matrix.most_similar(item_id, top_n=top_n)
    print("\n=== Most Similar Items ===")
    if similar:
        print(pd.DataFrame([asdict(s) for s in similar]).to_string(index=False))
    else:
        print("No similar items found.")

    if args.user_id is not None:
        prediction = predict_from_items(matrix, store.ratings_for(int(args.user_id)), item_id, k=cfg.item_cf.k)
        print("\n=== Item-based Predicted Rating ===")
        print("undefined (no positively similar rated item)" if prediction is None else f"{prediction:.4f}")


if __name__ == "__main__":
    main()
