from __future__ import annotations

from pathlib import Path
from typing import Dict, Hashable, Tuple

import numpy as np
import pandas as pd


REQUIRED_COLUMNS: Tuple[str, ...] = ("userId", "itemId", "rating")

# Alternative spellings found in common rating dumps (MovieLens, Book-Crossing).
COLUMN_ALIASES: Dict[str, str] = {
    "movieId": "itemId",
    "ISBN": "itemId",
    "User-ID": "userId",
    "Book-Rating": "rating",
}


def load_ratings(path: Path, *, item_id_dtype: str = "int64") -> pd.DataFrame:
    """Load a ratings CSV with (userId, itemId, rating) columns.

    Notes
    -----
    Item ids default to int64; pass item_id_dtype="string" for datasets keyed
    by ISBN-like strings (leading zeros must survive).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Ratings file not found: {path}")

    # Item ids must get their dtype while parsing, or "0345339681" becomes 345339681.
    header = pd.read_csv(path, nrows=0).columns
    item_cols = [c for c in ("itemId", *(k for k, v in COLUMN_ALIASES.items() if v == "itemId")) if c in header]
    ratings = pd.read_csv(path, dtype={c: item_id_dtype for c in item_cols})
    ratings = ratings.rename(columns={k: v for k, v in COLUMN_ALIASES.items() if k in ratings.columns})
    validate_ratings(ratings)

    ratings = ratings[list(REQUIRED_COLUMNS)].copy()
    ratings["userId"] = ratings["userId"].astype("int64")
    ratings["itemId"] = ratings["itemId"].astype(item_id_dtype)
    ratings["rating"] = ratings["rating"].astype("float64")
    return ratings


def validate_ratings(ratings: pd.DataFrame) -> None:
    """Validate that required columns exist and basic constraints hold."""
    missing = [c for c in REQUIRED_COLUMNS if c not in ratings.columns]
    if missing:
        raise ValueError(f"ratings missing columns: {missing}")

    if ratings[list(REQUIRED_COLUMNS)].isna().any().any():
        raise ValueError("ratings contain empty userId/itemId/rating values")

    values = pd.to_numeric(ratings["rating"], errors="coerce")
    bad_mask = values.isna() | ~np.isfinite(values.fillna(0.0))
    if bad_mask.any():
        bad_values = sorted({str(v) for v in ratings.loc[bad_mask, "rating"].tolist()})
        raise ValueError(f"ratings has non-numeric or non-finite rating values: {bad_values}")

    # One rating per (user, item): a rating vector maps each item to a single value.
    if ratings.duplicated(subset=["userId", "itemId"]).any():
        raise ValueError("ratings contain duplicate (userId, itemId) rows")


def ratings_to_corpus(ratings: pd.DataFrame) -> Dict[Hashable, Dict[Hashable, float]]:
    """Group a (userId, itemId, rating) frame into {userId: {itemId: rating}}.

    User order follows first appearance in the frame.
    """
    corpus: Dict[Hashable, Dict[Hashable, float]] = {}
    for uid, grp in ratings.groupby("userId", sort=False):
        corpus[_plain(uid)] = {
            _plain(i): float(r) for i, r in zip(grp["itemId"].tolist(), grp["rating"].tolist())
        }
    return corpus


def _plain(value: object) -> Hashable:
    # numpy scalars -> python scalars, so ids compare/hash like the caller's ints and strs.
    return value.item() if isinstance(value, np.generic) else value
