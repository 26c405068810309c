"""Rating access used by the neighbourhood engines.

The engines only need three reads: one user's ratings, the full corpus, and a
window of users (offset/limit) for out-of-core scans. `InMemoryRatingStore`
serves them from a dict; a database-backed store only has to implement the
same `RatingStore` protocol.
"""

from __future__ import annotations

import logging
from typing import Dict, Hashable, Iterator, Mapping, Protocol

import pandas as pd

from ..data import ratings_to_corpus


logger = logging.getLogger(__name__)

RatingVector = Dict[Hashable, float]
Corpus = Dict[Hashable, RatingVector]


class RatingStore(Protocol):
    def ratings_for(self, user_id: Hashable) -> RatingVector: ...

    def all_ratings(self) -> Corpus: ...

    def ratings_chunk(self, offset: int, limit: int) -> Corpus: ...

    def user_count(self) -> int: ...


class InMemoryRatingStore:
    """Ratings held in memory, with a fixed user order for chunked reads.

    Every read returns fresh dicts, so callers may keep or modify the results
    without touching the store.
    """

    def __init__(self, corpus: Mapping[Hashable, Mapping[Hashable, float]]) -> None:
        self._ratings: Corpus = {uid: {i: float(r) for i, r in vec.items()} for uid, vec in corpus.items()}
        self._user_order: list[Hashable] = list(self._ratings.keys())
        logger.debug("InMemoryRatingStore: users=%d", len(self._user_order))

    @classmethod
    def from_frame(cls, ratings: pd.DataFrame) -> "InMemoryRatingStore":
        """Build from a (userId, itemId, rating) frame (see `src.data.load_ratings`)."""
        return cls(ratings_to_corpus(ratings))

    def __contains__(self, user_id: Hashable) -> bool:
        return user_id in self._ratings

    def user_count(self) -> int:
        return len(self._user_order)

    def ratings_for(self, user_id: Hashable) -> RatingVector:
        vec = self._ratings.get(user_id)
        if vec is None:
            raise KeyError(f"Unknown userId: {user_id}")
        return dict(vec)

    def all_ratings(self) -> Corpus:
        return {uid: dict(vec) for uid, vec in self._ratings.items()}

    def ratings_chunk(self, offset: int, limit: int) -> Corpus:
        """Users `offset .. offset+limit-1` in store order; empty past the end."""
        if int(offset) < 0:
            raise ValueError(f"offset must be >= 0, got {offset}")
        if int(limit) <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        window = self._user_order[int(offset) : int(offset) + int(limit)]
        return {uid: dict(self._ratings[uid]) for uid in window}


def iter_chunks(store: RatingStore, chunk_size: int) -> Iterator[Corpus]:
    """Yield consecutive `ratings_chunk` windows until the store is exhausted."""
    if int(chunk_size) <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    offset = 0
    while True:
        chunk = store.ratings_chunk(offset, int(chunk_size))
        if not chunk:
            return
        yield chunk
        offset += len(chunk)
        if len(chunk) < int(chunk_size):
            return
