"""Size-bounded top-k selection over a single pass of scored candidates."""

from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass
from typing import Hashable

from ..similarity.metrics import Polarity, is_defined


@dataclass(frozen=True)
class ScoredCandidate:
    id: Hashable
    score: float


class BoundedTopK:
    """Keeps the k best (id, score) pairs seen so far.

    The heap root is always the worst kept entry, so a better candidate evicts
    it in O(log k). For MINIMIZE the heap is keyed on the negated score (a max
    structure over distances); for MAXIMIZE on the score itself.

    Heap entries are (key, -seq, id, score). Among equal scores the latest
    arrival sits closest to the root, so the earliest arrivals are the ones kept.
    """

    def __init__(self, k: int, polarity: Polarity) -> None:
        if int(k) <= 0:
            raise ValueError(f"k must be positive, got {k}")
        self.k = int(k)
        self.polarity = polarity
        self._heap: list[tuple[float, int, Hashable, float]] = []
        self._seq = itertools.count()

    def __len__(self) -> int:
        return len(self._heap)

    def _key(self, score: float) -> float:
        return -score if self.polarity is Polarity.MINIMIZE else score

    def push(self, candidate_id: Hashable, score: float) -> bool:
        """Offer a candidate; returns True if it is (for now) among the kept k."""
        score = float(score)
        if not is_defined(score):
            return False

        entry = (self._key(score), -next(self._seq), candidate_id, score)
        if len(self._heap) < self.k:
            heapq.heappush(self._heap, entry)
            return True

        # Strictly better than the current worst; ties keep the earlier arrival.
        if entry[0] > self._heap[0][0]:
            heapq.heapreplace(self._heap, entry)
            return True
        return False

    def worst(self) -> ScoredCandidate | None:
        if not self._heap:
            return None
        _, _, cid, score = self._heap[0]
        return ScoredCandidate(id=cid, score=score)

    def results(self) -> list[ScoredCandidate]:
        """Kept candidates, best first; equal scores in arrival order."""
        ordered = sorted(self._heap, key=lambda e: (-e[0], -e[1]))
        return [ScoredCandidate(id=cid, score=score) for _, _, cid, score in ordered]
