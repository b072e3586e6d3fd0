"""index.py - Bucket index over a RecordArena.

The index owns nothing but handles. Bucket ``i`` holds a handle for every live
record whose ``hash mod capacity == i``, in the order the records were
inserted. Handles stay valid across a rebuild because the arena never moves
records; the bucket lists themselves are replaced wholesale.
"""

from __future__ import annotations

from typing import Iterator

import numpy as np

from .arena import Handle, RecordArena
from .config import HASH_MASK, INITIAL_CAPACITY


def build_buckets(
    slots: np.ndarray,
    generations: np.ndarray,
    hashes: np.ndarray,
    capacity: int,
) -> list[list[Handle]]:
    """Distribute records over ``capacity`` fresh buckets.

    The three columns describe the live records in insertion order (see
    RecordArena.ordered_columns). Records keep that relative order inside
    each bucket.
    """
    if capacity < 1:
        raise ValueError(f"capacity must be positive, got {capacity}")
    buckets: list[list[Handle]] = [[] for _ in range(capacity)]
    if len(slots) == 0:
        return buckets
    positions = np.asarray(hashes, dtype=np.uint64) % np.uint64(capacity)
    for pos, slot, generation in zip(
        positions.tolist(), slots.tolist(), generations.tolist()
    ):
        buckets[pos].append(Handle(slot, generation))
    return buckets


class BucketIndex:
    """Array of ``capacity`` buckets of handles."""

    def __init__(self, capacity: int = INITIAL_CAPACITY) -> None:
        self.capacity = capacity
        self._buckets: list[list[Handle]] = [[] for _ in range(capacity)]

    @classmethod
    def rebuild(cls, arena: RecordArena, capacity: int) -> BucketIndex:
        """Return a new index of ``capacity`` buckets for every record in ``arena``."""
        index = cls.__new__(cls)
        index.capacity = capacity
        index._buckets = build_buckets(*arena.ordered_columns(), capacity)
        return index

    def __len__(self) -> int:
        return sum(len(b) for b in self._buckets)

    def __iter__(self) -> Iterator[list[Handle]]:
        return iter(self._buckets)

    def position(self, hash_value: int) -> int:
        return (int(hash_value) & HASH_MASK) % self.capacity

    def bucket(self, hash_value: int) -> list[Handle]:
        """Return the (live) bucket list that ``hash_value`` maps to."""
        return self._buckets[self.position(hash_value)]

    def occupancy(self) -> np.ndarray:
        """Number of handles in every bucket."""
        return np.fromiter(
            (len(b) for b in self._buckets), dtype=np.int64, count=self.capacity
        )
