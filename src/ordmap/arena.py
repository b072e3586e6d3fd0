"""arena.py - Generational slot arena holding the ordered record list.

Records live in numbered slots and never move while they are alive. The
insertion order is kept by prev/next links stored next to each slot, so
erasing a record only unlinks it; every other record keeps its slot.

A released slot is pushed on a free list and its generation is bumped. A
``Handle`` remembers the generation it was issued for, which makes handles
to erased records detectable instead of silently aliasing a newer record.
"""

from __future__ import annotations

from typing import Any, Iterator, NamedTuple

import numpy as np

from .config import ARENA_MIN_SLOTS, HASH_MASK, NIL, SLOT_DTYPE
from .exceptions import OrdMapError, StaleEntryError

_GENERATION_MASK = 0xFFFFFFFF


class _Empty:
    __slots__ = ()

    def __repr__(self) -> str:
        return "<empty>"


EMPTY = _Empty()
"Placeholder stored in the key/value columns of free slots"


class Handle(NamedTuple):
    """Non-owning reference to one record of a RecordArena."""

    slot: int
    generation: int


class RecordArena:
    """Ordered record list backed by fixed slots.

    Link and bookkeeping columns (prev, next, generation, hash) are kept in a
    numpy structured array; keys and values are plain Python lists so any
    object can be stored.
    """

    def __init__(self, min_slots: int = ARENA_MIN_SLOTS) -> None:
        self._slots = np.zeros(max(min_slots, 1), dtype=SLOT_DTYPE)
        self._slots["prev"] = NIL
        self._slots["next"] = NIL
        self._keys: list[Any] = [EMPTY] * len(self._slots)
        self._values: list[Any] = [EMPTY] * len(self._slots)
        self._free: list[int] = []
        self._high_water: int = 0
        "Slots [0, high_water) have been handed out at least once"
        self._head: int = NIL
        self._tail: int = NIL
        self._count: int = 0
        self._discarded: bool = False

    def __len__(self) -> int:
        return self._count

    def __repr__(self) -> str:
        return (
            f"RecordArena(count={self._count}, slots={len(self._slots)}, "
            f"free={len(self._free)})"
        )

    @property
    def slot_count(self) -> int:
        return len(self._slots)

    @property
    def discarded(self) -> bool:
        return self._discarded

    # --- Slot allocation ---

    def _grow(self) -> None:
        old = self._slots
        new = np.zeros(len(old) * 2, dtype=SLOT_DTYPE)
        new["prev"] = NIL
        new["next"] = NIL
        new[: len(old)] = old
        self._slots = new
        extra = len(new) - len(old)
        self._keys.extend([EMPTY] * extra)
        self._values.extend([EMPTY] * extra)

    def _take_slot(self) -> int:
        if self._free:
            return self._free.pop()
        if self._high_water == len(self._slots):
            self._grow()
        slot = self._high_water
        self._high_water += 1
        return slot

    def append(self, key: Any, value: Any, hash_value: int) -> Handle:
        """Store a record at the tail of the insertion order."""
        self._check_open()
        slot = self._take_slot()
        row = self._slots[slot]
        row["prev"] = self._tail
        row["next"] = NIL
        row["hash"] = int(hash_value) & HASH_MASK
        self._keys[slot] = key
        self._values[slot] = value
        if self._tail == NIL:
            self._head = slot
        else:
            self._slots[self._tail]["next"] = slot
        self._tail = slot
        self._count += 1
        return Handle(slot, int(row["generation"]))

    def release(self, handle: Handle) -> None:
        """Unlink a record and free its slot. Other slots are not touched."""
        slot = self.resolve(handle)
        row = self._slots[slot]
        prev, nxt = int(row["prev"]), int(row["next"])
        if prev == NIL:
            self._head = nxt
        else:
            self._slots[prev]["next"] = nxt
        if nxt == NIL:
            self._tail = prev
        else:
            self._slots[nxt]["prev"] = prev
        row["prev"] = NIL
        row["next"] = NIL
        row["generation"] = (int(row["generation"]) + 1) & _GENERATION_MASK
        self._keys[slot] = EMPTY
        self._values[slot] = EMPTY
        self._free.append(slot)
        self._count -= 1

    def discard(self) -> None:
        """Drop every record. Handles issued by this arena become stale."""
        self._slots = np.zeros(0, dtype=SLOT_DTYPE)
        self._keys = []
        self._values = []
        self._free = []
        self._high_water = 0
        self._head = self._tail = NIL
        self._count = 0
        self._discarded = True

    # --- Handle access ---

    def _check_open(self) -> None:
        if self._discarded:
            raise OrdMapError("RecordArena has been discarded")

    def resolve(self, handle: Handle) -> int:
        """Return the slot of a live handle or raise StaleEntryError."""
        slot, generation = handle
        if self._discarded or not 0 <= slot < self._high_water:
            raise StaleEntryError(slot, generation)
        current = int(self._slots[slot]["generation"])
        if current != generation or self._keys[slot] is EMPTY:
            raise StaleEntryError(slot, generation, current)
        return slot

    def is_live(self, handle: Handle) -> bool:
        try:
            self.resolve(handle)
        except StaleEntryError:
            return False
        return True

    def key(self, handle: Handle) -> Any:
        return self._keys[self.resolve(handle)]

    def value(self, handle: Handle) -> Any:
        return self._values[self.resolve(handle)]

    def set_value(self, handle: Handle, value: Any) -> None:
        self._values[self.resolve(handle)] = value

    def hash_of(self, handle: Handle) -> int:
        return int(self._slots[self.resolve(handle)]["hash"])

    # --- Ordered traversal ---

    def handles(self) -> Iterator[Handle]:
        """Yield handles in insertion order by following the next links."""
        slot = self._head
        while slot != NIL:
            row = self._slots[slot]
            nxt = int(row["next"])
            yield Handle(slot, int(row["generation"]))
            slot = nxt

    def ordered_columns(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return (slots, generations, hashes) of live records in insertion order.

        The list is walked exactly once; this is the input of a bucket rebuild.
        """
        order = np.empty(self._count, dtype=np.int64)
        slot = self._head
        for i in range(self._count):
            order[i] = slot
            slot = int(self._slots[slot]["next"])
        rows = self._slots[order]
        return order, rows["generation"].astype(np.int64), rows["hash"]
