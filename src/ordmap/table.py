"""table.py - HashTable: insertion-ordered hash map over a slot arena.

Two aligned structures make up a table:

- a RecordArena, the ordered record list and sole owner of keys and values;
- a BucketIndex, ``capacity`` buckets of handles into that arena.

Every keyed operation hashes the key, reduces it modulo the capacity and scans
only that bucket. The arena is walked only for iteration and when the index is
rebuilt. The index is rebuilt with twice the capacity as soon as an insert
makes ``size * 2 == capacity``.

Reference validity:

- EntryRef objects point at arena slots. They survive a rebuild of the index
  and stay valid until their own record is erased or the table is cleared.
- Bucket handles are internal. A rebuild replaces every bucket list, so
  positions inside buckets must not be held across an insert.
"""

from __future__ import annotations

from collections.abc import Mapping
from itertools import islice
from typing import (
    Any,
    Callable,
    Generic,
    Iterable,
    Iterator,
    Optional,
    Tuple,
    TypeVar,
)

import numpy as np

from .arena import Handle, RecordArena
from .config import GROWTH_FACTOR, HASH_MASK, TableConfig
from .exceptions import KeyNotFound
from .index import BucketIndex
from .logger import get_logger
from .metrics import TableMetrics

logger = get_logger(__name__)

K = TypeVar("K")
V = TypeVar("V")


class EntryRef(Generic[K, V]):
    """Mutable reference to one entry of a HashTable.

    ``value`` reads and writes through to the stored record. The reference
    raises StaleEntryError once the entry has been erased or its table
    cleared; a rebuild of the bucket index does not affect it.
    """

    __slots__ = ("_arena", "_handle")

    def __init__(self, arena: RecordArena, handle: Handle) -> None:
        self._arena = arena
        self._handle = handle

    @property
    def handle(self) -> Handle:
        return self._handle

    @property
    def key(self) -> K:
        return self._arena.key(self._handle)

    @property
    def value(self) -> V:
        return self._arena.value(self._handle)

    @value.setter
    def value(self, value: V) -> None:
        self._arena.set_value(self._handle, value)

    def is_valid(self) -> bool:
        return self._arena.is_live(self._handle)

    def __iter__(self) -> Iterator[Any]:
        yield self.key
        yield self.value

    def __eq__(self, other: object) -> bool:
        if isinstance(other, EntryRef):
            return self._arena is other._arena and self._handle == other._handle
        return NotImplemented

    def __hash__(self) -> int:
        return hash((id(self._arena), self._handle))

    def __repr__(self) -> str:
        if not self.is_valid():
            return f"EntryRef(<stale {self._handle.slot}:{self._handle.generation}>)"
        return f"EntryRef({self.key!r}, {self.value!r})"


class HashTable(Generic[K, V]):
    """
    HashTable: hash map with unique keys and insertion-order iteration.

    - ``insert`` never overwrites; ``table[key] = value`` always does.
    - ``find`` and ``erase`` treat a missing key as a normal outcome.
    - ``at`` and ``del table[key]`` raise KeyNotFound for a missing key.
    - Capacity starts at 2 and doubles when ``size * 2`` reaches it.
    - Not thread-safe; callers must serialise access.
    """

    def __init__(
        self,
        pairs: Iterable[Tuple[K, V]] | Mapping[K, V] | None = None,
        /,
        *,
        hasher: Optional[Callable[[K], int]] = None,
        default_factory: Optional[Callable[[], V]] = None,
        config: Optional[TableConfig] = None,
        metrics: Optional[TableMetrics] = None,
    ) -> None:
        config = config if config is not None else TableConfig()
        overrides: dict[str, Any] = {}
        if hasher is not None:
            overrides["hasher"] = hasher
        if default_factory is not None:
            overrides["default_factory"] = default_factory
        self._config = config.with_options(**overrides)
        self._hasher = self._config.hasher
        self._metrics = metrics
        self._rehash_count: int = 0
        self._version: int = 0
        "Bumped by every structural change; checked by iterators"
        self._reset()
        if pairs is not None:
            self.update(pairs)

    @classmethod
    def from_range(
        cls,
        sequence: Iterable[Tuple[K, V]],
        start: int = 0,
        stop: Optional[int] = None,
        **kwargs: Any,
    ) -> HashTable[K, V]:
        """Build a table from the pairs at positions ``[start, stop)`` of ``sequence``.

        Each pair is applied once with indexed-assignment semantics, so a later
        pair overwrites an earlier pair with the same key. The input cursor
        advances past every pair in the range, so the build always terminates
        even when the range is non-empty.
        """
        return cls(islice(sequence, start, stop), **kwargs)

    def _reset(self) -> None:
        self._arena = RecordArena()
        self._index = BucketIndex(self._config.initial_capacity)
        self._publish()

    # --- Properties ---

    @property
    def capacity(self) -> int:
        return self._index.capacity

    @property
    def hash_function(self) -> Callable[[K], int]:
        return self._hasher

    @property
    def default_factory(self) -> Optional[Callable[[], V]]:
        return self._config.default_factory

    @property
    def config(self) -> TableConfig:
        return self._config

    @property
    def rehash_count(self) -> int:
        return self._rehash_count

    def size(self) -> int:
        return len(self._arena)

    def empty(self) -> bool:
        return len(self._arena) == 0

    def __len__(self) -> int:
        return len(self._arena)

    def __bool__(self) -> bool:
        return len(self._arena) != 0

    # --- Bucket scanning ---

    def _hash(self, key: K) -> int:
        return int(self._hasher(key)) & HASH_MASK

    def _scan(self, bucket: list[Handle], key: K, hash_value: int) -> int:
        """Position of ``key`` inside ``bucket`` or -1."""
        arena = self._arena
        for pos, handle in enumerate(bucket):
            if arena.hash_of(handle) != hash_value:
                continue
            stored = arena.key(handle)
            if stored is key or stored == key:
                return pos
        return -1

    def _lookup(self, key: K) -> Optional[Handle]:
        hash_value = self._hash(key)
        bucket = self._index.bucket(hash_value)
        pos = self._scan(bucket, key, hash_value)
        return bucket[pos] if pos >= 0 else None

    # --- Core operations ---

    def find(self, key: K) -> Optional[EntryRef[K, V]]:
        """Return a reference to the entry for ``key``, or None if it is absent."""
        self._observe("find")
        handle = self._lookup(key)
        return None if handle is None else EntryRef(self._arena, handle)

    def insert(self, key: K, value: V) -> None:
        """Add ``key`` with ``value`` unless ``key`` is already present.

        An existing value is left untouched; use ``table[key] = value`` to
        overwrite.
        """
        self._observe("insert")
        hash_value = self._hash(key)
        bucket = self._index.bucket(hash_value)
        if self._scan(bucket, key, hash_value) >= 0:
            return
        self._append(key, value, hash_value, bucket)

    def _append(
        self, key: K, value: V, hash_value: int, bucket: list[Handle]
    ) -> Handle:
        handle = self._arena.append(key, value, hash_value)
        bucket.append(handle)
        self._version += 1
        if len(self._arena) * 2 == self._index.capacity:
            self._rehash()
        else:
            self._publish()
        return handle

    def erase(self, key: K) -> None:
        """Remove ``key`` if present. A missing key leaves the table unchanged."""
        self._observe("erase")
        self._remove(key)

    def _remove(self, key: K) -> bool:
        hash_value = self._hash(key)
        bucket = self._index.bucket(hash_value)
        pos = self._scan(bucket, key, hash_value)
        if pos < 0:
            return False
        handle = bucket.pop(pos)
        self._arena.release(handle)
        self._version += 1
        self._publish()
        return True

    def entry(self, key: K) -> EntryRef[K, V]:
        """Return a reference to the entry for ``key``, inserting a default first.

        The default comes from ``default_factory`` (None when unset). The
        returned reference stays valid across the rebuild the insert may
        trigger.
        """
        self._observe("entry")
        hash_value = self._hash(key)
        bucket = self._index.bucket(hash_value)
        pos = self._scan(bucket, key, hash_value)
        if pos >= 0:
            handle = bucket[pos]
        else:
            handle = self._append(key, self._config.make_default(), hash_value, bucket)
        return EntryRef(self._arena, handle)

    def at(self, key: K) -> V:
        """Return the value for ``key``; raise KeyNotFound if it is absent."""
        self._observe("at")
        handle = self._lookup(key)
        if handle is None:
            raise KeyNotFound(key)
        return self._arena.value(handle)

    def clear(self) -> None:
        """Drop every entry and shrink back to the initial capacity."""
        self._observe("clear")
        dropped = len(self._arena)
        self._arena.discard()
        self._version += 1
        self._reset()
        logger.debug(f"[HashTable] Cleared {dropped} entries")

    def _rehash(self) -> None:
        old_capacity = self._index.capacity
        new_capacity = old_capacity * GROWTH_FACTOR
        self._index = BucketIndex.rebuild(self._arena, new_capacity)
        self._rehash_count += 1
        if self._metrics is not None:
            self._metrics.rehashed()
        self._publish()
        if self._config.log_rehash:
            logger.debug(
                f"[HashTable] Rehashed {len(self._arena)} entries: "
                f"capacity {old_capacity} -> {new_capacity}"
            )

    # --- Mapping protocol ---

    def __getitem__(self, key: K) -> V:
        return self.entry(key).value

    def __setitem__(self, key: K, value: V) -> None:
        self.entry(key).value = value

    def __delitem__(self, key: K) -> None:
        self._observe("erase")
        if not self._remove(key):
            raise KeyNotFound(key)

    def __contains__(self, key: object) -> bool:
        return self._lookup(key) is not None  # type: ignore[arg-type]

    def get(self, key: K, default: Any = None) -> Any:
        handle = self._lookup(key)
        return default if handle is None else self._arena.value(handle)

    def update(self, pairs: Iterable[Tuple[K, V]] | Mapping[K, V]) -> None:
        """Assign every pair in order; later pairs win on duplicate keys."""
        items = pairs.items() if isinstance(pairs, (Mapping, HashTable)) else pairs
        for key, value in items:
            self[key] = value

    # --- Iteration ---

    def items(self) -> Iterator[Tuple[K, V]]:
        """Yield ``(key, value)`` pairs in insertion order.

        Each call starts a new pass. Inserting, erasing or clearing while a
        pass is running makes it raise RuntimeError; assigning to an existing
        key does not.
        """
        arena = self._arena
        version = self._version
        for handle in arena.handles():
            yield arena.key(handle), arena.value(handle)
            if self._version != version:
                raise RuntimeError("HashTable changed size during iteration")

    def keys(self) -> Iterator[K]:
        for key, _ in self.items():
            yield key

    def values(self) -> Iterator[V]:
        for _, value in self.items():
            yield value

    def __iter__(self) -> Iterator[Tuple[K, V]]:
        return self.items()

    # --- Comparison and display ---

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, (HashTable, Mapping)):
            return NotImplemented
        if len(self) != len(other):
            return False
        for key, value in other.items():
            handle = self._lookup(key)
            if handle is None or self._arena.value(handle) != value:
                return False
        return True

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        body = ", ".join(f"{k!r}: {v!r}" for k, v in self.items())
        return f"{type(self).__name__}({{{body}}})"

    # --- Diagnostics ---

    def validate(self) -> bool:
        """Check that buckets and records agree; raise AssertionError if not."""
        capacity = self._index.capacity
        assert capacity >= 2 and capacity & (capacity - 1) == 0, (
            f"capacity {capacity} is not a power of two >= 2"
        )
        size = len(self._arena)
        assert size * 2 < capacity, f"size {size} reached threshold of {capacity}"
        records = list(self._arena.handles())
        assert len(records) == size, f"{len(records)} linked records, size {size}"
        referenced: set[Handle] = set()
        for pos, bucket in enumerate(self._index):
            for handle in bucket:
                assert handle not in referenced, f"{handle} listed twice"
                assert self._arena.is_live(handle), f"{handle} is stale"
                assert self._arena.hash_of(handle) % capacity == pos, (
                    f"{handle} filed under bucket {pos}"
                )
                referenced.add(handle)
        assert referenced == set(records), "bucket handles do not match records"
        return True

    def stats(self) -> dict[str, Any]:
        """Return size, capacity and bucket occupancy figures."""
        occupancy = self._index.occupancy()
        size = len(self._arena)
        return {
            "size": size,
            "capacity": self._index.capacity,
            "load_factor": size / self._index.capacity,
            "rehash_count": self._rehash_count,
            "longest_bucket": int(occupancy.max()) if occupancy.size else 0,
            "empty_buckets": int(np.count_nonzero(occupancy == 0)),
            "bucket_histogram": np.bincount(occupancy).tolist(),
            "arena_slots": self._arena.slot_count,
        }

    # --- Metrics ---

    def _observe(self, operation: str) -> None:
        if self._metrics is not None:
            self._metrics.observe(operation)

    def _publish(self) -> None:
        if self._metrics is not None:
            self._metrics.update(len(self._arena), self._index.capacity)
