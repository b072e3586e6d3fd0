"""config.py - Configuration and constants for ordmap"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Optional

import numpy as np

from .exceptions import ConfigError

LOGGER_NAME = "ordmap"

# Bucket index
INITIAL_CAPACITY: int = 2
GROWTH_FACTOR: int = 2

# Record arena
ARENA_MIN_SLOTS: int = 8
NIL: int = -1
HASH_MASK: int = (1 << 64) - 1

# Arena link columns (one row per slot)
SLOT_DTYPE = np.dtype([
    ("prev", "<i8"),
    ("next", "<i8"),
    ("generation", "<u4"),
    ("hash", "<u8"),
])


@dataclass(frozen=True)
class TableConfig:
    """Construction options for a HashTable.

    hasher is called once per key lookup and once per insert; its result is
    reduced modulo the current capacity. default_factory produces the value
    stored by get-or-insert-default access (None stores None).
    """

    hasher: Callable[[Any], int] = hash
    default_factory: Optional[Callable[[], Any]] = None
    initial_capacity: int = INITIAL_CAPACITY
    log_rehash: bool = True

    def validate(self) -> "TableConfig":
        if not callable(self.hasher):
            raise ConfigError(f"hasher must be callable, got {self.hasher!r}")
        if self.default_factory is not None and not callable(self.default_factory):
            raise ConfigError(
                f"default_factory must be callable or None, got {self.default_factory!r}"
            )
        cap = self.initial_capacity
        if not isinstance(cap, int) or cap < 2 or cap & (cap - 1):
            raise ConfigError(
                f"initial_capacity must be a power of two >= 2, got {cap!r}"
            )
        return self

    def with_options(self, **changes: Any) -> "TableConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes).validate()

    def make_default(self) -> Any:
        return None if self.default_factory is None else self.default_factory()
