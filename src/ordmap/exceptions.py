"""exceptions.py - Exception hierarchy for ordmap.

Absence of a key is only an error for the read-only accessors (`at`,
`del table[key]`). `find`, `insert` and `erase` report absence through
their return values instead.
"""

from __future__ import annotations

from typing import Any


class OrdMapError(Exception):
    """Base exception for all ordmap errors."""

    pass


class KeyNotFound(OrdMapError, KeyError):
    """Raised when a read-only access names a key that is not in the table."""

    def __init__(self, key: Any):
        self.key = key
        super().__init__(key)

    def __str__(self) -> str:
        return f"Key not found: {self.key!r}"


class StaleEntryError(OrdMapError):
    """Raised when dereferencing a handle whose record was erased.

    Handles carry the generation of the slot they were issued for. Erasing
    the record (or clearing the table) bumps or discards that generation, so
    the handle no longer matches.
    """

    def __init__(self, slot: int, generation: int, current: int | None = None):
        self.slot = slot
        self.generation = generation
        self.current = current
        if current is None:
            msg = f"Handle (slot={slot}, generation={generation}) refers to a released slot"
        else:
            msg = (
                f"Handle (slot={slot}, generation={generation}) is stale; "
                f"slot is now at generation {current}"
            )
        super().__init__(msg)


class ConfigError(OrdMapError, ValueError):
    """Raised when a TableConfig holds invalid options.

    Examples:
        - hasher is not callable
        - initial_capacity is not a power of two
    """

    pass
