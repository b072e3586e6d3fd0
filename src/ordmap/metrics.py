"""metrics.py - Prometheus instrumentation for hash tables"""

from __future__ import annotations

import weakref
from typing import Any, Dict

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge


def create_table_metrics(registry: CollectorRegistry | None = None) -> Dict[str, Any]:
    registry = registry if registry is not None else REGISTRY
    operations = Counter(
        "ordmap_operations_total",
        "Total number of table operations",
        ["table", "operation"],
        registry=registry,
    )
    rehashes = Counter(
        "ordmap_rehash_total",
        "Total number of bucket index rebuilds",
        ["table"],
        registry=registry,
    )
    entries = Gauge(
        "ordmap_entries",
        "Current number of live entries",
        ["table"],
        registry=registry,
    )
    capacity = Gauge(
        "ordmap_capacity",
        "Current number of buckets",
        ["table"],
        registry=registry,
    )
    return {
        "operations": operations,
        "rehashes": rehashes,
        "entries": entries,
        "capacity": capacity,
    }


_registered: "weakref.WeakKeyDictionary[CollectorRegistry, Dict[str, Any]]" = (
    weakref.WeakKeyDictionary()
)


def metrics_for(registry: CollectorRegistry | None = None) -> Dict[str, Any]:
    """Return the ordmap collectors of ``registry``, creating them once."""
    # Collectors can only be registered once per registry.
    registry = registry if registry is not None else REGISTRY
    metrics = _registered.get(registry)
    if metrics is None:
        metrics = _registered[registry] = create_table_metrics(registry)
    return metrics


class TableMetrics:
    """Per-table view onto the ordmap collectors.

    Tables sharing a registry share the collectors and are told apart by the
    ``table`` label. Without an explicit registry the process-wide default
    registry is used.
    """

    def __init__(
        self, name: str = "default", registry: CollectorRegistry | None = None
    ) -> None:
        self.name = name
        self.registry = registry
        self._metrics = metrics_for(registry)

    def observe(self, operation: str) -> None:
        self._metrics["operations"].labels(table=self.name, operation=operation).inc()

    def rehashed(self) -> None:
        self._metrics["rehashes"].labels(table=self.name).inc()

    def update(self, size: int, capacity: int) -> None:
        self._metrics["entries"].labels(table=self.name).set(size)
        self._metrics["capacity"].labels(table=self.name).set(capacity)
