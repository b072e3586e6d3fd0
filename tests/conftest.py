import logging

import pytest

from ordmap.table import HashTable


def _constant_hash(key) -> int:
    return 0


@pytest.fixture
def table():
    """Empty table with the builtin hash."""
    return HashTable()


@pytest.fixture
def colliding_table():
    """Table whose hasher sends every key to the same bucket."""
    return HashTable(hasher=_constant_hash)


@pytest.fixture
def registry():
    # Fresh registry per test so counters start at zero.
    from prometheus_client import CollectorRegistry

    return CollectorRegistry()


@pytest.fixture
def debug_log(caplog):
    caplog.set_level(logging.DEBUG, logger="ordmap")
    return caplog
