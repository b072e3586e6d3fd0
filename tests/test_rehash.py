"""Growth policy: the index doubles exactly when size * 2 reaches capacity."""

import logging

import numpy as np
import pytest

from ordmap.table import HashTable


def _expected_capacity(n: int) -> int:
    capacity = 2
    for size in range(1, n + 1):
        if size * 2 == capacity:
            capacity *= 2
    return capacity


def test_first_insert_doubles_capacity(table):
    table.insert(1, 1)
    assert table.capacity == 4
    assert table.rehash_count == 1


@pytest.mark.parametrize("n", [1, 2, 3, 4, 5, 8, 9, 31, 32, 100])
def test_capacity_sequence(table, n):
    for i in range(n):
        table.insert(i, i)
    assert table.capacity == _expected_capacity(n)
    assert table.size() * 2 < table.capacity
    assert table.validate()


def test_growth_happens_once_per_doubling(table):
    capacities = []
    for i in range(16):
        table.insert(i, i)
        capacities.append(table.capacity)
    assert capacities == [4, 8, 8, 16, 16, 16, 16, 32] + [32] * 7 + [64]
    assert table.rehash_count == 5


def test_duplicate_insert_does_not_grow(table):
    table.insert(1, 1)
    table.insert(2, 2)
    capacity = table.capacity
    for _ in range(10):
        table.insert(1, 0)
        table.insert(2, 0)
    assert table.capacity == capacity


def test_erase_then_insert_crosses_threshold_again(table):
    for i in range(3):
        table.insert(i, i)
    assert table.capacity == 8
    table.erase(0)
    table.insert(10, 10)
    assert table.capacity == 8
    table.insert(11, 11)
    assert table.capacity == 16
    assert table.validate()


def test_many_keys_remain_findable(table):
    n = 5000
    for i in range(n):
        table.insert(i, i * i)
    assert table.size() == n
    for i in range(n):
        assert table.at(i) == i * i
    assert table.validate()


def test_many_keys_with_interleaved_erase(table):
    for i in range(2000):
        table[f"k{i}"] = i
        if i % 3 == 0:
            table.erase(f"k{i // 2}")
    live = dict(table.items())
    assert len(live) == table.size()
    for key, value in live.items():
        assert table.at(key) == value
        assert key == f"k{value}"
    assert table.validate()


def test_rehash_preserves_iteration_order(table):
    keys = [f"key-{i}" for i in range(257)]
    for k in keys:
        table.insert(k, len(k))
    assert list(table.keys()) == keys


def test_colliding_keys(colliding_table):
    for i in range(64):
        colliding_table.insert(i, -i)
    assert colliding_table.size() == 64
    assert all(colliding_table.at(i) == -i for i in range(64))
    stats = colliding_table.stats()
    assert stats["longest_bucket"] == 64
    assert stats["empty_buckets"] == stats["capacity"] - 1
    colliding_table.erase(10)
    assert colliding_table.find(10) is None
    assert colliding_table.at(11) == -11
    assert colliding_table.validate()


def test_negative_hashes():
    t = HashTable(hasher=lambda k: -k - 1)
    for i in range(100):
        t.insert(i, i)
    assert all(t.at(i) == i for i in range(100))
    assert t.validate()


@pytest.mark.parametrize(
    "hasher",
    [
        lambda k: np.int64(-k - 1),
        lambda k: np.int32(-k - 1),
        lambda k: np.uint64(k),
    ],
    ids=["int64", "int32", "uint64"],
)
def test_numpy_integer_hashes(hasher):
    t = HashTable(hasher=hasher)
    for i in range(100):
        t.insert(i, i)
    assert all(t.at(i) == i for i in range(100))
    t.erase(50)
    assert 50 not in t
    assert t.size() == 99
    assert t.validate()


def test_stats(table):
    for i in range(6):
        table.insert(i, i)
    stats = table.stats()
    assert stats["size"] == 6
    assert stats["capacity"] == 16
    assert stats["load_factor"] == 6 / 16
    assert stats["rehash_count"] == 3
    assert sum(stats["bucket_histogram"]) == 16
    assert stats["arena_slots"] >= 6


def test_rehash_is_logged(table, debug_log):
    table.insert(1, 1)
    assert "capacity 2 -> 4" in debug_log.text
    records = [r for r in debug_log.records if r.name == "ordmap.table"]
    assert records and all(r.levelno == logging.DEBUG for r in records)


def test_rehash_logging_can_be_disabled(debug_log):
    from ordmap.config import TableConfig

    t = HashTable(config=TableConfig(log_rehash=False))
    t.insert(1, 1)
    assert t.capacity == 4
    assert "Rehashed" not in debug_log.text


def test_clear_is_logged(table, debug_log):
    table.insert(1, 1)
    table.clear()
    assert "Cleared 1 entries" in debug_log.text
