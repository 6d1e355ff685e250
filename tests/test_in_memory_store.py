"""Unit tests for the in-memory time-ordered store."""

from __future__ import annotations

import asyncio

import pytest

from app.adapters.store.base import Cardinality, Expire, Insert, RemoveRange
from app.adapters.store.in_memory import InMemoryTimeOrderedStore


def _run(store: InMemoryTimeOrderedStore, *ops):
    return asyncio.run(store.execute_batch(list(ops)))


def test_results_follow_operation_order(store) -> None:
    results = _run(
        store,
        RemoveRange("k", float("-inf"), 10),
        Insert("k", 10, "a"),
        Insert("k", 11, "b"),
        Cardinality("k"),
        Expire("k", 5),
    )

    assert results == [0, 1, 1, 2, True]


def test_remove_range_upper_bound_is_exclusive(store) -> None:
    _run(store, Insert("k", 1, "a"), Insert("k", 2, "b"), Insert("k", 3, "c"))

    removed = _run(store, RemoveRange("k", float("-inf"), 2))

    assert removed == [1]
    assert store.members("k") == {"b": 2, "c": 3}


def test_reinserting_member_does_not_grow_set(store) -> None:
    results = _run(store, Insert("k", 1, "a"), Insert("k", 2, "a"), Cardinality("k"))

    assert results == [1, 0, 1]
    assert store.members("k") == {"a": 2}


def test_removing_last_member_drops_key(store) -> None:
    _run(store, Insert("k", 1, "a"), Expire("k", 60))
    _run(store, RemoveRange("k", float("-inf"), float("inf")))

    assert store.ttl("k") is None
    assert _run(store, Cardinality("k")) == [0]


def test_expire_on_missing_key_returns_false(store) -> None:
    assert _run(store, Expire("missing", 10)) == [False]


def test_key_expires_after_ttl(store, clock) -> None:
    _run(store, Insert("k", 1, "a"), Expire("k", 10))

    clock.advance(9)
    assert store.members("k") == {"a": 1}

    clock.advance(1)
    assert store.members("k") == {}
    assert _run(store, Cardinality("k")) == [0]


def test_expire_refreshes_ttl(store, clock) -> None:
    _run(store, Insert("k", 1, "a"), Expire("k", 10))
    clock.advance(8)
    _run(store, Expire("k", 10))

    assert store.ttl("k") == pytest.approx(10)


def test_unknown_operation_is_rejected(store) -> None:
    with pytest.raises(TypeError):
        _run(store, object())


def test_non_atomic_batch_returns_same_results(clock) -> None:
    store = InMemoryTimeOrderedStore(atomic=False, clock=clock)

    results = _run(store, Insert("k", 1, "a"), Cardinality("k"), Expire("k", 1))

    assert store.atomic is False
    assert results == [1, 1, True]


def test_ping() -> None:
    assert asyncio.run(InMemoryTimeOrderedStore().ping()) is True


def test_sweep_drops_abandoned_keys(store, clock) -> None:
    for i in range(100):
        _run(store, Insert(f"k{i}", 1, "a"), Expire(f"k{i}", 61))
    assert store.key_count() == 100

    clock.advance(3600)
    _run(store, Insert("fresh", 2, "b"), Expire("fresh", 61))

    assert store.key_count() == 1
    assert store.members("fresh") == {"b": 2}


def test_sweep_keeps_live_keys_and_waits_for_interval(clock) -> None:
    store = InMemoryTimeOrderedStore(clock=clock, sweep_interval_seconds=60)
    _run(store, Insert("short", 1, "a"), Expire("short", 5))
    _run(store, Insert("long", 1, "a"), Expire("long", 600))

    clock.advance(30)
    _run(store, Cardinality("other"))
    # Expired but the sweep interval has not elapsed yet.
    assert store.key_count() == 2

    clock.advance(30)
    _run(store, Cardinality("other"))
    assert store.key_count() == 1
    assert store.members("long") == {"a": 1}
