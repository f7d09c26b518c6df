from __future__ import annotations

import json

import pytest
import simpy

from propweb.features.compare.service import (
    COMPARE_STORAGE_KEY,
    CompareStore,
    CompareSync,
)
from propweb.features.remote.service import RemoteError
from propweb.features.storage.service import MemoryStorage, StorageError


class FailingStorage(MemoryStorage):
    def set_item(self, key: str, value: str) -> None:
        raise StorageError("quota exceeded")


class DummyRemote:
    def __init__(self, existing: set[str], *, fail: bool = False):
        self.existing = existing
        self.fail = fail
        self.queries: list[tuple[str, list]] = []

    def fetch(self, sql: str, params=None):
        self.queries.append((sql, list(params or [])))
        yield from ()
        if self.fail:
            raise RemoteError("network down")
        ids = params[0]
        return [{"id": i, "title": f"Listing {i}"} for i in ids if i in self.existing]


def test_add_outcomes() -> None:
    store = CompareStore(storage=MemoryStorage())

    assert store.add("A") == "added"
    assert store.add("B") == "added"
    assert store.add("C") == "limit_reached"
    assert store.add("A") == "duplicate"
    assert store.add("B") == "duplicate"
    assert store.ids == ("A", "B")
    assert store.is_full is True


def test_duplicate_reported_before_fullness() -> None:
    store = CompareStore(storage=MemoryStorage())
    store.add("A")
    assert store.add("A") == "duplicate"
    assert store.is_full is False


def test_replace_oldest() -> None:
    store = CompareStore(storage=MemoryStorage())
    store.add("A")
    store.add("B")

    store.replace_oldest("B")
    assert store.ids == ("A", "B")

    store.replace_oldest("C")
    assert store.ids == ("B", "C")


def test_mutations_persist_synchronously() -> None:
    storage = MemoryStorage()
    store = CompareStore(storage=storage)

    store.add("A")
    assert json.loads(storage.get_item(COMPARE_STORAGE_KEY)) == ["A"]
    store.add("B")
    store.remove("A")
    assert json.loads(storage.get_item(COMPARE_STORAGE_KEY)) == ["B"]
    store.clear()
    assert json.loads(storage.get_item(COMPARE_STORAGE_KEY)) == []

    assert CompareStore(storage=storage).ids == ()


def test_load_tolerates_bad_data() -> None:
    storage = MemoryStorage()
    storage.set_item(COMPARE_STORAGE_KEY, '["A", "A", 3, "B", "C"]')
    assert CompareStore(storage=storage).ids == ("A", "B")

    storage.set_item(COMPARE_STORAGE_KEY, "{not json")
    assert CompareStore(storage=storage).ids == ()


def test_storage_failure_keeps_memory_state() -> None:
    store = CompareStore(storage=FailingStorage())
    assert store.add("A") == "added"
    assert store.is_selected("A")


def test_compare_url_only_when_full() -> None:
    store = CompareStore(storage=MemoryStorage())
    store.add("A")
    assert store.compare_url() is None
    store.add("B")
    assert store.compare_url() == "/compare?ids=A,B"


@pytest.mark.parametrize("fail", [False, True])
def test_sync_prunes_missing_ids_or_logs(fail: bool) -> None:
    env = simpy.Environment()
    store = CompareStore(storage=MemoryStorage())
    store.add("A")
    store.add("B")
    sync = CompareSync(store=store, remote=DummyRemote({"B"}, fail=fail))

    proc = env.process(sync.sync())
    env.run()

    if fail:
        assert proc.value == []
        assert store.ids == ("A", "B")
    else:
        assert [r["id"] for r in proc.value] == ["B"]
        assert store.ids == ("B",)
