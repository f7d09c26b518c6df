from __future__ import annotations

from typing import Protocol

import duckdb

from propweb.features.remote.duckdb_adapter import DuckDBAdapter
from propweb.features.remote.schema import LOCAL_STORAGE_TABLE


class StorageError(RuntimeError):
    """A durable storage write or read failed (quota, closed database, ...)."""


class Storage(Protocol):
    def get_item(self, key: str) -> str | None: ...
    def set_item(self, key: str, value: str) -> None: ...
    def remove_item(self, key: str) -> None: ...
    def clear(self) -> None: ...


class MemoryStorage:
    """
    Tab-scoped key/value storage. Lives exactly as long as the tab object.
    """

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


class DuckDBStorage:
    """
    Durable, cross-session key/value storage in the local_storage table.
    """

    def __init__(self, adapter: DuckDBAdapter) -> None:
        self._adapter = adapter

    def get_item(self, key: str) -> str | None:
        try:
            row = self._adapter.conn.execute(
                f"SELECT value FROM {LOCAL_STORAGE_TABLE} WHERE key = ?", [key]
            ).fetchone()
        except (duckdb.Error, RuntimeError) as e:
            raise StorageError(f"read of {key!r} failed: {e}") from e
        return None if row is None else str(row[0])

    def set_item(self, key: str, value: str) -> None:
        try:
            self._adapter.conn.execute(
                f"INSERT OR REPLACE INTO {LOCAL_STORAGE_TABLE} (key, value) VALUES (?, ?)",
                [key, str(value)],
            )
        except (duckdb.Error, RuntimeError) as e:
            raise StorageError(f"write of {key!r} failed: {e}") from e

    def remove_item(self, key: str) -> None:
        try:
            self._adapter.conn.execute(f"DELETE FROM {LOCAL_STORAGE_TABLE} WHERE key = ?", [key])
        except (duckdb.Error, RuntimeError) as e:
            raise StorageError(f"delete of {key!r} failed: {e}") from e

    def clear(self) -> None:
        try:
            self._adapter.conn.execute(f"DELETE FROM {LOCAL_STORAGE_TABLE}")
        except (duckdb.Error, RuntimeError) as e:
            raise StorageError(f"clear failed: {e}") from e
