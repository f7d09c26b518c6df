from __future__ import annotations

import os
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import duckdb

from .schema import (
    ANALYTICS_SETTINGS_TABLE,
    ROUTE_EXCLUSIONS_TABLE,
    columns_for,
    create_schema,
)


class DuckDBAdapter:
    """
    DuckDB backing store for the site's remote tables. Owns the connection and schema.
    """

    def __init__(self, path: str, *, clean_slate: bool) -> None:
        self.path = path
        self.clean_slate = clean_slate
        self._conn: duckdb.DuckDBPyConnection | None = None

    def open(self) -> None:
        if self._conn is not None:
            return

        if self.path != ":memory:":
            if self.clean_slate and os.path.exists(self.path):
                os.remove(self.path)

            # Ensure parent dir exists
            parent = os.path.dirname(self.path)
            if parent:
                os.makedirs(parent, exist_ok=True)

        self._conn = duckdb.connect(self.path)
        create_schema(self._conn)

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise RuntimeError("DuckDBAdapter not opened. Call open() first.")
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def insert(self, table: str, row: Mapping[str, Any]) -> None:
        """
        Insert one row. Keys outside the table's column list are rejected.
        """
        allowed = columns_for(table)
        unknown = set(row) - set(allowed)
        if unknown:
            raise ValueError(f"Unknown columns for {table}: {sorted(unknown)}")

        cols = [c for c in allowed if c in row]
        placeholders = ", ".join("?" for _ in cols)
        self.conn.execute(
            f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({placeholders})",
            [row[c] for c in cols],
        )

    def insert_many(self, table: str, rows: Iterable[Mapping[str, Any]]) -> int:
        n = 0
        for row in rows:
            self.insert(table, row)
            n += 1
        return n

    def fetch_all(self, sql: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        cur = self.conn.execute(sql, list(params or []))
        names = [d[0] for d in cur.description]
        return [dict(zip(names, r, strict=True)) for r in cur.fetchall()]

    def select(self, table: str, columns: Sequence[str] | None = None) -> list[dict[str, Any]]:
        allowed = columns_for(table)
        cols = list(columns or allowed)
        for c in cols:
            if c not in allowed:
                raise ValueError(f"Unknown column {c!r} for {table}")
        return self.fetch_all(f"SELECT {', '.join(cols)} FROM {table}")

    def count(self, table: str) -> int:
        columns_for(table)
        res = self.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return int(res[0]) if res else 0

    def upsert_setting(self, key: str, value: str | None, enabled: bool) -> None:
        self.conn.execute(
            f"INSERT OR REPLACE INTO {ANALYTICS_SETTINGS_TABLE} (key, value, enabled) VALUES (?, ?, ?)",
            [key, value, bool(enabled)],
        )

    def add_route_exclusion(self, pattern: str) -> None:
        self.insert(ROUTE_EXCLUSIONS_TABLE, {"route_pattern": pattern})
