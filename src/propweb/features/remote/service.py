from __future__ import annotations

import logging
from collections.abc import Generator, Mapping, Sequence
from typing import Any, Protocol

import duckdb
import simpy

from propweb.core.logging import get_logger

from .duckdb_adapter import DuckDBAdapter


class RemoteError(RuntimeError):
    """A backend call failed (network, policy or database error)."""


class RemoteTables(Protocol):
    """
    Surface area the client features need from the backend.
    Every call is a generator meant to run as a simpy process.
    """

    def insert(self, table: str, row: Mapping[str, Any]) -> Generator[Any, Any, None]: ...

    def select(
        self, table: str, columns: Sequence[str] | None = None
    ) -> Generator[Any, Any, list[dict[str, Any]]]: ...

    def fetch(
        self, sql: str, params: Sequence[Any] | None = None
    ) -> Generator[Any, Any, list[dict[str, Any]]]: ...


class RemoteClient:
    """
    Backend-as-a-service client over DuckDB.

    Each call waits `latency_s` of simulated network time before touching the
    database, so overlapping calls resolve in the order their latency allows.
    Database errors surface as RemoteError.
    """

    def __init__(
        self,
        *,
        env: simpy.Environment,
        adapter: DuckDBAdapter,
        latency_s: float = 0.0,
        logger: logging.Logger | None = None,
    ) -> None:
        if latency_s < 0:
            raise ValueError("latency_s must be >= 0")
        self._env = env
        self._adapter = adapter
        self.latency_s = float(latency_s)
        self._logger = logger or get_logger(__name__)

    def _network(self):
        if self.latency_s > 0:
            yield self._env.timeout(self.latency_s)

    def insert(self, table: str, row: Mapping[str, Any]):
        yield from self._network()
        try:
            self._adapter.insert(table, row)
        except duckdb.Error as e:
            raise RemoteError(f"insert into {table} failed: {e}") from e

    def select(self, table: str, columns: Sequence[str] | None = None):
        yield from self._network()
        try:
            return self._adapter.select(table, columns)
        except duckdb.Error as e:
            raise RemoteError(f"select from {table} failed: {e}") from e

    def fetch(self, sql: str, params: Sequence[Any] | None = None):
        yield from self._network()
        try:
            return self._adapter.fetch_all(sql, params)
        except duckdb.Error as e:
            raise RemoteError(f"query failed: {e}") from e
