from __future__ import annotations

import json
import logging
from collections.abc import Generator
from typing import Any, Literal

from propweb.core.logging import get_logger
from propweb.features.remote.schema import PROPERTIES_TABLE
from propweb.features.remote.service import RemoteError, RemoteTables
from propweb.features.storage.service import Storage, StorageError

COMPARE_STORAGE_KEY = "compare_properties"
MAX_COMPARE_ITEMS = 2

ADDED = "added"
DUPLICATE = "duplicate"
LIMIT_REACHED = "limit_reached"

AddResult = Literal["added", "duplicate", "limit_reached"]


class CompareStore:
    """
    Ordered selection of up to two property ids, persisted to durable
    storage after every change. Storage failures are logged; the in-memory
    selection stays authoritative for the rest of the visit.
    """

    def __init__(self, *, storage: Storage, logger: logging.Logger | None = None) -> None:
        self._storage = storage
        self._logger = logger or get_logger(__name__)
        self._ids: list[str] = self._load()

    def _load(self) -> list[str]:
        try:
            raw = self._storage.get_item(COMPARE_STORAGE_KEY)
        except StorageError as e:
            self._logger.warning("compare_load_failed", extra={"feature": "compare", "error": str(e)})
            return []
        if not raw:
            return []
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            return []
        if not isinstance(value, list):
            return []

        ids: list[str] = []
        for item in value:
            if isinstance(item, str) and item and item not in ids:
                ids.append(item)
        return ids[:MAX_COMPARE_ITEMS]

    def _persist(self) -> None:
        try:
            self._storage.set_item(COMPARE_STORAGE_KEY, json.dumps(self._ids))
        except StorageError as e:
            self._logger.warning("compare_persist_failed", extra={"feature": "compare", "error": str(e)})

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(self._ids)

    @property
    def is_full(self) -> bool:
        return len(self._ids) >= MAX_COMPARE_ITEMS

    def is_selected(self, property_id: str) -> bool:
        return property_id in self._ids

    def add(self, property_id: str) -> AddResult:
        if property_id in self._ids:
            return DUPLICATE
        if self.is_full:
            return LIMIT_REACHED
        self._ids.append(property_id)
        self._persist()
        return ADDED

    def remove(self, property_id: str) -> None:
        if property_id in self._ids:
            self._ids.remove(property_id)
            self._persist()

    def clear(self) -> None:
        self._ids = []
        self._persist()

    def replace_oldest(self, property_id: str) -> None:
        """Drops the first-inserted id and appends the new one. No-op if already selected."""
        if property_id in self._ids:
            return
        self._ids = [*self._ids[1:], property_id]
        self._persist()

    def compare_url(self) -> str | None:
        if not self.is_full:
            return None
        return f"/compare?ids={','.join(self._ids)}"


class CompareSync:
    """
    Reconciles the selection with the remote catalogue: ids whose listing
    no longer exists are dropped. A failed lookup changes nothing.
    """

    def __init__(
        self,
        *,
        store: CompareStore,
        remote: RemoteTables,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._remote = remote
        self._logger = logger or get_logger(__name__)

    def sync(self) -> Generator[Any, Any, list[dict[str, Any]]]:
        ids = list(self._store.ids)
        if not ids:
            return []

        try:
            rows = yield from self._remote.fetch(
                f"SELECT id, title, price, city, area, bedrooms, area_sqm "
                f"FROM {PROPERTIES_TABLE} WHERE list_contains(?::VARCHAR[], id)",
                [ids],
            )
        except RemoteError as e:
            self._logger.warning("compare_sync_failed", extra={"feature": "compare", "error": str(e)})
            return []

        valid = {str(r["id"]) for r in rows}
        for property_id in ids:
            if property_id not in valid:
                self._store.remove(property_id)

        by_id = {str(r["id"]): r for r in rows}
        return [by_id[i] for i in self._store.ids if i in by_id]
