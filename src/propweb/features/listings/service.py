from __future__ import annotations

import logging
from collections.abc import Callable, Generator
from dataclasses import replace
from typing import Any

from propweb.core.logging import get_logger
from propweb.features.filters.types import FilterSet
from propweb.features.infinite_scroll.types import PageResult
from propweb.features.remote.schema import PROPERTIES_TABLE, columns_for
from propweb.features.remote.service import RemoteTables

ORDER_BY: dict[str, str] = {
    "price_asc": "price ASC",
    "price_desc": "price DESC",
    "newest": "created_at DESC",
    "area_asc": "area_sqm ASC",
    "area_desc": "area_sqm DESC",
}
DEFAULT_SORT = "newest"


def build_where(filters: FilterSet) -> tuple[str, list[Any]]:
    """
    WHERE clause + params for a FilterSet. Unset filters add nothing.
    Text matches are case-insensitive; bedrooms/bathrooms are minimums.
    """
    clauses: list[str] = []
    params: list[Any] = []

    if filters.search:
        clauses.append("(title ILIKE ? OR city ILIKE ? OR area ILIKE ?)")
        needle = f"%{filters.search}%"
        params.extend([needle, needle, needle])
    if filters.city:
        clauses.append("lower(city) = lower(?)")
        params.append(filters.city)
    if filters.area:
        clauses.append("lower(area) = lower(?)")
        params.append(filters.area)
    if filters.min_price is not None:
        clauses.append("price >= ?")
        params.append(filters.min_price)
    if filters.max_price is not None:
        clauses.append("price <= ?")
        params.append(filters.max_price)
    if filters.bedrooms is not None:
        clauses.append("bedrooms >= ?")
        params.append(filters.bedrooms)
    if filters.bathrooms is not None:
        clauses.append("bathrooms >= ?")
        params.append(filters.bathrooms)
    if filters.min_area is not None:
        clauses.append("area_sqm >= ?")
        params.append(filters.min_area)
    if filters.max_area is not None:
        clauses.append("area_sqm <= ?")
        params.append(filters.max_area)
    if filters.finishing:
        clauses.append("finishing = ?")
        params.append(filters.finishing)
    if filters.tags:
        clauses.append("list_has_any(tags, ?::VARCHAR[])")
        params.append(list(filters.tags))
    if filters.status:
        clauses.append("status = ?")
        params.append(filters.status)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params


class ListingsService:
    """Paged listing queries against the remote properties table."""

    def __init__(self, remote: RemoteTables, *, logger: logging.Logger | None = None) -> None:
        self._remote = remote
        self._logger = logger or get_logger(__name__)

    def fetch_page(self, filters: FilterSet, page: int | None = None) -> Generator[Any, Any, PageResult]:
        page = filters.page if page is None else int(page)
        limit = max(int(filters.limit), 1)
        offset = max(page - 1, 0) * limit

        where, params = build_where(filters)
        order = ORDER_BY.get(filters.sort_by or DEFAULT_SORT, ORDER_BY[DEFAULT_SORT])
        cols = ", ".join(columns_for(PROPERTIES_TABLE))

        count_rows = yield from self._remote.fetch(
            f"SELECT COUNT(*) AS total FROM {PROPERTIES_TABLE} {where}", params
        )
        total = int(count_rows[0]["total"]) if count_rows else 0

        rows = yield from self._remote.fetch(
            f"SELECT {cols} FROM {PROPERTIES_TABLE} {where} ORDER BY {order}, id ASC LIMIT ? OFFSET ?",
            [*params, limit, offset],
        )

        self._logger.debug(
            "listings_page_fetched",
            extra={"feature": "listings", "page": page, "table": PROPERTIES_TABLE},
        )
        return PageResult(data=tuple(rows), has_next_page=page * limit < total, total=total)

    def fetcher(self, filters: FilterSet) -> Callable[[int], Generator[Any, Any, PageResult]]:
        """Binds filters so the result plugs into InfiniteScroll(fetch_fn=...)."""

        def fetch(page: int) -> Generator[Any, Any, PageResult]:
            return self.fetch_page(replace(filters, page=page), page)

        return fetch
