from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import parse_qsl, urlencode

from propweb.features.browser.types import BrowserTab

from .types import (
    DEFAULT_LIMIT,
    DEFAULT_PAGE,
    ENUM_FIELDS,
    INT_FIELDS,
    QUERY_KEYS,
    FilterSet,
    resolve_field,
)

QueryInput = str | Mapping[str, str] | Iterable[tuple[str, str]]


def _first_values(query: QueryInput) -> dict[str, str]:
    """First value per key, the way URLSearchParams.get reads a query."""
    if isinstance(query, str):
        pairs: Iterable[tuple[str, str]] = parse_qsl(query.lstrip("?"), keep_blank_values=True)
    elif isinstance(query, Mapping):
        pairs = query.items()
    else:
        pairs = query

    out: dict[str, str] = {}
    for k, v in pairs:
        out.setdefault(str(k), str(v))
    return out


_INT_RE = re.compile(r"^-?[0-9]+$")


def _parse_int(raw: str) -> int | None:
    s = raw.strip()
    if not _INT_RE.match(s):
        return None
    return int(s)


def parse_filters(query: QueryInput) -> FilterSet:
    """
    Whitelist parse of a listing query string.

    Unknown keys are ignored. Non-numeric numbers and out-of-set enum values
    are left unset. page/limit fall back to their defaults when missing or 0.
    """
    params = _first_values(query)
    values: dict[str, Any] = {}

    for field_name, query_key in QUERY_KEYS.items():
        raw = params.get(query_key)
        if raw is None:
            continue

        if field_name in INT_FIELDS:
            num = _parse_int(raw)
            if num is not None:
                values[field_name] = num
        elif field_name == "tags":
            tags = tuple(t for t in raw.split(",") if t)
            if tags:
                values["tags"] = tags
        elif field_name in ENUM_FIELDS:
            if raw in ENUM_FIELDS[field_name]:
                values[field_name] = raw
        elif raw != "":
            values[field_name] = raw

    if not values.get("page"):
        values["page"] = DEFAULT_PAGE
    if not values.get("limit"):
        values["limit"] = DEFAULT_LIMIT

    return FilterSet(**values)


def _encode_value(value: Any) -> str | None:
    """Query form of a filter value; None means the key is cleared."""
    if value is None or value == "":
        return None
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [str(v) for v in value]
        return ",".join(items) if items else None
    return str(value)


def to_params(filters: FilterSet) -> dict[str, str]:
    out: dict[str, str] = {}
    for field_name, query_key in QUERY_KEYS.items():
        encoded = _encode_value(getattr(filters, field_name))
        if encoded is not None:
            out[query_key] = encoded
    return out


def to_query_string(filters: FilterSet) -> str:
    return urlencode(to_params(filters))


class FilterState:
    """
    Filters bound to the tab's URL.

    Reads always re-parse the current query so the URL stays the single
    source of truth. Writes replace the current history entry and keep any
    query keys that are not filters.
    """

    def __init__(self, tab: BrowserTab) -> None:
        self._tab = tab

    @property
    def filters(self) -> FilterSet:
        return parse_filters(self._tab.search)

    @property
    def active_filter_count(self) -> int:
        return len(self.filters.active_items())

    @property
    def has_active_filters(self) -> bool:
        return self.active_filter_count > 0

    def set_filter(self, key: str, value: Any) -> FilterSet:
        field_name = resolve_field(key)
        params = self._params()
        self._apply(params, field_name, value)
        if field_name != "page":
            params["page"] = "1"
        return self._write(params)

    def set_filters(self, patch: Mapping[str, Any]) -> FilterSet:
        resolved = {resolve_field(k): v for k, v in patch.items()}
        params = self._params()
        for field_name, value in resolved.items():
            self._apply(params, field_name, value)
        if "page" not in resolved:
            params["page"] = "1"
        return self._write(params)

    def remove_filter(self, key: str) -> FilterSet:
        field_name = resolve_field(key)
        params = self._params()
        params.pop(QUERY_KEYS[field_name], None)
        params["page"] = "1"
        return self._write(params)

    def clear_filters(self) -> FilterSet:
        return self._write({})

    # ----- internals -----
    def _params(self) -> dict[str, str]:
        return _first_values(self._tab.search)

    @staticmethod
    def _apply(params: dict[str, str], field_name: str, value: Any) -> None:
        query_key = QUERY_KEYS[field_name]
        encoded = _encode_value(value)
        if encoded is None:
            params.pop(query_key, None)
        else:
            params[query_key] = encoded

    def _write(self, params: Mapping[str, str]) -> FilterSet:
        query = urlencode(dict(params))
        path = self._tab.path
        self._tab.replace_url(f"{path}?{query}" if query else path)
        return self.filters
