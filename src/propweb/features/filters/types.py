from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 12

SORT_OPTIONS = frozenset({"price_asc", "price_desc", "newest", "area_asc", "area_desc"})
FINISHING_OPTIONS = frozenset({"core_shell", "semi_finished", "fully_finished", "furnished"})
STATUS_OPTIONS = frozenset({"draft", "pending_approval", "published", "archived"})

# field name -> query string key, in canonical URL order
QUERY_KEYS: dict[str, str] = {
    "search": "search",
    "city": "city",
    "area": "area",
    "min_price": "minPrice",
    "max_price": "maxPrice",
    "bedrooms": "bedrooms",
    "bathrooms": "bathrooms",
    "min_area": "minArea",
    "max_area": "maxArea",
    "finishing": "finishing",
    "tags": "tags",
    "status": "status",
    "sort_by": "sortBy",
    "page": "page",
    "limit": "limit",
}
FIELDS_BY_QUERY_KEY = {q: f for f, q in QUERY_KEYS.items()}

INT_FIELDS = frozenset(
    {"min_price", "max_price", "bedrooms", "bathrooms", "min_area", "max_area", "page", "limit"}
)
ENUM_FIELDS: dict[str, frozenset[str]] = {
    "sort_by": SORT_OPTIONS,
    "finishing": FINISHING_OPTIONS,
    "status": STATUS_OPTIONS,
}

# not counted as content filters
NON_CONTENT_FIELDS = frozenset({"page", "limit", "sort_by"})

STR_FIELDS = ("search", "city", "area", "finishing", "status", "sort_by")


@dataclass(frozen=True, slots=True)
class FilterSet:
    """
    Listing filters as carried in the URL. None means unset, never zero.
    """

    search: str | None = None
    city: str | None = None
    area: str | None = None
    min_price: int | None = None
    max_price: int | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    min_area: int | None = None
    max_area: int | None = None
    finishing: str | None = None
    tags: tuple[str, ...] | None = None
    status: str | None = None
    sort_by: str | None = None
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    def __post_init__(self) -> None:
        # empty means unset
        for name in STR_FIELDS:
            if getattr(self, name) == "":
                object.__setattr__(self, name, None)
        if self.tags is not None:
            tags = tuple(self.tags)
            for tag in tags:
                if not tag or "," in tag:
                    raise ValueError(f"invalid tag: {tag!r}")
            object.__setattr__(self, "tags", tags or None)

    def as_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def active_items(self) -> dict[str, Any]:
        """Set content filters, keyed by field name."""
        out: dict[str, Any] = {}
        for name, value in self.as_dict().items():
            if name in NON_CONTENT_FIELDS or value is None or value == "" or value == ():
                continue
            out[name] = value
        return out


def resolve_field(key: str) -> str:
    """Accepts either the field name (min_price) or the query key (minPrice)."""
    if key in QUERY_KEYS:
        return key
    if key in FIELDS_BY_QUERY_KEY:
        return FIELDS_BY_QUERY_KEY[key]
    raise ValueError(f"unknown filter key: {key!r}")
