from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class PageResult:
    data: tuple[Any, ...] = field(default_factory=tuple)
    has_next_page: bool = False
    total: int = 0

    @classmethod
    def coerce(cls, value: Any) -> PageResult:
        """Accepts a PageResult or a {data, hasNextPage|has_next_page, total} mapping."""
        if isinstance(value, PageResult):
            return value
        if isinstance(value, Mapping):
            has_next = value.get("has_next_page", value.get("hasNextPage", False))
            return cls(
                data=tuple(value.get("data") or ()),
                has_next_page=bool(has_next),
                total=int(value.get("total") or 0),
            )
        raise TypeError(f"fetch function returned {type(value).__name__}, expected PageResult")
