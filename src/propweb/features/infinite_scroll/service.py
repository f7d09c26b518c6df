from __future__ import annotations

import inspect
import logging
import re
from collections.abc import Callable
from typing import Any

import simpy

from propweb.core.logging import get_logger

from .types import PageResult

FetchFn = Callable[[int], Any]

_MARGIN_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)(px)?\s*$")


def parse_root_margin(margin: str | int | float) -> float:
    """'200px' -> 200.0. Only pixel margins make sense without a layout."""
    if isinstance(margin, (int, float)):
        return float(margin)
    m = _MARGIN_RE.match(str(margin))
    if not m:
        raise ValueError(f"unsupported root margin: {margin!r}")
    return float(m.group(1))


class InfiniteScroll:
    """
    Page-cursor fetch-and-append controller.

    One fetch is in flight at a time. Every fetch takes a new id from a
    monotonic counter and its result is applied only while that id is still
    the latest, so reset()/unmount() invalidate whatever is in flight.
    Failures land in `error`; loaded data stays and nothing is retried
    automatically.

    fetch_fn(page) may return a PageResult (or mapping), a generator to run
    inside the process, or a simpy event that yields one.
    """

    def __init__(
        self,
        env: simpy.Environment,
        fetch_fn: FetchFn,
        *,
        initial_page: int = 1,
        enabled: bool = True,
        root_margin: str | int | float = "200px",
        logger: logging.Logger | None = None,
    ) -> None:
        self._env = env
        self._fetch_fn = fetch_fn
        self.initial_page = int(initial_page)
        self.enabled = bool(enabled)
        self.root_margin_px = parse_root_margin(root_margin)
        self._logger = logger or get_logger(__name__)

        self.data: list[Any] = []
        self.page = self.initial_page
        self.is_loading = True
        self.is_fetching_next_page = False
        self.has_next_page = True
        self.error: Exception | None = None
        self.total = 0

        self._fetch_id = 0
        self._is_fetching = False
        self._loaded = False
        self._mounted = False

    # ----- lifecycle -----
    def mount(self) -> simpy.Process | None:
        self._mounted = True
        if not self.enabled:
            return None
        return self.fetch_page(self.initial_page, initial=True)

    def unmount(self) -> None:
        self._mounted = False
        self._fetch_id += 1
        self._is_fetching = False

    # ----- fetching -----
    @property
    def fetch_id(self) -> int:
        return self._fetch_id

    @property
    def is_fetching(self) -> bool:
        return self._is_fetching

    def fetch_page(self, page: int, *, initial: bool) -> simpy.Process | None:
        if self._is_fetching:
            return None
        self._is_fetching = True
        self._fetch_id += 1
        fetch_id = self._fetch_id

        if initial:
            self.is_loading = True
        else:
            self.is_fetching_next_page = True
        self.error = None

        return self._env.process(self._run(fetch_id, int(page), initial))

    def _call(self, page: int):
        out = self._fetch_fn(page)
        if inspect.isgenerator(out):
            out = yield from out
        elif isinstance(out, simpy.Event):
            out = yield out
        return PageResult.coerce(out)

    def _run(self, fetch_id: int, page: int, initial: bool):
        try:
            result = yield from self._call(page)
        except Exception as e:  # noqa: BLE001
            if fetch_id != self._fetch_id:
                return None
            self.error = e
            self._logger.warning(
                "infinite_scroll_fetch_failed",
                extra={"feature": "infinite_scroll", "page": page, "fetch_id": fetch_id, "error": str(e)},
            )
            self._settle(fetch_id)
            return None

        if fetch_id != self._fetch_id:
            self._logger.debug(
                "infinite_scroll_stale_result",
                extra={"feature": "infinite_scroll", "page": page, "fetch_id": fetch_id},
            )
            return None

        if initial:
            self.data = list(result.data)
        else:
            self.data.extend(result.data)
        self.has_next_page = result.has_next_page
        self.total = result.total
        self.page = page
        self._loaded = True
        self._settle(fetch_id)
        return result

    def _settle(self, fetch_id: int) -> None:
        if fetch_id == self._fetch_id:
            self.is_loading = False
            self.is_fetching_next_page = False
            self._is_fetching = False

    # ----- triggers -----
    def load_more(self) -> simpy.Process | None:
        if not self.has_next_page or self._is_fetching:
            return None
        return self.fetch_page(self.page + 1, initial=False)

    def reset(self) -> simpy.Process | None:
        self.data = []
        self.page = self.initial_page
        self.has_next_page = True
        self.error = None
        self._loaded = False
        self._is_fetching = False
        self._fetch_id += 1
        return self.fetch_page(self.initial_page, initial=True)

    def retry(self) -> simpy.Process | None:
        """Re-issues the request that failed. No-op without an error."""
        if self.error is None or self._is_fetching:
            return None
        if not self._loaded:
            return self.fetch_page(self.initial_page, initial=True)
        return self.fetch_page(self.page + 1, initial=False)

    def on_intersection(self, is_intersecting: bool) -> simpy.Process | None:
        """Sentinel visibility callback."""
        if not (self._mounted and self.enabled and is_intersecting):
            return None
        if not self.has_next_page or self._is_fetching:
            return None
        return self.fetch_page(self.page + 1, initial=False)

    def observe(self, distance_px: float) -> simpy.Process | None:
        """
        Sentinel sits `distance_px` below the viewport's bottom edge; it counts
        as intersecting once that is within the root margin.
        """
        return self.on_intersection(distance_px <= self.root_margin_px)
