from __future__ import annotations

import logging
from collections.abc import Sequence

import simpy

from propweb.core.config import DEFAULT_EXCLUDED_ROUTES
from propweb.core.logging import get_logger
from propweb.core.tasks import BackgroundTasks
from propweb.features.attribution.service import AttributionService
from propweb.features.browser.types import BrowserTab
from propweb.features.pixels.service import PixelLoader
from propweb.features.remote.schema import ROUTE_EXCLUSIONS_TABLE
from propweb.features.remote.service import RemoteError, RemoteTables
from propweb.features.tracking.routes import should_exclude_route
from propweb.features.tracking.scroll_depth import DEFAULT_MILESTONES, ScrollDepthTracker
from propweb.features.tracking.service import SiteAnalytics
from propweb.features.utm.service import persist_utm_params


class AnalyticsProvider:
    """
    App-level analytics wiring around location changes.

    On every location: record the last page, start a new scroll visit, then
    (in the background) merge remote route exclusions into the static list
    and track a page view unless the route is excluded.
    """

    def __init__(
        self,
        *,
        tab: BrowserTab,
        analytics: SiteAnalytics,
        attribution: AttributionService,
        remote: RemoteTables,
        tasks: BackgroundTasks,
        pixels: PixelLoader | None = None,
        excluded_routes: Sequence[str] = DEFAULT_EXCLUDED_ROUTES,
        scroll_milestones: Sequence[int] = DEFAULT_MILESTONES,
        logger: logging.Logger | None = None,
    ) -> None:
        self._tab = tab
        self._analytics = analytics
        self._attribution = attribution
        self._remote = remote
        self._tasks = tasks
        self._pixels = pixels
        self.excluded_routes = tuple(excluded_routes)
        self._logger = logger or get_logger(__name__)

        self.remote_exclusions: tuple[str, ...] = ()
        self.scroll = ScrollDepthTracker(analytics.track_scroll_depth, scroll_milestones)
        self.page_views = 0

    def mount(self) -> simpy.Process:
        persist_utm_params(self._tab.session_storage, self._tab.href)
        self._attribution.init_attribution()
        if self._pixels is not None:
            self._pixels.start()
        return self._on_location()

    def navigate(self, url: str, *, title: str | None = None) -> simpy.Process:
        self._tab.navigate(url, title=title)
        return self._on_location()

    def _on_location(self) -> simpy.Process:
        path = self._tab.path
        self._attribution.update_last_page(path)
        self.scroll.reset()
        return self._tasks.submit(
            self._track_page_view(path, self._tab.title), name=f"page_view:{path}"
        )

    def _track_page_view(self, path: str, title: str):
        try:
            rows = yield from self._remote.select(ROUTE_EXCLUSIONS_TABLE, ["route_pattern"])
        except RemoteError as e:
            self._logger.warning(
                "route_exclusions_unavailable",
                extra={"feature": "analytics_provider", "table": ROUTE_EXCLUSIONS_TABLE, "error": str(e)},
            )
        else:
            self.remote_exclusions = tuple(
                str(r["route_pattern"]) for r in rows if r.get("route_pattern")
            )

        if should_exclude_route(path, (*self.excluded_routes, *self.remote_exclusions)):
            return False
        self._analytics.track_page_view(title)
        self.page_views += 1
        return True

    def on_scroll(self, scroll_y: float, scroll_height: float, viewport_height: float) -> int | None:
        """Scroll tracking only runs on routes outside the static exclusions."""
        if should_exclude_route(self._tab.path, self.excluded_routes):
            return None
        return self.scroll.on_scroll(scroll_y, scroll_height, viewport_height)
