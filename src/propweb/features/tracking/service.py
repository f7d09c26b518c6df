from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import simpy

from propweb.core.clock import SiteClock
from propweb.core.logging import get_logger
from propweb.core.tasks import BackgroundTasks
from propweb.features.browser.types import BrowserTab
from propweb.features.consent.service import ConsentStore
from propweb.features.remote.schema import ANALYTICS_EVENTS_TABLE
from propweb.features.remote.service import RemoteTables
from propweb.features.session.service import SessionIdentity
from propweb.features.utm.service import get_persisted_utm_params

from . import schema
from .debounce import Debouncer
from .schema import ANALYTICS_EVENT_NAMES, AnalyticsEvent

DEFAULT_DEBOUNCE_S = 0.3


class EventTracker:
    """
    Central tracking call.

    - first-party row to analytics_events: always, fire-and-forget
    - mirror to vendor pixels on the page: only with analytics consent
    - never raises to the caller
    """

    def __init__(
        self,
        *,
        env: simpy.Environment,
        tab: BrowserTab,
        clock: SiteClock,
        consent: ConsentStore,
        session: SessionIdentity,
        remote: RemoteTables,
        tasks: BackgroundTasks,
        debounce_s: float = DEFAULT_DEBOUNCE_S,
        logger: logging.Logger | None = None,
    ) -> None:
        self._env = env
        self._tab = tab
        self._clock = clock
        self._consent = consent
        self._session = session
        self._remote = remote
        self._tasks = tasks
        self._logger = logger or get_logger(__name__)
        self._debouncer = Debouncer(env, self.track, debounce_s)

    @property
    def tab(self) -> BrowserTab:
        return self._tab

    def track(
        self, event_name: str, payload: Mapping[str, Any] | None = None
    ) -> simpy.Process | None:
        data = dict(payload or {})
        if event_name not in ANALYTICS_EVENT_NAMES:
            self._logger.warning(
                "unknown_event_name", extra={"feature": "tracking", "event_name": event_name}
            )

        try:
            event = self._build_event(event_name, data)
            proc = self._tasks.submit(
                self._remote.insert(ANALYTICS_EVENTS_TABLE, event.as_row()),
                name=f"track:{event_name}",
            )
            if self._consent.is_tracking_allowed():
                self._mirror_to_pixels(event_name, data)
        except Exception as e:  # noqa: BLE001
            self._logger.warning(
                "track_failed",
                extra={"feature": "tracking", "event_name": event_name, "error": str(e)},
            )
            return None
        return proc

    def track_debounced(
        self, event_name: str, payload: Mapping[str, Any] | None = None
    ) -> simpy.Process:
        return self._debouncer(event_name, payload)

    def _build_event(self, event_name: str, data: dict[str, Any]) -> AnalyticsEvent:
        return AnalyticsEvent(
            event_name=event_name,
            event_data=data,
            session_id=self._session.get_session_id(),
            page_url=self._tab.href,
            page_title=self._tab.title,
            referrer=self._tab.referrer or None,
            device_type=self._tab.device_type,
            language=self._tab.lang or "en",
            created_at=self._clock.now_utc(),
            utm=get_persisted_utm_params(self._tab.session_storage),
        )

    def _mirror_to_pixels(self, event_name: str, data: dict[str, Any]) -> None:
        window = self._tab.globals

        # each vendor object is optional; absence is normal
        gtag = window.get("gtag")
        if gtag is not None:
            self._call_vendor("gtag", gtag, "event", event_name, data)

        fbq = window.get("fbq")
        if fbq is not None:
            self._call_vendor("fbq", fbq, "trackCustom", event_name, data)

        ttq = window.get("ttq")
        if ttq is not None and hasattr(ttq, "track"):
            self._call_vendor("ttq", ttq.track, event_name, data)

    def _call_vendor(self, vendor: str, fn: Any, *args: Any) -> None:
        try:
            fn(*args)
        except Exception as e:  # noqa: BLE001
            self._logger.warning(
                "pixel_call_failed", extra={"feature": "tracking", "vendor": vendor, "error": str(e)}
            )


class SiteAnalytics:
    """
    Convenience calls for the site's common interactions.
    """

    def __init__(self, tracker: EventTracker) -> None:
        self.tracker = tracker

    def track_page_view(self, page_title: str | None = None):
        title = page_title if page_title is not None else self.tracker.tab.title
        return self.tracker.track(schema.PAGE_VIEW, {"page_title": title})

    def track_property_view(
        self, property_id: str, property_title: str | None = None, price: float | None = None
    ):
        return self.tracker.track(
            schema.VIEW_PROPERTY,
            {"property_id": property_id, "property_title": property_title, "property_price": price},
        )

    def track_search(
        self, query: str, filters: Mapping[str, Any] | None = None, results_count: int | None = None
    ):
        return self.tracker.track(
            schema.SEARCH,
            {"query": query, "filters": dict(filters or {}), "results_count": results_count},
        )

    def track_filter_apply(self, filters: Mapping[str, Any]):
        return self.tracker.track(schema.FILTER_APPLY, {"filters": dict(filters)})

    def track_compare_add(self, property_id: str, property_title: str | None = None):
        return self.tracker.track(
            schema.COMPARE_ADD, {"property_id": property_id, "property_title": property_title}
        )

    def track_compare_remove(self, property_id: str):
        return self.tracker.track(schema.COMPARE_REMOVE, {"property_id": property_id})

    def track_lead_submit(
        self, source: str, property_id: str | None = None, form_type: str | None = None
    ):
        return self.tracker.track(
            schema.LEAD_SUBMIT,
            {"lead_source": source, "property_id": property_id, "form_type": form_type},
        )

    def track_whatsapp_click(self, destination: str | None = None, context: str | None = None):
        return self.tracker.track(
            schema.WHATSAPP_CLICK, {"destination": destination, "button_location": context}
        )

    def track_phone_click(self, destination: str | None = None, context: str | None = None):
        return self.tracker.track(
            schema.PHONE_CLICK, {"destination": destination, "button_location": context}
        )

    def track_cta_click(self, button_text: str, button_location: str):
        return self.tracker.track(
            schema.CTA_BOOK_CONSULTATION,
            {"button_text": button_text, "button_location": button_location},
        )

    def track_scroll_depth(self, depth_percent: int):
        return self.tracker.track_debounced(schema.SCROLL_DEPTH, {"depth_percent": depth_percent})

    def track_property_finder_start(self):
        return self.tracker.track(schema.PROPERTY_FINDER_START, {})

    def track_property_finder_step(self, step: int, step_name: str):
        return self.tracker.track(
            schema.PROPERTY_FINDER_STEP, {"step": step, "step_name": step_name}
        )

    def track_property_finder_complete(self, preferences: Mapping[str, Any]):
        return self.tracker.track(
            schema.PROPERTY_FINDER_COMPLETE, {"preferences": dict(preferences)}
        )
