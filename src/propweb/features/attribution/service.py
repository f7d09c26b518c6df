from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlsplit

import simpy

from propweb.core.clock import SiteClock
from propweb.core.logging import get_logger
from propweb.core.tasks import BackgroundTasks
from propweb.features.browser.types import BrowserTab
from propweb.features.consent.service import ConsentStore
from propweb.features.remote.schema import SESSION_EVENTS_TABLE
from propweb.features.remote.service import RemoteTables
from propweb.features.session.service import SessionIdentity
from propweb.features.utm.service import get_persisted_utm_params

from .buffer import AttributionBuffer
from .types import (
    PHONE_CLICK,
    PROPERTY_VIEWED,
    WHATSAPP_CLICK,
    LeadAttributionSnapshot,
    SessionEvent,
    sanitize_meta,
)

SUMMARY_SIZE = 5
LAST_VIEWED_LIMIT = 5


def referrer_domain(referrer: str | None) -> str | None:
    """Hostname only; path and query of the referrer are never kept."""
    if not referrer:
        return None
    try:
        parts = urlsplit(referrer)
    except ValueError:
        return None
    if not parts.scheme or not parts.hostname:
        return None
    return parts.hostname


class AttributionService:
    def __init__(
        self,
        *,
        tab: BrowserTab,
        clock: SiteClock,
        consent: ConsentStore,
        session: SessionIdentity,
        remote: RemoteTables,
        tasks: BackgroundTasks,
        buffer: AttributionBuffer,
        logger: logging.Logger | None = None,
    ) -> None:
        self._tab = tab
        self._clock = clock
        self._consent = consent
        self._session = session
        self._remote = remote
        self._tasks = tasks
        self.buffer = buffer
        self._logger = logger or get_logger(__name__)

        self.landing_page: str | None = None
        self.last_page: str | None = None

    def init_attribution(self) -> None:
        if self.landing_page is None:
            self.landing_page = self._tab.path

    def update_last_page(self, path: str) -> None:
        self.last_page = path

    def log_session_event(
        self,
        event_name: str,
        entity_id: str | None = None,
        meta: Mapping[str, Any] | None = None,
    ) -> SessionEvent:
        """
        Buffers the event (meta reduced to the allow-list) and, with analytics
        consent, persists it fire-and-forget.
        """
        clean = sanitize_meta(meta) if meta is not None else None
        event = SessionEvent(
            event_name=event_name,
            page_path=self._tab.path,
            ts=self._clock.now_ms(),
            entity_id=entity_id,
            meta=clean,
        )
        self.buffer.append(event)

        if self._consent.is_tracking_allowed():
            self.persist(event)
        return event

    def persist(self, event: SessionEvent) -> simpy.Process:
        row = {
            "session_id": self._session.get_session_id(),
            "event_name": event.event_name,
            "page_path": event.page_path,
            "entity_id": event.entity_id,
            "meta": json.dumps(event.meta or {}, sort_keys=True),
            "created_at": self._clock.now_utc().replace(tzinfo=None),
        }
        return self._tasks.submit(
            self._remote.insert(SESSION_EVENTS_TABLE, row),
            name=f"session_event:{event.event_name}",
        )

    def get_lead_attribution(self) -> LeadAttributionSnapshot:
        current_path = self._tab.path
        base: dict[str, Any] = {
            "session_id": self._session.get_session_id(),
            "landing_page": self.landing_page or current_path,
            "last_page_before_submit": self.last_page or current_path,
            "device_type": self._tab.device_type,
            "browser_language": self._tab.language,
        }

        if not self._consent.is_tracking_allowed():
            return LeadAttributionSnapshot(**base)

        utm = get_persisted_utm_params(self._tab.session_storage)
        return LeadAttributionSnapshot(
            **base,
            utm_source=utm.get("utm_source"),
            utm_medium=utm.get("utm_medium"),
            utm_campaign=utm.get("utm_campaign"),
            utm_term=utm.get("utm_term"),
            utm_content=utm.get("utm_content"),
            referrer_domain=referrer_domain(self._tab.referrer),
            last_events_summary=tuple(self.buffer.last(SUMMARY_SIZE)),
        )

    def get_last_viewed_properties(self) -> list[str]:
        """Most recent first, distinct, at most five."""
        out: list[str] = []
        for e in reversed(self.buffer.events()):
            if e.event_name != PROPERTY_VIEWED or not e.entity_id:
                continue
            if e.entity_id in out:
                continue
            out.append(e.entity_id)
            if len(out) == LAST_VIEWED_LIMIT:
                break
        return out

    def get_conversion_triggers(self) -> dict[str, bool]:
        names = {e.event_name for e in self.buffer.events()}
        return {"whatsapp": WHATSAPP_CLICK in names, "phone": PHONE_CLICK in names}
