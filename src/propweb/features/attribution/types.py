from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

# Session event names (kept in sync with the session_events consumers)
SEARCH_PERFORMED = "search_performed"
FILTER_APPLIED = "filter_applied"
PROPERTY_VIEWED = "property_viewed"
COMPARE_USED = "compare_used"
WHATSAPP_CLICK = "whatsapp_click"
PHONE_CLICK = "phone_click"
CALCULATOR_USED = "calculator_used"
LEAD_POPUP_SHOWN = "lead_popup_shown"
PROJECT_VIEWED = "project_viewed"

SESSION_EVENT_TYPES: frozenset[str] = frozenset(
    {
        SEARCH_PERFORMED,
        FILTER_APPLIED,
        PROPERTY_VIEWED,
        COMPARE_USED,
        WHATSAPP_CLICK,
        PHONE_CLICK,
        CALCULATOR_USED,
        LEAD_POPUP_SHOWN,
        PROJECT_VIEWED,
    }
)

# The only meta keys that may leave the call site; everything else could be PII.
ALLOWED_META_KEYS: tuple[str, ...] = (
    "filter_type",
    "bedrooms",
    "price_range",
    "area",
    "sort_by",
    "view_type",
)


_SCALAR_TYPES = (str, int, float, bool)


def sanitize_meta(meta: Mapping[str, Any]) -> dict[str, Any]:
    """Allow-listed keys with scalar values only."""
    return {
        k: meta[k]
        for k in ALLOWED_META_KEYS
        if k in meta and (meta[k] is None or isinstance(meta[k], _SCALAR_TYPES))
    }


@dataclass(frozen=True, slots=True)
class SessionEvent:
    event_name: str
    page_path: str
    ts: int  # epoch ms
    entity_id: str | None = None
    meta: dict[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "event_name": self.event_name,
            "page_path": self.page_path,
            "ts": self.ts,
        }
        if self.entity_id is not None:
            out["entity_id"] = self.entity_id
        if self.meta is not None:
            out["meta"] = dict(self.meta)
        return out


@dataclass(frozen=True, slots=True)
class LeadAttributionSnapshot:
    """
    Attribution attached to a lead at submission time.

    The first five fields are technical and always present. The campaign
    group (utm_*, referrer_domain, last_events_summary) is filled only under
    analytics consent, and is otherwise entirely null/empty.
    """

    session_id: str
    landing_page: str
    last_page_before_submit: str
    device_type: str
    browser_language: str

    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    utm_term: str | None = None
    utm_content: str | None = None
    referrer_domain: str | None = None
    last_events_summary: tuple[SessionEvent, ...] = field(default_factory=tuple)

    def as_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "landing_page": self.landing_page,
            "last_page_before_submit": self.last_page_before_submit,
            "device_type": self.device_type,
            "browser_language": self.browser_language,
            "utm_source": self.utm_source,
            "utm_medium": self.utm_medium,
            "utm_campaign": self.utm_campaign,
            "utm_term": self.utm_term,
            "utm_content": self.utm_content,
            "referrer_domain": self.referrer_domain,
            "last_events_summary": [e.as_dict() for e in self.last_events_summary],
        }
