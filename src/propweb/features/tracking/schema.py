from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from propweb.core.ids import canonical_json

# Stable event names; renaming one breaks long-term reporting.
PAGE_VIEW = "page_view"
VIEW_PROPERTY = "view_property"
SEARCH = "search"
FILTER_APPLY = "filter_apply"
COMPARE_ADD = "compare_add"
COMPARE_REMOVE = "compare_remove"
COMPARE_VIEW = "compare_view"
LEAD_SUBMIT = "lead_submit"
WHATSAPP_CLICK = "whatsapp_click"
PHONE_CLICK = "phone_click"
CTA_BOOK_CONSULTATION = "cta_book_consultation_click"
PROPERTY_FINDER_START = "property_finder_start"
PROPERTY_FINDER_STEP = "property_finder_step"
PROPERTY_FINDER_COMPLETE = "property_finder_complete"
SCROLL_DEPTH = "scroll_depth"
TIME_ON_PAGE = "time_on_page"
SESSION_START = "session_start"
SESSION_END = "session_end"

ANALYTICS_EVENT_NAMES: frozenset[str] = frozenset(
    {
        PAGE_VIEW,
        VIEW_PROPERTY,
        SEARCH,
        FILTER_APPLY,
        COMPARE_ADD,
        COMPARE_REMOVE,
        COMPARE_VIEW,
        LEAD_SUBMIT,
        WHATSAPP_CLICK,
        PHONE_CLICK,
        CTA_BOOK_CONSULTATION,
        PROPERTY_FINDER_START,
        PROPERTY_FINDER_STEP,
        PROPERTY_FINDER_COMPLETE,
        SCROLL_DEPTH,
        TIME_ON_PAGE,
        SESSION_START,
        SESSION_END,
    }
)


@dataclass(frozen=True, slots=True)
class AnalyticsEvent:
    event_name: str
    event_data: dict[str, Any]
    session_id: str
    page_url: str
    page_title: str
    referrer: str | None
    device_type: str
    language: str
    created_at: datetime
    utm: dict[str, str]

    def as_row(self) -> dict[str, Any]:
        """
        Row for the analytics_events table.
        """
        row: dict[str, Any] = {
            "event_name": self.event_name,
            "event_data": canonical_json(self.event_data),
            "session_id": self.session_id,
            "page_url": self.page_url,
            "page_title": self.page_title,
            "referrer": self.referrer,
            "device_type": self.device_type,
            "language": self.language,
            # naive UTC for the TIMESTAMP column
            "created_at": self.created_at.replace(tzinfo=None),
        }
        row.update(self.utm)
        return row
