from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

import simpy

from propweb.core.clock import SiteClock
from propweb.core.rng import RNG
from propweb.core.signals import SignalBus
from propweb.core.tasks import BackgroundTasks
from propweb.features.attribution.buffer import AttributionBuffer
from propweb.features.attribution.service import AttributionService, referrer_domain
from propweb.features.attribution.types import sanitize_meta
from propweb.features.browser.types import BrowserTab
from propweb.features.consent.service import ConsentStore
from propweb.features.remote.duckdb_adapter import DuckDBAdapter
from propweb.features.session.service import SessionIdentity
from propweb.features.storage.service import DuckDBStorage, MemoryStorage, Storage
from propweb.features.utm.service import persist_utm_params


class DummyRemote:
    def __init__(self) -> None:
        self.rows: list[tuple[str, dict[str, Any]]] = []

    def insert(self, table: str, row: dict[str, Any]):
        self.rows.append((table, dict(row)))
        yield from ()


def make_service(
    *,
    url: str = "/properties",
    referrer: str = "https://www.google.com/search?q=villa+cairo&user=john",
    consent_storage: Storage | None = None,
):
    env = simpy.Environment()
    clock = SiteClock(env, datetime(2026, 1, 1, tzinfo=UTC))
    tab = BrowserTab(url=url, base_url="https://site.test", referrer=referrer, lang="ar")
    consent = ConsentStore(storage=consent_storage or MemoryStorage(), clock=clock, bus=SignalBus())
    session = SessionIdentity(storage=tab.session_storage, clock=clock, rng=RNG(5))
    remote = DummyRemote()
    svc = AttributionService(
        tab=tab,
        clock=clock,
        consent=consent,
        session=session,
        remote=remote,
        tasks=BackgroundTasks(env),
        buffer=AttributionBuffer(),
    )
    return svc, env, tab, consent, remote


def test_buffer_keeps_last_ten_oldest_first() -> None:
    svc, _, _, _, _ = make_service()

    for i in range(15):
        svc.log_session_event("property_viewed", entity_id=f"p-{i}")

    events = svc.buffer.events()
    assert len(events) == 10
    assert [e.entity_id for e in events] == [f"p-{i}" for i in range(5, 15)]


def test_meta_reduced_to_allow_list() -> None:
    svc, env, _, consent, remote = make_service()
    consent.accept_all()

    event = svc.log_session_event("x", None, {"bedrooms": 3, "email": "a@b.com"})
    env.run()

    assert event.meta == {"bedrooms": 3}
    assert svc.buffer.events()[-1].meta == {"bedrooms": 3}
    assert json.loads(remote.rows[0][1]["meta"]) == {"bedrooms": 3}


def test_sanitize_meta_drops_everything_unknown() -> None:
    assert sanitize_meta({"phone": "0100", "name": "A", "sort_by": "newest"}) == {"sort_by": "newest"}
    assert sanitize_meta({}) == {}


def test_sanitize_meta_drops_non_scalar_values() -> None:
    meta = {
        "bedrooms": {"email": "a@b.com"},
        "area": ["New Cairo", "0100"],
        "sort_by": None,
        "price_range": 2.5,
        "view_type": "grid",
    }

    assert sanitize_meta(meta) == {"sort_by": None, "price_range": 2.5, "view_type": "grid"}


def test_persistence_requires_consent() -> None:
    svc, env, _, consent, remote = make_service()

    svc.log_session_event("search_performed")
    env.run()
    assert remote.rows == []
    assert len(svc.buffer) == 1

    consent.accept_all()
    svc.log_session_event("filter_applied", meta={"filter_type": "price"})
    env.run()

    assert len(remote.rows) == 1
    table, row = remote.rows[0]
    assert table == "session_events"
    assert row["event_name"] == "filter_applied"
    assert row["page_path"] == "/properties"
    assert row["entity_id"] is None


def test_consent_gating_is_all_or_nothing() -> None:
    svc, _, tab, consent, _ = make_service(url="/properties?utm_source=google&utm_medium=cpc")
    persist_utm_params(tab.session_storage, tab.href)
    svc.init_attribution()
    svc.log_session_event("search_performed")

    denied = svc.get_lead_attribution()
    assert denied.utm_source is None
    assert denied.utm_medium is None
    assert denied.referrer_domain is None
    assert denied.last_events_summary == ()

    consent.accept_all()
    granted = svc.get_lead_attribution()
    assert granted.utm_source == "google"
    assert granted.utm_medium == "cpc"
    assert granted.utm_campaign is None
    assert granted.referrer_domain == "www.google.com"
    assert [e.event_name for e in granted.last_events_summary] == ["search_performed"]

    assert denied.session_id == granted.session_id
    assert granted.browser_language == "ar"


def test_summary_holds_last_five() -> None:
    svc, _, _, consent, _ = make_service()
    consent.accept_all()
    for i in range(8):
        svc.log_session_event("property_viewed", entity_id=str(i))

    summary = svc.get_lead_attribution().last_events_summary
    assert [e.entity_id for e in summary] == ["3", "4", "5", "6", "7"]


def test_denied_consent_scenario_from_landing_to_submit() -> None:
    svc, _, tab, _, _ = make_service(url="/properties?utm_source=google")
    persist_utm_params(tab.session_storage, tab.href)
    svc.init_attribution()
    svc.update_last_page(tab.path)

    tab.navigate("/find-property")
    svc.init_attribution()
    svc.update_last_page(tab.path)

    snap = svc.get_lead_attribution()
    assert snap.utm_source is None
    assert snap.landing_page == "/properties"
    assert snap.last_page_before_submit == "/find-property"
    assert snap.last_events_summary == ()
    assert snap.as_dict()["last_events_summary"] == []


def test_pages_default_to_current_path() -> None:
    svc, _, _, _, _ = make_service(url="/contact")
    snap = svc.get_lead_attribution()

    assert snap.landing_page == "/contact"
    assert snap.last_page_before_submit == "/contact"
    assert snap.device_type == "desktop"


def test_last_viewed_properties_distinct_most_recent_first() -> None:
    svc, _, _, _, _ = make_service()
    for pid in ["a", "b", "a", "c", "d", "e", "f"]:
        svc.log_session_event("property_viewed", entity_id=pid)
    svc.log_session_event("search_performed", entity_id="ignored")
    svc.log_session_event("property_viewed")

    assert svc.get_last_viewed_properties() == ["f", "e", "d", "c", "a"]


def test_conversion_triggers() -> None:
    svc, _, _, _, _ = make_service()
    assert svc.get_conversion_triggers() == {"whatsapp": False, "phone": False}

    svc.log_session_event("whatsapp_click")
    assert svc.get_conversion_triggers() == {"whatsapp": True, "phone": False}


def test_referrer_domain_never_keeps_path_or_query() -> None:
    assert referrer_domain("https://facebook.com/ad/12345?user=john") == "facebook.com"
    assert referrer_domain("") is None
    assert referrer_domain(None) is None
    assert referrer_domain("not a url") is None


def test_unreadable_consent_keeps_events_in_memory_only(tmp_path) -> None:
    adapter = DuckDBAdapter(path=str(tmp_path / "site.duckdb"), clean_slate=True)
    adapter.open()
    storage = DuckDBStorage(adapter)
    storage.set_item("cookie_consent", json.dumps({"analytics": True, "marketing": True}))
    svc, env, tab, _, remote = make_service(consent_storage=storage)
    persist_utm_params(tab.session_storage, "https://site.test/properties?utm_source=google")
    adapter.close()

    svc.log_session_event("property_viewed", entity_id="p1")
    env.run()
    snap = svc.get_lead_attribution()

    assert remote.rows == []
    assert len(svc.buffer) == 1
    assert snap.utm_source is None
    assert snap.last_events_summary == ()
