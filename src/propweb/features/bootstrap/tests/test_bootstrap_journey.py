import re

import duckdb

from propweb.core.config import parse_config
from propweb.features.bootstrap.service import bootstrap_site, run_journey, run_site


def _cfg(tmp_path, *, steps, landing=None, pixels=None):
    return parse_config(
        {
            "run": {"seed": 7, "start_date": "2026-01-01T08:00:00", "base_url": "https://site.test"},
            "storage": {"duckdb_path": str(tmp_path / "site.duckdb"), "clean_slate": True},
            "logging": {"level": "WARNING"},
            "remote": {"latency_ms": 50, "route_exclusions": ["/internal/*"]},
            "pixels": pixels or {"ga4_measurement_id": "G-TEST", "meta_pixel_id": {"value": "", "enabled": True}},
            "listings": {
                "properties": [
                    {"id": f"p{i}", "title": f"Flat {i}", "city": "Cairo", "price": 1_000_000 * i,
                     "bedrooms": i, "status": "published", "created_at": f"2026-01-0{i}T00:00:00"}
                    for i in range(1, 6)
                ]
            },
            "journey": {
                "landing": landing
                or {"url": "/properties?utm_source=google", "referrer": "https://www.google.com/x?q=1"},
                "steps": steps,
            },
        }
    )


def test_denied_consent_journey_hides_campaign_fields(tmp_path):
    cfg = _cfg(
        tmp_path,
        steps=[
            {"action": "view_property", "id": "p1"},
            {"action": "navigate", "url": "/find-property"},
            {"action": "submit_lead", "source": "property_finder"},
        ],
    )

    res = run_site(cfg)

    snap = res.attribution
    assert snap["utm_source"] is None
    assert snap["referrer_domain"] is None
    assert snap["landing_page"] == "/properties"
    assert snap["last_page_before_submit"] == "/find-property"
    assert snap["last_events_summary"] == []
    assert res.pixels_loaded == ()
    # first-party events still written: 2 page views, property view, lead submit
    assert res.analytics_events == 4
    assert res.session_events == 0
    assert res.failed_tasks == 0


def test_consented_journey_populates_attribution_and_pixels(tmp_path):
    cfg = _cfg(
        tmp_path,
        steps=[
            {"action": "consent", "choice": "accept"},
            {"action": "filter", "set": {"bedrooms": 2}},
            {"action": "load_listings", "pages": 1},
            {"action": "view_property", "id": "p2"},
            {"action": "view_property", "id": "p3"},
            {"action": "compare_add", "id": "p2"},
            {"action": "compare_add", "id": "p3"},
            {"action": "navigate", "url": "/internal/tools"},
            {"action": "navigate", "url": "/contact"},
            {"action": "submit_lead", "source": "contact_form"},
        ],
    )

    res = run_site(cfg)

    snap = res.attribution
    assert snap["utm_source"] == "google"
    assert snap["referrer_domain"] == "www.google.com"
    assert snap["last_page_before_submit"] == "/contact"
    assert len(snap["last_events_summary"]) == 5
    assert res.last_viewed == ("p3", "p2")
    assert res.compare_ids == ("p2", "p3")
    assert res.pixels_loaded == ("ga4_measurement_id",)
    assert res.listings_loaded == 4

    con = duckdb.connect(str(tmp_path / "site.duckdb"), read_only=True)
    pages = con.execute(
        "SELECT page_url FROM analytics_events WHERE event_name = 'page_view' ORDER BY created_at"
    ).fetchall()
    con.close()
    urls = [p[0] for p in pages]
    assert not any("/internal/" in u for u in urls)
    assert urls[-1] == "https://site.test/contact"


def test_bootstrap_builds_tab_from_landing(tmp_path):
    cfg = _cfg(
        tmp_path,
        steps=[],
        landing={"url": "/", "inner_width": 800, "navigator_language": "ar-EG"},
    )
    ctx = bootstrap_site(cfg)
    try:
        res = run_journey(ctx, [])
    finally:
        ctx.adapter.close()

    assert res.attribution["device_type"] == "tablet"
    assert res.attribution["browser_language"] == "ar"
    assert re.fullmatch(r"\d+-[0-9a-z]{9}", res.session_id)
    assert int(res.session_id.split("-")[0]) >= 1767254400000
