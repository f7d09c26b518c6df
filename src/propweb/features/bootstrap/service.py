from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import simpy

from propweb.core.clock import SiteClock
from propweb.core.config import SiteConfig
from propweb.core.logging import get_logger
from propweb.core.rng import RNG
from propweb.core.signals import SignalBus
from propweb.core.tasks import BackgroundTasks
from propweb.features.analytics_provider.service import AnalyticsProvider
from propweb.features.attribution import types as session_events
from propweb.features.attribution.buffer import AttributionBuffer
from propweb.features.attribution.service import AttributionService
from propweb.features.browser.types import BrowserTab
from propweb.features.compare.service import CompareStore, CompareSync
from propweb.features.consent.service import ConsentStore
from propweb.features.filters.service import FilterState
from propweb.features.infinite_scroll.service import InfiniteScroll
from propweb.features.listings.service import ListingsService
from propweb.features.pixels.service import PixelLoader
from propweb.features.pixels.types import PixelState
from propweb.features.remote.duckdb_adapter import DuckDBAdapter
from propweb.features.remote.schema import (
    ANALYTICS_EVENTS_TABLE,
    PROPERTIES_TABLE,
    SESSION_EVENTS_TABLE,
)
from propweb.features.remote.service import RemoteClient
from propweb.features.session.service import SessionIdentity
from propweb.features.storage.service import DuckDBStorage
from propweb.features.tracking.service import EventTracker, SiteAnalytics


@dataclass
class SiteContext:
    """Everything one browser tab of the site needs, wired together."""

    cfg: SiteConfig
    env: simpy.Environment
    logger: logging.Logger
    adapter: DuckDBAdapter
    clock: SiteClock
    bus: SignalBus
    tasks: BackgroundTasks
    tab: BrowserTab
    remote: RemoteClient
    consent: ConsentStore
    session: SessionIdentity
    tracker: EventTracker
    analytics: SiteAnalytics
    attribution: AttributionService
    pixels: PixelLoader
    provider: AnalyticsProvider
    compare: CompareStore
    compare_sync: CompareSync
    listings: ListingsService
    filters: FilterState
    scroll: InfiniteScroll | None = None


@dataclass(frozen=True)
class JourneyResult:
    session_id: str
    steps_run: int
    attribution: dict[str, Any]
    last_viewed: tuple[str, ...]
    compare_ids: tuple[str, ...]
    pixels_loaded: tuple[str, ...]
    analytics_events: int
    session_events: int
    failed_tasks: int
    listings_loaded: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "steps_run": self.steps_run,
            "attribution": self.attribution,
            "last_viewed": list(self.last_viewed),
            "compare_ids": list(self.compare_ids),
            "pixels_loaded": list(self.pixels_loaded),
            "analytics_events": self.analytics_events,
            "session_events": self.session_events,
            "failed_tasks": self.failed_tasks,
            "listings_loaded": self.listings_loaded,
        }


def _start_dt(value: str) -> datetime:
    dt = datetime.fromisoformat(value)
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)


def seed_remote(adapter: DuckDBAdapter, cfg: SiteConfig) -> None:
    """Backend rows the client reads: vendor settings, route exclusions, listings."""
    raw: dict[str, Any] = cfg.raw if isinstance(cfg.raw, dict) else {}

    for p in cfg.pixels:
        adapter.upsert_setting(p.key, p.value, p.enabled)

    remote_raw = raw.get("remote") or {}
    for pattern in remote_raw.get("route_exclusions") or []:
        adapter.add_route_exclusion(str(pattern))

    listings_raw = raw.get("listings") or {}
    for item in listings_raw.get("properties") or []:
        if not isinstance(item, dict):
            raise TypeError("listings.properties entries must be mappings")
        row = dict(item)
        if "created_at" in row and isinstance(row["created_at"], str):
            row["created_at"] = datetime.fromisoformat(row["created_at"])
        adapter.insert(PROPERTIES_TABLE, row)


def bootstrap_site(cfg: SiteConfig) -> SiteContext:
    raw: dict[str, Any] = cfg.raw if isinstance(cfg.raw, dict) else {}
    journey_raw = raw.get("journey") or {}
    landing = journey_raw.get("landing") or {}

    logger = get_logger("propweb", cfg.logging.level)
    env = simpy.Environment()
    clock = SiteClock(env, _start_dt(cfg.run.start_date))
    rng = RNG(cfg.run.seed)
    bus = SignalBus()
    tasks = BackgroundTasks(env, logger=logger)

    # ----- backend + durable storage -----
    adapter = DuckDBAdapter(path=cfg.storage.duckdb_path, clean_slate=cfg.storage.clean_slate)
    adapter.open()
    seed_remote(adapter, cfg)
    remote = RemoteClient(env=env, adapter=adapter, latency_s=cfg.remote.latency_ms / 1000.0)
    local_storage = DuckDBStorage(adapter)

    # ----- tab -----
    tab = BrowserTab(
        url=str(landing.get("url", "/")),
        base_url=cfg.run.base_url,
        title=str(landing.get("title", "")),
        referrer=str(landing.get("referrer", "")),
        lang=str(landing.get("lang", "")),
        navigator_language=str(landing.get("navigator_language", "en-US")),
        inner_width=int(landing.get("inner_width", 1280)),
    )

    # ----- analytics pipeline -----
    consent = ConsentStore(storage=local_storage, clock=clock, bus=bus)
    session = SessionIdentity(storage=tab.session_storage, clock=clock, rng=rng)
    tracker = EventTracker(
        env=env,
        tab=tab,
        clock=clock,
        consent=consent,
        session=session,
        remote=remote,
        tasks=tasks,
        debounce_s=cfg.analytics.debounce_ms / 1000.0,
    )
    analytics = SiteAnalytics(tracker)
    attribution = AttributionService(
        tab=tab,
        clock=clock,
        consent=consent,
        session=session,
        remote=remote,
        tasks=tasks,
        buffer=AttributionBuffer(),
    )
    pixels = PixelLoader(tab=tab, consent=consent, bus=bus, remote=remote, tasks=tasks)
    provider = AnalyticsProvider(
        tab=tab,
        analytics=analytics,
        attribution=attribution,
        remote=remote,
        tasks=tasks,
        pixels=pixels,
        excluded_routes=cfg.analytics.excluded_routes,
        scroll_milestones=cfg.analytics.scroll_milestones,
    )

    # ----- listing pages -----
    compare = CompareStore(storage=local_storage)

    return SiteContext(
        cfg=cfg,
        env=env,
        logger=logger,
        adapter=adapter,
        clock=clock,
        bus=bus,
        tasks=tasks,
        tab=tab,
        remote=remote,
        consent=consent,
        session=session,
        tracker=tracker,
        analytics=analytics,
        attribution=attribution,
        pixels=pixels,
        provider=provider,
        compare=compare,
        compare_sync=CompareSync(store=compare, remote=remote),
        listings=ListingsService(remote),
        filters=FilterState(tab),
    )


def _step_listings(ctx: SiteContext, step: Mapping[str, Any]) -> None:
    """(Re)mount the listing grid for the current filters and pull `pages` pages."""
    if ctx.scroll is not None:
        ctx.scroll.unmount()
    ctx.scroll = InfiniteScroll(
        ctx.env,
        ctx.listings.fetcher(ctx.filters.filters),
        root_margin=ctx.cfg.listings.root_margin,
    )
    ctx.scroll.mount()
    ctx.env.run()
    for _ in range(max(int(step.get("pages", 1)) - 1, 0)):
        if ctx.scroll.load_more() is None:
            break
        ctx.env.run()


def _apply_step(ctx: SiteContext, step: Mapping[str, Any]) -> None:
    action = str(step.get("action", ""))

    if action == "navigate":
        ctx.provider.navigate(str(step["url"]), title=step.get("title"))
    elif action == "consent":
        choice = str(step.get("choice", "accept"))
        if choice == "accept":
            ctx.consent.accept_all()
        elif choice == "decline":
            ctx.consent.decline_all()
        else:
            ctx.consent.set_consent(
                analytics=step.get("analytics"), marketing=step.get("marketing")
            )
    elif action == "scroll":
        ctx.provider.on_scroll(
            float(step["y"]), float(step["height"]), float(step.get("viewport", 1000))
        )
    elif action == "filter":
        patch = dict(step.get("set") or {})
        ctx.filters.set_filters(patch)
        ctx.analytics.track_filter_apply(ctx.filters.filters.active_items())
        ctx.attribution.log_session_event(
            session_events.FILTER_APPLIED, meta={"filter_type": ",".join(sorted(patch)), **patch}
        )
    elif action == "search":
        query = str(step.get("query", ""))
        ctx.filters.set_filter("search", query)
        ctx.analytics.track_search(query)
        ctx.attribution.log_session_event(session_events.SEARCH_PERFORMED)
    elif action == "load_listings":
        _step_listings(ctx, step)
    elif action == "view_property":
        property_id = str(step["id"])
        ctx.analytics.track_property_view(property_id, step.get("title"), step.get("price"))
        ctx.attribution.log_session_event(session_events.PROPERTY_VIEWED, entity_id=property_id)
    elif action == "compare_add":
        property_id = str(step["id"])
        outcome = ctx.compare.add(property_id)
        if outcome == "limit_reached" and step.get("replace_oldest", False):
            ctx.compare.replace_oldest(property_id)
        if ctx.compare.is_selected(property_id):
            ctx.analytics.track_compare_add(property_id)
            ctx.attribution.log_session_event(session_events.COMPARE_USED, entity_id=property_id)
    elif action == "compare_remove":
        property_id = str(step["id"])
        ctx.compare.remove(property_id)
        ctx.analytics.track_compare_remove(property_id)
    elif action == "compare_sync":
        ctx.env.process(ctx.compare_sync.sync())
    elif action == "whatsapp_click":
        ctx.analytics.track_whatsapp_click(step.get("destination"), step.get("context"))
        ctx.attribution.log_session_event(session_events.WHATSAPP_CLICK)
    elif action == "phone_click":
        ctx.analytics.track_phone_click(step.get("destination"), step.get("context"))
        ctx.attribution.log_session_event(session_events.PHONE_CLICK)
    elif action == "session_event":
        ctx.attribution.log_session_event(
            str(step["name"]), entity_id=step.get("entity_id"), meta=step.get("meta")
        )
    elif action == "track":
        ctx.tracker.track(str(step["name"]), step.get("payload") or {})
    elif action == "wait":
        ctx.env.run(until=ctx.env.now + float(step.get("seconds", 1.0)))
        return
    elif action == "submit_lead":
        ctx.analytics.track_lead_submit(
            str(step.get("source", "contact_form")), step.get("property_id"), step.get("form_type")
        )
    else:
        raise ValueError(f"Unknown journey action: {action!r}")

    ctx.env.run()


def run_journey(ctx: SiteContext, steps: Sequence[Mapping[str, Any]]) -> JourneyResult:
    """
    Mounts the site on the landing URL, replays the steps in order and
    returns the lead attribution as it stands after the last one.
    """
    ctx.provider.mount()
    ctx.env.run()

    n = 0
    for step in steps:
        if not isinstance(step, Mapping):
            raise TypeError("journey steps must be mappings")
        _apply_step(ctx, step)
        n += 1

    ctx.env.run()
    snapshot = ctx.attribution.get_lead_attribution()
    loaded = tuple(s.key for s in ctx.pixels.settings if ctx.pixels.state(s.key) is PixelState.LOADED)

    ctx.logger.info(
        "journey_finished",
        extra={"feature": "bootstrap", "session_id": snapshot.session_id},
    )
    return JourneyResult(
        session_id=snapshot.session_id,
        steps_run=n,
        attribution=snapshot.as_dict(),
        last_viewed=tuple(ctx.attribution.get_last_viewed_properties()),
        compare_ids=ctx.compare.ids,
        pixels_loaded=loaded,
        analytics_events=ctx.adapter.count(ANALYTICS_EVENTS_TABLE),
        session_events=ctx.adapter.count(SESSION_EVENTS_TABLE),
        failed_tasks=ctx.tasks.failed,
        listings_loaded=0 if ctx.scroll is None else len(ctx.scroll.data),
    )


def run_site(cfg: SiteConfig) -> JourneyResult:
    ctx = bootstrap_site(cfg)
    raw: dict[str, Any] = cfg.raw if isinstance(cfg.raw, dict) else {}
    steps = (raw.get("journey") or {}).get("steps") or []
    try:
        return run_journey(ctx, steps)
    finally:
        ctx.adapter.close()
