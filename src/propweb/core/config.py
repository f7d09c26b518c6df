from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_EXCLUDED_ROUTES: tuple[str, ...] = (
    "/admin/*",
    "/client-portal/*",
    "/agent/*",
    "/auth",
    "/reset-password",
)


@dataclass(frozen=True)
class RunConfig:
    seed: int
    start_date: str
    base_url: str = "https://example.com"


@dataclass(frozen=True)
class StorageConfig:
    duckdb_path: str
    clean_slate: bool = True


@dataclass(frozen=True)
class RemoteConfig:
    latency_ms: float = 0.0


@dataclass(frozen=True)
class AnalyticsConfig:
    excluded_routes: tuple[str, ...] = DEFAULT_EXCLUDED_ROUTES
    debounce_ms: float = 300.0
    scroll_milestones: tuple[int, ...] = (25, 50, 75, 100)


@dataclass(frozen=True)
class PixelSettingConfig:
    key: str
    value: str | None
    enabled: bool = True


@dataclass(frozen=True)
class ListingsConfig:
    root_margin: str = "200px"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class SiteConfig:
    run: RunConfig
    storage: StorageConfig
    logging: LoggingConfig
    remote: RemoteConfig = RemoteConfig()
    analytics: AnalyticsConfig = AnalyticsConfig()
    listings: ListingsConfig = ListingsConfig()
    pixels: tuple[PixelSettingConfig, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict)  # original parsed YAML


def load_yaml(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    data = yaml.safe_load(p.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Config YAML must parse to a dict at the top level.")
    return data


def _parse_pixels(pixels_raw: Any) -> tuple[PixelSettingConfig, ...]:
    """
    pixels:
      ga4_measurement_id: {value: "G-XXXX", enabled: true}
      meta_pixel_id: "1234567890"      # shorthand, enabled
    """
    if pixels_raw is None:
        return ()
    if not isinstance(pixels_raw, dict):
        raise TypeError("pixels must be a mapping/dict of setting key -> value")

    out: list[PixelSettingConfig] = []
    for key, item in pixels_raw.items():
        if not isinstance(key, str) or not key:
            raise ValueError("pixels keys must be non-empty strings")
        if isinstance(item, dict):
            value = item.get("value")
            out.append(
                PixelSettingConfig(
                    key=key,
                    value=None if value is None else str(value),
                    enabled=bool(item.get("enabled", True)),
                )
            )
        else:
            out.append(PixelSettingConfig(key=key, value=None if item is None else str(item)))
    return tuple(out)


def parse_config(data: dict[str, Any]) -> SiteConfig:
    for key in ["run", "storage", "logging"]:
        if key not in data:
            raise ValueError(f"Missing required top-level config section: '{key}'")

    run = data.get("run") or {}
    storage = data.get("storage") or {}
    logging_cfg = data.get("logging") or {}
    remote = data.get("remote") or {}
    analytics = data.get("analytics") or {}
    listings = data.get("listings") or {}

    run_cfg = RunConfig(
        seed=int(run["seed"]),
        start_date=str(run["start_date"]),
        base_url=str(run.get("base_url", RunConfig.base_url)).rstrip("/"),
    )

    storage_cfg = StorageConfig(
        duckdb_path=str(storage["duckdb_path"]),
        clean_slate=bool(storage.get("clean_slate", True)),
    )

    latency_ms = float(remote.get("latency_ms", 0.0))
    if latency_ms < 0:
        raise ValueError("remote.latency_ms must be >= 0")

    excluded = analytics.get("excluded_routes")
    milestones = analytics.get("scroll_milestones")
    analytics_cfg = AnalyticsConfig(
        excluded_routes=DEFAULT_EXCLUDED_ROUTES
        if excluded is None
        else tuple(str(p) for p in excluded),
        debounce_ms=float(analytics.get("debounce_ms", 300.0)),
        scroll_milestones=(25, 50, 75, 100)
        if milestones is None
        else tuple(sorted(int(m) for m in milestones)),
    )
    if any(not (0 < m <= 100) for m in analytics_cfg.scroll_milestones):
        raise ValueError("analytics.scroll_milestones must be within (0, 100]")

    return SiteConfig(
        run=run_cfg,
        storage=storage_cfg,
        logging=LoggingConfig(level=str(logging_cfg.get("level", "INFO")).upper()),
        remote=RemoteConfig(latency_ms=latency_ms),
        analytics=analytics_cfg,
        listings=ListingsConfig(root_margin=str(listings.get("root_margin", "200px"))),
        pixels=_parse_pixels(data.get("pixels")),
        raw=data,
    )


def load_config(path: str | Path) -> SiteConfig:
    data = load_yaml(path)
    return parse_config(data)
