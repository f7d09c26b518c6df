from pathlib import Path

import pytest

from propweb.core.config import DEFAULT_EXCLUDED_ROUTES, load_config, parse_config


def _base(tmp_path):
    return {
        "run": {"seed": 3, "start_date": "2026-01-01"},
        "storage": {"duckdb_path": str(tmp_path / "site.duckdb")},
        "logging": {"level": "debug"},
    }


def test_defaults_fill_optional_sections(tmp_path):
    cfg = parse_config(_base(tmp_path))

    assert cfg.run.base_url == "https://example.com"
    assert cfg.storage.clean_slate is True
    assert cfg.logging.level == "DEBUG"
    assert cfg.remote.latency_ms == 0.0
    assert cfg.analytics.excluded_routes == DEFAULT_EXCLUDED_ROUTES
    assert cfg.analytics.scroll_milestones == (25, 50, 75, 100)
    assert cfg.listings.root_margin == "200px"
    assert cfg.pixels == ()


@pytest.mark.parametrize("missing", ["run", "storage", "logging"])
def test_missing_required_section_raises(tmp_path, missing):
    data = _base(tmp_path)
    del data[missing]
    with pytest.raises(ValueError):
        parse_config(data)


def test_pixels_accept_mapping_and_shorthand(tmp_path):
    data = _base(tmp_path)
    data["pixels"] = {
        "ga4_measurement_id": {"value": "G-1", "enabled": False},
        "meta_pixel_id": 123,
    }
    cfg = parse_config(data)

    by_key = {p.key: p for p in cfg.pixels}
    assert by_key["ga4_measurement_id"].enabled is False
    assert by_key["meta_pixel_id"].value == "123"
    assert by_key["meta_pixel_id"].enabled is True


def test_invalid_values_raise(tmp_path):
    data = _base(tmp_path)
    data["remote"] = {"latency_ms": -1}
    with pytest.raises(ValueError):
        parse_config(data)

    data = _base(tmp_path)
    data["analytics"] = {"scroll_milestones": [0, 50]}
    with pytest.raises(ValueError):
        parse_config(data)

    data = _base(tmp_path)
    data["pixels"] = ["ga4_measurement_id"]
    with pytest.raises(TypeError):
        parse_config(data)


def test_load_config_reads_repo_example():
    cfg = load_config(Path(__file__).resolve().parents[2] / "config" / "site.yaml")
    assert cfg.run.seed == 42
    assert {p.key for p in cfg.pixels} >= {"ga4_measurement_id", "meta_pixel_id"}
