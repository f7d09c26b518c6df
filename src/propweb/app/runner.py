from __future__ import annotations

from propweb.core.config import load_config
from propweb.features.bootstrap.service import JourneyResult, run_site


def run(config_path: str) -> JourneyResult:
    cfg = load_config(config_path)
    return run_site(cfg)
