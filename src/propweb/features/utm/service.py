from __future__ import annotations

import json
from urllib.parse import parse_qsl, urlsplit

from propweb.features.storage.service import Storage

UTM_STORAGE_KEY = "analytics_utm_params"
UTM_KEYS: tuple[str, ...] = (
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
)


def extract_utm_params(url: str) -> dict[str, str]:
    """Campaign params present (and non-empty) in the URL's query string."""
    query = urlsplit(url).query
    first: dict[str, str] = {}
    for k, v in parse_qsl(query, keep_blank_values=True):
        first.setdefault(k, v)
    return {k: first[k] for k in UTM_KEYS if first.get(k)}


def persist_utm_params(storage: Storage, url: str) -> bool:
    """
    First-touch attribution: writes only when nothing is stored yet for this
    tab and the URL carries at least one campaign param. Returns True on write.
    """
    if storage.get_item(UTM_STORAGE_KEY):
        return False
    params = extract_utm_params(url)
    if not params:
        return False
    storage.set_item(UTM_STORAGE_KEY, json.dumps(params, sort_keys=True))
    return True


def get_persisted_utm_params(storage: Storage) -> dict[str, str]:
    raw = storage.get_item(UTM_STORAGE_KEY)
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        return {}
    if not isinstance(parsed, dict):
        return {}
    return {k: str(parsed[k]) for k in UTM_KEYS if parsed.get(k)}
