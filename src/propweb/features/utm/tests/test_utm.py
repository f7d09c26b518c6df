from __future__ import annotations

from propweb.features.storage.service import MemoryStorage
from propweb.features.utm.service import (
    UTM_STORAGE_KEY,
    extract_utm_params,
    get_persisted_utm_params,
    persist_utm_params,
)


def test_extract_only_known_non_empty_params() -> None:
    params = extract_utm_params(
        "https://site.test/properties?utm_source=google&utm_medium=&utm_campaign=summer&gclid=x"
    )
    assert params == {"utm_source": "google", "utm_campaign": "summer"}


def test_first_touch_is_never_overwritten() -> None:
    storage = MemoryStorage()

    assert persist_utm_params(storage, "/?utm_source=google&utm_medium=cpc") is True
    assert persist_utm_params(storage, "/?utm_source=facebook") is False

    assert get_persisted_utm_params(storage) == {"utm_source": "google", "utm_medium": "cpc"}


def test_url_without_params_writes_nothing() -> None:
    storage = MemoryStorage()

    assert persist_utm_params(storage, "/properties") is False
    assert storage.get_item(UTM_STORAGE_KEY) is None

    # a later landing with params still counts as first touch
    assert persist_utm_params(storage, "/?utm_source=newsletter") is True
    assert get_persisted_utm_params(storage) == {"utm_source": "newsletter"}


def test_corrupt_storage_reads_empty() -> None:
    storage = MemoryStorage()
    storage.set_item(UTM_STORAGE_KEY, "{not json")

    assert get_persisted_utm_params(storage) == {}
