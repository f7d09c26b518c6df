from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from propweb.features.browser.types import ScriptTag


class PixelState(str, Enum):
    NOT_LOADED = "not_loaded"
    LOADED = "loaded"


@dataclass(frozen=True, slots=True)
class AnalyticsSetting:
    key: str
    value: str | None
    enabled: bool

    @property
    def usable(self) -> bool:
        return bool(self.enabled) and bool(self.value)


@dataclass(frozen=True, slots=True)
class VendorSpec:
    """
    How one analytics_settings key turns into injected scripts.

    scripts(value) -> the <script> elements, first one is the marker used to
    decide whether the vendor is loaded.
    install(window, value) -> puts the vendor's command object on the page.
    """

    key: str
    name: str
    scripts: Callable[[str], tuple[ScriptTag, ...]]
    install: Callable[[dict[str, Any], str], None]

    def marker_id(self, value: str) -> str:
        return self.scripts(value)[0].id
