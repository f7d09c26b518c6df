from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

import simpy

from propweb.core.logging import get_logger
from propweb.core.signals import SignalBus
from propweb.core.tasks import BackgroundTasks
from propweb.features.browser.types import BrowserTab
from propweb.features.consent.service import CONSENT_GRANTED, ConsentStore
from propweb.features.remote.schema import ANALYTICS_SETTINGS_TABLE
from propweb.features.remote.service import RemoteTables

from .types import AnalyticsSetting, PixelState, VendorSpec
from .vendors import VENDORS


class PixelLoader:
    """
    Injects third-party tracking scripts once analytics consent exists.

    Per vendor the state only moves NOT_LOADED -> LOADED. Injection checks for
    the vendor's script id first, so re-evaluating is always safe. Revoking
    consent later in the session does not unload anything.
    """

    def __init__(
        self,
        *,
        tab: BrowserTab,
        consent: ConsentStore,
        bus: SignalBus,
        remote: RemoteTables,
        tasks: BackgroundTasks,
        vendors: dict[str, VendorSpec] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._tab = tab
        self._consent = consent
        self._bus = bus
        self._remote = remote
        self._tasks = tasks
        self._vendors = VENDORS if vendors is None else vendors
        self._logger = logger or get_logger(__name__)

        self.settings: list[AnalyticsSetting] = []
        self._unsubscribe: Callable[[], None] | None = None

    def start(self) -> simpy.Process:
        if self._unsubscribe is None:
            self._unsubscribe = self._bus.subscribe(CONSENT_GRANTED, self.evaluate)
        return self._tasks.submit(self._fetch_settings(), name="pixels:settings")

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _fetch_settings(self):
        rows = yield from self._remote.select(ANALYTICS_SETTINGS_TABLE, ["key", "value", "enabled"])
        self.set_settings(
            AnalyticsSetting(
                key=str(r["key"]),
                value=None if r.get("value") is None else str(r["value"]),
                enabled=bool(r.get("enabled")),
            )
            for r in rows
        )
        return len(self.settings)

    def set_settings(self, settings: Iterable[AnalyticsSetting]) -> None:
        self.settings = list(settings)
        self.evaluate()

    def state(self, key: str) -> PixelState:
        spec = self._vendors.get(key)
        if spec is None:
            return PixelState.NOT_LOADED
        for s in self.settings:
            if s.key == key and s.value and self._tab.has_script(spec.marker_id(s.value)):
                return PixelState.LOADED
        return PixelState.NOT_LOADED

    def evaluate(self) -> list[str]:
        """Loads every eligible vendor; returns the keys newly loaded."""
        if not self._consent.is_tracking_allowed():
            return []

        loaded: list[str] = []
        for setting in self.settings:
            if not setting.usable:
                continue
            spec = self._vendors.get(setting.key)
            if spec is None:
                continue
            if self._load(spec, str(setting.value)):
                loaded.append(setting.key)
        return loaded

    def _load(self, spec: VendorSpec, value: str) -> bool:
        inserted = False
        for tag in spec.scripts(value):
            inserted = self._tab.append_script(tag) or inserted
        if not inserted:
            return False

        try:
            spec.install(self._tab.globals, value)
        except Exception as e:  # noqa: BLE001
            self._logger.warning(
                "pixel_install_failed",
                extra={"feature": "pixels", "vendor": spec.name, "error": str(e)},
            )
        else:
            self._logger.info("pixel_loaded", extra={"feature": "pixels", "vendor": spec.name})
        return True
