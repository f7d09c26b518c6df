from __future__ import annotations

import json
import logging

from propweb.core.clock import SiteClock
from propweb.core.logging import get_logger
from propweb.core.signals import SignalBus
from propweb.features.storage.service import Storage, StorageError

from .types import NO_CONSENT, ConsentState

CONSENT_STORAGE_KEY = "cookie_consent"
CONSENT_GRANTED = "consent_granted"


def parse_consent(raw: str | None) -> ConsentState:
    """
    Accepts the JSON record and the legacy plain form ("true" grants both
    analytics and marketing). Anything else reads as no consent.
    """
    if raw is None:
        return NO_CONSENT
    try:
        parsed = json.loads(raw)
    except ValueError:
        return NO_CONSENT

    if isinstance(parsed, bool):
        return ConsentState(analytics=parsed, marketing=parsed)
    if not isinstance(parsed, dict):
        return NO_CONSENT

    ts = parsed.get("timestamp", 0)
    return ConsentState(
        analytics=parsed.get("analytics") is True,
        marketing=parsed.get("marketing") is True,
        functional=True,
        timestamp=int(ts) if isinstance(ts, int | float) else 0,
    )


class ConsentStore:
    def __init__(
        self,
        *,
        storage: Storage,
        clock: SiteClock,
        bus: SignalBus,
        logger: logging.Logger | None = None,
    ) -> None:
        self._storage = storage
        self._clock = clock
        self._bus = bus
        self._logger = logger or get_logger(__name__)

    def get_consent(self) -> ConsentState:
        try:
            raw = self._storage.get_item(CONSENT_STORAGE_KEY)
        except StorageError as e:
            self._logger.warning(
                "consent_read_failed", extra={"feature": "consent", "error": str(e)}
            )
            return NO_CONSENT
        return parse_consent(raw)

    def is_tracking_allowed(self) -> bool:
        return self.get_consent().analytics

    def set_consent(
        self, *, analytics: bool | None = None, marketing: bool | None = None
    ) -> ConsentState:
        current = self.get_consent()
        state = ConsentState(
            analytics=current.analytics if analytics is None else bool(analytics),
            marketing=current.marketing if marketing is None else bool(marketing),
            functional=True,
            timestamp=self._clock.now_ms(),
        )
        self._storage.set_item(CONSENT_STORAGE_KEY, json.dumps(state.as_dict()))
        self._logger.info(
            "consent_updated",
            extra={"feature": "consent", "event_name": "granted" if state.analytics else "denied"},
        )

        if state.analytics:
            self._bus.publish(CONSENT_GRANTED)
        return state

    def accept_all(self) -> ConsentState:
        return self.set_consent(analytics=True, marketing=True)

    def decline_all(self) -> ConsentState:
        return self.set_consent(analytics=False, marketing=False)
