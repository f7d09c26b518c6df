from __future__ import annotations

from propweb.core.clock import SiteClock
from propweb.core.ids import TokenSource, new_session_id
from propweb.features.storage.service import Storage

SESSION_ID_KEY = "analytics_session_id"


class SessionIdentity:
    """
    Lazily created per-tab session id. Backed by tab-scoped storage, so it
    survives navigation but not a new tab.
    """

    def __init__(self, *, storage: Storage, clock: SiteClock, rng: TokenSource) -> None:
        self._storage = storage
        self._clock = clock
        self._rng = rng

    def get_session_id(self) -> str:
        session_id = self._storage.get_item(SESSION_ID_KEY)
        if not session_id:
            session_id = new_session_id(self._clock.now_ms(), self._rng)
            self._storage.set_item(SESSION_ID_KEY, session_id)
        return session_id
