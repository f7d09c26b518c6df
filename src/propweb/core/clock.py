from __future__ import annotations

from datetime import UTC, datetime, timedelta

import simpy


class SiteClock:
    """
    Wall clock for the client runtime.
    env.now is seconds since the tab was opened at start_dt.
    """

    def __init__(self, env: simpy.Environment, start_dt: datetime) -> None:
        self.env = env
        if start_dt.tzinfo is None:
            start_dt = start_dt.replace(tzinfo=UTC)
        else:
            start_dt = start_dt.astimezone(UTC)
        self.start_dt = start_dt

    def now_utc(self) -> datetime:
        return self.start_dt + timedelta(seconds=float(self.env.now))

    def now_ms(self) -> int:
        return int(self.now_utc().timestamp() * 1000)
