from __future__ import annotations

from collections import deque

from .types import SessionEvent

DEFAULT_CAPACITY = 10


class AttributionBuffer:
    """
    Last-N session events, oldest first. Owned by one tab's site context and
    handed to whoever logs events.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self.capacity = int(capacity)
        self._events: deque[SessionEvent] = deque(maxlen=self.capacity)

    def append(self, event: SessionEvent) -> None:
        self._events.append(event)

    def events(self) -> list[SessionEvent]:
        return list(self._events)

    def last(self, n: int) -> list[SessionEvent]:
        if n <= 0:
            return []
        return list(self._events)[-n:]

    def __len__(self) -> int:
        return len(self._events)
