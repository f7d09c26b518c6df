from __future__ import annotations

from collections.abc import Callable

Handler = Callable[[], None]


class SignalBus:
    """
    Process-wide notifications (the window event target of the client).
    Handlers run synchronously, in subscription order.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> Callable[[], None]:
        self._handlers.setdefault(name, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(name, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, name: str) -> int:
        handlers = list(self._handlers.get(name, []))
        for handler in handlers:
            handler()
        return len(handlers)
