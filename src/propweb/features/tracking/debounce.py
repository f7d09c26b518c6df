from __future__ import annotations

from collections.abc import Callable
from typing import Any

import simpy


class Debouncer:
    """
    Trailing-edge debounce on the simpy clock: calls inside `delay_s` of each
    other collapse into one call of `fn` with the last arguments.
    """

    def __init__(self, env: simpy.Environment, fn: Callable[..., Any], delay_s: float) -> None:
        if delay_s < 0:
            raise ValueError("delay_s must be >= 0")
        self._env = env
        self._fn = fn
        self.delay_s = float(delay_s)
        self._generation = 0

    def __call__(self, *args: Any, **kwargs: Any) -> simpy.Process:
        self._generation += 1
        return self._env.process(self._wait(self._generation, args, kwargs))

    def _wait(self, generation: int, args: tuple[Any, ...], kwargs: dict[str, Any]):
        yield self._env.timeout(self.delay_s)
        if generation != self._generation:
            return None
        return self._fn(*args, **kwargs)
