from __future__ import annotations

import logging
from collections.abc import Generator
from typing import Any

import simpy

from propweb.core.logging import get_logger


class BackgroundTasks:
    """
    Fire-and-forget submission on the simpy loop.

    Each unit of work is a generator run as its own process. Failures are
    logged and counted, never propagated: an unhandled failed process would
    otherwise abort env.run() for the whole tab.
    """

    def __init__(self, env: simpy.Environment, *, logger: logging.Logger | None = None) -> None:
        self._env = env
        self._logger = logger or get_logger(__name__)
        self.submitted = 0
        self.failed = 0

    def submit(self, work: Generator[Any, Any, Any], *, name: str) -> simpy.Process:
        self.submitted += 1
        return self._env.process(self._guarded(work, name))

    def _guarded(self, work: Generator[Any, Any, Any], name: str):
        try:
            result = yield self._env.process(work)
        except Exception as exc:  # noqa: BLE001
            self.failed += 1
            self._logger.warning(
                "background_task_failed",
                extra={"task": name, "error": f"{type(exc).__name__}: {exc}"},
            )
            return None
        return result
