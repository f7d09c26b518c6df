from __future__ import annotations

from collections.abc import Callable, Sequence

DEFAULT_MILESTONES: tuple[int, ...] = (25, 50, 75, 100)


def scroll_percent(scroll_y: float, scroll_height: float, viewport_height: float) -> int | None:
    scrollable = float(scroll_height) - float(viewport_height)
    if scrollable <= 0:
        return None
    pct = round(float(scroll_y) / scrollable * 100)
    return max(0, min(100, pct))


class ScrollDepthTracker:
    """
    Reports scroll-depth milestones for one page visit.

    A scroll event reports the highest milestone newly crossed; every
    milestone at or below it is then spent for this visit. `reset()` starts a
    new visit.
    """

    def __init__(
        self,
        on_milestone: Callable[[int], object],
        milestones: Sequence[int] = DEFAULT_MILESTONES,
    ) -> None:
        self._on_milestone = on_milestone
        self.milestones = tuple(sorted(set(int(m) for m in milestones)))
        self._max_reported = 0

    @property
    def max_reported(self) -> int:
        return self._max_reported

    def reset(self) -> None:
        self._max_reported = 0

    def on_scroll(self, scroll_y: float, scroll_height: float, viewport_height: float) -> int | None:
        pct = scroll_percent(scroll_y, scroll_height, viewport_height)
        if pct is None:
            return None

        crossed = [m for m in self.milestones if self._max_reported < m <= pct]
        if not crossed:
            return None

        milestone = crossed[-1]
        self._max_reported = milestone
        self._on_milestone(milestone)
        return milestone
