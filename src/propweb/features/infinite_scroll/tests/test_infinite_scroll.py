from __future__ import annotations

import pytest
import simpy

from propweb.features.infinite_scroll.service import InfiniteScroll, parse_root_margin
from propweb.features.infinite_scroll.types import PageResult


class PagedSource:
    """Three pages of two items; per-page latency and failures are configurable."""

    def __init__(self, env: simpy.Environment, *, latency: dict[int, float] | None = None, pages: int = 3):
        self.env = env
        self.latency = latency or {}
        self.pages = pages
        self.fail_pages: set[int] = set()
        self.calls: list[int] = []

    def __call__(self, page: int):
        self.calls.append(page)
        delay = self.latency.get(page, 0.1)
        yield self.env.timeout(delay)
        if page in self.fail_pages:
            raise RuntimeError(f"page {page} failed")
        return PageResult(
            data=(f"p{page}a", f"p{page}b"),
            has_next_page=page < self.pages,
            total=self.pages * 2,
        )


def test_mount_loads_initial_page() -> None:
    env = simpy.Environment()
    scroll = InfiniteScroll(env, PagedSource(env))
    assert scroll.is_loading is True

    scroll.mount()
    env.run()

    assert scroll.data == ["p1a", "p1b"]
    assert scroll.page == 1
    assert scroll.total == 6
    assert scroll.has_next_page is True
    assert scroll.is_loading is False


def test_disabled_does_not_fetch_on_mount() -> None:
    env = simpy.Environment()
    source = PagedSource(env)
    scroll = InfiniteScroll(env, source, enabled=False)

    assert scroll.mount() is None
    assert scroll.on_intersection(True) is None
    env.run()
    assert source.calls == []


def test_pages_append_in_issuance_order() -> None:
    env = simpy.Environment()
    # page 2 is slow, page 3 fast
    source = PagedSource(env, latency={2: 5.0, 3: 0.1})
    scroll = InfiniteScroll(env, source)
    scroll.mount()
    env.run()

    assert scroll.load_more() is not None
    # in flight: a second trigger is ignored instead of racing page 3 ahead
    assert scroll.load_more() is None
    assert scroll.on_intersection(True) is None
    assert scroll.is_fetching_next_page is True
    env.run()

    scroll.observe(distance_px=150)
    env.run()

    assert source.calls == [1, 2, 3]
    assert scroll.data == ["p1a", "p1b", "p2a", "p2b", "p3a", "p3b"]
    assert scroll.has_next_page is False
    assert scroll.load_more() is None


def test_observe_respects_root_margin() -> None:
    env = simpy.Environment()
    scroll = InfiniteScroll(env, PagedSource(env), root_margin="200px")
    scroll.mount()
    env.run()

    assert scroll.observe(distance_px=500) is None
    assert scroll.observe(distance_px=200) is not None


def test_reset_discards_in_flight_result() -> None:
    env = simpy.Environment()
    source = PagedSource(env, latency={2: 5.0, 1: 0.1})
    scroll = InfiniteScroll(env, source)
    scroll.mount()
    env.run()

    scroll.load_more()
    env.run(until=env.now + 1)
    stale_id = scroll.fetch_id

    scroll.reset()
    assert scroll.data == []
    assert scroll.fetch_id > stale_id
    env.run()

    assert scroll.data == ["p1a", "p1b"]
    assert scroll.page == 1
    assert scroll.is_fetching is False


def test_failure_keeps_data_and_does_not_retry() -> None:
    env = simpy.Environment()
    source = PagedSource(env)
    source.fail_pages.add(2)
    scroll = InfiniteScroll(env, source)
    scroll.mount()
    env.run()

    scroll.load_more()
    env.run()

    assert isinstance(scroll.error, RuntimeError)
    assert scroll.data == ["p1a", "p1b"]
    assert scroll.page == 1
    assert scroll.is_fetching_next_page is False
    assert source.calls == [1, 2]

    source.fail_pages.clear()
    scroll.retry()
    env.run()

    assert scroll.error is None
    assert source.calls == [1, 2, 2]
    assert scroll.data[-2:] == ["p2a", "p2b"]


def test_retry_after_failed_initial_load() -> None:
    env = simpy.Environment()
    source = PagedSource(env)
    source.fail_pages.add(1)
    scroll = InfiniteScroll(env, source)
    scroll.mount()
    env.run()
    assert scroll.error is not None
    assert scroll.data == []

    source.fail_pages.clear()
    scroll.retry()
    env.run()
    assert scroll.data == ["p1a", "p1b"]


def test_unmount_drops_pending_result() -> None:
    env = simpy.Environment()
    scroll = InfiniteScroll(env, PagedSource(env))
    scroll.mount()
    scroll.unmount()
    env.run()

    assert scroll.data == []


def test_plain_and_mapping_results_are_accepted() -> None:
    env = simpy.Environment()
    scroll = InfiniteScroll(env, lambda page: {"data": [page], "hasNextPage": False, "total": 1})
    scroll.mount()
    env.run()
    assert scroll.data == [1]
    assert scroll.has_next_page is False


def test_parse_root_margin() -> None:
    assert parse_root_margin("200px") == 200.0
    assert parse_root_margin(50) == 50.0
    with pytest.raises(ValueError):
        parse_root_margin("10%")
