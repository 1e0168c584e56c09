from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date
import threading
import time

import pandas as pd
import pytest

from posture_tracking.cache import PerUserCache
from posture_tracking.pipeline import load_user_source
from posture_tracking.source import FrameSource


def test_repeated_lookup_loads_once() -> None:
    cache: PerUserCache[str] = PerUserCache()
    calls: list[str] = []

    def loader() -> str:
        calls.append("load")
        return "frame"

    assert cache.get("user-1", None, loader) == "frame"
    assert cache.get("user-1", None, loader) == "frame"
    assert calls == ["load"]
    assert ("user-1", None) in cache
    assert len(cache) == 1


def test_parameter_change_replaces_entry() -> None:
    cache: PerUserCache[str] = PerUserCache()

    cache.get("user-1", date(2024, 3, 1), lambda: "march-1")
    value = cache.get("user-1", date(2024, 3, 2), lambda: "march-2")

    assert value == "march-2"
    assert cache.keys() == [("user-1", date(2024, 3, 2))]
    assert cache.peek("user-1", date(2024, 3, 1)) is None
    assert cache.peek("user-1", date(2024, 3, 2)) == "march-2"


def test_users_are_cached_independently() -> None:
    cache: PerUserCache[int] = PerUserCache()

    cache.get("a", None, lambda: 1)
    cache.get("b", None, lambda: 2)

    assert sorted(cache.keys()) == [("a", None), ("b", None)]
    assert cache.get("a", None, lambda: 99) == 1


def test_explicit_invalidation() -> None:
    cache: PerUserCache[int] = PerUserCache()
    cache.get("a", "q1", lambda: 1)

    assert not cache.invalidate("a", "other")
    assert cache.peek("a", "q1") == 1
    assert cache.invalidate("a", "q1")
    assert not cache.invalidate("a")
    assert cache.get("a", "q1", lambda: 2) == 2

    cache.get("b", None, lambda: 3)
    cache.clear()
    assert len(cache) == 0


def test_failed_load_is_not_published() -> None:
    cache: PerUserCache[int] = PerUserCache()

    def broken() -> int:
        raise RuntimeError("source unavailable")

    with pytest.raises(RuntimeError):
        cache.get("a", None, broken)
    assert len(cache) == 0
    assert cache.get("a", None, lambda: 5) == 5


def test_concurrent_readers_share_one_load() -> None:
    cache: PerUserCache[object] = PerUserCache()
    calls = 0
    lock = threading.Lock()
    sentinel = object()

    def slow_loader() -> object:
        nonlocal calls
        with lock:
            calls += 1
        time.sleep(0.05)
        return sentinel

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: cache.get("a", None, slow_loader), range(16)))

    assert calls == 1
    assert all(result is sentinel for result in results)


def test_load_user_source_passes_requested_day() -> None:
    cache: PerUserCache[FrameSource] = PerUserCache()
    requested: list[date | None] = []

    def loader(day: date | None) -> FrameSource:
        requested.append(day)
        return FrameSource(pd.DataFrame({"t": [0, 1]}))

    first = load_user_source(cache, "a", loader)
    again = load_user_source(cache, "a", loader)
    daily = load_user_source(cache, "a", loader, date(2024, 3, 1))

    assert first is again
    assert daily is not first
    assert requested == [None, date(2024, 3, 1)]


def test_clear_forgets_user_locks() -> None:
    cache: PerUserCache[int] = PerUserCache()
    cache.get("a", None, lambda: 1)
    cache.get("b", None, lambda: 2)

    cache.clear()

    assert len(cache) == 0
    assert cache._locks == {}
    assert cache.get("a", None, lambda: 3) == 3


def test_cached_none_value_is_contained() -> None:
    cache: PerUserCache[None] = PerUserCache()
    cache.get("a", "q1", lambda: None)

    assert ("a", "q1") in cache
    assert ("a", "q2") not in cache
    assert "a" not in cache
