import asyncio

import pytest

from app.utils import cache as cache_module
from app.utils.cache import CacheKeys, CacheTTL, MemoryCache, invalidate_project, sweep_forever


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def test_entries_expire_after_ttl(clock):
    store = MemoryCache(clock=clock)
    store.set("k", {"v": 1}, ttl=CacheTTL.MEDIUM)

    clock.advance(CacheTTL.MEDIUM - 1)
    assert store.get("k") == {"v": 1}

    clock.advance(2)
    assert store.get("k") is None
    assert store.stats()["size"] == 0


def test_default_ttl_is_used(clock):
    store = MemoryCache(default_ttl=10, clock=clock)
    store.set("k", "v")
    clock.advance(11)
    assert store.get("k") is None


def test_zero_ttl_is_not_replaced_by_default(clock):
    store = MemoryCache(default_ttl=CacheTTL.MEDIUM, clock=clock)
    store.set("k", "v", ttl=0)
    clock.advance(1)
    assert store.get("k") is None


def test_cleanup_removes_only_expired(clock):
    store = MemoryCache(clock=clock)
    store.set("short", 1, ttl=CacheTTL.SHORT)
    store.set("long", 2, ttl=CacheTTL.LONG)

    clock.advance(CacheTTL.SHORT + 1)
    assert store.cleanup() == 1
    assert store.stats()["keys"] == ["long"]


def test_search_keys_and_project_invalidation():
    key = CacheKeys.search_results("first dance", "p1")
    assert key == "search:p1:first dance"

    cache_module.cache.set(key, [1])
    cache_module.cache.set(CacheKeys.search_results("vows", "p2"), [2])

    invalidate_project("p1")

    assert cache_module.cache.get(key) is None
    assert cache_module.cache.get("search:p2:vows") == [2]


def test_sweep_forever_evicts_expired_entries(monkeypatch, clock):
    store = MemoryCache(clock=clock)
    store.set("stale", 1, ttl=1)
    clock.advance(5)
    monkeypatch.setattr(cache_module, "cache", store)

    calls = []

    class StopSweep(Exception):
        pass

    async def fake_sleep(seconds):
        calls.append(seconds)
        if len(calls) > 1:
            raise StopSweep()

    monkeypatch.setattr(cache_module.asyncio, "sleep", fake_sleep)

    with pytest.raises(StopSweep):
        asyncio.run(sweep_forever(interval=42))

    assert calls == [42, 42]
    assert store.stats()["size"] == 0


def test_lifespan_waits_for_sweeper_to_stop(monkeypatch):
    from app import main

    state = {"cancelled": False}

    async def fake_sweep():
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            state["cancelled"] = True
            raise

    monkeypatch.setattr(main, "sweep_forever", fake_sweep)

    async def run():
        async with main.lifespan(main.app):
            await asyncio.sleep(0)
        return state["cancelled"]

    assert asyncio.run(run()) is True
