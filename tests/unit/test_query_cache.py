import asyncio

import pytest

from dkan_client.services.query_cache import QueryCache


class FakeTimer:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms / 1000


class Counter:
    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return {"call": self.calls}


@pytest.fixture
def timer():
    return FakeTimer()


@pytest.mark.asyncio
async def test_fresh_entry_is_reused(timer):
    cache = QueryCache(stale_time=1000, cache_time=10000, timer=timer)
    fn = Counter()
    assert await cache.fetch_query(("datasets", "a"), fn) == {"call": 1}
    timer.advance(500)
    assert await cache.fetch_query(("datasets", "a"), fn) == {"call": 1}
    assert fn.calls == 1


@pytest.mark.asyncio
async def test_stale_entry_is_refetched(timer):
    cache = QueryCache(stale_time=1000, cache_time=10000, timer=timer)
    fn = Counter()
    await cache.fetch_query(("datasets", "a"), fn)
    timer.advance(1500)
    assert cache.get_query_data(("datasets", "a")) == {"call": 1}
    assert await cache.fetch_query(("datasets", "a"), fn) == {"call": 2}


@pytest.mark.asyncio
async def test_zero_stale_time_always_refetches(timer):
    cache = QueryCache(timer=timer)
    fn = Counter()
    await cache.fetch_query(("a",), fn)
    await cache.fetch_query(("a",), fn)
    assert fn.calls == 2


@pytest.mark.asyncio
async def test_per_call_stale_time_overrides_default(timer):
    cache = QueryCache(stale_time=0, timer=timer)
    fn = Counter()
    await cache.fetch_query(("a",), fn, stale_time=60000)
    await cache.fetch_query(("a",), fn, stale_time=60000)
    assert fn.calls == 1


def test_entries_expire_after_cache_time(timer):
    cache = QueryCache(cache_time=1000, timer=timer)
    cache.set_query_data(("a",), 1)
    timer.advance(999)
    assert cache.get_query_data(("a",)) == 1
    timer.advance(2)
    assert cache.get_query_data(("a",)) is None
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_concurrent_fetches_share_one_call(timer):
    cache = QueryCache(timer=timer)
    gate = asyncio.Event()
    calls = 0

    async def fn():
        nonlocal calls
        calls += 1
        await gate.wait()
        return "done"

    first = asyncio.create_task(cache.fetch_query(("a",), fn))
    second = asyncio.create_task(cache.fetch_query(("a",), fn))
    await asyncio.sleep(0)
    gate.set()
    assert await asyncio.gather(first, second) == ["done", "done"]
    assert calls == 1


@pytest.mark.asyncio
async def test_failed_fetch_is_not_cached(timer):
    cache = QueryCache(timer=timer)

    async def boom():
        raise RuntimeError("down")

    with pytest.raises(RuntimeError):
        await cache.fetch_query(("a",), boom)
    assert cache.get_query_data(("a",)) is None
    assert cache.keys() == []


@pytest.mark.asyncio
async def test_prefetch_logs_failures(timer, caplog):
    cache = QueryCache(timer=timer)

    async def boom():
        raise RuntimeError("down")

    await cache.prefetch_query(("a",), boom)
    assert "query_cache_prefetch_failed" in caplog.text


@pytest.mark.asyncio
async def test_invalidate_by_prefix_forces_refetch(timer):
    cache = QueryCache(stale_time=60000, timer=timer)
    fn = Counter()
    await cache.fetch_query(("datasets", "a"), fn)
    cache.set_query_data(("datasets", "b"), "b")
    cache.set_query_data(("harvest", "plans"), [])

    assert cache.invalidate_queries(("datasets",)) == 2
    assert cache.get_query_data(("datasets", "a")) == {"call": 1}
    assert await cache.fetch_query(("datasets", "a"), fn) == {"call": 2}
    assert await cache.fetch_query(("harvest", "plans"), fn) == []


def test_remove_by_prefix(timer):
    cache = QueryCache(timer=timer)
    cache.set_query_data(("datasets", "a"), 1)
    cache.set_query_data(("datasets", "b"), 2)
    cache.set_query_data(("schemas",), 3)
    assert cache.remove_queries(("datasets",)) == 2
    assert cache.keys() == [("schemas",)]
    assert cache.remove_queries() == 1
    assert len(cache) == 0


def test_mount_and_unmount(timer):
    cache = QueryCache(timer=timer)
    assert not cache.is_mounted
    cache.mount()
    assert cache.is_mounted
    cache.unmount()
    assert not cache.is_mounted


def test_clear(timer):
    cache = QueryCache(timer=timer)
    cache.set_query_data(("a",), 1)
    cache.clear()
    assert cache.get_query_data(("a",)) is None
