import asyncio

import pytest

from fedsetup.api.cache import RequestCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.mark.asyncio
async def test_concurrent_requests_share_one_fetch():
    cache = RequestCache()
    calls = 0

    async def fetch():
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.01)
        return {"value": calls}

    results = await asyncio.gather(*(cache.request("k", fetch) for _ in range(5)))

    assert calls == 1
    assert all(result == {"value": 1} for result in results)


@pytest.mark.asyncio
async def test_results_cached_until_ttl_expires():
    clock = FakeClock()
    cache = RequestCache(clock=clock)
    calls = 0

    async def fetch():
        nonlocal calls
        calls += 1
        return calls

    assert await cache.request("k", fetch, ttl_ms=1000) == 1
    clock.now = 0.5
    assert await cache.request("k", fetch, ttl_ms=1000) == 1
    clock.now = 1.5
    assert await cache.request("k", fetch, ttl_ms=1000) == 2


@pytest.mark.asyncio
async def test_failures_are_shared_but_not_cached():
    cache = RequestCache()
    calls = 0

    async def fail():
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.01)
        raise RuntimeError("down")

    results = await asyncio.gather(
        cache.request("k", fail), cache.request("k", fail), return_exceptions=True
    )

    assert calls == 1
    assert all(isinstance(result, RuntimeError) for result in results)
    with pytest.raises(RuntimeError):
        await cache.request("k", fail)
    assert calls == 2
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_callers_receive_copies():
    cache = RequestCache()

    async def fetch():
        return {"items": [1]}

    first = await cache.request("k", fetch)
    first["items"].append(2)

    assert await cache.request("k", fetch) == {"items": [1]}

    cache.invalidate("k")
    assert len(cache) == 0
