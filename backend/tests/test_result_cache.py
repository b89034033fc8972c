from __future__ import annotations

import asyncio

import pytest

from medguide_cache.result_cache import ResultCache, make_result_key
from medguide_cache.singleflight import SingleFlight
from medguide_core.models import GeoPosition, SearchFilters


class _ManualClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_key_rounds_origin_and_fingerprints_filters():
    near = GeoPosition(latitude=12.97161, longitude=77.59462, accuracy_meters=10.0)
    same_cell = GeoPosition(latitude=12.97158, longitude=77.59459, accuracy_meters=50.0)
    elsewhere = GeoPosition(latitude=12.9800, longitude=77.5946, accuracy_meters=10.0)

    assert make_result_key(near, 5000) == make_result_key(same_cell, 5000)
    assert make_result_key(near, 5000) != make_result_key(elsewhere, 5000)
    assert make_result_key(near, 5000) != make_result_key(near, 3000)
    assert make_result_key(near, 5000, SearchFilters(emergency_only=True)) != make_result_key(near, 5000)
    assert SearchFilters(limit=5).fingerprint() == SearchFilters(limit=5).fingerprint()
    assert SearchFilters(limit=5).fingerprint() != SearchFilters(limit=6).fingerprint()


@pytest.mark.asyncio
async def test_concurrent_identical_requests_compute_once():
    cache: ResultCache[str] = ResultCache(ttl_ms=60_000)
    calls = 0

    async def compute() -> str:
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.01)
        return "facilities"

    results = await asyncio.gather(*(cache.get_or_compute("k", compute) for _ in range(5)))

    assert results == ["facilities"] * 5
    assert calls == 1
    assert await cache.get_or_compute("k", compute) == "facilities"
    assert calls == 1


@pytest.mark.asyncio
async def test_entries_expire_after_ttl():
    clock = _ManualClock()
    cache: ResultCache[int] = ResultCache(ttl_ms=1_000, clock=clock)
    counter = iter(range(10))

    async def compute() -> int:
        return next(counter)

    assert await cache.get_or_compute("k", compute) == 0
    clock.now = 999.0
    assert await cache.get_or_compute("k", compute) == 0
    clock.now = 1_001.0
    assert await cache.get_or_compute("k", compute) == 1


@pytest.mark.asyncio
async def test_failures_and_rejected_values_are_not_stored():
    cache: ResultCache[str] = ResultCache(ttl_ms=60_000)

    async def boom() -> str:
        raise RuntimeError("backend down")

    async def degraded() -> str:
        return "fallback"

    with pytest.raises(RuntimeError):
        await cache.get_or_compute("k", boom)
    assert cache.get("k") is None

    assert await cache.get_or_compute("k", degraded, should_store=lambda value: value != "fallback") == "fallback"
    assert cache.get("k") is None
    assert cache.status()["size"] == 0


def test_invalidate_one_or_all():
    cache: ResultCache[str] = ResultCache(ttl_ms=60_000)
    cache.put("a", "1")
    cache.put("b", "2")

    assert cache.invalidate("a") == 1
    assert cache.invalidate("missing") == 0
    assert cache.status() == {"size": 1, "keys": ["b"], "in_flight": 0}
    assert cache.invalidate() == 1
    assert cache.get("b") is None


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_cancel_shared_work():
    flight: SingleFlight[str] = SingleFlight()
    release = asyncio.Event()

    async def slow() -> str:
        await release.wait()
        return "done"

    impatient = asyncio.ensure_future(flight.do("k", slow))
    patient = asyncio.ensure_future(flight.do("k", slow))
    await asyncio.sleep(0)
    impatient.cancel()
    await asyncio.sleep(0)
    release.set()

    assert await patient == "done"
    assert impatient.cancelled()
    assert not flight.in_flight("k")


@pytest.mark.asyncio
async def test_expired_keys_are_swept_even_if_never_read_again():
    clock = _ManualClock()
    cache: ResultCache[int] = ResultCache(ttl_ms=1_000, clock=clock)

    async def compute() -> int:
        return 1

    for index in range(500):
        await cache.get_or_compute(f"origin-{index}", compute)
        clock.now += 10_000

    assert cache.status()["size"] <= 1


def test_oldest_entries_are_dropped_at_capacity():
    clock = _ManualClock()
    cache: ResultCache[str] = ResultCache(ttl_ms=60_000, max_entries=3, clock=clock)

    for key in ("a", "b", "c"):
        cache.put(key, key)
        clock.now += 1
    cache.put("a", "refreshed")
    cache.put("d", "d")

    assert cache.status()["keys"] == ["a", "c", "d"]
    assert cache.get("a") == "refreshed"
    assert cache.get("b") is None
