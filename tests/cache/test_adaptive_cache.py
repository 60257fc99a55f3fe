from __future__ import annotations

import asyncio

import pytest

from fetchflow.cache import AdaptiveCache, CacheEntry
from fetchflow.errors import CacheError
from fetchflow.metrics import FetchMetrics
from fetchflow.settings import FetchSettings


def run_async(coro):
    return asyncio.run(coro)


class _Clock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class _Source:
    """Counts fetches and returns successive versions."""

    def __init__(self, *, delay_s: float = 0.0) -> None:
        self.calls = 0
        self.delay_s = delay_s
        self.fail_with: Exception | None = None

    async def __call__(self):
        self.calls += 1
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.fail_with is not None:
            raise self.fail_with
        return f"v{self.calls}"


class _Metrics(FetchMetrics):
    def __init__(self) -> None:
        self.counts: dict[str, int] = {}

    def incr(self, name: str, value: int = 1, *, tags=None) -> None:
        label = name if not tags else f"{name}:{tags.get('tier')}"
        self.counts[label] = self.counts.get(label, 0) + value


def _cache(clock: _Clock, **kwargs) -> AdaptiveCache:
    kwargs.setdefault("ttl_s", 10.0)
    kwargs.setdefault("stale_s", 5.0)
    return AdaptiveCache(clock=clock, **kwargs)


def test_fresh_entry_is_served_without_fetching():
    clock = _Clock()
    source = _Source()

    async def scenario():
        cache = _cache(clock)
        first = await cache.get("k", source)
        clock.advance(10.0)
        second = await cache.get("k", source)
        return first, second

    assert run_async(scenario()) == ("v1", "v1")
    assert source.calls == 1


def test_stale_entry_is_served_while_refreshing_in_background():
    clock = _Clock()
    source = _Source(delay_s=0.01)
    metrics = _Metrics()

    async def scenario():
        cache = _cache(clock, metrics=metrics)
        assert await cache.get("k", source) == "v1"
        clock.advance(12.0)

        stale = await cache.get("k", source)
        calls_after_stale_read = source.calls
        again = await cache.get("k", source)
        await cache.drain()
        fresh = await cache.get("k", source)
        return stale, calls_after_stale_read, again, fresh

    stale, calls_after_stale_read, again, fresh = run_async(scenario())
    assert stale == "v1"
    assert again == "v1"
    assert calls_after_stale_read == 1
    assert fresh == "v2"
    assert source.calls == 2
    assert metrics.counts["cache_hits_total:stale"] == 2
    assert metrics.counts["cache_misses_total"] == 1


def test_expired_entry_blocks_until_fetch_completes():
    clock = _Clock()
    source = _Source(delay_s=0.01)

    async def scenario():
        cache = _cache(clock)
        await cache.get("k", source)
        clock.advance(15.5)
        return await cache.get("k", source)

    assert run_async(scenario()) == "v2"
    assert source.calls == 2


def test_concurrent_misses_share_one_fetch():
    clock = _Clock()
    source = _Source(delay_s=0.02)
    metrics = _Metrics()

    async def scenario():
        cache = _cache(clock, metrics=metrics)
        return await asyncio.gather(*(cache.get("k", source) for _ in range(5)))

    assert run_async(scenario()) == ["v1"] * 5
    assert source.calls == 1
    assert metrics.counts["cache_coalesced_total"] == 4


def test_blocking_fetch_failure_propagates_and_keeps_previous_entry():
    clock = _Clock()
    source = _Source()

    async def scenario():
        cache = _cache(clock)
        await cache.get("k", source)
        clock.advance(20.0)
        source.fail_with = ConnectionError("offline")
        with pytest.raises(ConnectionError):
            await cache.get("k", source)
        entry = cache.peek("k")
        source.fail_with = None
        retried = await cache.get("k", source)
        return entry, retried

    entry, retried = run_async(scenario())
    assert entry is not None and entry.data == "v1"
    assert retried == "v3"


def test_failed_miss_leaves_nothing_cached():
    source = _Source()
    source.fail_with = ValueError("bad")

    async def scenario():
        cache = _cache(_Clock())
        with pytest.raises(ValueError):
            await cache.get("k", source)
        return "k" in cache

    assert run_async(scenario()) is False


def test_background_refresh_failure_is_swallowed_and_reported():
    clock = _Clock()
    source = _Source()
    reported: list[tuple[str, str]] = []
    metrics = _Metrics()

    async def scenario():
        cache = _cache(
            clock,
            metrics=metrics,
            on_background_error=lambda key, exc: reported.append((key, str(exc))),
        )
        await cache.get("k", source)
        clock.advance(12.0)
        source.fail_with = RuntimeError("refresh failed")
        stale = await cache.get("k", source)
        await cache.drain()
        return stale, cache.peek("k")

    stale, entry = run_async(scenario())
    assert stale == "v1"
    assert entry is not None and entry.data == "v1"
    assert reported == [("k", "refresh failed")]
    assert metrics.counts["cache_refresh_failures_total"] == 1


def test_invalidate_and_clear_take_effect_immediately():
    clock = _Clock()
    source = _Source()

    async def scenario():
        cache = _cache(clock)
        await cache.get("a", source)
        await cache.get("b", source)
        assert cache.invalidate("a") is True
        assert cache.invalidate("a") is False
        assert await cache.get("a", source) == "v3"
        cache.clear()
        assert len(cache) == 0
        return await cache.get("b", source)

    assert run_async(scenario()) == "v4"


def test_fetch_completing_after_invalidate_is_not_stored():
    source = _Source(delay_s=0.02)

    async def scenario():
        cache = _cache(_Clock())
        pending = asyncio.create_task(cache.get("k", source))
        await asyncio.sleep(0)
        cache.invalidate("k")
        value = await pending
        return value, "k" in cache

    assert run_async(scenario()) == ("v1", False)


def test_force_skips_fresh_entry():
    source = _Source()

    async def scenario():
        cache = _cache(_Clock())
        await cache.get("k", source)
        return await cache.get("k", source, force=True)

    assert run_async(scenario()) == "v2"


def test_per_call_windows_override_defaults():
    clock = _Clock()
    source = _Source()

    async def scenario():
        cache = _cache(clock)
        await cache.get("k", source, ttl_s=1.0, stale_s=0.0)
        clock.advance(2.0)
        return await cache.get("k", source, ttl_s=1.0, stale_s=0.0)

    assert run_async(scenario()) == "v2"


def test_sweep_respects_eviction_mode():
    clock = _Clock()
    source = _Source()

    async def scenario():
        by_stale = _cache(clock, evict_after="stale")
        by_ttl = _cache(clock, evict_after="ttl")
        await by_stale.get("k", source)
        await by_ttl.get("k", source)
        clock.advance(12.0)
        removed = (by_stale.sweep(), by_ttl.sweep())
        clock.advance(4.0)
        return removed, by_stale.sweep()

    (stale_removed, ttl_removed), later = run_async(scenario())
    assert stale_removed == 0
    assert ttl_removed == 1
    assert later == 1


def test_start_stop_runs_periodic_sweep():
    clock = _Clock()
    source = _Source()

    async def scenario():
        cache = _cache(clock, sweep_interval_s=0.01)
        async with cache:
            assert cache.is_running
            with pytest.raises(CacheError):
                await cache.start()
            await cache.get("k", source)
            clock.advance(100.0)
            await asyncio.sleep(0.05)
            present = "k" in cache
        return present, cache.is_running

    assert run_async(scenario()) == (False, False)


def test_stats_summarize_entries():
    clock = _Clock()

    async def scenario():
        cache = _cache(clock)
        await cache.get("old", _Source())
        clock.advance(12.0)
        await cache.get("new", _Source())

        async def never():
            await asyncio.sleep(10)

        loading = asyncio.create_task(cache.get("slow", never))
        await asyncio.sleep(0)
        stats = cache.stats()
        loading.cancel()
        await asyncio.gather(loading, return_exceptions=True)
        return stats

    stats = run_async(scenario())
    assert stats.total_entries == 3
    assert stats.fresh_entries == 1
    assert stats.stale_entries == 1
    assert stats.loading_entries == 1
    assert stats.active_entries == 2
    assert stats.approximate_size_bytes == len('"v1"') * 2


def test_cache_entry_freshness_tiers():
    entry = CacheEntry(data=1, fetched_at=100.0, ttl_s=10.0, stale_s=5.0)
    assert entry.freshness(110.0) == "fresh"
    assert entry.freshness(115.0) == "stale"
    assert entry.freshness(115.1) == "expired"
    assert entry.freshness(111.0, ttl_s=20.0) == "fresh"


def test_invalid_configuration_is_rejected():
    with pytest.raises(CacheError):
        AdaptiveCache(ttl_s=-1)
    with pytest.raises(CacheError):
        AdaptiveCache(sweep_interval_s=0)
    with pytest.raises(CacheError):
        AdaptiveCache(evict_after="never")  # type: ignore[arg-type]


def test_from_settings():
    cache = AdaptiveCache.from_settings(
        FetchSettings(cache_ttl_s=1.0, cache_stale_s=2.0, cache_evict_after="ttl")
    )
    assert cache.stats().total_entries == 0


def test_cancelled_waiter_does_not_cancel_shared_fetch():
    source = _Source(delay_s=0.02)

    async def scenario():
        cache = _cache(_Clock())
        first = asyncio.create_task(cache.get("k", source))
        second = asyncio.create_task(cache.get("k", source))
        await asyncio.sleep(0)
        first.cancel()
        value = await second
        await asyncio.gather(first, return_exceptions=True)
        return value, first.cancelled(), cache.peek("k")

    value, first_cancelled, entry = run_async(scenario())
    assert value == "v1"
    assert first_cancelled
    assert entry is not None and entry.data == "v1"
    assert source.calls == 1


def test_force_joins_in_flight_fetch():
    source = _Source(delay_s=0.02)

    async def scenario():
        cache = _cache(_Clock())
        pending = asyncio.create_task(cache.get("k", source))
        await asyncio.sleep(0)
        forced = await cache.get("k", source, force=True)
        return forced, await pending

    assert run_async(scenario()) == ("v1", "v1")
    assert source.calls == 1


def test_stop_waits_for_load_whose_caller_was_cancelled():
    source = _Source(delay_s=0.02)

    async def scenario():
        cache = _cache(_Clock())
        await cache.start()
        caller = asyncio.create_task(cache.get("k", source))
        await asyncio.sleep(0)
        caller.cancel()
        await asyncio.gather(caller, return_exceptions=True)
        in_flight_before = cache.in_flight_count
        await cache.stop()
        return in_flight_before, cache.in_flight_count, cache.peek("k")

    in_flight_before, in_flight_after, entry = run_async(scenario())
    assert in_flight_before == 1
    assert in_flight_after == 0
    assert entry is not None and entry.data == "v1"
