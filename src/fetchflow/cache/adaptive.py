"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Stale-while-revalidate cache with per-key request coalescing.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from functools import partial
from typing import Any

from ..errors import CacheError
from ..metrics import FetchMetrics, NoOpFetchMetrics
from ..settings import EvictAfter, FetchSettings
from .base import CacheEntry, CacheSlot, CacheStats, LoadingEntry

logger = logging.getLogger("fetchflow.cache")

Fetch = Callable[[], Awaitable[Any]]
BackgroundErrorHandler = Callable[[str, BaseException], None]


async def _run_fetch(fetch: Fetch) -> Any:
    return await fetch()


class AdaptiveCache:
    """
    Memoize fetch results per key with three freshness tiers.

    - fresh (age <= ttl): served from memory, no fetch.
    - stale (ttl < age <= ttl + stale): served from memory while one
      background refresh replaces the entry.
    - expired or missing: the caller waits for the fetch.

    At most one fetch per key is in flight; concurrent callers share it.
    """

    def __init__(
        self,
        *,
        ttl_s: float = 60.0,
        stale_s: float = 30.0,
        sweep_interval_s: float = 60.0,
        evict_after: EvictAfter = "stale",
        clock: Callable[[], float] = time.monotonic,
        metrics: FetchMetrics | None = None,
        on_background_error: BackgroundErrorHandler | None = None,
    ) -> None:
        if ttl_s < 0 or stale_s < 0:
            raise CacheError("ttl_s and stale_s must be >= 0")
        if sweep_interval_s <= 0:
            raise CacheError("sweep_interval_s must be > 0")
        if evict_after not in ("ttl", "stale"):
            raise CacheError(f"evict_after must be 'ttl' or 'stale', got '{evict_after}'")
        self._ttl_s = ttl_s
        self._stale_s = stale_s
        self._sweep_interval_s = sweep_interval_s
        self._evict_after = evict_after
        self._clock = clock
        self._metrics: FetchMetrics = metrics or NoOpFetchMetrics()
        self._on_background_error = on_background_error
        self._entries: dict[str, CacheSlot] = {}
        self._loads: set[asyncio.Task[Any]] = set()
        self._sweeper: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(cls, settings: FetchSettings, **kwargs: Any) -> "AdaptiveCache":
        return cls(
            ttl_s=settings.cache_ttl_s,
            stale_s=settings.cache_stale_s,
            sweep_interval_s=settings.cache_sweep_interval_s,
            evict_after=settings.cache_evict_after,
            **kwargs,
        )

    async def get(
        self,
        key: str,
        fetch: Fetch,
        *,
        ttl_s: float | None = None,
        stale_s: float | None = None,
        force: bool = False,
    ) -> Any:
        """Return the value for `key`, fetching or refreshing it as needed."""
        ttl = self._ttl_s if ttl_s is None else ttl_s
        stale = self._stale_s if stale_s is None else stale_s
        if ttl < 0 or stale < 0:
            raise CacheError("ttl_s and stale_s must be >= 0")

        now = self._clock()
        slot = self._entries.get(key)

        if isinstance(slot, LoadingEntry):
            previous = slot.previous
            if not force and previous is not None:
                tier = previous.freshness(now, ttl_s=ttl, stale_s=stale)
                if tier != "expired":
                    self._metrics.incr("cache_hits_total", tags={"tier": tier})
                    return previous.data
            self._metrics.incr("cache_coalesced_total")
            logger.debug("Joining in-flight fetch for '%s'", key)
            return await asyncio.shield(slot.task)

        if slot is not None and not force:
            tier = slot.freshness(now, ttl_s=ttl, stale_s=stale)
            if tier == "fresh":
                self._metrics.incr("cache_hits_total", tags={"tier": "fresh"})
                return slot.data
            if tier == "stale":
                self._metrics.incr("cache_hits_total", tags={"tier": "stale"})
                logger.debug("Serving stale '%s' and refreshing in background", key)
                self._start_load(key, fetch, ttl, stale, previous=slot, background=True)
                return slot.data

        self._metrics.incr("cache_misses_total")
        loading = self._start_load(key, fetch, ttl, stale, previous=slot, background=False)
        return await asyncio.shield(loading.task)

    def _start_load(
        self,
        key: str,
        fetch: Fetch,
        ttl_s: float,
        stale_s: float,
        *,
        previous: CacheEntry | None,
        background: bool,
    ) -> LoadingEntry:
        task = asyncio.create_task(_run_fetch(fetch))
        loading = LoadingEntry(task=task, previous=previous, background=background)
        self._entries[key] = loading
        task.add_done_callback(partial(self._settle, key, loading, ttl_s, stale_s))
        self._loads.add(task)
        task.add_done_callback(self._loads.discard)
        return loading

    def _settle(
        self,
        key: str,
        loading: LoadingEntry,
        ttl_s: float,
        stale_s: float,
        task: asyncio.Task[Any],
    ) -> None:
        error: BaseException | None
        if task.cancelled():
            error = asyncio.CancelledError()
        else:
            error = task.exception()

        if self._entries.get(key) is not loading:
            # invalidated or replaced while in flight
            return

        if error is None:
            self._entries[key] = CacheEntry(
                data=task.result(),
                fetched_at=self._clock(),
                ttl_s=ttl_s,
                stale_s=stale_s,
            )
            return

        if loading.previous is not None:
            self._entries[key] = loading.previous
        else:
            self._entries.pop(key, None)

        if not loading.background or task.cancelled():
            return
        self._metrics.incr("cache_refresh_failures_total")
        logger.warning("Background refresh for '%s' failed: %s", key, error)
        if self._on_background_error is not None:
            try:
                self._on_background_error(key, error)
            except Exception:  # noqa: BLE001
                logger.exception("on_background_error handler failed for '%s'", key)

    def peek(self, key: str) -> CacheEntry | None:
        """Current stored entry for `key`, ignoring freshness; never fetches."""
        slot = self._entries.get(key)
        if isinstance(slot, LoadingEntry):
            return slot.previous
        return slot

    def invalidate(self, key: str) -> bool:
        """Remove one key; returns whether anything was stored."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def _evictable(self, entry: CacheEntry, now: float) -> bool:
        limit = entry.ttl_s
        if self._evict_after == "stale":
            limit += entry.stale_s
        return entry.age(now) > limit

    def sweep(self) -> int:
        """Remove expired entries now; returns the number removed."""
        now = self._clock()
        expired = [
            key
            for key, slot in self._entries.items()
            if isinstance(slot, CacheEntry) and self._evictable(slot, now)
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            self._metrics.incr("cache_evictions_total", len(expired))
            logger.debug("Swept %d expired cache entries", len(expired))
        return len(expired)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval_s)
            self.sweep()

    async def start(self) -> None:
        """Start the periodic sweep in the background."""
        if self._sweeper is not None and not self._sweeper.done():
            raise CacheError("AdaptiveCache sweeper is already running")
        self._sweeper = asyncio.create_task(self._sweep_loop())
        logger.info(
            "AdaptiveCache sweeper started (interval=%.1fs, evict_after=%s)",
            self._sweep_interval_s,
            self._evict_after,
        )

    async def stop(self) -> None:
        """Stop the sweeper and wait for every fetch still in flight."""
        if self._sweeper is not None and not self._sweeper.done():
            self._sweeper.cancel()
            await asyncio.gather(self._sweeper, return_exceptions=True)
            logger.info("AdaptiveCache sweeper stopped")
        self._sweeper = None
        await self.drain()

    async def drain(self) -> None:
        """
        Wait until no fetch is in flight.

        Covers background refreshes and blocking loads whose callers were
        cancelled; loads started while draining are awaited too.
        """
        while self._loads:
            await asyncio.gather(*list(self._loads), return_exceptions=True)

    @property
    def in_flight_count(self) -> int:
        """Number of fetches currently running."""
        return len(self._loads)

    async def __aenter__(self) -> "AdaptiveCache":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    @property
    def is_running(self) -> bool:
        """Whether the periodic sweep is active."""
        return self._sweeper is not None and not self._sweeper.done()

    def stats(self) -> CacheStats:
        now = self._clock()
        counts = {"fresh": 0, "stale": 0, "expired": 0}
        loading = 0
        size = 0
        for slot in self._entries.values():
            if isinstance(slot, LoadingEntry):
                loading += 1
                continue
            counts[slot.freshness(now)] += 1
            try:
                size += len(json.dumps(slot.data, default=str).encode("utf-8"))
            except (TypeError, ValueError):
                continue
        return CacheStats(
            total_entries=len(self._entries),
            fresh_entries=counts["fresh"],
            stale_entries=counts["stale"],
            expired_entries=counts["expired"],
            loading_entries=loading,
            approximate_size_bytes=size,
        )

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
