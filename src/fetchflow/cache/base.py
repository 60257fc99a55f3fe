"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Cache slot value objects.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Literal, TypeAlias

Freshness = Literal["fresh", "stale", "expired"]


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """One cached value with the freshness windows it was stored under."""

    data: Any
    fetched_at: float
    ttl_s: float
    stale_s: float

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def freshness(
        self,
        now: float,
        *,
        ttl_s: float | None = None,
        stale_s: float | None = None,
    ) -> Freshness:
        """Classify the entry; explicit windows override the stored ones."""
        ttl = self.ttl_s if ttl_s is None else ttl_s
        stale = self.stale_s if stale_s is None else stale_s
        age = self.age(now)
        if age <= ttl:
            return "fresh"
        if age <= ttl + stale:
            return "stale"
        return "expired"


@dataclass(frozen=True, slots=True)
class LoadingEntry:
    """In-flight fetch shared by every caller of one key."""

    task: asyncio.Task[Any]
    previous: CacheEntry | None = None
    background: bool = False


CacheSlot: TypeAlias = CacheEntry | LoadingEntry


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Point-in-time summary of cache contents."""

    total_entries: int
    fresh_entries: int
    stale_entries: int
    expired_entries: int
    loading_entries: int
    approximate_size_bytes: int

    @property
    def active_entries(self) -> int:
        return self.fresh_entries + self.stale_entries

    @property
    def approximate_size_kb(self) -> int:
        return round(self.approximate_size_bytes / 1024)
