"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Factory helpers for building components from settings or environment variables.
"""

from __future__ import annotations

from typing import Any

from .cache import AdaptiveCache
from .scheduler import FetchOne, GatheringBatchCall
from .settings import FetchSettings


def create_cache_from_env(**kwargs: Any) -> AdaptiveCache:
    """
    Create an `AdaptiveCache` from `FETCHFLOW_CACHE_*` environment variables.

    Extra keyword arguments (`clock`, `metrics`, `on_background_error`) are
    passed through to the cache.
    """
    return AdaptiveCache.from_settings(FetchSettings.from_env(), **kwargs)


def create_batch_call_from_env(fetch_one: FetchOne) -> GatheringBatchCall:
    """Create a `GatheringBatchCall` from `FETCHFLOW_BATCH_*` environment variables."""
    return GatheringBatchCall.from_settings(fetch_one, FetchSettings.from_env())
