"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Runtime settings and explicit config loading.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

EvictAfter = Literal["ttl", "stale"]

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return float(raw)


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return int(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag, got '{raw}'")


@dataclass(frozen=True, slots=True)
class FetchSettings:
    """Explicit settings used by the cache and the batch-call primitive."""

    cache_ttl_s: float = 60.0
    cache_stale_s: float = 30.0
    cache_sweep_interval_s: float = 60.0
    cache_evict_after: EvictAfter = "stale"

    batch_parallel: bool = True
    batch_timeout_s: float | None = None
    batch_max_concurrency: int | None = None

    @staticmethod
    def from_env() -> "FetchSettings":
        """Load settings from `FETCHFLOW_*` environment variables."""
        settings = FetchSettings(
            cache_ttl_s=float(os.getenv("FETCHFLOW_CACHE_TTL_S", "60")),
            cache_stale_s=float(os.getenv("FETCHFLOW_CACHE_STALE_S", "30")),
            cache_sweep_interval_s=float(
                os.getenv("FETCHFLOW_CACHE_SWEEP_INTERVAL_S", "60")
            ),
            cache_evict_after=os.getenv(  # type: ignore[arg-type]
                "FETCHFLOW_CACHE_EVICT_AFTER", "stale"
            )
            .strip()
            .lower(),
            batch_parallel=_env_bool("FETCHFLOW_BATCH_PARALLEL", True),
            batch_timeout_s=_env_float("FETCHFLOW_BATCH_TIMEOUT_S"),
            batch_max_concurrency=_env_int("FETCHFLOW_BATCH_MAX_CONCURRENCY"),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """Reject negative durations and unknown eviction modes."""
        if self.cache_ttl_s < 0:
            raise ValueError("cache_ttl_s must be >= 0")
        if self.cache_stale_s < 0:
            raise ValueError("cache_stale_s must be >= 0")
        if self.cache_sweep_interval_s <= 0:
            raise ValueError("cache_sweep_interval_s must be > 0")
        if self.cache_evict_after not in ("ttl", "stale"):
            raise ValueError(
                f"cache_evict_after must be 'ttl' or 'stale', got '{self.cache_evict_after}'"
            )
        if self.batch_timeout_s is not None and self.batch_timeout_s <= 0:
            raise ValueError("batch_timeout_s must be > 0 when set")
        if self.batch_max_concurrency is not None and self.batch_max_concurrency < 1:
            raise ValueError("batch_max_concurrency must be >= 1 when set")
