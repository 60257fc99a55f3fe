"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/__init__.py.
"""

from .adaptive import AdaptiveCache, BackgroundErrorHandler, Fetch
from .base import CacheEntry, CacheSlot, CacheStats, Freshness, LoadingEntry

__all__ = [
    "AdaptiveCache",
    "BackgroundErrorHandler",
    "CacheEntry",
    "CacheSlot",
    "CacheStats",
    "Fetch",
    "Freshness",
    "LoadingEntry",
]
