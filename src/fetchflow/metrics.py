"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Counter metrics for scheduler and cache instrumentation.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from prometheus_client import CollectorRegistry

# name -> (help text, label names)
COUNTERS: dict[str, tuple[str, tuple[str, ...]]] = {
    "cache_hits_total": ("Cache reads answered from memory", ("tier",)),
    "cache_misses_total": ("Cache reads that waited for a fetch", ()),
    "cache_coalesced_total": ("Cache reads that joined an in-flight fetch", ()),
    "cache_refresh_failures_total": ("Background refreshes that failed", ()),
    "cache_evictions_total": ("Entries removed by the sweep", ()),
    "scheduler_rounds_total": ("Batch calls issued by the scheduler", ()),
    "scheduler_operations_total": ("Operations settled per run", ("status",)),
}


class FetchMetrics(Protocol):
    """Counter sink used by `BatchScheduler` and `AdaptiveCache`."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None: ...


class NoOpFetchMetrics:
    """Discards every increment."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        return None


class PrometheusFetchMetrics(FetchMetrics):
    """
    Export fetchflow counters through `prometheus_client`.

    Known counters from `COUNTERS` are registered with their declared labels
    and help text; any other name gets labels from the first call's tags.
    Requires the ``metrics`` extra.
    """

    def __init__(
        self,
        *,
        namespace: str = "fetchflow",
        registry: CollectorRegistry | None = None,
    ) -> None:
        try:
            from prometheus_client import REGISTRY, Counter
        except ModuleNotFoundError as exc:  # pragma: no cover
            raise RuntimeError(
                "PrometheusFetchMetrics requires `prometheus_client` to be installed."
            ) from exc

        self._Counter = Counter
        self._namespace = namespace
        self._registry = registry if registry is not None else REGISTRY
        self._counters: dict[str, tuple[Any, tuple[str, ...]]] = {}

    def _counter(self, name: str, tags: Mapping[str, str]) -> tuple[Any, tuple[str, ...]]:
        existing = self._counters.get(name)
        if existing is not None:
            return existing
        documentation, label_names = COUNTERS.get(
            name, (f"fetchflow counter {name}", tuple(sorted(tags)))
        )
        counter = self._Counter(
            name=name,
            documentation=documentation,
            namespace=self._namespace,
            labelnames=label_names,
            registry=self._registry,
        )
        self._counters[name] = (counter, label_names)
        return self._counters[name]

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        labels = dict(tags or {})
        counter, label_names = self._counter(name, labels)
        if not label_names:
            counter.inc(value)
            return
        missing = [label for label in label_names if label not in labels]
        if missing:
            raise ValueError(f"Metric '{name}' requires labels: {', '.join(missing)}")
        counter.labels(**{label: str(labels[label]) for label in label_names}).inc(value)
