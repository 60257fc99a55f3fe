"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Exception hierarchy for fetch orchestration.
"""

from __future__ import annotations

from collections.abc import Iterable


class FetchFlowError(RuntimeError):
    """Base class for all fetchflow errors."""


class DependencyGraphError(FetchFlowError, ValueError):
    """Raised when a dependency graph is malformed for the requested keys."""


class DependencyCycleError(DependencyGraphError):
    """Raised when a set of operation keys cannot be ordered because of a cycle."""

    def __init__(self, keys: Iterable[str]) -> None:
        self.keys = sorted(keys)
        super().__init__(
            f"Dependency cycle detected among operations: {', '.join(self.keys)}"
        )


class BatchCallError(FetchFlowError):
    """Raised (or recorded) when the batch-call primitive breaks its contract."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(f"Operation '{key}': {message}")


class OperationTimeoutError(FetchFlowError, TimeoutError):
    """One operation exceeded its configured timeout."""

    def __init__(self, key: str, timeout_s: float) -> None:
        self.key = key
        self.timeout_s = timeout_s
        super().__init__(f"Operation '{key}' timed out after {timeout_s:.2f}s")


class CacheError(FetchFlowError):
    """Raised for invalid cache configuration or lifecycle misuse."""
