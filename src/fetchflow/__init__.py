"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Dependency-aware batch scheduling and stale-while-revalidate caching for
remote data fetches.

Quick start::

    from fetchflow import BatchScheduler, DependencyGraph, GatheringBatchCall

    graph = DependencyGraph()
    graph.add_dependency("orders", "user", lambda user: {"userId": user["id"]})

    scheduler = BatchScheduler(graph, GatheringBatchCall(call_api))
    outcome = await scheduler.run(["user", "orders"])
"""

from .cache import AdaptiveCache, CacheEntry, CacheStats, LoadingEntry
from .errors import (
    BatchCallError,
    CacheError,
    DependencyCycleError,
    DependencyGraphError,
    FetchFlowError,
    OperationTimeoutError,
)
from .factory import create_batch_call_from_env, create_cache_from_env
from .graph import DependencyEdge, DependencyGraph, GraphValidator
from .metrics import FetchMetrics, NoOpFetchMetrics, PrometheusFetchMetrics
from .scheduler import (
    BatchCall,
    BatchScheduler,
    Blocked,
    CallOutcome,
    CallRequest,
    Failed,
    GatheringBatchCall,
    Pending,
    ResolutionState,
    ScheduleResult,
    Succeeded,
)
from .settings import FetchSettings
from .types import JSONValue, OperationKey, ParameterMap, to_parameter_map
from .utils import (
    await_with_timeout,
    format_response,
    merge_params,
    params_builder,
    response_transformer,
)

__all__ = [
    "AdaptiveCache",
    "BatchCall",
    "BatchCallError",
    "BatchScheduler",
    "Blocked",
    "CacheEntry",
    "CacheError",
    "CacheStats",
    "CallOutcome",
    "CallRequest",
    "DependencyCycleError",
    "DependencyEdge",
    "DependencyGraph",
    "DependencyGraphError",
    "Failed",
    "FetchFlowError",
    "FetchMetrics",
    "FetchSettings",
    "GatheringBatchCall",
    "GraphValidator",
    "JSONValue",
    "LoadingEntry",
    "NoOpFetchMetrics",
    "OperationKey",
    "OperationTimeoutError",
    "ParameterMap",
    "Pending",
    "PrometheusFetchMetrics",
    "ResolutionState",
    "ScheduleResult",
    "Succeeded",
    "await_with_timeout",
    "create_batch_call_from_env",
    "create_cache_from_env",
    "format_response",
    "merge_params",
    "params_builder",
    "response_transformer",
    "to_parameter_map",
]
