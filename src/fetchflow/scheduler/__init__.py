"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Dependency-aware batch scheduling.
"""

from .batch import FetchOne, GatheringBatchCall
from .contracts import (
    BatchCall,
    Blocked,
    BlockReason,
    CallOutcome,
    CallRequest,
    Failed,
    Pending,
    ResolutionState,
    ScheduleResult,
    Succeeded,
)
from .engine import BatchScheduler

__all__ = [
    "BatchCall",
    "BatchScheduler",
    "Blocked",
    "BlockReason",
    "CallOutcome",
    "CallRequest",
    "Failed",
    "FetchOne",
    "GatheringBatchCall",
    "Pending",
    "ResolutionState",
    "ScheduleResult",
    "Succeeded",
]
