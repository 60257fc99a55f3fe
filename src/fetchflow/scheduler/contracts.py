"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Batch-call contracts, per-key resolution states and scheduling results.
"""

from __future__ import annotations

from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, TypeAlias

from ..types import OperationKey, ParameterMap

BlockReason = Literal["failed_dependency", "missing_dependency", "cycle"]


@dataclass(frozen=True, slots=True)
class CallRequest:
    """One operation to execute within a batch."""

    key: OperationKey
    params: ParameterMap = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CallOutcome:
    """Outcome for one key of a batch; `error is None` means success."""

    key: OperationKey
    result: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchCall(Protocol):
    """
    Execute every request concurrently and report one outcome per key.

    Implementations must not raise for an individual call's failure.
    """

    def __call__(self, calls: Sequence[CallRequest]) -> Awaitable[Sequence[CallOutcome]]: ...


@dataclass(frozen=True, slots=True)
class Pending:
    status: Literal["pending"] = "pending"


@dataclass(frozen=True, slots=True)
class Succeeded:
    value: Any
    status: Literal["succeeded"] = "succeeded"


@dataclass(frozen=True, slots=True)
class Failed:
    error: BaseException
    status: Literal["failed"] = "failed"


@dataclass(frozen=True, slots=True)
class Blocked:
    """Never attempted because an upstream dependency could not be satisfied."""

    cause_key: OperationKey
    reason: BlockReason
    status: Literal["blocked"] = "blocked"


ResolutionState: TypeAlias = Pending | Succeeded | Failed | Blocked


@dataclass(slots=True)
class ScheduleResult:
    """
    Best-effort outcome of one scheduler run.

    `results`, `errors` and `remaining` partition the submitted keys.
    `states` carries the tagged view of the same information, and explains
    why each remaining key never ran.
    """

    results: dict[OperationKey, Any] = field(default_factory=dict)
    errors: dict[OperationKey, BaseException] = field(default_factory=dict)
    remaining: list[OperationKey] = field(default_factory=list)
    states: dict[OperationKey, ResolutionState] = field(default_factory=dict)
    rounds: list[list[OperationKey]] = field(default_factory=list)
    cycles: list[OperationKey] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when every submitted key succeeded."""
        return not self.errors and not self.remaining

    def blocked(self) -> dict[OperationKey, Blocked]:
        """Remaining keys with the reason each was blocked."""
        return {
            key: state
            for key, state in self.states.items()
            if isinstance(state, Blocked)
        }
