"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Round-based dependency-aware batch scheduler.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel

from ..errors import BatchCallError
from ..graph import DependencyGraph, GraphValidator
from ..metrics import FetchMetrics, NoOpFetchMetrics
from ..types import OperationKey, ParameterMap, to_parameter_map
from ..utils import merge_params
from .contracts import (
    BatchCall,
    Blocked,
    CallOutcome,
    CallRequest,
    Failed,
    Pending,
    ResolutionState,
    ScheduleResult,
    Succeeded,
)

logger = logging.getLogger("fetchflow.scheduler")


class BatchScheduler:
    """
    Execute operation keys in dependency order, one batch call per round.

    Round 0 holds every key without registered dependencies. Each following
    round holds the keys whose dependencies have all succeeded so far. A
    round starts only after the previous round's batch call has completed.
    The scheduler never raises for operation failures: they are reported in
    the returned `ScheduleResult`.
    """

    def __init__(
        self,
        graph: DependencyGraph,
        batch_call: BatchCall,
        *,
        metrics: FetchMetrics | None = None,
    ) -> None:
        self._graph = graph
        self._batch_call = batch_call
        self._metrics: FetchMetrics = metrics or NoOpFetchMetrics()

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    async def run(
        self,
        keys: Iterable[OperationKey],
        initial_params: Mapping[OperationKey, Mapping[str, Any] | BaseModel] | None = None,
    ) -> ScheduleResult:
        """Resolve `keys`, merging `initial_params` over dependency-derived ones."""
        submitted = list(dict.fromkeys(keys))
        outcome = ScheduleResult(states={key: Pending() for key in submitted})

        submitted_set = set(submitted)
        initial: dict[OperationKey, ParameterMap] = {}
        for key, value in (initial_params or {}).items():
            try:
                initial[key] = to_parameter_map(value)
            except TypeError as exc:
                if key not in submitted_set:
                    continue
                logger.warning("Initial parameters for '%s' are invalid: %s", key, exc)
                self._record(outcome, CallOutcome(key=key, error=exc))

        runnable = [key for key in submitted if key not in outcome.errors]
        first_round = [key for key in runnable if not self._graph.get_dependencies(key)]
        first_set = set(first_round)
        rest = [key for key in runnable if key not in first_set]

        await self._execute_round(
            [CallRequest(key=key, params=dict(initial.get(key, {}))) for key in first_round],
            outcome,
        )

        while rest:
            processable: list[CallRequest] = []
            settled: set[OperationKey] = set()
            for key in rest:
                try:
                    derived = self._graph.build_params(key, outcome.results)
                except Exception as exc:  # noqa: BLE001
                    logger.warning(
                        "Deriving parameters for '%s' failed: %s", key, exc
                    )
                    self._record(outcome, CallOutcome(key=key, error=exc))
                    settled.add(key)
                    continue
                if derived is None:
                    continue
                processable.append(
                    CallRequest(key=key, params=merge_params(derived, initial.get(key)))
                )

            if not processable and not settled:
                break

            await self._execute_round(processable, outcome)
            settled.update(request.key for request in processable)
            rest = [key for key in rest if key not in settled]

        outcome.remaining = rest
        if rest:
            self._explain_blocked(outcome, submitted)
        return outcome

    async def _execute_round(
        self,
        calls: Sequence[CallRequest],
        outcome: ScheduleResult,
    ) -> None:
        if not calls:
            return
        round_keys = [request.key for request in calls]
        outcome.rounds.append(round_keys)
        self._metrics.incr("scheduler_rounds_total")
        logger.debug(
            "Executing round %d with %d operation(s): %s",
            len(outcome.rounds) - 1,
            len(round_keys),
            ", ".join(round_keys),
        )

        try:
            returned: Sequence[CallOutcome] = await self._batch_call(calls)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Batch call raised for round with keys %s", round_keys)
            failures: list[CallOutcome] = []
            for key in round_keys:
                error = BatchCallError(key, f"batch call raised: {exc}")
                error.__cause__ = exc
                failures.append(CallOutcome(key=key, error=error))
            returned = failures

        expected = set(round_keys)
        seen: set[OperationKey] = set()
        for row in returned:
            if row.key not in expected:
                logger.warning("Ignoring outcome for unexpected key '%s'", row.key)
                continue
            if row.key in seen:
                logger.warning("Ignoring duplicate outcome for key '%s'", row.key)
                continue
            seen.add(row.key)
            self._record(outcome, row)

        for key in round_keys:
            if key not in seen:
                logger.warning("Batch call returned no outcome for key '%s'", key)
                self._record(
                    outcome,
                    CallOutcome(
                        key=key,
                        error=BatchCallError(key, "batch call returned no outcome"),
                    ),
                )

    def _record(self, outcome: ScheduleResult, row: CallOutcome) -> None:
        if row.error is None:
            outcome.results[row.key] = row.result
            outcome.states[row.key] = Succeeded(value=row.result)
            status = "succeeded"
        else:
            outcome.errors[row.key] = row.error
            outcome.states[row.key] = Failed(error=row.error)
            status = "failed"
        self._metrics.incr("scheduler_operations_total", tags={"status": status})

    def _explain_blocked(
        self,
        outcome: ScheduleResult,
        submitted: Sequence[OperationKey],
    ) -> None:
        submitted_set = set(submitted)
        cycle_keys = GraphValidator(self._graph).cycle_members(outcome.remaining)
        outcome.cycles = [key for key in outcome.remaining if key in cycle_keys]
        if outcome.cycles:
            logger.warning(
                "Dependency cycle among operations: %s", ", ".join(outcome.cycles)
            )

        def walk(key: OperationKey, visited: set[OperationKey]) -> ResolutionState | None:
            for edge in self._graph.get_dependencies(key):
                dep = edge.depends_on
                if dep in outcome.results:
                    continue
                if dep in outcome.errors:
                    return Blocked(cause_key=dep, reason="failed_dependency")
                if dep not in submitted_set:
                    return Blocked(cause_key=dep, reason="missing_dependency")
                if dep in cycle_keys:
                    return Blocked(cause_key=dep, reason="cycle")
                if dep in visited:
                    continue
                visited.add(dep)
                found = walk(dep, visited)
                if found is not None:
                    return found
            return None

        for key in outcome.remaining:
            state = walk(key, {key})
            outcome.states[key] = state if state is not None else Pending()
            self._metrics.incr("scheduler_operations_total", tags={"status": "blocked"})

        logger.info(
            "%d operation(s) could not be scheduled: %s",
            len(outcome.remaining),
            ", ".join(outcome.remaining),
        )
