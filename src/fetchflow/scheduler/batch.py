"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Reference batch-call primitive built on a single-operation coroutine.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from ..errors import OperationTimeoutError
from ..settings import FetchSettings
from ..types import OperationKey, ParameterMap
from ..utils import await_with_timeout
from .contracts import CallOutcome, CallRequest

logger = logging.getLogger("fetchflow.batch")

FetchOne = Callable[[OperationKey, ParameterMap], Awaitable[Any]]


class GatheringBatchCall:
    """
    Fan out one batch of requests to `fetch_one` and collect per-key outcomes.

    Failures are captured per key; cancellation of the batch propagates.
    In sequential mode the requests run one after another in input order.
    """

    def __init__(
        self,
        fetch_one: FetchOne,
        *,
        parallel: bool = True,
        timeout_s: float | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        if timeout_s is not None and timeout_s <= 0:
            raise ValueError("timeout_s must be > 0 when set")
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1 when set")
        self._fetch_one = fetch_one
        self._parallel = parallel
        self._timeout_s = timeout_s
        self._max_concurrency = max_concurrency

    @classmethod
    def from_settings(
        cls, fetch_one: FetchOne, settings: FetchSettings
    ) -> "GatheringBatchCall":
        return cls(
            fetch_one,
            parallel=settings.batch_parallel,
            timeout_s=settings.batch_timeout_s,
            max_concurrency=settings.batch_max_concurrency,
        )

    async def _call_one(
        self,
        request: CallRequest,
        semaphore: asyncio.Semaphore | None,
    ) -> CallOutcome:
        try:
            if semaphore is None:
                result = await await_with_timeout(
                    self._fetch_one(request.key, request.params), self._timeout_s
                )
            else:
                async with semaphore:
                    result = await await_with_timeout(
                        self._fetch_one(request.key, request.params), self._timeout_s
                    )
        except asyncio.TimeoutError as exc:
            if self._timeout_s is None:
                return CallOutcome(key=request.key, error=exc)
            error = OperationTimeoutError(request.key, self._timeout_s)
            logger.debug("%s", error)
            return CallOutcome(key=request.key, error=error)
        except Exception as exc:
            logger.debug("Operation '%s' failed: %s", request.key, exc)
            return CallOutcome(key=request.key, error=exc)
        return CallOutcome(key=request.key, result=result)

    async def __call__(self, calls: Sequence[CallRequest]) -> list[CallOutcome]:
        if not calls:
            return []
        if not self._parallel:
            return [await self._call_one(request, None) for request in calls]

        semaphore = (
            asyncio.Semaphore(self._max_concurrency)
            if self._max_concurrency is not None
            else None
        )
        return list(
            await asyncio.gather(
                *(self._call_one(request, semaphore) for request in calls)
            )
        )
