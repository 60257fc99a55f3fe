"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Parameter and response helpers shared by callers of the scheduler and cache.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

from pydantic import BaseModel

from .types import OperationKey, ParameterMap, to_parameter_map

logger = logging.getLogger("fetchflow.utils")

T = TypeVar("T")


def merge_params(
    derived: Mapping[str, Any] | BaseModel | None,
    initial: Mapping[str, Any] | BaseModel | None,
) -> ParameterMap:
    """Dependency-derived values are defaults; caller-supplied values win."""
    merged = to_parameter_map(derived)
    merged.update(to_parameter_map(initial))
    return merged


def params_builder(
    defaults: Mapping[str, Any] | None = None,
) -> Callable[[Mapping[str, Any] | None], ParameterMap]:
    """Return a builder that overlays custom parameters on `defaults`."""
    base = dict(defaults or {})

    def build(custom: Mapping[str, Any] | None = None) -> ParameterMap:
        return {**base, **dict(custom or {})}

    return build


def response_transformer(
    transformers: Mapping[OperationKey, Callable[[Any], Any]] | None = None,
) -> Callable[[OperationKey, Any], Any]:
    """Return `(key, response)` callable applying a per-key transform."""
    table = dict(transformers or {})

    def transform(key: OperationKey, response: Any) -> Any:
        transformer = table.get(key)
        if transformer is None:
            return response
        return transformer(response)

    return transform


def format_response(response: Any, formatter: Callable[[Any], Any]) -> Any:
    """Apply `formatter`, falling back to the raw response if it fails."""
    if response is None:
        return None
    try:
        return formatter(response)
    except Exception:  # noqa: BLE001
        logger.exception("Response formatter failed; returning raw response")
        return response


async def await_with_timeout(awaitable: Awaitable[T], timeout_s: float | None) -> T:
    """Await value with optional timeout."""
    if timeout_s is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout=timeout_s)
