"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Common types shared by the dependency graph, scheduler and cache.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeAlias

from pydantic import BaseModel

JSONPrimitive: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]

OperationKey: TypeAlias = str
ParameterMap: TypeAlias = dict[str, Any]


def to_parameter_map(value: Mapping[str, Any] | BaseModel | None) -> ParameterMap:
    """Normalize a mapping or pydantic model into a fresh parameter dict."""
    if value is None:
        return {}
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, Mapping):
        return dict(value)
    raise TypeError(
        f"Parameters must be a mapping or pydantic model, got {type(value).__name__}"
    )
