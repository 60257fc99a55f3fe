"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Declared dependencies between operation keys.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from ..errors import DependencyGraphError
from ..types import OperationKey, ParameterMap, to_parameter_map

DeriveParams = Callable[[Any], Mapping[str, Any] | BaseModel | None]


@dataclass(frozen=True, slots=True)
class DependencyEdge:
    """`key` needs parameters derived from the result of `depends_on`."""

    key: OperationKey
    depends_on: OperationKey
    derive_params: DeriveParams


def _check_key(value: object, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise DependencyGraphError(f"{field_name} must be a non-empty string")
    return value


class DependencyGraph:
    """
    Pure storage of "operation X needs parameters from operation Y" edges.

    Nothing here executes operations. Edges are not validated against cycles
    or against the set of keys that will eventually be submitted; use
    `GraphValidator` for that.
    """

    def __init__(self) -> None:
        self._edges: dict[OperationKey, list[DependencyEdge]] = {}

    def add_dependency(
        self,
        key: OperationKey,
        depends_on: OperationKey,
        derive_params: DeriveParams,
    ) -> DependencyEdge:
        """Append one edge to `key`'s edge list and return it."""
        _check_key(key, "key")
        _check_key(depends_on, "depends_on")
        if not callable(derive_params):
            raise DependencyGraphError("derive_params must be callable")
        edge = DependencyEdge(key=key, depends_on=depends_on, derive_params=derive_params)
        self._edges.setdefault(key, []).append(edge)
        return edge

    def get_dependencies(self, key: OperationKey) -> list[DependencyEdge]:
        """Edges registered for `key` in registration order; empty when none."""
        return list(self._edges.get(key, ()))

    def build_params(
        self,
        key: OperationKey,
        results: Mapping[OperationKey, Any],
    ) -> ParameterMap | None:
        """
        Fold derived parameters from every dependency of `key`.

        Returns `None` when at least one dependency is absent from `results`.
        Later edges overwrite earlier ones on parameter-name collision.
        """
        edges = self._edges.get(key, ())
        for edge in edges:
            if edge.depends_on not in results:
                return None

        params: ParameterMap = {}
        for edge in edges:
            params.update(to_parameter_map(edge.derive_params(results[edge.depends_on])))
        return params

    def dependents(self, key: OperationKey) -> list[OperationKey]:
        """Keys that declare a dependency on `key`."""
        return [
            dependent
            for dependent, edges in self._edges.items()
            if any(edge.depends_on == key for edge in edges)
        ]

    def remove_dependencies(self, key: OperationKey) -> int:
        """Drop all edges registered for `key`; returns how many were removed."""
        return len(self._edges.pop(key, ()))

    def clear(self) -> None:
        self._edges.clear()

    def keys(self) -> list[OperationKey]:
        """Keys with at least one registered edge."""
        return list(self._edges.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._edges

    def __len__(self) -> int:
        return len(self._edges)

    def __iter__(self) -> Iterator[DependencyEdge]:
        for edges in self._edges.values():
            yield from edges
