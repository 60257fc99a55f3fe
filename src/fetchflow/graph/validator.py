"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Topological layering and cycle detection over a dependency graph.
"""

from __future__ import annotations

from collections.abc import Iterable

from ..errors import DependencyCycleError, DependencyGraphError
from ..types import OperationKey
from .model import DependencyGraph


class GraphValidator:
    """Validate a key set against a dependency graph and produce stable rounds."""

    def __init__(self, graph: DependencyGraph) -> None:
        self._graph = graph

    def _induced(
        self, keys: Iterable[OperationKey]
    ) -> tuple[list[OperationKey], dict[OperationKey, set[OperationKey]]]:
        ordered = list(dict.fromkeys(keys))
        members = set(ordered)
        parents: dict[OperationKey, set[OperationKey]] = {}
        for key in ordered:
            parents[key] = {
                edge.depends_on
                for edge in self._graph.get_dependencies(key)
                if edge.depends_on in members
            }
        return ordered, parents

    def _kahn(
        self, keys: Iterable[OperationKey]
    ) -> tuple[list[list[OperationKey]], set[OperationKey]]:
        ordered, parents = self._induced(keys)
        indegree = {key: len(deps) for key, deps in parents.items()}
        children: dict[OperationKey, list[OperationKey]] = {key: [] for key in ordered}
        for key, deps in parents.items():
            for dep in deps:
                children[dep].append(key)

        layers: list[list[OperationKey]] = []
        ready = sorted(key for key, degree in indegree.items() if degree == 0)
        while ready:
            layers.append(ready)
            upcoming: list[OperationKey] = []
            for current in ready:
                for child in children[current]:
                    indegree[child] -= 1
                    if indegree[child] == 0:
                        upcoming.append(child)
            ready = sorted(upcoming)

        unordered = {key for key, degree in indegree.items() if degree > 0}
        return layers, unordered

    def layers(self, keys: Iterable[OperationKey]) -> list[list[OperationKey]]:
        """
        Return execution rounds for `keys`, each round sorted.

        Dependencies on keys outside the set are ignored here; use
        `validate(..., require_known=True)` to reject them.
        """
        layers, unordered = self._kahn(keys)
        if unordered:
            raise DependencyCycleError(self.cycle_members(unordered) or unordered)
        return layers

    def cycle_members(self, keys: Iterable[OperationKey]) -> set[OperationKey]:
        """Keys in the set that can reach themselves through in-set dependencies."""
        _, unordered = self._kahn(keys)
        if not unordered:
            return set()
        _, parents = self._induced(unordered)

        members: set[OperationKey] = set()
        for start in parents:
            stack = list(parents[start])
            seen: set[OperationKey] = set()
            while stack:
                current = stack.pop()
                if current == start:
                    members.add(start)
                    break
                if current in seen:
                    continue
                seen.add(current)
                stack.extend(parents.get(current, ()))
        return members

    def validate(
        self,
        keys: Iterable[OperationKey],
        *,
        require_known: bool = True,
    ) -> list[list[OperationKey]]:
        """Raise for unknown dependencies or cycles; return rounds otherwise."""
        ordered = list(dict.fromkeys(keys))
        if require_known:
            members = set(ordered)
            for key in ordered:
                for edge in self._graph.get_dependencies(key):
                    if edge.depends_on not in members:
                        raise DependencyGraphError(
                            f"Operation '{key}' depends on '{edge.depends_on}' "
                            "which is not part of the submitted keys"
                        )
        return self.layers(ordered)
