"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Dependency graph storage and validation.
"""

from .model import DependencyEdge, DependencyGraph, DeriveParams
from .validator import GraphValidator

__all__ = [
    "DependencyEdge",
    "DependencyGraph",
    "DeriveParams",
    "GraphValidator",
]
