"""Chart dependency graph and its dependency-ordered scheduler."""

from scid.graph.dependency_graph import DependencyGraph
from scid.graph.scheduler import DependencyScheduler

__all__ = [
    "DependencyGraph",
    "DependencyScheduler",
]
