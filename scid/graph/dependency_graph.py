"""Chart dependency graph.

Nodes live in an arena keyed by stable integer indices.  An edge points
from a dependent to its dependency, so a node's out-degree is the number
of dependencies that have not finished yet.  Removing a finished node
drops every edge pointing at it, which is all it takes for its dependents
to become ready.
"""

from __future__ import annotations

from collections.abc import Iterable

from scid.errors import ConfigurationError
from scid.models.jobs import ChartNode

_WHITE, _GREY, _BLACK = 0, 1, 2


class DependencyGraph:
    """Mutable DAG of ``ChartNode``.  Not thread-safe; callers hold a lock."""

    def __init__(self) -> None:
        self._nodes: dict[int, ChartNode] = {}
        # index -> indices it still depends on
        self._out: dict[int, set[int]] = {}
        # index -> indices that depend on it
        self._in: dict[int, set[int]] = {}

    @classmethod
    def build(cls, nodes: Iterable[ChartNode]) -> DependencyGraph:
        """Build a graph, validating names, dependencies and acyclicity.

        Raises:
            ConfigurationError: duplicate chart name, unknown dependency, or cycle.
        """
        graph = cls()
        index_by_name: dict[str, int] = {}
        for index, node in enumerate(nodes):
            if node.name in index_by_name:
                raise ConfigurationError(f"duplicate chart name {node.name!r}")
            index_by_name[node.name] = index
            graph._nodes[index] = node
            graph._out[index] = set()
            graph._in[index] = set()

        for index, node in graph._nodes.items():
            for dependency_name in node.dependencies:
                dependency = index_by_name.get(dependency_name)
                if dependency is None:
                    raise ConfigurationError(
                        f"chart {node.name!r}: did not find dependency {dependency_name!r}"
                    )
                graph._out[index].add(dependency)
                graph._in[dependency].add(index)

        cycle = graph.find_cycle()
        if cycle:
            raise ConfigurationError("dependency cycle: " + " -> ".join(cycle))
        return graph

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, index: object) -> bool:
        return index in self._nodes

    def node(self, index: int) -> ChartNode:
        return self._nodes[index]

    def nodes(self) -> list[ChartNode]:
        return [self._nodes[index] for index in sorted(self._nodes)]

    def index_of(self, name: str) -> int | None:
        for index, node in self._nodes.items():
            if node.name == name:
                return index
        return None

    def out_degree(self, index: int) -> int:
        return len(self._out[index])

    def dependents(self, index: int) -> list[int]:
        return sorted(self._in[index])

    def ready(self) -> list[int]:
        """Indices with no remaining dependencies, in index order."""
        return [index for index in sorted(self._nodes) if not self._out[index]]

    def remove(self, index: int) -> None:
        """Remove a node and every edge touching it."""
        for dependent in self._in.pop(index):
            self._out[dependent].discard(index)
        for dependency in self._out.pop(index):
            self._in[dependency].discard(index)
        del self._nodes[index]

    def find_cycle(self) -> list[str]:
        """Return chart names forming a cycle (first name repeated last), or []."""
        color = dict.fromkeys(self._nodes, _WHITE)
        parent: dict[int, int] = {}

        for root in sorted(self._nodes):
            if color[root] != _WHITE:
                continue
            stack: list[tuple[int, list[int]]] = [(root, sorted(self._out[root]))]
            color[root] = _GREY
            while stack:
                current, pending = stack[-1]
                if not pending:
                    color[current] = _BLACK
                    stack.pop()
                    continue
                nxt = pending.pop(0)
                if color[nxt] == _GREY:
                    path = [nxt]
                    walk = current
                    while walk != nxt:
                        path.append(walk)
                        walk = parent[walk]
                    path.append(nxt)
                    path.reverse()
                    return [self._nodes[i].name for i in path]
                if color[nxt] == _WHITE:
                    color[nxt] = _GREY
                    parent[nxt] = current
                    stack.append((nxt, sorted(self._out[nxt])))
        return []
