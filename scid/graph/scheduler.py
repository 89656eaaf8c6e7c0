"""Dependency-ordered concurrent execution of chart nodes.

The scan loop is driven by a single-slot completion signal (an
``asyncio.Event``): every finished node sets it, setting an already-set
event is a no-op, and the loop clears it before each scan.  So any number
of completions between two scans cost exactly one extra scan.

Invariants:
  * A node is dispatched only after each of its dependencies has been
    removed from the graph.
  * "Not yet scheduled? then mark scheduled" happens under the same lock
    as graph mutation, so no node is ever dispatched twice.
  * Dependencies order execution; they do not gate it on success.  A
    failed node is removed like a successful one.
  * ``run`` returns only after every dispatched task has finished.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from scid.graph.dependency_graph import DependencyGraph
from scid.models.jobs import ChartNode
from scid.observability.logging import get_logger

_log = get_logger("graph.scheduler")

T = TypeVar("T")


class DependencyScheduler(Generic[T]):
    """Drives ``execute`` over every node of a ``DependencyGraph``.

    The graph is consumed: it is empty once ``run`` returns.

    Args:
        graph:   Validated, acyclic dependency graph.
        execute: Coroutine function run once per node.  Exceptions it
                 raises are logged and recorded, never propagated.
    """

    def __init__(self, graph: DependencyGraph, execute: Callable[[ChartNode], Awaitable[T]]) -> None:
        self._graph = graph
        self._execute = execute
        self._lock = asyncio.Lock()
        self._scheduled: set[int] = set()
        self._completed = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []
        self._results: dict[str, T | Exception] = {}
        self._dispatch_order: list[str] = []

    @property
    def dispatch_order(self) -> list[str]:
        return list(self._dispatch_order)

    async def run(self) -> list[tuple[str, T | Exception]]:
        """Execute every node in dependency order.

        Returns (chart name, result or raised exception) in dispatch order.
        """
        self._completed.set()

        while True:
            async with self._lock:
                if len(self._graph) == 0:
                    break

            await self._completed.wait()
            self._completed.clear()
            await self._dispatch_ready()

        await asyncio.gather(*self._tasks)
        return [(name, self._results[name]) for name in self._dispatch_order]

    async def _dispatch_ready(self) -> None:
        async with self._lock:
            for index in self._graph.ready():
                if index in self._scheduled:
                    continue
                self._scheduled.add(index)
                node = self._graph.node(index)
                self._dispatch_order.append(node.name)
                _log.debug("chart_dispatched", chart=node.name)
                task = asyncio.create_task(self._run_node(index, node), name=f"chart-{node.name}")
                self._tasks.append(task)

    async def _run_node(self, index: int, node: ChartNode) -> None:
        result: T | Exception
        try:
            result = await self._execute(node)
        except Exception as exc:  # noqa: BLE001
            _log.error("chart_run_failed", chart=node.name, error=str(exc))
            result = exc
        self._results[node.name] = result

        async with self._lock:
            self._graph.remove(index)
        self._completed.set()
