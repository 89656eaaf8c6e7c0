"""Tests for DependencyScheduler ordering and concurrency."""

from __future__ import annotations

import asyncio

from hypothesis import given, settings
from hypothesis import strategies as st

from scid.graph.dependency_graph import DependencyGraph
from scid.graph.scheduler import DependencyScheduler
from scid.models.jobs import ChartNode
from tests.helpers import make_chart


class _Recorder:
    """Execute callback that records start/finish order and checks dependencies."""

    def __init__(self, charts: list[ChartNode], fail: set[str] | None = None) -> None:
        self.dependencies = {chart.name: set(chart.dependencies) for chart in charts}
        self.fail = fail or set()
        self.started: list[str] = []
        self.finished: list[str] = []
        self.violations: list[str] = []

    async def __call__(self, node: ChartNode) -> str:
        if not self.dependencies[node.name] <= set(self.finished):
            self.violations.append(node.name)
        self.started.append(node.name)
        await asyncio.sleep(0)
        self.finished.append(node.name)
        if node.name in self.fail:
            raise RuntimeError(f"{node.name} exploded")
        return f"done:{node.name}"


class TestOrdering:
    async def test_chain_runs_in_dependency_order(self) -> None:
        charts = [make_chart("app", ["api"]), make_chart("api", ["db"]), make_chart("db")]
        recorder = _Recorder(charts)

        results = await DependencyScheduler(DependencyGraph.build(charts), recorder).run()

        assert recorder.started == ["db", "api", "app"]
        assert [name for name, _ in results] == ["db", "api", "app"]
        assert recorder.violations == []

    async def test_empty_graph_returns_immediately(self) -> None:
        results = await DependencyScheduler(DependencyGraph.build([]), _Recorder([])).run()
        assert results == []

    async def test_graph_is_consumed(self) -> None:
        charts = [make_chart("a"), make_chart("b", ["a"])]
        graph = DependencyGraph.build(charts)
        await DependencyScheduler(graph, _Recorder(charts)).run()
        assert len(graph) == 0

    async def test_each_node_dispatched_exactly_once(self) -> None:
        charts = [
            make_chart("top", ["left", "right"]),
            make_chart("left", ["base"]),
            make_chart("right", ["base"]),
            make_chart("base"),
        ]
        recorder = _Recorder(charts)
        scheduler = DependencyScheduler(DependencyGraph.build(charts), recorder)

        await scheduler.run()

        assert sorted(scheduler.dispatch_order) == ["base", "left", "right", "top"]
        assert sorted(recorder.started) == ["base", "left", "right", "top"]
        assert scheduler.dispatch_order[0] == "base"
        assert scheduler.dispatch_order[-1] == "top"
        assert recorder.violations == []


class TestConcurrency:
    async def test_independent_nodes_run_concurrently(self) -> None:
        charts = [make_chart("a"), make_chart("b"), make_chart("c")]
        started: set[str] = set()
        all_started = asyncio.Event()

        async def execute(node: ChartNode) -> str:
            started.add(node.name)
            if len(started) == len(charts):
                all_started.set()
            # Deadlocks (and times out) unless every node is in flight at once.
            await asyncio.wait_for(all_started.wait(), timeout=2)
            return node.name

        results = await DependencyScheduler(DependencyGraph.build(charts), execute).run()

        assert sorted(name for name, _ in results) == ["a", "b", "c"]
        assert all(not isinstance(result, Exception) for _, result in results)

    async def test_dependent_waits_for_slow_dependency(self) -> None:
        charts = [make_chart("fast"), make_chart("slow"), make_chart("after", ["slow"])]
        finished: list[str] = []

        async def execute(node: ChartNode) -> None:
            if node.name == "slow":
                await asyncio.sleep(0.05)
            finished.append(node.name)

        await DependencyScheduler(DependencyGraph.build(charts), execute).run()

        assert finished.index("after") > finished.index("slow")
        assert finished[0] == "fast"


class TestFailures:
    async def test_failed_dependency_still_releases_dependents(self) -> None:
        charts = [make_chart("api", ["db"]), make_chart("db")]
        recorder = _Recorder(charts, fail={"db"})

        results = dict(await DependencyScheduler(DependencyGraph.build(charts), recorder).run())

        assert isinstance(results["db"], RuntimeError)
        assert results["api"] == "done:api"
        assert recorder.started == ["db", "api"]

    async def test_failure_does_not_stop_siblings(self) -> None:
        charts = [make_chart("a"), make_chart("b"), make_chart("c")]
        recorder = _Recorder(charts, fail={"b"})

        results = dict(await DependencyScheduler(DependencyGraph.build(charts), recorder).run())

        assert results["a"] == "done:a"
        assert results["c"] == "done:c"
        assert isinstance(results["b"], RuntimeError)


# ---------------------------------------------------------------------------
# Property: random DAGs
# ---------------------------------------------------------------------------


@st.composite
def _dags(draw: st.DrawFn) -> list[ChartNode]:
    size = draw(st.integers(min_value=1, max_value=12))
    charts: list[ChartNode] = []
    for index in range(size):
        # Only depend on lower indices, which keeps the graph acyclic.
        deps = draw(st.sets(st.integers(min_value=0, max_value=index - 1), max_size=index)) if index else set()
        charts.append(make_chart(f"c{index}", [f"c{d}" for d in sorted(deps)]))
    return list(reversed(charts))


class TestRandomGraphs:
    @settings(max_examples=60, deadline=None)
    @given(charts=_dags(), failing=st.sets(st.integers(min_value=0, max_value=11), max_size=3))
    def test_every_node_runs_once_after_its_dependencies(self, charts: list[ChartNode], failing: set[int]) -> None:
        recorder = _Recorder(charts, fail={f"c{i}" for i in failing})

        async def scenario() -> list[tuple[str, object]]:
            return await DependencyScheduler(DependencyGraph.build(charts), recorder).run()

        results = asyncio.run(scenario())

        names = sorted(chart.name for chart in charts)
        assert sorted(recorder.started) == names
        assert sorted(name for name, _ in results) == names
        assert recorder.violations == []
