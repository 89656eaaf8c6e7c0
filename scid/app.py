"""Application bootstrap for scid.

One invocation is one cycle:
    config → logging → snapshot → head check → chart graph → notifications
    → (charts pipeline ‖ jobs pipeline)

The snapshot is built (and the repository diffed) before anything runs
concurrently.  Chart discovery and graph validation also happen up front,
so a bad chart configuration aborts the run before any action executes.
Once the pipelines start, per-action failures are recorded in the
``RunReport`` and never abort the run.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Any

from scid import __version__
from scid.config import load_config, tag_policy_from_config
from scid.drivers.helm import DecryptFn, HelmDriver, build_chart_graph, sops_decrypt
from scid.drivers.jobs import jobs_from_config, run_jobs
from scid.errors import ConfigurationError, ScidError
from scid.gate import ChangeGate
from scid.graph import DependencyGraph
from scid.models.config import ScidConfig
from scid.models.jobs import RunOutcome, RunReport
from scid.models.snapshot import Snapshot
from scid.notifications import NotificationDispatcher, build_notification_dispatcher
from scid.observability.logging import get_logger, setup_logging
from scid.runner import ActionRunner, SpawnFn, spawn_action
from scid.vcs.engine import GitPythonEngine, RevisionEngine
from scid.vcs.tracker import SnapshotTracker

if TYPE_CHECKING:
    import structlog


class ScidApp:
    """Application root for a single run.

    Collaborators default to the real implementations; tests replace the
    revision engine, process launcher, decryptor and notifier.
    """

    def __init__(
        self,
        config: ScidConfig,
        *,
        engine: RevisionEngine | None = None,
        notifier: NotificationDispatcher | None = None,
        spawn: SpawnFn = spawn_action,
        decrypt: DecryptFn = sops_decrypt,
    ) -> None:
        self.config = config
        self._engine = engine or GitPythonEngine()
        self._notifier = notifier
        self._spawn = spawn
        self._decrypt = decrypt
        self._log: structlog.stdlib.BoundLogger = get_logger("app")

    async def run(self) -> RunReport | None:
        """Run one cycle.  Returns None when the branch head did not move.

        Raises:
            ConfigurationError, ResolutionError, VcsError: fatal for the run;
                raised before any action is executed.
        """
        config = self.config
        tracker = SnapshotTracker(self._engine, config.mirror_root)
        snapshot = await tracker.observe_async(config.repo_url, config.branch, tag_policy_from_config(config.tag))

        gate = ChangeGate(snapshot, config.run_flags())
        if not gate.head_moved():
            self._log.info("no_new_commits", revision=snapshot.new_revision)
            return None
        self._log.info(
            "branch_head_moved",
            old_revision=snapshot.old_revision,
            new_revision=snapshot.new_revision,
            dry_run=config.dry_run,
            force_rerun=config.force_rerun,
        )

        graph = self._build_chart_graph(snapshot)
        notifier = self._notifier or build_notification_dispatcher(config)
        runner = ActionRunner(gate, notifier, cwd=snapshot.local_path, spawn=self._spawn)

        charts, jobs = await asyncio.gather(
            self._run_charts(runner, graph, snapshot),
            self._run_jobs(runner),
        )
        report = RunReport(snapshot=snapshot, charts=charts, jobs=jobs)
        self._log.info(
            "run_finished",
            executed=report.executed,
            failed=report.failed,
            charts=len(charts),
            jobs=len(jobs),
        )
        return report

    def _build_chart_graph(self, snapshot: Snapshot) -> DependencyGraph | None:
        helm = self.config.helm
        if helm is None or not helm.charts_path:
            return None
        return build_chart_graph(snapshot.local_path, helm)

    async def _run_charts(
        self,
        runner: ActionRunner,
        graph: DependencyGraph | None,
        snapshot: Snapshot,
    ) -> list[RunOutcome]:
        if graph is None:
            return []
        driver = HelmDriver(runner, snapshot.local_path, decrypt=self._decrypt)
        try:
            return await driver.run(graph)
        except Exception as exc:  # noqa: BLE001
            self._log.error("running_helm_driver", error=str(exc))
            return []

    async def _run_jobs(self, runner: ActionRunner) -> list[RunOutcome]:
        try:
            return await run_jobs(runner, jobs_from_config(self.config))
        except Exception as exc:  # noqa: BLE001
            self._log.error("running_jobs", error=str(exc))
            return []


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main(config_path: Path | None = None, **overrides: Any) -> int:
    """Load configuration, run one cycle and return the process exit code."""
    try:
        config = load_config(config_path, **overrides)
    except ConfigurationError as exc:
        setup_logging()
        get_logger("app").critical("creating_config", error=str(exc))
        return 1

    setup_logging(config.log.level, config.log.format)
    log = get_logger("app")
    log.info("scid_starting", version=__version__, repo_url=config.repo_url, branch=config.branch)

    try:
        await ScidApp(config).run()
    except ScidError as exc:
        log.critical("fatal_run_error", error_type=type(exc).__name__, error=str(exc))
        return 1
    return 0
