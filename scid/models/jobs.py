"""Action definitions and their per-run outcomes."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from enum import StrEnum

from scid.errors import ActionError, InfraError
from scid.models.snapshot import Snapshot


class ActionKind(StrEnum):
    """Which pipeline an action belongs to."""

    JOB = "job"
    HELM = "helm"


@dataclass(frozen=True)
class JobSpec:
    """An action gated by watch-path prefixes.  Loaded once, never mutated."""

    name: str
    watch_paths: tuple[str, ...]
    action: tuple[str, ...]
    color: str | None = None
    kind: ActionKind = ActionKind.JOB

    @property
    def title(self) -> str:
        if self.kind == ActionKind.HELM:
            return f"Helm Chart {self.name}"
        return self.name


@dataclass(frozen=True)
class ChartNode:
    """A Helm chart discovered in the tracked repository.

    ``chart_dir`` is relative to the repository root; it doubles as the
    chart's only watch path.  ``dependencies`` name other charts by their
    directory name.
    """

    name: str
    chart_dir: str
    release_name: str
    namespace: str
    chart_path_override: str = ""
    value_paths: tuple[str, ...] = ()
    optional_value_paths: tuple[str, ...] = ()
    encrypted_value_paths: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()

    @property
    def watch_paths(self) -> tuple[str, ...]:
        return (self.chart_dir,)

    @property
    def chart_path(self) -> str:
        if not self.chart_path_override:
            return self.chart_dir
        return posixpath.join(self.chart_dir, self.chart_path_override)


@dataclass
class RunOutcome:
    """What happened to one job or chart during a run."""

    name: str
    changed_path: str | None = None
    output: str = ""
    action_error: ActionError | None = None
    infra_error: InfraError | None = None
    dry_run: bool = False

    @property
    def skipped(self) -> bool:
        return self.changed_path is None

    @property
    def failed(self) -> bool:
        return self.action_error is not None or self.infra_error is not None


@dataclass
class RunReport:
    """Outcomes of both pipelines for one snapshot."""

    snapshot: Snapshot
    charts: list[RunOutcome] = field(default_factory=list)
    jobs: list[RunOutcome] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in [*self.charts, *self.jobs] if outcome.failed)

    @property
    def executed(self) -> int:
        return sum(1 for outcome in [*self.charts, *self.jobs] if not outcome.skipped)
