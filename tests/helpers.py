"""Shared fakes and factories for scid tests.

FakeRepository / FakeEngine implement the revision-engine protocol in
memory so tracker and pipeline tests never need a real ``git`` binary.
RecordingSpawn and RecordingNotifier stand in for process launching and
notification delivery.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from scid.errors import ResolutionError
from scid.models.jobs import ChartNode, JobSpec
from scid.models.notices import DeploymentNotice
from scid.models.snapshot import ChangeRecord, PullResult, Snapshot, TagRef
from scid.notifications.manager import NotificationDispatcher

# ---------------------------------------------------------------------------
# Revision engine
# ---------------------------------------------------------------------------


@dataclass
class FakeRepository:
    """In-memory ``Repository``.

    ``branch_heads`` maps branch -> commit the branch points at after a pull;
    ``diffs`` maps (old, new) -> change records.
    """

    head_revision: str
    branch_heads: dict[str, str] = field(default_factory=dict)
    tags: list[TagRef] = field(default_factory=list)
    diffs: dict[tuple[str, str], list[ChangeRecord]] = field(default_factory=dict)
    calls: list[tuple[str, ...]] = field(default_factory=list)

    def head(self) -> str:
        return self.head_revision

    def checkout(self, ref: str) -> None:
        self.calls.append(("checkout", ref))
        self.head_revision = self.branch_heads.get(ref, ref)

    def pull(self, branch: str) -> PullResult:
        self.calls.append(("pull", branch))
        target = self.branch_heads.get(branch, self.head_revision)
        if target == self.head_revision:
            return PullResult.ALREADY_UP_TO_DATE
        self.head_revision = target
        return PullResult.UPDATED

    def list_tags(self) -> list[TagRef]:
        self.calls.append(("list_tags",))
        return list(self.tags)

    def resolve(self, expression: str) -> str:
        self.calls.append(("resolve", expression))
        for tag in self.tags:
            if tag.name == expression:
                return tag.target
        if expression in self.branch_heads.values():
            return expression
        raise ResolutionError(f"revision {expression!r} does not resolve")

    def diff_trees(self, old: str, new: str) -> list[ChangeRecord]:
        self.calls.append(("diff_trees", old, new))
        return list(self.diffs.get((old, new), []))


@dataclass
class FakeEngine:
    """In-memory ``RevisionEngine`` that creates the mirror directory on clone."""

    repository: FakeRepository
    cloned: list[tuple[str, str, Path]] = field(default_factory=list)
    opened: list[Path] = field(default_factory=list)

    def clone(self, url: str, branch: str, path: Path) -> FakeRepository:
        path.mkdir(parents=True, exist_ok=True)
        self.cloned.append((url, branch, path))
        self.repository.head_revision = self.repository.branch_heads.get(branch, self.repository.head_revision)
        return self.repository

    def open(self, path: Path) -> FakeRepository:
        self.opened.append(path)
        return self.repository


# ---------------------------------------------------------------------------
# Process launching and notifications
# ---------------------------------------------------------------------------


class RecordingSpawn:
    """Async stand-in for ``spawn_action``.

    ``results`` maps the first argument after the program (or the program
    itself) to (output, returncode); anything else succeeds with "ok".
    """

    def __init__(self, results: dict[str, tuple[str, int]] | None = None) -> None:
        self.results = results or {}
        self.calls: list[list[str]] = []

    async def __call__(self, argv: Sequence[str], cwd: Path | None = None) -> tuple[str, int]:
        self.calls.append(list(argv))
        for key in argv:
            if key in self.results:
                return self.results[key]
        return "ok", 0


class RecordingNotifier(NotificationDispatcher):
    """Dispatcher that records notices instead of sending them."""

    def __init__(self, deliver: bool = True) -> None:
        super().__init__(channels=[])
        self.deliver = deliver
        self.notices: list[DeploymentNotice] = []

    async def notify(self, notice: DeploymentNotice) -> bool:
        self.notices.append(notice)
        return self.deliver


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_snapshot(
    old: str | None = "aaa111",
    new: str = "bbb222",
    changed: Sequence[str] = (),
    local_path: Path = Path("/tmp/mirror"),
) -> Snapshot:
    return Snapshot(local_path=local_path, old_revision=old, new_revision=new, changed_paths=tuple(changed))


def make_job(
    name: str = "deploy-api",
    watch_paths: Sequence[str] = ("services/api/",),
    action: Sequence[str] = ("make", "deploy-api"),
    color: str | None = None,
) -> JobSpec:
    return JobSpec(name=name, watch_paths=tuple(watch_paths), action=tuple(action), color=color)


def make_chart(name: str, dependencies: Sequence[str] = (), charts_path: str = "charts") -> ChartNode:
    return ChartNode(
        name=name,
        chart_dir=f"{charts_path}/{name}",
        release_name=name,
        namespace="default",
        dependencies=tuple(dependencies),
    )
