"""Tests for SnapshotTracker using an in-memory revision engine."""

from __future__ import annotations

from pathlib import Path

import pytest

from scid.errors import NoMatchingTagError
from scid.models.snapshot import ChangeRecord, TagPolicy, TagRef
from scid.vcs.tracker import SnapshotTracker, mirror_dir_name
from tests.helpers import FakeEngine, FakeRepository

REPO_URL = "https://git.example.com/platform/deployments.git"


def _tracker(tmp_path: Path, repo: FakeRepository) -> tuple[SnapshotTracker, FakeEngine]:
    engine = FakeEngine(repo)
    return SnapshotTracker(engine, tmp_path), engine


class TestMirrorPath:
    def test_name_is_deterministic(self) -> None:
        assert mirror_dir_name(REPO_URL, "main") == mirror_dir_name(REPO_URL, "main")

    def test_branch_changes_name(self) -> None:
        assert mirror_dir_name(REPO_URL, "main") != mirror_dir_name(REPO_URL, "release")

    def test_path_is_under_mirror_root(self, tmp_path: Path) -> None:
        tracker, _ = _tracker(tmp_path, FakeRepository(head_revision="h0"))
        path = tracker.mirror_path(REPO_URL, "main")
        assert path.parent == tmp_path
        assert len(path.name) == 64


class TestFirstObservation:
    def test_clone_yields_no_old_revision(self, tmp_path: Path) -> None:
        repo = FakeRepository(head_revision="", branch_heads={"main": "c1"})
        tracker, engine = _tracker(tmp_path, repo)

        snapshot = tracker.observe(REPO_URL, "main", TagPolicy.disabled())

        assert snapshot.old_revision is None
        assert snapshot.new_revision == "c1"
        assert snapshot.changed_paths == ()
        assert snapshot.local_path == tracker.mirror_path(REPO_URL, "main")
        assert len(engine.cloned) == 1
        assert engine.opened == []

    def test_clone_applies_tag_policy(self, tmp_path: Path) -> None:
        repo = FakeRepository(
            head_revision="",
            branch_heads={"main": "c3"},
            tags=[TagRef("v1.0.0", "c1"), TagRef("v1.1.0", "c2")],
        )
        tracker, _ = _tracker(tmp_path, repo)

        snapshot = tracker.observe(REPO_URL, "main", TagPolicy.semver_latest())

        assert snapshot.new_revision == "c2"
        assert ("checkout", "c2") in repo.calls


class TestSubsequentObservation:
    def _existing(self, tmp_path: Path, repo: FakeRepository) -> SnapshotTracker:
        tracker, _ = _tracker(tmp_path, repo)
        tracker.mirror_path(REPO_URL, "main").mkdir(parents=True)
        return tracker

    def test_no_movement_means_no_diff(self, tmp_path: Path) -> None:
        repo = FakeRepository(head_revision="c1", branch_heads={"main": "c1"})
        tracker = self._existing(tmp_path, repo)

        snapshot = tracker.observe(REPO_URL, "main", TagPolicy.disabled())

        assert snapshot.old_revision == "c1"
        assert snapshot.new_revision == "c1"
        assert snapshot.changed_paths == ()
        assert not any(call[0] == "diff_trees" for call in repo.calls)

    def test_pull_collects_changed_paths(self, tmp_path: Path) -> None:
        repo = FakeRepository(
            head_revision="c1",
            branch_heads={"main": "c2"},
            diffs={
                ("c1", "c2"): [
                    ChangeRecord(from_path="services/api/main.go", to_path="services/api/main.go"),
                    ChangeRecord(from_path=None, to_path="charts/web/values.yaml"),
                    ChangeRecord(from_path="docs/old.md", to_path=None),
                ]
            },
        )
        tracker = self._existing(tmp_path, repo)

        snapshot = tracker.observe(REPO_URL, "main", TagPolicy.disabled())

        assert snapshot.old_revision == "c1"
        assert snapshot.new_revision == "c2"
        assert snapshot.changed_paths == (
            "services/api/main.go",
            "charts/web/values.yaml",
            "docs/old.md",
        )

    def test_rename_records_both_paths(self, tmp_path: Path) -> None:
        repo = FakeRepository(
            head_revision="c1",
            branch_heads={"main": "c2"},
            diffs={("c1", "c2"): [ChangeRecord(from_path="charts/a/values.yaml", to_path="charts/b/values.yaml")]},
        )
        tracker = self._existing(tmp_path, repo)

        snapshot = tracker.observe(REPO_URL, "main", TagPolicy.disabled())

        assert "charts/a/values.yaml" in snapshot.changed_paths
        assert "charts/b/values.yaml" in snapshot.changed_paths

    def test_checkout_branch_before_pull(self, tmp_path: Path) -> None:
        repo = FakeRepository(head_revision="c1", branch_heads={"main": "c1"})
        tracker = self._existing(tmp_path, repo)

        tracker.observe(REPO_URL, "main", TagPolicy.disabled())

        assert repo.calls[:2] == [("checkout", "main"), ("pull", "main")]

    def test_tag_movement_without_new_commits(self, tmp_path: Path) -> None:
        # Mirror sat at the old release tag; a newer tag now exists on the branch.
        repo = FakeRepository(
            head_revision="c1",
            branch_heads={"main": "c5"},
            tags=[TagRef("v1.0.0", "c1"), TagRef("v1.1.0", "c4")],
            diffs={("c1", "c4"): [ChangeRecord(from_path="app/x.py", to_path="app/x.py")]},
        )
        tracker = self._existing(tmp_path, repo)

        snapshot = tracker.observe(REPO_URL, "main", TagPolicy.semver_latest())

        assert snapshot.old_revision == "c1"
        assert snapshot.new_revision == "c4"
        assert snapshot.changed_paths == ("app/x.py",)

    def test_unresolvable_tag_policy_propagates(self, tmp_path: Path) -> None:
        repo = FakeRepository(head_revision="c1", branch_heads={"main": "c2"}, tags=[TagRef("nightly", "c2")])
        tracker = self._existing(tmp_path, repo)

        with pytest.raises(NoMatchingTagError):
            tracker.observe(REPO_URL, "main", TagPolicy.semver_latest())


class TestObserveAsync:
    async def test_runs_in_worker_thread(self, tmp_path: Path) -> None:
        repo = FakeRepository(head_revision="", branch_heads={"main": "c9"})
        tracker, _ = _tracker(tmp_path, repo)

        snapshot = await tracker.observe_async(REPO_URL, "main", TagPolicy.disabled())

        assert snapshot.new_revision == "c9"
        assert snapshot.is_first_observation
