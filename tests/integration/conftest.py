"""Shared fixtures for scid integration tests.

Provides a throwaway upstream Git repository (driven through GitPython) so
integration tests can exercise real clone/pull/diff behaviour without any
network access.
"""

from __future__ import annotations

import shutil
from pathlib import Path

import git
import pytest

_ACTOR = git.Actor("scid tests", "scid-tests@example.com")


class Upstream:
    """A local repository standing in for the tracked remote."""

    def __init__(self, path: Path, branch: str = "main") -> None:
        path.mkdir(parents=True)
        self.path = path
        self.branch = branch
        self.repo = git.Repo.init(path)
        self.repo.git.symbolic_ref("HEAD", f"refs/heads/{branch}")

    @property
    def url(self) -> str:
        return str(self.path)

    def write(self, rel_path: str, content: str) -> None:
        target = self.path / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        self.repo.index.add([rel_path])

    def remove(self, rel_path: str) -> None:
        self.repo.git.rm(rel_path)

    def move(self, src: str, dst: str) -> None:
        (self.path / dst).parent.mkdir(parents=True, exist_ok=True)
        self.repo.git.mv(src, dst)

    def commit(self, message: str) -> str:
        return self.repo.index.commit(message, author=_ACTOR, committer=_ACTOR).hexsha

    def tag(self, name: str, ref: str = "HEAD") -> None:
        self.repo.create_tag(name, ref=ref)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def upstream(tmp_path: Path) -> Upstream:
    """Upstream repository with one initial commit on ``main``."""
    if shutil.which("git") is None:
        pytest.skip("git binary not available")
    repo = Upstream(tmp_path / "upstream")
    repo.write("README.md", "deployments\n")
    repo.write("charts/api/values.yaml", "replicas: 1\n")
    repo.commit("initial")
    return repo


@pytest.fixture
def mirror_root(tmp_path: Path) -> Path:
    root = tmp_path / "mirrors"
    root.mkdir()
    return root
