"""Repository tracking: mirror management, tag resolution and tree diffs."""

from scid.vcs.engine import GitPythonEngine, GitPythonRepository, Repository, RevisionEngine
from scid.vcs.resolver import RevisionResolver
from scid.vcs.tracker import SnapshotTracker, mirror_dir_name

__all__ = [
    "GitPythonEngine",
    "GitPythonRepository",
    "Repository",
    "RevisionEngine",
    "RevisionResolver",
    "SnapshotTracker",
    "mirror_dir_name",
]
