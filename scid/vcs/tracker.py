"""Local mirror tracking and snapshot construction.

``SnapshotTracker.observe`` is the only place scid touches the revision
engine.  The tree diff is computed eagerly here and cached inside the
immutable ``Snapshot``, so no downstream (concurrent) component ever reads
the repository object database.
"""

from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path

from scid.models.snapshot import PullResult, Snapshot, TagPolicy
from scid.observability.logging import get_logger
from scid.vcs.engine import RevisionEngine, Repository
from scid.vcs.resolver import RevisionResolver

_log = get_logger("vcs.tracker")


def mirror_dir_name(repo_url: str, branch: str) -> str:
    """Deterministic directory name for a repository+branch mirror."""
    return hashlib.sha256((repo_url + branch).encode("utf-8")).hexdigest()


class SnapshotTracker:
    """Owns the local mirror of one branch.

    Args:
        engine:      Revision engine used to clone/open the mirror.
        mirror_root: Directory holding mirrors; reused across runs.
    """

    def __init__(self, engine: RevisionEngine, mirror_root: Path) -> None:
        self._engine = engine
        self._mirror_root = mirror_root

    def mirror_path(self, repo_url: str, branch: str) -> Path:
        return self._mirror_root / mirror_dir_name(repo_url, branch)

    async def observe_async(self, repo_url: str, branch: str, tag_policy: TagPolicy) -> Snapshot:
        """Run ``observe`` in a worker thread so the event loop stays free."""
        return await asyncio.to_thread(self.observe, repo_url, branch, tag_policy)

    def observe(self, repo_url: str, branch: str, tag_policy: TagPolicy) -> Snapshot:
        """Bring the mirror up to date and describe what moved.

        Raises:
            VcsError: clone, open, pull, checkout or diff failed.
            ResolutionError: the tag policy could not be resolved.
        """
        resolver = RevisionResolver(tag_policy)
        path = self.mirror_path(repo_url, branch)

        if not path.exists():
            repo = self._engine.clone(repo_url, branch, path)
            self._apply_tag_policy(repo, resolver)
            new_revision = repo.head()
            _log.info("mirror_created", path=str(path), branch=branch, new_revision=new_revision)
            return Snapshot(local_path=path, old_revision=None, new_revision=new_revision)

        repo = self._engine.open(path)
        old_revision = repo.head()
        repo.checkout(branch)
        result = repo.pull(branch)
        if result == PullResult.ALREADY_UP_TO_DATE:
            _log.debug("branch_already_up_to_date", branch=branch)
        self._apply_tag_policy(repo, resolver)
        new_revision = repo.head()

        changed_paths: tuple[str, ...] = ()
        if new_revision != old_revision:
            changed_paths = self._changed_paths(repo, old_revision, new_revision)

        _log.info(
            "mirror_updated",
            path=str(path),
            branch=branch,
            old_revision=old_revision,
            new_revision=new_revision,
            changed=len(changed_paths),
        )
        return Snapshot(
            local_path=path,
            old_revision=old_revision,
            new_revision=new_revision,
            changed_paths=changed_paths,
        )

    @staticmethod
    def _apply_tag_policy(repo: Repository, resolver: RevisionResolver) -> None:
        revision = resolver.resolve(repo)
        if revision is not None:
            repo.checkout(revision)

    @staticmethod
    def _changed_paths(repo: Repository, old: str, new: str) -> tuple[str, ...]:
        # Both sides of every record: a rename must still mark its old location.
        seen: dict[str, None] = {}
        for record in repo.diff_trees(old, new):
            if record.from_path:
                seen.setdefault(record.from_path, None)
            if record.to_path:
                seen.setdefault(record.to_path, None)
        return tuple(seen)
