"""Revision-control engine contract and its GitPython implementation.

scid implements no version-control logic of its own.  Everything it needs
from Git goes through the small ``Repository`` protocol below:

    head, checkout, pull, list_tags, resolve, diff_trees

GitPython is synchronous and its object database is not safe to share
between threads, so a ``Repository`` is only ever used from the single
snapshot-construction step (see ``scid.vcs.tracker``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

import git
from git.exc import BadName, BadObject, GitError

from scid.errors import ResolutionError, VcsError
from scid.models.snapshot import ChangeRecord, PullResult, TagRef
from scid.observability.logging import get_logger

_log = get_logger("vcs.engine")


class Repository(Protocol):
    """An opened local mirror."""

    def head(self) -> str: ...

    def checkout(self, ref: str) -> None: ...

    def pull(self, branch: str) -> PullResult: ...

    def list_tags(self) -> list[TagRef]: ...

    def resolve(self, expression: str) -> str: ...

    def diff_trees(self, old: str, new: str) -> list[ChangeRecord]: ...


class RevisionEngine(Protocol):
    """Creates or opens local mirrors."""

    def clone(self, url: str, branch: str, path: Path) -> Repository: ...

    def open(self, path: Path) -> Repository: ...


class GitPythonRepository:
    """``Repository`` backed by a ``git.Repo``."""

    def __init__(self, repo: git.Repo) -> None:
        self._repo = repo

    def head(self) -> str:
        try:
            return self._repo.head.commit.hexsha
        except (GitError, ValueError) as exc:
            raise VcsError(f"cannot read HEAD of {self._repo.working_dir}: {exc}") from exc

    def checkout(self, ref: str) -> None:
        try:
            self._repo.git.checkout(ref)
        except GitError as exc:
            raise VcsError(f"checkout of {ref!r} failed: {exc}") from exc

    def pull(self, branch: str) -> PullResult:
        before = self.head()
        try:
            # Tags too, so tag policies see releases cut on older commits.
            self._repo.remote().pull(branch, ff_only=True, tags=True)
        except (GitError, ValueError) as exc:
            raise VcsError(f"pull of branch {branch!r} failed: {exc}") from exc
        if self.head() == before:
            return PullResult.ALREADY_UP_TO_DATE
        return PullResult.UPDATED

    def list_tags(self) -> list[TagRef]:
        tags: list[TagRef] = []
        for tag in self._repo.tags:
            try:
                tags.append(TagRef(name=tag.name, target=tag.commit.hexsha))
            except (ValueError, BadObject):
                # Tags pointing at trees or blobs have no commit to deploy.
                _log.debug("tag_without_commit_ignored", tag=tag.name)
        return tags

    def resolve(self, expression: str) -> str:
        try:
            return self._repo.commit(expression).hexsha
        except (BadName, BadObject, ValueError) as exc:
            raise ResolutionError(f"revision {expression!r} does not resolve: {exc}") from exc

    def diff_trees(self, old: str, new: str) -> list[ChangeRecord]:
        try:
            old_commit = self._repo.commit(old)
            new_commit = self._repo.commit(new)
            diffs = old_commit.diff(new_commit, M=True)
        except (GitError, BadName, BadObject, ValueError) as exc:
            raise VcsError(f"tree diff {old}..{new} failed: {exc}") from exc

        records: list[ChangeRecord] = []
        for diff in diffs:
            records.append(
                ChangeRecord(
                    from_path=None if diff.new_file else diff.a_path,
                    to_path=None if diff.deleted_file else diff.b_path,
                )
            )
        return records


class GitPythonEngine:
    """``RevisionEngine`` backed by GitPython and the ``git`` binary."""

    def clone(self, url: str, branch: str, path: Path) -> GitPythonRepository:
        _log.info("cloning", url=url, branch=branch, path=str(path))
        try:
            repo = git.Repo.clone_from(url, path, branch=branch, single_branch=True)
        except GitError as exc:
            raise VcsError(f"clone of {url} ({branch}) failed: {exc}") from exc
        return GitPythonRepository(repo)

    def open(self, path: Path) -> GitPythonRepository:
        try:
            repo = git.Repo(path)
        except GitError as exc:
            raise VcsError(f"cannot open mirror at {path}: {exc}") from exc
        return GitPythonRepository(repo)
