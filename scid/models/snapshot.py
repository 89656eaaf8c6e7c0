"""Repository observation data structures."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path


class PullResult(StrEnum):
    """Outcome of a fast-forward pull."""

    UPDATED = "updated"
    ALREADY_UP_TO_DATE = "already_up_to_date"


class TagModel(StrEnum):
    """How a symbolic release marker is turned into a revision."""

    DISABLED = "disabled"
    STATIC = "static"
    SEMVER = "semver"
    PATTERN = "pattern"


@dataclass(frozen=True)
class TagPolicy:
    """Rule for resolving a release marker into a concrete commit.

    ``value`` is the revision expression for ``STATIC`` and the regular
    expression for ``PATTERN``; it is unused otherwise.
    """

    model: TagModel = TagModel.DISABLED
    value: str = ""
    include_prerelease: bool = False

    @classmethod
    def disabled(cls) -> TagPolicy:
        return cls()

    @classmethod
    def static(cls, expression: str) -> TagPolicy:
        return cls(model=TagModel.STATIC, value=expression)

    @classmethod
    def semver_latest(cls, include_prerelease: bool = False) -> TagPolicy:
        return cls(model=TagModel.SEMVER, include_prerelease=include_prerelease)

    @classmethod
    def pattern_latest(cls, regex: str) -> TagPolicy:
        return cls(model=TagModel.PATTERN, value=regex)

    @property
    def enabled(self) -> bool:
        return self.model != TagModel.DISABLED


@dataclass(frozen=True)
class TagRef:
    """A tag name and the commit it points at."""

    name: str
    target: str


@dataclass(frozen=True)
class ChangeRecord:
    """One entry of a structural tree diff.

    ``from_path`` is absent for additions, ``to_path`` for deletions.
    """

    from_path: str | None
    to_path: str | None


@dataclass(frozen=True)
class Snapshot:
    """View of the tracked branch for one run.

    Immutable: built once before any concurrent consumer exists and shared
    read-only afterwards.  ``old_revision`` is None only on the very first
    observation of a repository+branch pair.
    """

    local_path: Path
    old_revision: str | None
    new_revision: str
    changed_paths: tuple[str, ...] = ()

    @property
    def is_first_observation(self) -> bool:
        return self.old_revision is None

    @property
    def moved(self) -> bool:
        return self.old_revision != self.new_revision
