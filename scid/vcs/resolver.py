"""Tag policy resolution.

Turns a ``TagPolicy`` into the commit the mirror should be checked out at.

Semver ordering is numeric (``1.10.0 > 1.2.0``) and delegated to the
``semver`` package.  Tag names are normalised the way Go tooling expects
them: a ``v`` marker is prepended when the raw name lacks one, and the
marker is stripped again before parsing.  Shorthand versions (``v1``,
``v1.2``) are accepted as ``1.0.0`` / ``1.2.0``.

Pattern policies pick the lexicographically greatest matching tag name, so
the result never depends on the order the engine enumerates tags in.
"""

from __future__ import annotations

import re

import semver

from scid.errors import ConfigurationError, NoMatchingTagError
from scid.models.snapshot import TagModel, TagPolicy, TagRef
from scid.observability.logging import get_logger
from scid.vcs.engine import Repository

_log = get_logger("vcs.resolver")

_VERSION_MARKER = "v"


def normalize_tag_name(name: str) -> str:
    """Return *name* carrying exactly one leading version marker."""
    if name.startswith(_VERSION_MARKER):
        return name
    return _VERSION_MARKER + name


def parse_semver(name: str) -> semver.Version | None:
    """Parse a tag name as a semantic version, or return None."""
    normalized = normalize_tag_name(name)
    try:
        return semver.Version.parse(
            normalized[len(_VERSION_MARKER) :],
            optional_minor_and_patch=True,
        )
    except ValueError:
        return None


def latest_semver_tag(tags: list[TagRef], include_prerelease: bool = False) -> TagRef:
    """Select the tag with the highest semantic version.

    Raises:
        NoMatchingTagError: if no tag parses (or only pre-releases do and
            they are excluded).
    """
    candidates: list[tuple[semver.Version, str, TagRef]] = []
    for tag in tags:
        version = parse_semver(tag.name)
        if version is None:
            continue
        if version.prerelease and not include_prerelease:
            continue
        candidates.append((version, tag.name, tag))

    if not candidates:
        raise NoMatchingTagError("no tag is a valid semantic version")
    _, _, best = max(candidates, key=lambda c: (c[0], c[1]))
    return best


def latest_pattern_tag(tags: list[TagRef], pattern: re.Pattern[str]) -> TagRef:
    """Select the lexicographically greatest tag name matching *pattern*."""
    matching = [tag for tag in tags if pattern.search(tag.name)]
    if not matching:
        raise NoMatchingTagError(f"no tag matches {pattern.pattern!r}")
    return max(matching, key=lambda tag: tag.name)


def compile_tag_pattern(expression: str) -> re.Pattern[str]:
    try:
        return re.compile(expression)
    except re.error as exc:
        raise ConfigurationError(f"invalid tag pattern {expression!r}: {exc}") from exc


class RevisionResolver:
    """Resolves one ``TagPolicy`` against an opened repository."""

    def __init__(self, policy: TagPolicy) -> None:
        self._policy = policy
        self._pattern: re.Pattern[str] | None = None
        if policy.model == TagModel.PATTERN:
            self._pattern = compile_tag_pattern(policy.value)

    @property
    def policy(self) -> TagPolicy:
        return self._policy

    def resolve(self, repo: Repository) -> str | None:
        """Return the commit for the policy, or None when tags are disabled.

        Raises:
            ResolutionError: the static expression does not resolve.
            NoMatchingTagError: no tag satisfies a semver/pattern policy.
        """
        policy = self._policy
        if policy.model == TagModel.DISABLED:
            return None

        if policy.model == TagModel.STATIC:
            revision = repo.resolve(policy.value)
            _log.info("tag_resolved", model=str(policy.model), expression=policy.value, revision=revision)
            return revision

        tags = repo.list_tags()
        if policy.model == TagModel.SEMVER:
            tag = latest_semver_tag(tags, include_prerelease=policy.include_prerelease)
        else:
            assert self._pattern is not None
            tag = latest_pattern_tag(tags, self._pattern)

        _log.info("tag_resolved", model=str(policy.model), tag=tag.name, revision=tag.target)
        return tag.target
