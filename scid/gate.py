"""Change gating: should an action run for this snapshot, and why."""

from __future__ import annotations

from collections.abc import Iterable

from scid.models.config import RunFlags
from scid.models.snapshot import Snapshot

FORCE_RERUN_PATH = "/force-re-run"
FIRST_OBSERVATION_PATH = "/"


class ChangeGate:
    """Answers change questions against one immutable snapshot.

    Stateless apart from its inputs, so it can be shared by every concurrent
    job and chart task without locking.
    """

    def __init__(self, snapshot: Snapshot, flags: RunFlags | None = None) -> None:
        self._snapshot = snapshot
        self._flags = flags or RunFlags()

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def flags(self) -> RunFlags:
        return self._flags

    def head_moved(self) -> bool:
        """Whether any work should happen this cycle."""
        if self._flags.force_rerun or self._flags.dry_run:
            return True
        return self._snapshot.is_first_observation or self._snapshot.moved

    def changed_under_prefix(self, prefixes: Iterable[str]) -> str | None:
        """Return the first changed path under any of *prefixes*.

        A sentinel path is returned when a rerun is forced or when the
        mirror is brand new (everything is considered changed).
        """
        if self._flags.force_rerun:
            return FORCE_RERUN_PATH
        if self._snapshot.is_first_observation:
            return FIRST_OBSERVATION_PATH

        prefixes = tuple(prefixes)
        for path in self._snapshot.changed_paths:
            if any(path.startswith(prefix) for prefix in prefixes):
                return path
        return None
