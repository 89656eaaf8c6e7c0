"""Gated action execution.

ActionRunner checks a job's watch paths against the snapshot, spawns the
job's command when something under them changed, and sends exactly one
notification per attempted run.  Per-job failures are captured on the
returned ``RunOutcome``; nothing raised by a single job escapes
``run_jobs``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path

from scid.errors import ActionError, InfraError
from scid.gate import ChangeGate
from scid.models.config import DEFAULT_JOB_COLOR
from scid.models.jobs import JobSpec, RunOutcome
from scid.models.notices import DeploymentNotice
from scid.notifications.manager import NotificationDispatcher
from scid.observability.logging import get_logger

_log = get_logger("runner")

SpawnFn = Callable[[Sequence[str], Path | None], Awaitable[tuple[str, int]]]


async def spawn_action(argv: Sequence[str], cwd: Path | None = None) -> tuple[str, int]:
    """Run *argv* to completion and return (combined output, exit code).

    Raises:
        InfraError: the command line is empty or the process cannot be started.
    """
    if not argv:
        raise InfraError("empty command line")
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd) if cwd is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except (OSError, ValueError) as exc:
        # ValueError: argv the OS cannot accept, e.g. an embedded NUL byte.
        raise InfraError(f"cannot start {argv[0]!r}: {exc}") from exc

    stdout, _ = await proc.communicate()
    output = stdout.decode("utf-8", errors="replace") if stdout else ""
    return output, proc.returncode if proc.returncode is not None else -1


def describe(changed_path: str, output: str, error: Exception | None = None) -> str:
    """Notification body for one run."""
    if error is None:
        return f"watch path {changed_path} changed\n{output}"
    return f"watch path {changed_path} changed\n{error}: {output}"


class ActionRunner:
    """Runs jobs whose watch paths changed.

    Args:
        gate:     Change gate over the run's snapshot.
        notifier: Dispatcher that receives one notice per attempted run.
        cwd:      Working directory for spawned commands (the mirror).
        spawn:    Process launcher; replaced in tests.
    """

    def __init__(
        self,
        gate: ChangeGate,
        notifier: NotificationDispatcher,
        *,
        cwd: Path | None = None,
        spawn: SpawnFn = spawn_action,
    ) -> None:
        self._gate = gate
        self._notifier = notifier
        self._cwd = cwd
        self._spawn = spawn

    @property
    def gate(self) -> ChangeGate:
        return self._gate

    @property
    def dry_run(self) -> bool:
        return self._gate.flags.dry_run

    @property
    def cwd(self) -> Path | None:
        return self._cwd

    def changed_path(self, job: JobSpec) -> str | None:
        """Gate *job*; log and return the path that triggers it, if any."""
        changed = self._gate.changed_under_prefix(job.watch_paths)
        if changed is None:
            _log.info("watch_paths_unchanged_skipping", title=job.title, exec_line=list(job.action))
        else:
            _log.info("watch_path_changed_starting", title=job.title, exec_line=list(job.action), changed=changed)
        return changed

    async def run_if_changed(self, job: JobSpec) -> RunOutcome:
        changed = self.changed_path(job)
        if changed is None:
            return RunOutcome(name=job.name)
        return await self.execute(job, changed)

    async def execute(self, job: JobSpec, changed_path: str) -> RunOutcome:
        """Spawn *job* (unless dry-run) and notify about the result."""
        outcome = RunOutcome(name=job.name, changed_path=changed_path, dry_run=self.dry_run)
        if self.dry_run:
            return outcome

        error: Exception | None = None
        try:
            output, returncode = await self._spawn(job.action, self._cwd)
        except InfraError as exc:
            _log.error("action_spawn_failed", title=job.title, error=str(exc))
            outcome.infra_error = exc
            error = exc
        else:
            outcome.output = output
            if returncode != 0:
                outcome.action_error = ActionError(returncode, output)
                error = outcome.action_error
                _log.warning("action_failed", title=job.title, returncode=returncode)

        notice = DeploymentNotice(
            title=job.title,
            success=error is None,
            description=describe(changed_path, outcome.output, error),
            color=job.color or DEFAULT_JOB_COLOR,
            old_revision=self._gate.snapshot.old_revision,
            new_revision=self._gate.snapshot.new_revision,
        )
        delivered = await self._notifier.notify(notice)
        if not delivered and outcome.infra_error is None:
            outcome.infra_error = InfraError(f"notification for {job.title!r} was not delivered")
        return outcome

    async def run_jobs(self, jobs: Sequence[JobSpec]) -> list[RunOutcome]:
        """Run every job concurrently and wait for all of them."""
        return list(await asyncio.gather(*(self._guarded(job) for job in jobs)))

    async def _guarded(self, job: JobSpec) -> RunOutcome:
        try:
            return await self.run_if_changed(job)
        except Exception as exc:  # noqa: BLE001
            _log.error("running_job", job=job.name, error=str(exc))
            return RunOutcome(name=job.name, infra_error=InfraError(str(exc)))
