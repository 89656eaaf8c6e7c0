"""Plain jobs: an unordered concurrent fan-out over configured commands."""

from __future__ import annotations

from scid.models.config import DEFAULT_JOB_COLOR, ScidConfig
from scid.models.jobs import ActionKind, JobSpec, RunOutcome
from scid.runner import ActionRunner


def jobs_from_config(config: ScidConfig) -> list[JobSpec]:
    """Turn the ``[jobs.<name>]`` tables into job specs, sorted by name."""
    return [
        JobSpec(
            name=name,
            watch_paths=tuple(job.watch_paths),
            action=tuple(job.exec_line),
            color=job.slack_color or DEFAULT_JOB_COLOR,
            kind=ActionKind.JOB,
        )
        for name, job in sorted(config.jobs.items())
    ]


async def run_jobs(runner: ActionRunner, jobs: list[JobSpec]) -> list[RunOutcome]:
    """Dispatch every job at once and wait for all of them."""
    return await runner.run_jobs(jobs)
