"""Click entry point: one run per invocation."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click

from scid import __version__
from scid.app import main


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: $SCID_CONFIG, then /etc/scid.toml).",
)
@click.option("--repo", "repo_url", default=None, help="Git repository URL.")
@click.option("--branch", default=None, help="Git branch name.")
@click.option("--helm-charts-path", default=None, help="Path to Helm charts inside the repository.")
@click.option("--dry-run/--no-dry-run", default=None, help="Gate and report, but never run actions.")
@click.option("--force-rerun/--no-force-rerun", default=None, help="Run every action regardless of changes.")
@click.version_option(__version__, prog_name="scid")
def cli(
    config_path: Path | None,
    repo_url: str | None,
    branch: str | None,
    helm_charts_path: str | None,
    dry_run: bool | None,
    force_rerun: bool | None,
) -> None:
    """Re-run jobs and Helm upgrades whose watched paths changed upstream."""
    code = asyncio.run(
        main(
            config_path,
            repo_url=repo_url,
            branch=branch,
            helm_charts_path=helm_charts_path,
            dry_run=dry_run,
            force_rerun=force_rerun,
        )
    )
    raise SystemExit(code)
