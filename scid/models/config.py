"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_JOB_COLOR = "#10148c"


@dataclass
class SlackConfig:
    """Slack chat.postMessage configuration."""

    channel: str = ""
    token: str = ""
    api_url: str = "https://slack.com/api/chat.postMessage"


@dataclass
class WebhookConfig:
    """Generic JSON webhook configuration."""

    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class JobConfig:
    """A plain job: a command line gated by watch paths."""

    exec_line: list[str] = field(default_factory=list)
    watch_paths: list[str] = field(default_factory=list)
    slack_color: str = ""


@dataclass
class HelmConfig:
    """Where Helm charts live inside the tracked repository."""

    charts_path: str = ""
    env: str = ""


@dataclass
class TagConfig:
    """Tag policy as written in the configuration file."""

    model: str = "disabled"
    value: str = ""
    include_prerelease: bool = False


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"


@dataclass(frozen=True)
class RunFlags:
    """Global overrides that change what a run does."""

    force_rerun: bool = False
    dry_run: bool = False


@dataclass
class ScidConfig:
    """Top-level scid configuration."""

    repo_url: str = ""
    branch: str = ""
    dry_run: bool = False
    force_rerun: bool = False
    mirror_root: Path = field(default_factory=lambda: Path("."))
    tag: TagConfig = field(default_factory=TagConfig)
    helm: HelmConfig | None = None
    slack: SlackConfig | None = None
    webhook: WebhookConfig | None = None
    jobs: dict[str, JobConfig] = field(default_factory=dict)
    log: LogConfig = field(default_factory=LogConfig)

    def run_flags(self) -> RunFlags:
        return RunFlags(force_rerun=self.force_rerun, dry_run=self.dry_run)
