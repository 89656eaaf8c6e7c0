"""Core data structures for scid."""

from scid.models.config import (
    HelmConfig,
    JobConfig,
    LogConfig,
    RunFlags,
    ScidConfig,
    SlackConfig,
    TagConfig,
    WebhookConfig,
)
from scid.models.jobs import ActionKind, ChartNode, JobSpec, RunOutcome, RunReport
from scid.models.notices import DeploymentNotice
from scid.models.snapshot import (
    ChangeRecord,
    PullResult,
    Snapshot,
    TagModel,
    TagPolicy,
    TagRef,
)

__all__ = [
    "ActionKind",
    "ChangeRecord",
    "ChartNode",
    "DeploymentNotice",
    "HelmConfig",
    "JobConfig",
    "JobSpec",
    "LogConfig",
    "PullResult",
    "RunFlags",
    "RunOutcome",
    "RunReport",
    "ScidConfig",
    "SlackConfig",
    "Snapshot",
    "TagConfig",
    "TagModel",
    "TagPolicy",
    "TagRef",
    "WebhookConfig",
]
