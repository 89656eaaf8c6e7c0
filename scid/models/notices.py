"""Deployment notice data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4


@dataclass(frozen=True)
class DeploymentNotice:
    """Emitted once per executed action, consumed by the notification system."""

    title: str
    success: bool
    description: str
    color: str
    old_revision: str | None
    new_revision: str
    sent_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    notice_id: str = field(default_factory=lambda: str(uuid4()))
