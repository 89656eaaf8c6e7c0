"""Notification system for scid.

Dispatches a DeploymentNotice for every executed job or chart upgrade to
one or more notification channels (Slack, Webhook).

Exports:
    NotificationChannel           -- Abstract base for all channel implementations.
    NotificationDispatcher        -- Sends a notice to all registered channels.
    SlackNotificationChannel      -- Slack chat.postMessage channel.
    WebhookNotificationChannel    -- Generic JSON POST webhook channel.
    build_notification_dispatcher -- Factory used by the application bootstrap.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from scid.notifications.manager import NotificationChannel, NotificationDispatcher
from scid.notifications.slack import SlackNotificationChannel
from scid.notifications.webhook import WebhookNotificationChannel

if TYPE_CHECKING:
    from scid.models.config import ScidConfig

_log = structlog.get_logger(component="notifications")

__all__ = [
    "NotificationChannel",
    "NotificationDispatcher",
    "SlackNotificationChannel",
    "WebhookNotificationChannel",
    "build_notification_dispatcher",
]


def build_notification_dispatcher(config: ScidConfig) -> NotificationDispatcher:
    """Build a NotificationDispatcher from the ``[slack]`` and ``[webhook]`` tables.

    Secrets are expected to be resolved already (``%env%:`` / ``%file%:``
    substitution happens at config load time).  A channel whose settings
    are rejected is logged and left out; the run continues without it.
    """
    channels: list[NotificationChannel] = []

    # --- Slack ---
    if config.slack is not None:
        try:
            channels.append(
                SlackNotificationChannel(
                    channel=config.slack.channel,
                    token=config.slack.token,
                    api_url=config.slack.api_url,
                )
            )
            _log.info("slack_channel_enabled", channel=config.slack.channel)
        except ValueError as exc:
            _log.warning("slack_channel_disabled", reason=str(exc))

    # --- Generic webhook ---
    if config.webhook is not None:
        try:
            channels.append(WebhookNotificationChannel(url=config.webhook.url, headers=config.webhook.headers))
            _log.info("webhook_channel_enabled")
        except ValueError as exc:
            _log.warning("webhook_channel_disabled", reason=str(exc))

    if not channels:
        _log.info("no_notification_channels_configured")

    return NotificationDispatcher(channels=channels)
