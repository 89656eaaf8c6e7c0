"""Notification channel base class and fan-out dispatcher.

NotificationChannel    -- ABC every channel must implement.
NotificationDispatcher -- Sends a notice to all registered channels
                          concurrently; a failure in one channel never
                          blocks the others.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

import structlog

from scid.models.notices import DeploymentNotice

_log = structlog.get_logger(component="notifications.manager")


class NotificationChannel(ABC):
    """Abstract base class for all notification channels.

    Every concrete channel must implement ``send``, which should not
    raise; return ``False`` instead.
    """

    @property
    @abstractmethod
    def channel_name(self) -> str:
        """Human-readable channel identifier used in logs."""

    @abstractmethod
    async def send(self, notice: DeploymentNotice) -> bool:
        """Deliver *notice* via this channel.

        Returns:
            True  -- message accepted by the remote endpoint.
            False -- delivery failed (already logged inside implementation).
        """


class NotificationDispatcher:
    """Fan-out dispatcher that sends a notice to every registered channel.

    * Never raises: exceptions from individual channels are caught and logged.
    * With no channels configured, ``notify`` is a successful no-op.
    """

    def __init__(self, channels: list[NotificationChannel] | None = None) -> None:
        self._channels = channels or []

    @property
    def channels(self) -> list[NotificationChannel]:
        return list(self._channels)

    async def notify(self, notice: DeploymentNotice) -> bool:
        """Deliver *notice* to every channel; True only if all accepted it."""
        status = "success" if notice.success else "failure"
        _log.info("job_completed", title=notice.title, status=status, description=notice.description)

        if not self._channels:
            return True
        results = await asyncio.gather(*(self._send_one(channel, notice) for channel in self._channels))
        return all(results)

    async def _send_one(self, channel: NotificationChannel, notice: DeploymentNotice) -> bool:
        try:
            success = await channel.send(notice)
        except Exception as exc:  # noqa: BLE001
            _log.error(
                "notification_channel_unexpected_error",
                channel=channel.channel_name,
                notice_id=notice.notice_id,
                error=str(exc),
            )
            success = False

        if success:
            _log.info("notification_sent", channel=channel.channel_name, title=notice.title)
        else:
            _log.warning("notification_failed", channel=channel.channel_name, notice_id=notice.notice_id)
        return success
