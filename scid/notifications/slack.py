"""Slack notification channel.

Posts one attachment per notice through the ``chat.postMessage`` Web API
using a bot token.  Failed deployments are always rendered red, whatever
colour the job asked for.
"""

from __future__ import annotations

import httpx
import structlog

from scid.models.notices import DeploymentNotice
from scid.notifications.manager import NotificationChannel

_log = structlog.get_logger(component="notifications.slack")

FAILURE_COLOR = "#FF0000"
_FOOTER = "scid"


class SlackNotificationChannel(NotificationChannel):
    """Delivers notices to a Slack channel.

    Args:
        channel:   Slack channel ID or name.
        token:     Bot token, sent as a bearer token.
        api_url:   chat.postMessage endpoint.
        timeout:   HTTP request timeout in seconds. Defaults to 10.
        transport: Optional httpx transport (tests inject a MockTransport).
    """

    def __init__(
        self,
        channel: str,
        token: str,
        api_url: str = "https://slack.com/api/chat.postMessage",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not channel:
            raise ValueError("Slack channel must not be empty")
        if not token:
            raise ValueError("Slack token must not be empty")
        self._channel = channel
        self._token = token
        self._api_url = api_url
        self._timeout = timeout
        self._transport = transport

    @property
    def channel_name(self) -> str:
        return "slack"

    async def send(self, notice: DeploymentNotice) -> bool:
        payload = self._build_payload(notice)
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }
        _log.info("sending_slack_message", title=payload["attachments"][0]["title"])

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._api_url, json=payload, headers=headers)
        except httpx.TimeoutException:
            _log.warning("slack_request_timeout", notice_id=notice.notice_id)
            return False
        except httpx.HTTPError as exc:
            _log.warning("slack_http_error", error=str(exc), notice_id=notice.notice_id)
            return False

        if not response.is_success:
            _log.warning(
                "slack_non_2xx_response",
                status_code=response.status_code,
                body=response.text[:200],
                notice_id=notice.notice_id,
            )
            return False

        # The Web API answers 200 with {"ok": false} for logical errors.
        try:
            body = response.json()
        except ValueError:
            body = {}
        if isinstance(body, dict) and body.get("ok") is False:
            _log.warning("slack_api_error", error=body.get("error", ""), notice_id=notice.notice_id)
            return False
        return True

    def _build_payload(self, notice: DeploymentNotice) -> dict[str, object]:
        if notice.success:
            color = notice.color
            text = f"Successfully updated {notice.title}\n{notice.description}"
        else:
            color = FAILURE_COLOR
            text = f"Failed to update {notice.title}\n{notice.description}"

        return {
            "channel": self._channel,
            "attachments": [
                {
                    "color": color,
                    "title": f"{notice.title} Update",
                    "text": text,
                    "footer": _FOOTER,
                    "ts": int(notice.sent_at.timestamp()),
                    "fields": [
                        {"title": "Old Git HEAD", "value": str(notice.old_revision), "short": False},
                        {"title": "New Git HEAD", "value": notice.new_revision, "short": False},
                    ],
                }
            ],
        }
