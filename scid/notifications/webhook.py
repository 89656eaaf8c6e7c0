"""Generic JSON webhook notification channel.

Posts DeploymentNotice data as a JSON body to any configured HTTP endpoint.
The payload mirrors the DeploymentNotice fields so that consumers can parse
it without scid-specific knowledge.
"""

from __future__ import annotations

import httpx
import structlog

from scid.models.notices import DeploymentNotice
from scid.notifications.manager import NotificationChannel

_log = structlog.get_logger(component="notifications.webhook")


class WebhookNotificationChannel(NotificationChannel):
    """Delivers notices by POSTing a JSON payload to a configurable URL.

    Args:
        url:       Full endpoint URL.
        headers:   Optional extra headers (e.g. Authorization).
        timeout:   HTTP request timeout in seconds. Defaults to 10.
        transport: Optional httpx transport (tests inject a MockTransport).
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url:
            raise ValueError("Webhook url must not be empty")
        self._url = url
        self._headers = headers or {}
        self._timeout = timeout
        self._transport = transport

    @property
    def channel_name(self) -> str:
        return "webhook"

    async def send(self, notice: DeploymentNotice) -> bool:
        """POST *notice* as JSON to the configured endpoint.

        Returns True on 2xx response, False otherwise.
        """
        payload = self._build_payload(notice)
        request_headers = {
            "Content-Type": "application/json",
            **self._headers,
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._url, json=payload, headers=request_headers)
                if response.is_success:
                    return True
                _log.warning(
                    "webhook_non_2xx_response",
                    status_code=response.status_code,
                    body=response.text[:200],
                    notice_id=notice.notice_id,
                )
                return False
        except httpx.TimeoutException:
            _log.warning("webhook_request_timeout", notice_id=notice.notice_id, url=self._url)
            return False
        except httpx.HTTPError as exc:
            _log.warning("webhook_http_error", error=str(exc), notice_id=notice.notice_id)
            return False

    def _build_payload(self, notice: DeploymentNotice) -> dict[str, object]:
        """Serialise *notice* to a plain dict for JSON encoding."""
        return {
            "notice_id": notice.notice_id,
            "title": notice.title,
            "status": "success" if notice.success else "failure",
            "description": notice.description,
            "color": notice.color,
            "old_revision": notice.old_revision,
            "new_revision": notice.new_revision,
            "sent_at": notice.sent_at.isoformat(),
        }
