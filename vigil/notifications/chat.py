"""Chat notification channel (Slack-compatible incoming webhook)."""

from __future__ import annotations

import httpx

from vigil.models.alerts import Alert, Severity
from vigil.notifications.manager import NotificationChannel
from vigil.notifications.webhook import post_json

_SEVERITY_COLOR: dict[Severity, str] = {
    Severity.INFO: "#2eb886",
    Severity.WARNING: "#ffa500",
    Severity.CRITICAL: "#ff0000",
}


class ChatNotificationChannel(NotificationChannel):
    """Posts alerts to a chat incoming-webhook as a coloured attachment.

    Args:
        webhook_url: Incoming-webhook URL issued by the chat workspace.
        timeout:     HTTP request timeout in seconds.
        transport:   Optional httpx transport for tests.
    """

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not webhook_url.startswith(("https://", "http://")):
            raise ValueError("Chat webhook_url must be an http(s) URL")
        self._url = webhook_url
        self._timeout = timeout
        self._transport = transport

    @property
    def channel_name(self) -> str:
        return "chat"

    async def send(self, alert: Alert) -> None:
        await post_json(
            channel=self.channel_name,
            url=self._url,
            payload=self.build_payload(alert),
            headers={},
            timeout=self._timeout,
            transport=self._transport,
            alert_id=alert.id,
        )

    def build_payload(self, alert: Alert) -> dict[str, object]:
        label = alert.severity.value.upper()
        fields = [
            {"title": "Type", "value": alert.type, "short": True},
            {"title": "Severity", "value": alert.severity.value, "short": True},
            {"title": "Message", "value": alert.message, "short": False},
            {"title": "Value", "value": f"{alert.value:g}", "short": True},
            {"title": "Threshold", "value": f"{alert.threshold:g}", "short": True},
            {"title": "Fired at", "value": alert.timestamp, "short": False},
        ]
        return {
            "text": f"*{label} alert*: {alert.message}",
            "attachments": [
                {
                    "color": _SEVERITY_COLOR.get(alert.severity, "#cccccc"),
                    "fields": fields,
                    "footer": f"vigil alert {alert.id}",
                }
            ],
        }
