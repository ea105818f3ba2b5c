"""Generic JSON webhook notification channel for Vigil.

Posts alert data as a JSON body to any configured HTTP endpoint.  The
payload carries the serialised alert plus a small envelope so consumers can
route on ``severity`` without parsing the alert itself.
"""

from __future__ import annotations

import httpx
import structlog

from vigil.errors import ChannelDeliveryError
from vigil.models.alerts import Alert, utc_timestamp
from vigil.notifications.manager import NotificationChannel

_log = structlog.get_logger(component="notifications.webhook")


class WebhookNotificationChannel(NotificationChannel):
    """Delivers alerts by POSTing a JSON payload to a configurable URL.

    Args:
        url:       Full endpoint URL (must be HTTPS in production).
        headers:   Optional extra headers (e.g. Authorization).
        timeout:   HTTP request timeout in seconds. Defaults to 10.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
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

    async def send(self, alert: Alert) -> None:
        """POST *alert* as JSON to the configured endpoint.

        Raises:
            ChannelDeliveryError: non-2xx response, timeout or transport error.
        """
        await post_json(
            channel=self.channel_name,
            url=self._url,
            payload=self.build_payload(alert),
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
            alert_id=alert.id,
        )

    def build_payload(self, alert: Alert) -> dict[str, object]:
        """Serialise *alert* to a plain dict for JSON encoding."""
        return {
            "service": "vigil",
            "severity": alert.severity.value,
            "sent_at": utc_timestamp(),
            "alert": alert.to_dict(),
        }


async def post_json(
    channel: str,
    url: str,
    payload: dict[str, object],
    headers: dict[str, str],
    timeout: float,
    transport: httpx.AsyncBaseTransport | None,
    alert_id: int | None,
) -> None:
    """POST *payload* and translate every failure into ChannelDeliveryError."""
    request_headers = {
        "Content-Type": "application/json",
        **headers,
    }
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.post(url, json=payload, headers=request_headers)
    except httpx.TimeoutException as exc:
        _log.warning("webhook_request_timeout", channel=channel, alert_id=alert_id)
        raise ChannelDeliveryError(channel, "request timed out") from exc
    except httpx.HTTPError as exc:
        _log.warning("webhook_http_error", channel=channel, error=str(exc), alert_id=alert_id)
        raise ChannelDeliveryError(channel, f"http error: {exc}") from exc

    if not response.is_success:
        _log.warning(
            "webhook_non_2xx_response",
            channel=channel,
            status_code=response.status_code,
            body=response.text[:200],
            alert_id=alert_id,
        )
        raise ChannelDeliveryError(channel, f"HTTP {response.status_code}")
