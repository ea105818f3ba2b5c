"""Email notification channel.

Each alert becomes one multipart message (plain text plus an HTML table).
Delivery uses blocking ``smtplib`` inside the default executor.
"""

from __future__ import annotations

import asyncio
import smtplib
import ssl
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

import structlog

from vigil.errors import ChannelDeliveryError
from vigil.models.alerts import Alert, Severity
from vigil.notifications.manager import NotificationChannel

_log = structlog.get_logger(component="notifications.email")

_SEVERITY_COLOR: dict[Severity, str] = {
    Severity.INFO: "#2e7d32",
    Severity.WARNING: "#e65100",
    Severity.CRITICAL: "#b71c1c",
}


@dataclass(frozen=True)
class SMTPConfig:
    """Where and how to submit mail.

    ``use_tls`` selects implicit TLS (``SMTP_SSL``); otherwise the channel
    upgrades a plain connection with STARTTLS.  An empty ``username`` skips
    the AUTH step.
    """

    host: str
    port: int
    username: str
    password: str = field(repr=False)
    from_addr: str
    use_tls: bool = False
    timeout: float = 10.0

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("SMTP host must not be empty")
        if not self.from_addr:
            raise ValueError("SMTP from_addr must not be empty")


class EmailNotificationChannel(NotificationChannel):
    """Delivers alerts as emails via SMTP.

    Args:
        smtp_config: Connection and authentication parameters.
        to_addr:     Recipient email address.
    """

    def __init__(self, smtp_config: SMTPConfig, to_addr: str) -> None:
        if not to_addr:
            raise ValueError("Email to_addr must not be empty")
        self._smtp = smtp_config
        self._to_addr = to_addr

    @property
    def channel_name(self) -> str:
        return "email"

    async def send(self, alert: Alert) -> None:
        """Send *alert* as an email.

        Raises:
            ChannelDeliveryError: SMTP rejected the message or the server
                                  could not be reached.
        """
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._send_sync, alert)
        except smtplib.SMTPException as exc:
            _log.warning("email_smtp_error", error=str(exc), alert_id=alert.id)
            raise ChannelDeliveryError(self.channel_name, f"smtp error: {exc}") from exc
        except OSError as exc:
            _log.warning("email_connection_error", error=str(exc), alert_id=alert.id)
            raise ChannelDeliveryError(self.channel_name, f"connection error: {exc}") from exc

    def _send_sync(self, alert: Alert) -> None:
        """Blocking SMTP delivery; runs inside a thread executor."""
        msg = self.build_message(alert)
        context = ssl.create_default_context()

        if self._smtp.use_tls:
            with smtplib.SMTP_SSL(
                self._smtp.host,
                self._smtp.port,
                context=context,
                timeout=self._smtp.timeout,
            ) as server:
                if self._smtp.username:
                    server.login(self._smtp.username, self._smtp.password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(
                self._smtp.host,
                self._smtp.port,
                timeout=self._smtp.timeout,
            ) as server:
                server.ehlo()
                server.starttls(context=context)
                server.ehlo()
                if self._smtp.username:
                    server.login(self._smtp.username, self._smtp.password)
                server.send_message(msg)

    def build_message(self, alert: Alert) -> MIMEMultipart:
        """Construct a MIME multipart email with a plain-text and HTML part."""
        severity_label = alert.severity.value.upper()
        msg = MIMEMultipart("alternative")
        msg["Subject"] = f"[Vigil] {severity_label}: {alert.type} - {alert.message}"
        msg["From"] = self._smtp.from_addr
        msg["To"] = self._to_addr

        msg.attach(MIMEText(_build_plain(alert, severity_label), "plain", "utf-8"))
        msg.attach(MIMEText(_build_html(alert, severity_label), "html", "utf-8"))
        return msg


def _build_plain(alert: Alert, severity_label: str) -> str:
    return (
        f"Vigil Alert\n"
        f"{'=' * 60}\n\n"
        f"Severity:   {severity_label}\n"
        f"Type:       {alert.type}\n"
        f"Value:      {alert.value}\n"
        f"Threshold:  {alert.threshold}\n"
        f"Fired at:   {alert.timestamp}\n"
        f"Alert ID:   {alert.id}\n\n"
        f"{alert.message}\n"
    )


def _row(label: str, value: object, last: bool = False) -> str:
    border = "" if last else ' style="border-bottom: 1px solid #e0e0e0;"'
    return (
        f"<tr{border}>"
        f'<td style="color: #757575; width: 120px;"><strong>{label}</strong></td>'
        f"<td>{escape(str(value))}</td>"
        f"</tr>"
    )


def _build_html(alert: Alert, severity_label: str) -> str:
    color = _SEVERITY_COLOR.get(alert.severity, "#333333")
    rows = "\n".join(
        [
            _row("Type", alert.type),
            _row("Value", alert.value),
            _row("Threshold", alert.threshold),
            _row("Fired at", alert.timestamp, last=True),
        ]
    )
    return f"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8" /><title>Vigil Alert</title></head>
<body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; background: #f5f5f5; padding: 24px;">
  <table width="600" cellpadding="0" cellspacing="0" style="background: #ffffff; margin: 0 auto;">
    <tr>
      <td style="background: {color}; padding: 20px 28px;">
        <h1 style="color: #ffffff; margin: 0; font-size: 20px;">Vigil Alert &mdash; {severity_label}</h1>
      </td>
    </tr>
    <tr>
      <td style="padding: 24px 28px;">
        <p style="color: #212121; line-height: 1.6;">{escape(alert.message)}</p>
        <table width="100%" cellpadding="6" cellspacing="0" style="border-collapse: collapse;">
{rows}
        </table>
      </td>
    </tr>
    <tr>
      <td style="background: #f5f5f5; padding: 12px 28px; font-size: 12px; color: #9e9e9e;">
        Alert ID: {alert.id}
      </td>
    </tr>
  </table>
</body>
</html>"""
