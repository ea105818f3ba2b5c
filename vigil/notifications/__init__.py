"""Notification system for Vigil.

Exports:
    NotificationChannel        -- Abstract base for all channel implementations.
    NotificationDispatcher     -- Concurrent fan-out with per-channel outcomes.
    ChannelPolicy              -- Minimum severity a channel accepts.
    EmailNotificationChannel   -- SMTP (plain + HTML) email.
    ChatNotificationChannel    -- Slack-compatible incoming-webhook channel.
    WebhookNotificationChannel -- JSON POST to an arbitrary endpoint.
    build_notification_dispatcher -- Factory used by the application bootstrap.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlparse

import structlog

from vigil.notifications.chat import ChatNotificationChannel
from vigil.notifications.email import EmailNotificationChannel, SMTPConfig
from vigil.notifications.manager import (
    ALL_CHANNELS,
    CHANNEL_NAMES,
    ChannelPolicy,
    NotificationChannel,
    NotificationDispatcher,
)
from vigil.notifications.webhook import WebhookNotificationChannel

if TYPE_CHECKING:
    from vigil.models.config import NotificationConfig

_log = structlog.get_logger(component="notifications")

__all__ = [
    "ALL_CHANNELS",
    "CHANNEL_NAMES",
    "ChannelPolicy",
    "ChatNotificationChannel",
    "EmailNotificationChannel",
    "NotificationChannel",
    "NotificationDispatcher",
    "SMTPConfig",
    "WebhookNotificationChannel",
    "build_notification_dispatcher",
    "parse_smtp_dsn",
]


def _secret(ref: str) -> str:
    """Value of the environment variable named by *ref* ("" when unset)."""
    return os.environ.get(ref, "") if ref else ""


def _email(config: NotificationConfig, secret: str) -> NotificationChannel | None:
    if not config.email_to:
        _log.info("email_channel_skipped", reason="no recipient configured")
        return None
    smtp = parse_smtp_dsn(secret, timeout=config.timeout_seconds)
    return EmailNotificationChannel(smtp_config=smtp, to_addr=config.email_to)


def _chat(config: NotificationConfig, secret: str) -> NotificationChannel:
    return ChatNotificationChannel(webhook_url=secret, timeout=config.timeout_seconds)


def _webhook(config: NotificationConfig, secret: str) -> NotificationChannel:
    return WebhookNotificationChannel(url=secret, timeout=config.timeout_seconds)


_Builder = Callable[["NotificationConfig", str], "NotificationChannel | None"]


def build_notification_dispatcher(config: NotificationConfig) -> NotificationDispatcher:
    """Build a NotificationDispatcher from environment-resolved secrets.

    Each ``*_secret_ref`` in *config* names an environment variable; the
    channel is enabled only when that variable holds a non-empty value.

    ==========  =============================================================
    channel     secret value
    ==========  =============================================================
    email       ``smtp[s]://user:pass@host:port/from@addr`` (also needs
                ``VIGIL_NOTIFICATIONS_EMAIL_TO``)
    chat        incoming-webhook URL
    webhook     endpoint URL
    ==========  =============================================================

    A malformed secret disables that channel only; it is logged, not raised.
    """
    builders: list[tuple[str, str, _Builder]] = [
        ("email", config.email_secret_ref, _email),
        ("chat", config.chat_secret_ref, _chat),
        ("webhook", config.webhook_secret_ref, _webhook),
    ]

    channels: list[NotificationChannel] = []
    for name, ref, build in builders:
        secret = _secret(ref)
        if not secret:
            _log.debug("notification_channel_skipped", channel=name, secret_ref=ref or None)
            continue
        try:
            channel = build(config, secret)
        except ValueError as exc:
            _log.warning("notification_channel_disabled", channel=name, reason=str(exc))
            continue
        if channel is not None:
            channels.append(channel)
            _log.info("notification_channel_enabled", channel=name)

    if not channels:
        _log.info("no_notification_channels_configured")

    policies = {
        "email": ChannelPolicy(min_severity=config.email_min_severity),
        "chat": ChannelPolicy(min_severity=config.chat_min_severity),
        "webhook": ChannelPolicy(min_severity=config.webhook_min_severity),
    }
    return NotificationDispatcher(channels=channels, policies=policies, timeout=config.timeout_seconds)


def parse_smtp_dsn(dsn: str, timeout: float = 10.0) -> SMTPConfig:
    """Turn an SMTP DSN into SMTPConfig.

    ``smtps`` means implicit TLS (default port 465); ``smtp`` means STARTTLS
    (default port 587).  The path holds the sender address.  Credentials may
    be percent-encoded.

    Raises:
        ValueError: wrong scheme, or missing host or sender.
    """
    parsed = urlparse(dsn)
    if parsed.scheme not in ("smtp", "smtps"):
        raise ValueError(f"SMTP DSN must start with smtp:// or smtps://, got scheme {parsed.scheme!r}")
    implicit_tls = parsed.scheme == "smtps"
    return SMTPConfig(
        host=parsed.hostname or "",
        port=parsed.port or (465 if implicit_tls else 587),
        username=unquote(parsed.username or ""),
        password=unquote(parsed.password or ""),
        from_addr=unquote(parsed.path.lstrip("/")),
        use_tls=implicit_tls,
        timeout=timeout,
    )
