"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field

from vigil.models.alerts import Severity
from vigil.models.metrics import DEFAULT_THRESHOLDS


@dataclass
class AlertingConfig:
    """Evaluator and store configuration."""

    thresholds: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_THRESHOLDS))
    history_retention: int = 1000
    clear_ratio: float = 0.9


@dataclass
class NotificationConfig:
    """Notification system configuration.

    The ``*_secret_ref`` fields name environment variables holding the actual
    secret (webhook URL or SMTP DSN); they are resolved by
    ``vigil.notifications.build_notification_dispatcher``.
    """

    chat_secret_ref: str = ""
    email_secret_ref: str = ""
    email_to: str = ""
    webhook_secret_ref: str = ""
    email_min_severity: Severity = Severity.INFO
    chat_min_severity: Severity = Severity.WARNING
    webhook_min_severity: Severity = Severity.CRITICAL
    timeout_seconds: float = 10.0


@dataclass
class APIConfig:
    """REST API configuration."""

    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class VigilConfig:
    """Top-level Vigil configuration."""

    alerting: AlertingConfig = field(default_factory=AlertingConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
