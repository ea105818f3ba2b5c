"""Configuration loading from environment variables."""

from __future__ import annotations

import math
import os

from vigil.models.alerts import Severity
from vigil.models.config import (
    AlertingConfig,
    APIConfig,
    LogConfig,
    NotificationConfig,
    VigilConfig,
)
from vigil.models.metrics import DEFAULT_THRESHOLDS

# threshold key -> env suffix
_THRESHOLD_ENV: dict[str, str] = {
    "cpu": "THRESHOLD_CPU",
    "memory": "THRESHOLD_MEMORY",
    "disk": "THRESHOLD_DISK",
    "responseTime": "THRESHOLD_RESPONSE_TIME",
    "errorRate": "THRESHOLD_ERROR_RATE",
    "databaseConnections": "THRESHOLD_DATABASE_CONNECTIONS",
}


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"VIGIL_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float) -> float:
    val = float(_env(key, str(default)))
    if not math.isfinite(val):
        raise ValueError(f"VIGIL_{key} must be a finite number, got {val}")
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_severity(key: str, default: Severity) -> Severity:
    raw = _env(key, default.value).lower()
    try:
        return Severity(raw)
    except ValueError:
        valid = [s.value for s in Severity]
        raise ValueError(f"Invalid severity for VIGIL_{key}: {raw}. Must be one of {valid}") from None


def _validate_ratio(value: float) -> float:
    if not 0.0 < value <= 1.0:
        raise ValueError(f"VIGIL_CLEAR_RATIO must be in (0, 1], got {value}")
    return value


def _load_thresholds() -> dict[str, float]:
    # Range validation happens in ThresholdRegistry, which owns the metric specs.
    return {
        key: _env_float(suffix, DEFAULT_THRESHOLDS[key])
        for key, suffix in _THRESHOLD_ENV.items()
    }


def load_config() -> VigilConfig:
    """Load configuration from VIGIL_* environment variables."""
    return VigilConfig(
        alerting=AlertingConfig(
            thresholds=_load_thresholds(),
            history_retention=_env_int("HISTORY_RETENTION", 1000, min_val=10, max_val=100_000),
            clear_ratio=_validate_ratio(_env_float("CLEAR_RATIO", 0.9)),
        ),
        notifications=NotificationConfig(
            chat_secret_ref=_env("NOTIFICATIONS_CHAT_SECRET_REF", ""),
            email_secret_ref=_env("NOTIFICATIONS_EMAIL_SECRET_REF", ""),
            email_to=_env("NOTIFICATIONS_EMAIL_TO", ""),
            webhook_secret_ref=_env("NOTIFICATIONS_WEBHOOK_SECRET_REF", ""),
            email_min_severity=_validate_severity("NOTIFICATIONS_EMAIL_MIN_SEVERITY", Severity.INFO),
            chat_min_severity=_validate_severity("NOTIFICATIONS_CHAT_MIN_SEVERITY", Severity.WARNING),
            webhook_min_severity=_validate_severity("NOTIFICATIONS_WEBHOOK_MIN_SEVERITY", Severity.CRITICAL),
            timeout_seconds=max(_env_float("NOTIFICATIONS_TIMEOUT", 10.0), 0.1),
        ),
        api=APIConfig(
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
