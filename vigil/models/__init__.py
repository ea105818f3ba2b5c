"""Core data structures for Vigil."""

from vigil.models.alerts import (
    Alert,
    ChannelOutcome,
    DeliveryStatus,
    DispatchResult,
    Resolution,
    Severity,
)
from vigil.models.config import VigilConfig
from vigil.models.metrics import DEFAULT_METRICS, DEFAULT_THRESHOLDS, MetricSpec, Polarity

__all__ = [
    "Alert",
    "ChannelOutcome",
    "DEFAULT_METRICS",
    "DEFAULT_THRESHOLDS",
    "DeliveryStatus",
    "DispatchResult",
    "MetricSpec",
    "Polarity",
    "Resolution",
    "Severity",
    "VigilConfig",
]
