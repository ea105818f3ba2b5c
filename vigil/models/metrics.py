"""Monitored metric catalogue and default thresholds."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Polarity(StrEnum):
    """Which direction of a reading is bad."""

    HIGHER_IS_WORSE = "higher_is_worse"
    LOWER_IS_WORSE = "lower_is_worse"


@dataclass(frozen=True)
class MetricSpec:
    """Static description of a monitored metric.

    ``minimum``/``maximum`` bound the *threshold* values accepted by the
    registry; ``None`` means unbounded on that side.
    """

    key: str
    label: str
    unit: str
    polarity: Polarity = Polarity.HIGHER_IS_WORSE
    minimum: float | None = 0.0
    maximum: float | None = None

    def check_range(self, value: float) -> str | None:
        """Return a reason string when *value* is out of range, else None."""
        if self.minimum is not None and value < self.minimum:
            return f"must be >= {self.minimum:g}"
        if self.maximum is not None and value > self.maximum:
            return f"must be <= {self.maximum:g}"
        return None


def _percent(key: str, label: str) -> MetricSpec:
    return MetricSpec(key=key, label=label, unit="%", minimum=0.0, maximum=100.0)


DEFAULT_METRICS: tuple[MetricSpec, ...] = (
    _percent("cpu", "CPU usage"),
    _percent("memory", "Memory usage"),
    _percent("disk", "Disk usage"),
    MetricSpec(key="responseTime", label="Average response time", unit="ms", minimum=0.0),
    _percent("errorRate", "Error rate"),
    _percent("databaseConnections", "Database connection usage"),
)

DEFAULT_THRESHOLDS: dict[str, float] = {
    "cpu": 80.0,
    "memory": 85.0,
    "disk": 90.0,
    "responseTime": 2000.0,
    "errorRate": 5.0,
    "databaseConnections": 80.0,
}
