"""Prometheus counters for alert firing and notification delivery."""

from __future__ import annotations

from prometheus_client import Counter

alerts_fired_total = Counter(
    "vigil_alerts_fired_total",
    "Alerts recorded by the store",
    ["type", "severity"],
)

alerts_suppressed_total = Counter(
    "vigil_alerts_suppressed_total",
    "Breaching readings suppressed by deduplication",
    ["type"],
)

notifications_total = Counter(
    "vigil_notifications_total",
    "Notification attempts per channel and outcome",
    ["channel", "status"],
)
