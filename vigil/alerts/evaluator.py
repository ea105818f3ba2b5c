"""Alert evaluator: decides whether a metric reading fires an alert.

The evaluator is a pure function of its inputs.  It never reads the store
itself; the caller passes a snapshot of the current alerts so that the
dedup check and the subsequent ``record`` can run under one lock.

Severity is derived from the *overage ratio*:

    HIGHER_IS_WORSE:  ratio = value / threshold
    LOWER_IS_WORSE:   ratio = threshold / value

and looked up in ``SEVERITY_TABLE`` (first row whose floor the ratio reaches).
Ratios below every floor do not fire.  The table is monotonic: a larger ratio
never maps to a lower severity.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from numbers import Real

from vigil.errors import EvaluationError
from vigil.models.alerts import Alert, Severity
from vigil.models.metrics import MetricSpec, Polarity

# (minimum ratio, severity), highest floor first.
SEVERITY_TABLE: tuple[tuple[float, Severity], ...] = (
    (1.15, Severity.CRITICAL),
    (1.0, Severity.WARNING),
)

DEFAULT_CLEAR_RATIO = 0.9


def severity_for_ratio(ratio: float) -> Severity | None:
    """Map an overage ratio to a severity, or None when it should not fire."""
    for floor, severity in SEVERITY_TABLE:
        if ratio >= floor:
            return severity
    return None


def overage_ratio(value: float, threshold: float, polarity: Polarity) -> float:
    """How far *value* is past *threshold* in the bad direction (1.0 = at threshold).

    For non-positive thresholds a proportional ratio is meaningless; a reading
    exactly at the threshold scores 1.0 and anything beyond it scores +inf.
    """
    if polarity is Polarity.LOWER_IS_WORSE:
        if threshold > 0:
            return math.inf if value <= 0 else threshold / value
        if value == threshold:
            return 1.0
        return math.inf if value < threshold else 0.0

    if threshold > 0:
        return value / threshold
    if value == threshold:
        return 1.0
    return math.inf if value > threshold else 0.0


@dataclass(frozen=True)
class Assessment:
    """Raw verdict for one reading, before dedup."""

    metric: MetricSpec
    value: float
    threshold: float
    ratio: float
    severity: Severity | None


class AlertEvaluator:
    """Decides, for a single reading, whether to fire and at what severity.

    Args:
        metrics:     Metric catalogue (usually ``ThresholdRegistry.specs()``).
        clear_ratio: A reading whose ratio drops below this value counts as
                     recovered.  Must be <= the lowest firing floor so that
                     there is a dead band between "fire" and "clear".
    """

    def __init__(self, metrics: Iterable[MetricSpec], clear_ratio: float = DEFAULT_CLEAR_RATIO) -> None:
        lowest_floor = min(floor for floor, _ in SEVERITY_TABLE)
        if not 0 < clear_ratio <= lowest_floor:
            raise ValueError(f"clear_ratio must be in (0, {lowest_floor}], got {clear_ratio}")
        self._specs: dict[str, MetricSpec] = {spec.key: spec for spec in metrics}
        self._clear_ratio = clear_ratio

    def assess(self, metric_key: str, current_value: object, thresholds: Mapping[str, float]) -> Assessment:
        """Compute ratio and severity for a reading without applying dedup.

        Raises:
            EvaluationError: unknown metric, non-numeric or non-finite value,
                             or no threshold configured for the metric.
        """
        spec = self._specs.get(metric_key)
        if spec is None:
            raise EvaluationError(f"Unknown metric: {metric_key!r}")
        if not isinstance(current_value, Real) or isinstance(current_value, bool):
            raise EvaluationError(
                f"Metric {metric_key!r} value must be a number, got {type(current_value).__name__}"
            )
        value = float(current_value)
        if not math.isfinite(value):
            raise EvaluationError(f"Metric {metric_key!r} value must be finite, got {value}")
        if metric_key not in thresholds:
            raise EvaluationError(f"No threshold configured for metric {metric_key!r}")

        threshold = float(thresholds[metric_key])
        ratio = overage_ratio(value, threshold, spec.polarity)
        return Assessment(
            metric=spec,
            value=value,
            threshold=threshold,
            ratio=ratio,
            severity=severity_for_ratio(ratio),
        )

    def evaluate(
        self,
        metric_key: str,
        current_value: object,
        thresholds: Mapping[str, float],
        current_alerts: Iterable[Alert] = (),
    ) -> Alert | None:
        """Return a new unrecorded Alert, or None when nothing should fire.

        Nothing fires when the reading is inside the threshold, or when an
        unresolved alert for the same metric already exists at the same or a
        higher severity.  Strict escalation fires.
        """
        assessment = self.assess(metric_key, current_value, thresholds)
        severity = assessment.severity
        if severity is None:
            return None

        for existing in current_alerts:
            if existing.type == metric_key and not existing.resolved and existing.severity >= severity:
                return None

        return Alert(
            type=metric_key,
            severity=severity,
            message=_describe(assessment),
            value=assessment.value,
            threshold=assessment.threshold,
        )

    def is_recovered(self, metric_key: str, current_value: object, thresholds: Mapping[str, float]) -> bool:
        """True when the reading is back inside the clear band."""
        assessment = self.assess(metric_key, current_value, thresholds)
        return assessment.ratio < self._clear_ratio


def _describe(assessment: Assessment) -> str:
    spec = assessment.metric
    direction = "low" if spec.polarity is Polarity.LOWER_IS_WORSE else "high"
    return (
        f"{spec.label} too {direction}: {assessment.value:.2f}{spec.unit} "
        f"(threshold {assessment.threshold:g}{spec.unit})"
    )
