"""Threshold registry: current trigger threshold per monitored metric."""

from __future__ import annotations

import math
import threading
from collections.abc import Iterable, Mapping
from numbers import Real

import structlog

from vigil.errors import InvalidThresholdError
from vigil.models.metrics import DEFAULT_METRICS, DEFAULT_THRESHOLDS, MetricSpec

_log = structlog.get_logger(component="alerts.registry")


def _is_number(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


class ThresholdRegistry:
    """Holds the threshold set and validates partial updates.

    Updates are all-or-nothing: if any provided key is unknown or any value
    is out of range, the whole update is rejected and the set is unchanged.

    Args:
        thresholds: Initial values. Keys missing here fall back to
                    ``DEFAULT_THRESHOLDS`` (when the metric has one).
        metrics:    Metric catalogue. Defaults to ``DEFAULT_METRICS``.
    """

    def __init__(
        self,
        thresholds: Mapping[str, float] | None = None,
        metrics: Iterable[MetricSpec] = DEFAULT_METRICS,
    ) -> None:
        self._specs: dict[str, MetricSpec] = {spec.key: spec for spec in metrics}
        self._lock = threading.Lock()

        initial = {key: value for key, value in DEFAULT_THRESHOLDS.items() if key in self._specs}
        if thresholds:
            initial.update(thresholds)

        errors = self._validate(initial)
        missing = [key for key in self._specs if key not in initial]
        for key in missing:
            errors[key] = "no threshold configured"
        if errors:
            raise InvalidThresholdError(errors)

        self._thresholds: dict[str, float] = {key: float(value) for key, value in initial.items()}

    def get(self) -> dict[str, float]:
        """Return a copy of the current threshold set."""
        with self._lock:
            return dict(self._thresholds)

    def update(self, partial: Mapping[str, object]) -> dict[str, float]:
        """Merge *partial* into the set and return the new full set.

        Raises:
            InvalidThresholdError: any key unknown or any value invalid.
        """
        errors = self._validate(partial)
        if errors:
            _log.warning("threshold_update_rejected", errors=errors)
            raise InvalidThresholdError(errors)

        with self._lock:
            for key, value in partial.items():
                self._thresholds[key] = float(value)  # type: ignore[arg-type]
            snapshot = dict(self._thresholds)

        _log.info("thresholds_updated", changed=sorted(partial), thresholds=snapshot)
        return snapshot

    def spec(self, key: str) -> MetricSpec | None:
        return self._specs.get(key)

    def specs(self) -> list[MetricSpec]:
        return list(self._specs.values())

    def __contains__(self, key: object) -> bool:
        return key in self._specs

    def _validate(self, partial: Mapping[str, object]) -> dict[str, str]:
        errors: dict[str, str] = {}
        for key, value in partial.items():
            spec = self._specs.get(key)
            if spec is None:
                errors[str(key)] = "unknown metric"
                continue
            if not _is_number(value):
                errors[key] = f"expected a number, got {type(value).__name__}"
                continue
            number = float(value)  # type: ignore[arg-type]
            if not math.isfinite(number):
                errors[key] = "must be finite"
                continue
            reason = spec.check_range(number)
            if reason:
                errors[key] = reason
        return errors
