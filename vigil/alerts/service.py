r"""AlertService: public facade over registry, evaluator, store and dispatcher.

Lifecycle of one alert::

    None --ingest/trigger_manual--> Fired --resolve--> Resolved
                                          \--delete--> Deleted

Resolved and Deleted are terminal for that alert id; a metric that breaches
again later produces a new alert with a new id.

Escalation policy: when a reading escalates an open alert (e.g. warning to
critical), the new alert replaces the old one.  The old alert is resolved
with ``Resolution.ESCALATED`` so at most one alert per metric is open.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from numbers import Real

import structlog

from vigil.alerts.evaluator import AlertEvaluator
from vigil.alerts.registry import ThresholdRegistry
from vigil.alerts.store import AlertStore, Identifier
from vigil.errors import EvaluationError, ValidationError
from vigil.models.alerts import Alert, DispatchResult, Resolution, Severity
from vigil.models.config import AlertingConfig
from vigil.notifications.manager import ALL_CHANNELS, NotificationDispatcher
from vigil.observability.metrics import alerts_fired_total, alerts_suppressed_total

_log = structlog.get_logger(component="alerts.service")


def parse_identifier(raw: str | int) -> Identifier:
    """Integer ids arrive as strings from HTTP paths; anything else is a timestamp."""
    if isinstance(raw, int):
        return raw
    text = raw.strip()
    return int(text) if text.isdigit() else text


def parse_severity(raw: Severity | str | None) -> Severity | None:
    if raw is None or isinstance(raw, Severity):
        return raw
    try:
        return Severity(str(raw).lower())
    except ValueError:
        valid = [s.value for s in Severity]
        raise ValidationError(f"Invalid severity {raw!r}; expected one of {valid}") from None


def parse_datetime(raw: datetime | str | None, field: str) -> datetime | None:
    """Accept aware/naive datetimes or ISO-8601 strings; naive values are UTC."""
    if raw is None:
        return None
    if isinstance(raw, str):
        try:
            raw = datetime.fromisoformat(raw)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 date or datetime, got {raw!r}") from None
    if raw.tzinfo is None:
        raw = raw.replace(tzinfo=UTC)
    return raw


def _number(raw: object, field: str) -> float:
    if not isinstance(raw, Real) or isinstance(raw, bool):
        raise ValidationError(f"{field} must be a number, got {type(raw).__name__}")
    number = float(raw)
    if not math.isfinite(number):
        raise ValidationError(f"{field} must be a finite number, got {number}")
    return number


def _limit(raw: int | None) -> int | None:
    if raw is not None and raw < 0:
        raise ValidationError(f"limit must be >= 0, got {raw}")
    return raw


class AlertService:
    """Wires evaluator -> store -> dispatcher and exposes the alert operations.

    Args:
        registry:   Threshold registry (injected so tests get isolated state).
        store:      Alert store.
        evaluator:  Alert evaluator built over the registry's metric catalogue.
        dispatcher: Notification dispatcher.
    """

    def __init__(
        self,
        registry: ThresholdRegistry,
        store: AlertStore,
        evaluator: AlertEvaluator,
        dispatcher: NotificationDispatcher,
    ) -> None:
        self._registry = registry
        self._store = store
        self._evaluator = evaluator
        self._dispatcher = dispatcher

    @classmethod
    def from_config(cls, config: AlertingConfig, dispatcher: NotificationDispatcher) -> AlertService:
        registry = ThresholdRegistry(thresholds=config.thresholds)
        return cls(
            registry=registry,
            store=AlertStore(retention=config.history_retention),
            evaluator=AlertEvaluator(registry.specs(), clear_ratio=config.clear_ratio),
            dispatcher=dispatcher,
        )

    @property
    def store(self) -> AlertStore:
        return self._store

    @property
    def dispatcher(self) -> NotificationDispatcher:
        return self._dispatcher

    # ------------------------------------------------------------------
    # Firing
    # ------------------------------------------------------------------

    async def ingest(self, metric_key: str, value: float) -> Alert | None:
        """Evaluate one reading; record and dispatch the alert if it fires.

        Dispatch runs in the background, so the return value only says
        whether an alert was fired and stored.  A reading back inside the
        clear band resolves the metric's open alert.

        Raises:
            EvaluationError: unknown metric or non-numeric value.
        """
        thresholds = self._registry.get()
        assessment = self._evaluator.assess(metric_key, value, thresholds)

        with self._store.locked() as store:
            alert = self._evaluator.evaluate(metric_key, value, thresholds, store.open_for(metric_key))
            if alert is None:
                if assessment.severity is not None:
                    alerts_suppressed_total.labels(type=metric_key).inc()
                    _log.debug(
                        "alert_suppressed",
                        type=metric_key,
                        value=assessment.value,
                        severity=assessment.severity.value,
                    )
                elif self._evaluator.is_recovered(metric_key, value, thresholds):
                    store.resolve_type(metric_key, Resolution.RECOVERED)
                return None

            superseded = store.resolve_type(metric_key, Resolution.ESCALATED)
            store.record(alert)

        if superseded:
            _log.info(
                "alert_escalated",
                alert_id=alert.id,
                type=metric_key,
                severity=alert.severity.value,
                superseded=[old.id for old in superseded],
            )
        self._fired(alert)
        return alert

    async def check_metrics(self, sample: Mapping[str, object]) -> list[Alert]:
        """Ingest a snapshot of several metrics; returns the alerts fired.

        Every key is validated before any reading is ingested.
        """
        unknown = sorted(key for key in sample if key not in self._registry)
        if unknown:
            raise EvaluationError(f"Unknown metrics: {', '.join(unknown)}")

        fired: list[Alert] = []
        for key, value in sample.items():
            alert = await self.ingest(key, value)  # type: ignore[arg-type]
            if alert is not None:
                fired.append(alert)
        return fired

    async def trigger_manual(
        self,
        type: str,
        message: str,
        severity: Severity | str = Severity.WARNING,
        value: float = 0.0,
        threshold: float = 0.0,
    ) -> Alert:
        """Record and dispatch an operator-raised alert.

        Bypasses threshold evaluation and dedup; *type* may be any name.

        Raises:
            ValidationError: empty type/message, missing or unknown
                             severity, or a non-finite value/threshold.
        """
        if not isinstance(type, str) or not type.strip():
            raise ValidationError("type is required")
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("message is required")
        level = parse_severity(severity)
        if level is None:
            raise ValidationError("severity is required")

        alert = Alert(
            type=type.strip(),
            severity=level,
            message=message.strip(),
            value=_number(value, "value"),
            threshold=_number(threshold, "threshold"),
            manual=True,
        )
        self._store.record(alert)
        self._fired(alert)
        return alert

    def _fired(self, alert: Alert) -> None:
        alerts_fired_total.labels(type=alert.type, severity=alert.severity.value).inc()
        _log.warning(
            "alert_fired",
            alert_id=alert.id,
            type=alert.type,
            severity=alert.severity.value,
            message=alert.message,
        )
        self._dispatcher.schedule(alert)

    # ------------------------------------------------------------------
    # Thresholds
    # ------------------------------------------------------------------

    def get_thresholds(self) -> dict[str, float]:
        return self._registry.get()

    def update_thresholds(self, partial: Mapping[str, object]) -> dict[str, float]:
        """Raises InvalidThresholdError; the registry is unchanged on failure."""
        return self._registry.update(partial)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_current(
        self,
        limit: int | None = None,
        type: str | None = None,
        severity: Severity | str | None = None,
    ) -> list[Alert]:
        return self._store.current(type=type, severity=parse_severity(severity), limit=_limit(limit))

    def get_history(
        self,
        limit: int | None = 100,
        type: str | None = None,
        severity: Severity | str | None = None,
        start_date: datetime | str | None = None,
        end_date: datetime | str | None = None,
    ) -> list[Alert]:
        return self._store.history(
            limit=_limit(limit),
            type=type,
            severity=parse_severity(severity),
            start=parse_datetime(start_date, "startDate"),
            end=parse_datetime(end_date, "endDate"),
        )

    def get_stats(self) -> dict[str, object]:
        return self._store.stats()

    def get_alert(self, identifier: Identifier) -> Alert | None:
        return self._store.get(identifier)

    # ------------------------------------------------------------------
    # Lifecycle operations
    # ------------------------------------------------------------------

    def resolve_alert(self, identifier: Identifier) -> bool:
        return self._store.resolve(identifier)

    def resolve_many(self, identifiers: Iterable[Identifier]) -> dict[Identifier, bool]:
        return {identifier: self._store.resolve(identifier) for identifier in identifiers}

    def acknowledge_alert(self, identifier: Identifier, by: str | None = None) -> bool:
        return self._store.acknowledge(identifier, by=by)

    def delete_alert(self, identifier: Identifier) -> bool:
        return self._store.remove(identifier)

    def clear_resolved(self) -> dict[str, int]:
        cleared = self._store.clear_resolved()
        return {"clearedCount": cleared, "remainingCount": len(self._store)}

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def send_test(self, channel: str = ALL_CHANNELS) -> DispatchResult:
        """Send a synthetic alert and wait for the per-channel outcome."""
        return await self._dispatcher.send_test(channel)

    async def drain(self) -> None:
        """Wait for background dispatches started by ingest/trigger_manual."""
        await self._dispatcher.drain()

    async def stop(self) -> None:
        await self._dispatcher.stop()
