"""In-process alert store: retention-bounded history plus the current set.

The store is the only component allowed to mutate alerts.  History and the
current set share alert objects by reference, so resolving an alert updates
its history entry in place.

Identifiers: every lookup accepts either the integer ``id`` assigned by
``record`` or the alert's ``timestamp`` string.  A timestamp may match more
than one alert; the oldest match wins.
"""

from __future__ import annotations

import itertools
import threading
from collections import Counter, deque
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta

import structlog

from vigil.models.alerts import Alert, Resolution, Severity, utc_timestamp

_log = structlog.get_logger(component="alerts.store")

DEFAULT_RETENTION = 1000

Identifier = int | str


def _matches(alert: Alert, identifier: Identifier) -> bool:
    if isinstance(identifier, bool):
        return False
    if isinstance(identifier, int):
        return alert.id == identifier
    return alert.timestamp == identifier


def _filter(
    alerts: Iterable[Alert],
    type: str | None = None,
    severity: Severity | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Alert]:
    selected: list[Alert] = []
    for alert in alerts:
        if type is not None and alert.type != type:
            continue
        if severity is not None and alert.severity != severity:
            continue
        if start is not None or end is not None:
            created = alert.created_at
            if start is not None and created < start:
                continue
            if end is not None and created > end:
                continue
        selected.append(alert)
    return selected


def _tail(alerts: list[Alert], limit: int | None) -> list[Alert]:
    if limit is None:
        return alerts
    if limit <= 0:
        return []
    return alerts[-limit:]


class AlertStore:
    """Authoritative holder of alert state.

    Thread-safe: every operation takes the store's re-entrant lock, and
    ``locked()`` lets callers run a read-modify-write sequence (snapshot,
    evaluate, record) atomically.

    Args:
        retention: Maximum number of history entries kept; oldest evicted first.
        clock:     Returns "now" for the rolling stats windows.
    """

    def __init__(
        self,
        retention: int = DEFAULT_RETENTION,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if retention < 1:
            raise ValueError(f"retention must be >= 1, got {retention}")
        self._retention = retention
        self._history: deque[Alert] = deque(maxlen=retention)
        self._current: list[Alert] = []
        self._ids = itertools.count(1)
        self._total_fired = 0
        self._lock = threading.RLock()
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    @property
    def retention(self) -> int:
        return self._retention

    @contextmanager
    def locked(self) -> Iterator[AlertStore]:
        """Hold the store lock across several calls."""
        with self._lock:
            yield self

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def record(self, alert: Alert) -> Alert:
        """Assign an id, append to history and add to the current set."""
        with self._lock:
            if alert.id is not None:
                raise ValueError(f"Alert {alert.id} has already been recorded")
            alert.id = next(self._ids)
            if len(self._history) == self._retention:
                evicted = self._history[0]
                _log.debug("history_evicted", alert_id=evicted.id, type=evicted.type)
            self._history.append(alert)
            self._current.append(alert)
            self._total_fired += 1

        _log.info(
            "alert_recorded",
            alert_id=alert.id,
            type=alert.type,
            severity=alert.severity.value,
            value=alert.value,
            threshold=alert.threshold,
            manual=alert.manual,
        )
        return alert

    def resolve(self, identifier: Identifier, resolution: Resolution = Resolution.CLEARED) -> bool:
        """Mark a current alert resolved and drop it from the current set.

        Returns False when no current alert matches (including a second
        resolve of the same alert).
        """
        with self._lock:
            alert = self._find_current(identifier)
            if alert is None or alert.resolved:
                return False
            self._mark_resolved(alert, resolution)
            self._current.remove(alert)

        _log.info("alert_resolved", alert_id=alert.id, type=alert.type, resolution=resolution.value)
        return True

    def resolve_type(self, type: str, resolution: Resolution) -> list[Alert]:
        """Resolve every current alert of *type*; returns the alerts resolved."""
        with self._lock:
            matched = [alert for alert in self._current if alert.type == type and not alert.resolved]
            for alert in matched:
                self._mark_resolved(alert, resolution)
                self._current.remove(alert)

        for alert in matched:
            _log.info("alert_resolved", alert_id=alert.id, type=alert.type, resolution=resolution.value)
        return matched

    def remove(self, identifier: Identifier) -> bool:
        """Hard-delete a current alert.  History is left untouched."""
        with self._lock:
            alert = self._find_current(identifier)
            if alert is None:
                return False
            self._current.remove(alert)

        _log.info("alert_removed", alert_id=alert.id, type=alert.type)
        return True

    def clear_resolved(self) -> int:
        """Drop resolved alerts from the current set; returns how many."""
        with self._lock:
            before = len(self._current)
            self._current = [alert for alert in self._current if not alert.resolved]
            cleared = before - len(self._current)

        if cleared:
            _log.info("resolved_alerts_cleared", count=cleared)
        return cleared

    def acknowledge(self, identifier: Identifier, by: str | None = None) -> bool:
        """Record an operator acknowledgement on a current alert.

        Returns False if the alert is not current or was already acknowledged.
        Acknowledgement does not change the alert's lifecycle state.
        """
        with self._lock:
            alert = self._find_current(identifier)
            if alert is None or alert.acknowledged_at is not None:
                return False
            alert.acknowledged_at = utc_timestamp()
            alert.acknowledged_by = by

        _log.info("alert_acknowledged", alert_id=alert.id, by=by)
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, identifier: Identifier) -> Alert | None:
        """Look up an alert in the current set, then in retained history."""
        with self._lock:
            alert = self._find_current(identifier)
            if alert is not None:
                return alert
            for candidate in self._history:
                if _matches(candidate, identifier):
                    return candidate
        return None

    def open_for(self, type: str) -> list[Alert]:
        with self._lock:
            return [alert for alert in self._current if alert.type == type and not alert.resolved]

    def current(
        self,
        type: str | None = None,
        severity: Severity | None = None,
        limit: int | None = None,
    ) -> list[Alert]:
        """Current alerts in creation order (most recent last)."""
        with self._lock:
            selected = _filter(self._current, type=type, severity=severity)
        return _tail(selected, limit)

    def history(
        self,
        limit: int | None = 100,
        type: str | None = None,
        severity: Severity | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Alert]:
        """Up to *limit* most recent history entries after filtering."""
        with self._lock:
            selected = _filter(self._history, type=type, severity=severity, start=start, end=end)
        return _tail(selected, limit)

    def stats(self) -> dict[str, object]:
        """Aggregate counts over retained history and the current set.

        ``totalFired`` counts every alert recorded since the store was
        created; the breakdowns cover retained history only.
        """
        now = self._clock()
        day_ago = now - timedelta(hours=24)
        week_ago = now - timedelta(days=7)

        with self._lock:
            history = list(self._history)
            total_fired = self._total_fired
            total_current = len(self._current)

        by_type = Counter(alert.type for alert in history)
        by_severity = {severity.value: 0 for severity in Severity}
        for alert in history:
            by_severity[alert.severity.value] += 1

        created = [alert.created_at for alert in history]
        return {
            "byType": dict(by_type),
            "bySeverity": by_severity,
            "totalFired": total_fired,
            "totalCurrent": total_current,
            "totalRetained": len(history),
            "firedLast24h": sum(1 for ts in created if ts >= day_ago),
            "firedLast7d": sum(1 for ts in created if ts >= week_ago),
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._current)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _find_current(self, identifier: Identifier) -> Alert | None:
        for alert in self._current:
            if _matches(alert, identifier):
                return alert
        return None

    @staticmethod
    def _mark_resolved(alert: Alert, resolution: Resolution) -> None:
        alert.resolved = True
        alert.resolved_at = utc_timestamp()
        alert.resolution = resolution
