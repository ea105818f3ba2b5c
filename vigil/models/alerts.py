"""Alert data structures."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class Severity(StrEnum):
    """Alert urgency, ordered info < warning < critical."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.INFO: 0,
    Severity.WARNING: 1,
    Severity.CRITICAL: 2,
}


class Resolution(StrEnum):
    """Why an alert left the current set."""

    CLEARED = "cleared"
    RECOVERED = "recovered"
    ESCALATED = "escalated"


class DeliveryStatus(StrEnum):
    """Outcome of one channel attempt."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with microsecond precision."""
    return datetime.now(tz=UTC).isoformat(timespec="microseconds")


@dataclass
class Alert:
    """A single threshold breach or manually raised condition.

    Mutable on purpose: the store resolves and acknowledges alerts in place so
    the history entry and the current-set entry stay the same object.
    ``id`` is assigned by ``AlertStore.record`` and is ``None`` until then.
    """

    type: str
    severity: Severity
    message: str
    value: float
    threshold: float
    timestamp: str = field(default_factory=utc_timestamp)
    resolved: bool = False
    id: int | None = None
    manual: bool = False
    resolved_at: str | None = None
    resolution: Resolution | None = None
    acknowledged_at: str | None = None
    acknowledged_by: str | None = None

    @property
    def created_at(self) -> datetime:
        return datetime.fromisoformat(self.timestamp)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["resolution"] = self.resolution.value if self.resolution else None
        return data


@dataclass(frozen=True)
class ChannelOutcome:
    """Result of delivering one alert to one channel."""

    status: DeliveryStatus
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status == DeliveryStatus.SUCCESS

    @classmethod
    def success(cls) -> ChannelOutcome:
        return cls(DeliveryStatus.SUCCESS)

    @classmethod
    def failed(cls, reason: str) -> ChannelOutcome:
        return cls(DeliveryStatus.FAILED, reason)

    @classmethod
    def skipped(cls, reason: str) -> ChannelOutcome:
        return cls(DeliveryStatus.SKIPPED, reason)


# channel name -> outcome
DispatchResult = dict[str, ChannelOutcome]
