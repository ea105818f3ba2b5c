"""Request and response models for the REST API."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, Field

from vigil.models.alerts import Alert, DispatchResult


class ErrorResponse(BaseModel):
    """Error envelope returned for every 4xx/5xx response."""

    error: str
    detail: str


class AlertOut(BaseModel):
    id: int | None
    type: str
    severity: str
    message: str
    value: float
    threshold: float
    timestamp: str
    resolved: bool
    manual: bool
    resolved_at: str | None = None
    resolution: str | None = None
    acknowledged_at: str | None = None
    acknowledged_by: str | None = None

    @classmethod
    def from_alert(cls, alert: Alert) -> AlertOut:
        return cls(**alert.to_dict())


class AlertListResponse(BaseModel):
    alerts: list[AlertOut]
    count: int

    @classmethod
    def from_alerts(cls, alerts: list[Alert]) -> AlertListResponse:
        return cls(alerts=[AlertOut.from_alert(a) for a in alerts], count=len(alerts))


class TriggerRequest(BaseModel):
    type: str
    message: str
    severity: str = "warning"
    value: float = Field(default=0.0, allow_inf_nan=False)
    threshold: float = Field(default=0.0, allow_inf_nan=False)


class IngestRequest(BaseModel):
    metric: str
    value: float = Field(allow_inf_nan=False)


class IngestResponse(BaseModel):
    fired: bool
    alert: AlertOut | None = None


class CheckRequest(BaseModel):
    metrics: dict[str, Annotated[float, Field(allow_inf_nan=False)]]


class ThresholdsResponse(BaseModel):
    thresholds: dict[str, float]


class AcknowledgeRequest(BaseModel):
    by: str | None = Field(default=None, max_length=200)


class StatusResponse(BaseModel):
    id: int | str
    success: bool


class BulkResolveRequest(BaseModel):
    ids: list[int | str] = Field(min_length=1, max_length=1000)


class BulkResolveResponse(BaseModel):
    results: list[StatusResponse]
    resolvedCount: int


class ClearResolvedResponse(BaseModel):
    clearedCount: int
    remainingCount: int


class NotificationTestRequest(BaseModel):
    channel: str = "all"


class ChannelOutcomeOut(BaseModel):
    status: str
    reason: str = ""


class NotificationTestResponse(BaseModel):
    results: dict[str, ChannelOutcomeOut]

    @classmethod
    def from_result(cls, result: DispatchResult) -> NotificationTestResponse:
        return cls(
            results={
                name: ChannelOutcomeOut(status=outcome.status.value, reason=outcome.reason)
                for name, outcome in result.items()
            }
        )


class HealthResponse(BaseModel):
    status: str
    version: str
    channels: list[str]
    open_alerts: int

