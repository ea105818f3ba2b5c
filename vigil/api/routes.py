"""REST routes over AlertService.

Handlers only shape arguments and responses; every rule lives in the
service.  Domain errors are translated to HTTP responses by the exception
handlers registered in ``vigil.api.app``.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Query, Request, status

from vigil.alerts.service import AlertService, parse_identifier
from vigil.api.schemas import (
    AcknowledgeRequest,
    AlertListResponse,
    AlertOut,
    BulkResolveRequest,
    BulkResolveResponse,
    CheckRequest,
    ClearResolvedResponse,
    HealthResponse,
    IngestRequest,
    IngestResponse,
    NotificationTestRequest,
    NotificationTestResponse,
    StatusResponse,
    ThresholdsResponse,
    TriggerRequest,
)
from vigil.errors import AlertNotFoundError

router = APIRouter()


def _service(request: Request) -> AlertService:
    return request.app.state.service  # type: ignore[no-any-return]


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    from vigil import __version__

    service = _service(request)
    return HealthResponse(
        status="ok",
        version=__version__,
        channels=service.dispatcher.channel_names,
        open_alerts=len(service.store),
    )


# Literal paths are registered before "/alerts/{alert_id}" so they win.


@router.get("/alerts/current", response_model=AlertListResponse)
async def list_current(
    request: Request,
    limit: int | None = Query(default=None, ge=0),
    type: str | None = Query(default=None),
    severity: str | None = Query(default=None),
) -> AlertListResponse:
    alerts = _service(request).get_current(limit=limit, type=type, severity=severity)
    return AlertListResponse.from_alerts(alerts)


@router.get("/alerts/history", response_model=AlertListResponse)
async def list_history(
    request: Request,
    limit: int = Query(default=100, ge=0),
    type: str | None = Query(default=None),
    severity: str | None = Query(default=None),
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
) -> AlertListResponse:
    alerts = _service(request).get_history(
        limit=limit,
        type=type,
        severity=severity,
        start_date=start_date,
        end_date=end_date,
    )
    return AlertListResponse.from_alerts(alerts)


@router.get("/alerts/stats")
async def stats(request: Request) -> dict[str, Any]:
    return _service(request).get_stats()


@router.get("/alerts/thresholds", response_model=ThresholdsResponse)
async def get_thresholds(request: Request) -> ThresholdsResponse:
    return ThresholdsResponse(thresholds=_service(request).get_thresholds())


@router.put("/alerts/thresholds", response_model=ThresholdsResponse)
async def update_thresholds(request: Request, payload: dict[str, Any] = Body(...)) -> ThresholdsResponse:
    return ThresholdsResponse(thresholds=_service(request).update_thresholds(payload))


@router.post("/alerts/trigger", response_model=AlertOut, status_code=status.HTTP_201_CREATED)
async def trigger(request: Request, body: TriggerRequest) -> AlertOut:
    alert = await _service(request).trigger_manual(
        type=body.type,
        message=body.message,
        severity=body.severity,
        value=body.value,
        threshold=body.threshold,
    )
    return AlertOut.from_alert(alert)


@router.post("/alerts/ingest", response_model=IngestResponse)
async def ingest(request: Request, body: IngestRequest) -> IngestResponse:
    alert = await _service(request).ingest(body.metric, body.value)
    if alert is None:
        return IngestResponse(fired=False)
    return IngestResponse(fired=True, alert=AlertOut.from_alert(alert))


@router.post("/alerts/check", response_model=AlertListResponse)
async def check(request: Request, body: CheckRequest) -> AlertListResponse:
    fired = await _service(request).check_metrics(body.metrics)
    return AlertListResponse.from_alerts(fired)


@router.put("/alerts/bulk/resolve", response_model=BulkResolveResponse)
async def bulk_resolve(request: Request, body: BulkResolveRequest) -> BulkResolveResponse:
    """Resolve several alerts; unknown or already-resolved ids report success=False."""
    identifiers = [parse_identifier(raw) for raw in body.ids]
    outcome = _service(request).resolve_many(identifiers)
    results = [StatusResponse(id=identifier, success=ok) for identifier, ok in outcome.items()]
    return BulkResolveResponse(results=results, resolvedCount=sum(r.success for r in results))


@router.post("/alerts/clear-resolved", response_model=ClearResolvedResponse)
async def clear_resolved(request: Request) -> ClearResolvedResponse:
    return ClearResolvedResponse(**_service(request).clear_resolved())


@router.post("/alerts/test-notification", response_model=NotificationTestResponse)
async def test_notification(
    request: Request,
    body: NotificationTestRequest | None = None,
) -> NotificationTestResponse:
    channel = body.channel if body is not None else "all"
    result = await _service(request).send_test(channel)
    return NotificationTestResponse.from_result(result)


@router.get("/alerts/{alert_id}", response_model=AlertOut)
async def get_alert(request: Request, alert_id: str) -> AlertOut:
    identifier = parse_identifier(alert_id)
    alert = _service(request).get_alert(identifier)
    if alert is None:
        raise AlertNotFoundError(identifier)
    return AlertOut.from_alert(alert)


@router.post("/alerts/{alert_id}/resolve", response_model=StatusResponse)
async def resolve_alert(request: Request, alert_id: str) -> StatusResponse:
    identifier = parse_identifier(alert_id)
    if not _service(request).resolve_alert(identifier):
        raise AlertNotFoundError(identifier)
    return StatusResponse(id=identifier, success=True)


@router.post("/alerts/{alert_id}/acknowledge", response_model=StatusResponse)
async def acknowledge_alert(
    request: Request,
    alert_id: str,
    body: AcknowledgeRequest | None = None,
) -> StatusResponse:
    identifier = parse_identifier(alert_id)
    service = _service(request)
    alert = service.get_alert(identifier)
    if alert is None or alert.resolved:
        raise AlertNotFoundError(identifier)
    by = body.by if body is not None else None
    # False: already acknowledged, or deleted from the current set.
    return StatusResponse(id=identifier, success=service.acknowledge_alert(identifier, by=by))


@router.delete("/alerts/{alert_id}", response_model=StatusResponse)
async def delete_alert(request: Request, alert_id: str) -> StatusResponse:
    identifier = parse_identifier(alert_id)
    if not _service(request).delete_alert(identifier):
        raise AlertNotFoundError(identifier)
    return StatusResponse(id=identifier, success=True)
