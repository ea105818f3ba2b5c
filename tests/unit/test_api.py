"""Tests for the Vigil REST API.

Every response must be JSON; every 4xx/5xx body must carry ``error`` and
``detail``.  The fuzz section feeds random payloads to the write endpoints
and checks that none of them produce a 500.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from hypothesis import given, settings
from hypothesis import strategies as st

from vigil.alerts.service import AlertService
from vigil.api.app import create_app
from vigil.models.alerts import Alert
from vigil.models.config import AlertingConfig
from vigil.notifications.manager import NotificationChannel, NotificationDispatcher

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


class _StubChannel(NotificationChannel):
    def __init__(self, name: str, fail: bool = False) -> None:
        self._name = name
        self._fail = fail

    @property
    def channel_name(self) -> str:
        return self._name

    async def send(self, alert: Alert) -> None:
        if self._fail:
            raise RuntimeError("unreachable")


def _make_service(*channels: NotificationChannel) -> AlertService:
    return AlertService.from_config(AlertingConfig(), dispatcher=NotificationDispatcher(list(channels)))


def _make_client(service: AlertService | None = None) -> TestClient:
    app = create_app(service=service or _make_service())
    return TestClient(app, raise_server_exceptions=False)


def _assert_valid_json_response(resp, allowed_status_codes: set[int] | None = None):
    """Assert universal invariants on every API response."""
    assert resp.headers.get("content-type", "").startswith("application/json"), (
        f"Expected application/json, got {resp.headers.get('content-type')}"
    )
    body = resp.json()
    assert isinstance(body, dict)

    if allowed_status_codes is not None:
        assert resp.status_code in allowed_status_codes, f"Unexpected status {resp.status_code}, body={body}"

    if resp.status_code >= 400:
        assert "error" in body, f"Error response missing 'error': {body}"
        assert "detail" in body, f"Error response missing 'detail': {body}"


def _ingest(client: TestClient, metric: str, value: float) -> dict:
    resp = client.post("/api/v1/alerts/ingest", json={"metric": metric, "value": value})
    assert resp.status_code == 200, resp.text
    return resp.json()


# ===========================================================================
# Health
# ===========================================================================


class TestHealth:
    def test_health_reports_channels_and_open_alerts(self) -> None:
        client = _make_client(_make_service(_StubChannel("chat")))
        resp = client.get("/api/v1/health")
        _assert_valid_json_response(resp, {200})
        body = resp.json()
        assert body["status"] == "ok"
        assert body["channels"] == ["chat"]
        assert body["open_alerts"] == 0


# ===========================================================================
# Thresholds
# ===========================================================================


class TestThresholds:
    def test_get_defaults(self) -> None:
        resp = _make_client().get("/api/v1/alerts/thresholds")
        assert resp.status_code == 200
        assert resp.json()["thresholds"]["cpu"] == 80.0

    def test_partial_update(self) -> None:
        client = _make_client()
        resp = client.put("/api/v1/alerts/thresholds", json={"cpu": 70})
        assert resp.status_code == 200
        thresholds = resp.json()["thresholds"]
        assert thresholds["cpu"] == 70.0
        assert thresholds["memory"] == 85.0

    def test_invalid_update_rejected_atomically(self) -> None:
        client = _make_client()
        resp = client.put("/api/v1/alerts/thresholds", json={"cpu": 70, "memory": 150})
        _assert_valid_json_response(resp, {400})
        assert resp.json()["error"] == "INVALID_THRESHOLD"
        assert "memory" in resp.json()["detail"]
        assert client.get("/api/v1/alerts/thresholds").json()["thresholds"]["cpu"] == 80.0

    def test_non_object_body(self) -> None:
        resp = _make_client().put("/api/v1/alerts/thresholds", json=[1, 2, 3])
        _assert_valid_json_response(resp, {400})
        assert resp.json()["error"] == "INVALID_REQUEST"


# ===========================================================================
# Firing and listing
# ===========================================================================


class TestIngestAndList:
    def test_ingest_fires_then_suppresses(self) -> None:
        client = _make_client()
        first = _ingest(client, "cpu", 85)
        assert first["fired"] is True
        assert first["alert"]["severity"] == "warning"
        assert first["alert"]["id"] == 1

        second = _ingest(client, "cpu", 86)
        assert second == {"fired": False, "alert": None}

    def test_unknown_metric_is_evaluation_error(self) -> None:
        resp = _make_client().post("/api/v1/alerts/ingest", json={"metric": "gpu", "value": 1})
        _assert_valid_json_response(resp, {400})
        assert resp.json()["error"] == "EVALUATION_ERROR"

    def test_missing_value_is_invalid_request(self) -> None:
        resp = _make_client().post("/api/v1/alerts/ingest", json={"metric": "cpu"})
        _assert_valid_json_response(resp, {400})
        assert resp.json()["error"] == "INVALID_REQUEST"

    def test_check_returns_fired_alerts(self) -> None:
        client = _make_client()
        resp = client.post("/api/v1/alerts/check", json={"metrics": {"cpu": 95, "memory": 20}})
        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 1
        assert body["alerts"][0]["severity"] == "critical"

    def test_current_filters(self) -> None:
        client = _make_client()
        _ingest(client, "cpu", 85)
        _ingest(client, "memory", 99)
        resp = client.get("/api/v1/alerts/current", params={"severity": "critical"})
        assert [a["type"] for a in resp.json()["alerts"]] == ["memory"]
        resp = client.get("/api/v1/alerts/current", params={"type": "cpu"})
        assert [a["type"] for a in resp.json()["alerts"]] == ["cpu"]

    def test_bad_severity_filter(self) -> None:
        resp = _make_client().get("/api/v1/alerts/current", params={"severity": "loud"})
        _assert_valid_json_response(resp, {400})
        assert resp.json()["error"] == "VALIDATION_ERROR"

    def test_history_limit_and_dates(self) -> None:
        client = _make_client()
        for value in (85, 60, 85, 60, 85):
            _ingest(client, "cpu", value)
        resp = client.get("/api/v1/alerts/history", params={"limit": 2})
        assert resp.json()["count"] == 2
        resp = client.get("/api/v1/alerts/history", params={"startDate": "2999-01-01"})
        assert resp.json()["count"] == 0

    def test_history_bad_date(self) -> None:
        resp = _make_client().get("/api/v1/alerts/history", params={"endDate": "soon"})
        _assert_valid_json_response(resp, {400})

    def test_stats(self) -> None:
        client = _make_client()
        _ingest(client, "cpu", 85)
        _ingest(client, "cpu", 95)
        stats = client.get("/api/v1/alerts/stats").json()
        assert stats["totalFired"] == 2
        assert stats["totalCurrent"] == 1
        assert stats["byType"] == {"cpu": 2}
        assert stats["bySeverity"]["critical"] == 1


# ===========================================================================
# Manual trigger
# ===========================================================================


class TestTrigger:
    def test_trigger_returns_201(self) -> None:
        client = _make_client()
        resp = client.post(
            "/api/v1/alerts/trigger",
            json={"type": "maintenance", "message": "DB failover drill", "severity": "info"},
        )
        _assert_valid_json_response(resp, {201})
        body = resp.json()
        assert body["manual"] is True
        assert body["severity"] == "info"

    def test_trigger_invalid_severity(self) -> None:
        resp = _make_client().post(
            "/api/v1/alerts/trigger",
            json={"type": "maintenance", "message": "x", "severity": "page-everyone"},
        )
        _assert_valid_json_response(resp, {400})
        assert resp.json()["error"] == "VALIDATION_ERROR"

    @pytest.mark.parametrize(
        "extra",
        [{"value": "inf"}, {"value": "NaN"}, {"threshold": "-Infinity"}],
    )
    def test_trigger_non_finite_number_rejected(self, extra: dict) -> None:
        client = _make_client()
        resp = client.post("/api/v1/alerts/trigger", json={"type": "custom", "message": "x", **extra})
        _assert_valid_json_response(resp, {400})
        assert resp.json()["error"] == "INVALID_REQUEST"
        assert client.get("/api/v1/alerts/current").json()["count"] == 0

    def test_ingest_non_finite_value_rejected(self) -> None:
        resp = _make_client().post("/api/v1/alerts/ingest", json={"metric": "cpu", "value": "inf"})
        _assert_valid_json_response(resp, {400})
        assert resp.json()["error"] == "INVALID_REQUEST"


# ===========================================================================
# Alert lifecycle by id
# ===========================================================================


class TestAlertById:
    def test_get_by_id_and_timestamp(self) -> None:
        client = _make_client()
        alert = _ingest(client, "cpu", 85)["alert"]
        assert client.get("/api/v1/alerts/1").json()["id"] == 1
        by_ts = client.get(f"/api/v1/alerts/{alert['timestamp']}")
        assert by_ts.status_code == 200
        assert by_ts.json()["id"] == 1

    def test_unknown_id_is_404(self) -> None:
        resp = _make_client().get("/api/v1/alerts/999")
        _assert_valid_json_response(resp, {404})
        assert resp.json()["error"] == "ALERT_NOT_FOUND"

    def test_resolve_twice(self) -> None:
        client = _make_client()
        _ingest(client, "cpu", 85)
        assert client.post("/api/v1/alerts/1/resolve").json() == {"id": 1, "success": True}
        assert client.post("/api/v1/alerts/1/resolve").status_code == 404
        assert client.get("/api/v1/alerts/1").json()["resolved"] is True

    def test_acknowledge(self) -> None:
        client = _make_client()
        _ingest(client, "cpu", 85)
        resp = client.post("/api/v1/alerts/1/acknowledge", json={"by": "oncall"})
        assert resp.json() == {"id": 1, "success": True}
        assert client.get("/api/v1/alerts/1").json()["acknowledged_by"] == "oncall"
        again = client.post("/api/v1/alerts/1/acknowledge")
        assert again.json()["success"] is False

    def test_acknowledge_resolved_is_404(self) -> None:
        client = _make_client()
        _ingest(client, "cpu", 85)
        client.post("/api/v1/alerts/1/resolve")
        assert client.post("/api/v1/alerts/1/acknowledge").status_code == 404

    def test_delete(self) -> None:
        client = _make_client()
        _ingest(client, "cpu", 85)
        assert client.delete("/api/v1/alerts/1").json()["success"] is True
        assert client.get("/api/v1/alerts/current").json()["count"] == 0
        assert client.get("/api/v1/alerts/history").json()["count"] == 1
        assert client.delete("/api/v1/alerts/1").status_code == 404

    def test_clear_resolved(self) -> None:
        client = _make_client()
        _ingest(client, "cpu", 85)
        resp = client.post("/api/v1/alerts/clear-resolved")
        assert resp.json() == {"clearedCount": 0, "remainingCount": 1}

    def test_bulk_resolve(self) -> None:
        client = _make_client()
        _ingest(client, "cpu", 85)
        _ingest(client, "memory", 90)
        resp = client.put("/api/v1/alerts/bulk/resolve", json={"ids": [1, "2", "999"]})
        _assert_valid_json_response(resp, {200})
        assert resp.json() == {
            "results": [
                {"id": 1, "success": True},
                {"id": 2, "success": True},
                {"id": 999, "success": False},
            ],
            "resolvedCount": 2,
        }
        assert client.get("/api/v1/alerts/current").json()["count"] == 0

    def test_bulk_resolve_requires_ids(self) -> None:
        resp = _make_client().put("/api/v1/alerts/bulk/resolve", json={"ids": []})
        _assert_valid_json_response(resp, {400})
        assert resp.json()["error"] == "INVALID_REQUEST"


# ===========================================================================
# Test notifications
# ===========================================================================


class TestNotificationTest:
    def test_defaults_to_all_channels(self) -> None:
        service = _make_service(_StubChannel("email"), _StubChannel("chat", fail=True))
        resp = _make_client(service).post("/api/v1/alerts/test-notification")
        _assert_valid_json_response(resp, {200})
        results = resp.json()["results"]
        assert results["email"]["status"] == "success"
        assert results["chat"]["status"] == "failed"

    def test_single_channel(self) -> None:
        service = _make_service(_StubChannel("webhook"))
        resp = _make_client(service).post("/api/v1/alerts/test-notification", json={"channel": "webhook"})
        assert resp.json()["results"] == {"webhook": {"status": "success", "reason": ""}}

    def test_unknown_channel(self) -> None:
        resp = _make_client().post("/api/v1/alerts/test-notification", json={"channel": "carrier-pigeon"})
        _assert_valid_json_response(resp, {400})
        assert resp.json()["error"] == "VALIDATION_ERROR"


# ===========================================================================
# Unexpected failures
# ===========================================================================


class TestInternalError:
    def test_unhandled_exception_is_500_envelope(self) -> None:
        service = MagicMock(spec=AlertService)
        service.get_stats.side_effect = RuntimeError("disk on fire")
        resp = _make_client(service).get("/api/v1/alerts/stats")
        _assert_valid_json_response(resp, {500})
        assert resp.json() == {"error": "INTERNAL_ERROR", "detail": "An unexpected error occurred."}


# ===========================================================================
# Fuzz
# ===========================================================================

_json_scalar = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-(10**6), max_value=10**6),
    st.floats(allow_nan=False, allow_infinity=False),
    st.text(max_size=20),
)

_metric_names = st.one_of(
    st.sampled_from(["cpu", "memory", "disk", "responseTime", "errorRate", "databaseConnections"]),
    st.text(max_size=30),
)


class TestFuzz:
    @given(payload=st.dictionaries(_metric_names, _json_scalar, max_size=6))
    @settings(max_examples=60)
    def test_threshold_updates_never_500(self, payload: dict) -> None:
        resp = _make_client().put("/api/v1/alerts/thresholds", json=payload)
        _assert_valid_json_response(resp, allowed_status_codes={200, 400})

    @given(metric=_metric_names, value=_json_scalar)
    @settings(max_examples=60)
    def test_ingest_never_500(self, metric: str, value: object) -> None:
        resp = _make_client().post("/api/v1/alerts/ingest", json={"metric": metric, "value": value})
        _assert_valid_json_response(resp, allowed_status_codes={200, 400})

    @given(
        alert_id=st.text(
            alphabet=st.characters(codec="ascii", categories=("L", "N")),
            min_size=1,
            max_size=40,
        ).filter(lambda s: s not in {"current", "history", "stats", "thresholds"})
    )
    @settings(max_examples=40)
    def test_lookup_never_500(self, alert_id: str) -> None:
        resp = _make_client().get(f"/api/v1/alerts/{alert_id}")
        _assert_valid_json_response(resp, allowed_status_codes={404})

    @given(
        body=st.fixed_dictionaries(
            {"type": st.text(max_size=20), "message": st.text(max_size=50)},
            optional={"severity": st.text(max_size=10), "value": _json_scalar},
        )
    )
    @settings(max_examples=60)
    def test_trigger_never_500(self, body: dict) -> None:
        resp = _make_client().post("/api/v1/alerts/trigger", json=body)
        _assert_valid_json_response(resp, allowed_status_codes={201, 400})
