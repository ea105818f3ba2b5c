"""Integration tests for VigilApp startup and shutdown."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from vigil.app import VigilApp, _ComponentError
from vigil.models.alerts import Severity
from vigil.models.config import AlertingConfig, NotificationConfig, VigilConfig

# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


class TestStartup:
    async def test_start_without_rest_wires_service(self) -> None:
        app = VigilApp(VigilConfig(alerting=AlertingConfig(thresholds={"cpu": 60.0})))
        await app.start(serve=False)
        try:
            assert app.service is not None
            assert app.service.get_thresholds()["cpu"] == 60.0
            alert = await app.service.ingest("cpu", 65)
            assert alert is not None
            assert alert.severity == Severity.WARNING
        finally:
            await app.stop()
        assert app.service is None

    async def test_loads_config_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIGIL_THRESHOLD_MEMORY", "42")
        app = VigilApp()
        await app.start(serve=False)
        try:
            assert app.config is not None
            assert app.service is not None
            assert app.service.get_thresholds()["memory"] == 42.0
        finally:
            await app.stop()

    async def test_configured_channels_are_enabled(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_LIFECYCLE_WEBHOOK", "https://hooks.example.com/vigil")
        config = VigilConfig(notifications=NotificationConfig(webhook_secret_ref="TEST_LIFECYCLE_WEBHOOK"))
        app = VigilApp(config)
        await app.start(serve=False)
        try:
            assert app.service is not None
            assert app.service.dispatcher.channel_names == ["webhook"]
        finally:
            await app.stop()

    async def test_notification_failure_is_not_fatal(self) -> None:
        app = VigilApp(VigilConfig())
        with patch("vigil.notifications.build_notification_dispatcher", side_effect=RuntimeError("bad secrets")):
            await app.start(serve=False)
        try:
            assert app.service is not None
            assert app.service.dispatcher.channel_names == []
        finally:
            await app.stop()

    async def test_invalid_thresholds_are_fatal(self) -> None:
        app = VigilApp(VigilConfig(alerting=AlertingConfig(thresholds={"cpu": 500.0})))
        with pytest.raises(_ComponentError) as excinfo:
            await app.start(serve=False)
        assert excinfo.value.component == "alert_service"
        await app.stop()


# ---------------------------------------------------------------------------
# Shutdown
# ---------------------------------------------------------------------------


class TestShutdown:
    async def test_stop_before_start_is_a_no_op(self) -> None:
        await VigilApp().stop()

    async def test_stop_twice(self) -> None:
        app = VigilApp(VigilConfig())
        await app.start(serve=False)
        await app.stop()
        await app.stop()
        assert app.service is None
