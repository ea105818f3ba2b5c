"""Application bootstrap for Vigil.

Startup order: config -> logging -> notifications -> alert service -> REST.
Shutdown runs in reverse.  A failing stop() is logged and the remaining
components are still stopped.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from vigil.config import load_config
from vigil.models.config import VigilConfig
from vigil.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from vigil.alerts.service import AlertService
    from vigil.notifications.manager import NotificationDispatcher

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """A component without a fallback could not be built."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class VigilApp:
    """Owns the dispatcher, the alert service and the REST server.

    ``stop()`` is safe to call on an app that was never started or has
    already stopped.

    Args:
        config: Pre-built configuration.  Loaded from the environment when None.
    """

    def __init__(self, config: VigilConfig | None = None) -> None:
        self.config: VigilConfig | None = config
        self._notifications: NotificationDispatcher | None = None
        self._service: AlertService | None = None
        self._rest_server: object | None = None
        self._background_tasks: list[asyncio.Task[None]] = []
        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def service(self) -> AlertService | None:
        return self._service

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self, serve: bool = True) -> None:
        """Build every component, then optionally start serving HTTP.

        Args:
            serve: Start the uvicorn REST server.  Tests pass False to get a
                   fully wired service without binding a port.

        Raises:
            _ComponentError: a mandatory component could not start.
        """
        if self.config is None:
            self.config = load_config()

        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("vigil starting", version=_vigil_version())

        await self._start_notifications()
        await self._start_service()
        if serve:
            await self._start_rest()

        self._running = True
        self._log.info("vigil started", port=self.config.api.port if serve else None)

    async def _start_notifications(self) -> None:
        """Build the dispatcher; falls back to one with no channels."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting notifications")
        try:
            from vigil.notifications import build_notification_dispatcher

            self._notifications = build_notification_dispatcher(config=self.config.notifications)
            self._log.info("notifications started", channels=self._notifications.channel_names)
        except Exception as exc:
            # Non-fatal: alerts are still evaluated and recorded without channels.
            from vigil.notifications import NotificationDispatcher

            self._log.warning(
                "notification dispatcher failed to start; alerts will not be delivered",
                error=str(exc),
            )
            self._notifications = NotificationDispatcher(channels=[])

    async def _start_service(self) -> None:
        """Build registry, store, evaluator and the service facade."""
        assert self._log is not None
        assert self.config is not None
        assert self._notifications is not None
        self._log.debug("starting alert service")
        try:
            from vigil.alerts.service import AlertService

            self._service = AlertService.from_config(self.config.alerting, dispatcher=self._notifications)
            self._log.info(
                "alert service started",
                thresholds=self._service.get_thresholds(),
                retention=self.config.alerting.history_retention,
            )
        except Exception as exc:
            raise _ComponentError("alert_service", exc) from exc

    async def _start_rest(self) -> None:
        """Serve the API with uvicorn as a background task."""
        assert self._log is not None
        assert self.config is not None
        assert self._service is not None
        self._log.debug("starting rest api")
        try:
            import uvicorn

            from vigil.api import create_app

            fastapi_app = create_app(service=self._service, config=self.config)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("vigil shutting down")
        self._running = False

        if self._rest_server is not None:
            self._rest_server.should_exit = True  # type: ignore[attr-defined]
        if self._background_tasks:
            _done, pending = await asyncio.wait(self._background_tasks, timeout=_SHUTDOWN_GRACE_SECONDS)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        self._background_tasks.clear()
        self._rest_server = None

        # The service's stop drains pending dispatches and closes channels.
        await self._stop_component("alert_service", self._service)
        self._service = None
        self._notifications = None

        log.info("vigil stopped")
        self._log = None

    async def _stop_component(self, name: str, component: object | None) -> None:
        """Await component.stop() under the grace timeout; errors are logged only."""
        if component is None:
            return
        log = self._log or get_logger("app")
        stop_fn = getattr(component, "stop", None)
        if stop_fn is None:
            return
        try:
            result = stop_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component stop raised an error", component=name, error=str(exc))


def _vigil_version() -> str:
    from vigil import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Run Vigil until SIGTERM or SIGINT."""
    app = VigilApp()
    loop = asyncio.get_running_loop()

    shutdown_triggered = False

    def _request_shutdown() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            return
        shutdown_triggered = True
        asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        while app._running:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app._running:
            await app.stop()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())
