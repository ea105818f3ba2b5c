"""FastAPI application factory for Vigil.

Usage::

    from vigil.api.app import create_app

    app = create_app(service=service, config=config)

The factory is designed for use by both the production bootstrap
(``vigil.app``) and unit tests.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from vigil.alerts.service import AlertService
from vigil.api.routes import router
from vigil.api.schemas import ErrorResponse
from vigil.errors import (
    AlertNotFoundError,
    EvaluationError,
    InvalidThresholdError,
    ValidationError,
)

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail).model_dump(),
    )


def create_app(service: AlertService, config: Any = None) -> FastAPI:
    """Create and configure the Vigil FastAPI application.

    Args:
        service: AlertService every route delegates to.
        config:  VigilConfig, kept on app.state for introspection.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from vigil import __version__

    app = FastAPI(
        title="Vigil",
        summary="Threshold alerting and notification dispatch API",
        version=__version__,
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
    )

    # Store dependencies in app.state so route handlers can access them
    # without module-level globals.
    app.state.service = service
    app.state.config = config

    app.include_router(router, prefix=_API_PREFIX)

    # -----------------------------------------------------------------------
    # Exception handlers
    # -----------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        """Map Pydantic validation errors to the error envelope."""
        errors = exc.errors()
        detail = ""
        if errors:
            locs = errors[0].get("loc", ())
            field = ".".join(str(part) for part in locs[1:]) if len(locs) > 1 else ""
            detail = f"{field}: {errors[0].get('msg', '')}" if field else str(errors[0].get("msg", ""))
        return _error(400, "INVALID_REQUEST", detail)

    @app.exception_handler(InvalidThresholdError)
    async def invalid_threshold_handler(_request: Request, exc: InvalidThresholdError) -> JSONResponse:
        return _error(400, "INVALID_THRESHOLD", str(exc))

    @app.exception_handler(ValidationError)
    async def validation_handler(_request: Request, exc: ValidationError) -> JSONResponse:
        return _error(400, "VALIDATION_ERROR", str(exc))

    @app.exception_handler(EvaluationError)
    async def evaluation_handler(_request: Request, exc: EvaluationError) -> JSONResponse:
        return _error(400, "EVALUATION_ERROR", str(exc))

    @app.exception_handler(AlertNotFoundError)
    async def not_found_handler(_request: Request, exc: AlertNotFoundError) -> JSONResponse:
        return _error(404, "ALERT_NOT_FOUND", str(exc))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return _error(500, "INTERNAL_ERROR", "An unexpected error occurred.")

    return app
