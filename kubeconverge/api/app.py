"""FastAPI application factory for kubeconverge.

Usage::

    from kubeconverge.api.app import create_app

    app = create_app(reconciler=reconciler, controller=controller)

Used by both the production bootstrap (``kubeconverge.app``) and unit tests.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from kubeconverge.api.routes import probes, router
from kubeconverge.api.schemas import ErrorResponse

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def create_app(
    reconciler: Any,
    controller: Any = None,
    config: Any = None,
) -> FastAPI:
    """Create and configure the kubeconverge FastAPI application.

    Args:
        reconciler: Reconciler whose pass history is served and which runs
                    passes triggered through the API.
        controller: Optional ResyncController; ``/readyz`` answers 503 until
                    its first sweep finished, and ``/api/v1/events`` routes
                    objects through it.
        config:     KubeConvergeConfig, kept for handlers that need it.
    """
    from kubeconverge import __version__

    app = FastAPI(
        title="kubeconverge",
        summary="ArgoCD instance reconciliation controller",
        version=__version__,
        docs_url="/api/v1/docs",
        redoc_url=None,
        openapi_url="/api/v1/openapi.json",
    )

    app.state.reconciler = reconciler
    app.state.controller = controller
    app.state.config = config

    app.include_router(probes)
    app.include_router(router, prefix=_API_PREFIX)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = exc.errors()
        first_msg = str(errors[0].get("msg", "")) if errors else ""
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="INVALID_REQUEST", detail=first_msg).model_dump(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="INTERNAL_ERROR", detail="An unexpected error occurred.").model_dump(),
        )

    return app
