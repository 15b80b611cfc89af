"""FastAPI application factory for kubesource.

Usage::

    from kubesource.api.app import create_app

    app = create_app(
        discovery_client=discovery_client,
        store=store,
        indexers=indexers,
        config=config,
    )

Used by both the production bootstrap (``kubesource.app``) and tests.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from kubesource.api.routes import router
from kubesource.api.schemas import ErrorResponse

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def create_app(
    discovery_client: Any = None,
    store: Any = None,
    indexers: Sequence[Any] = (),
    publisher: Any = None,
    config: Any = None,
) -> FastAPI:
    """Create and configure the kubesource FastAPI application.

    Args:
        discovery_client: KubernetesDiscoveryClient, or None when discovery is disabled.
        store:            PropertySourceStore, or None when no config source is enabled.
        indexers:         IndexerComposite instances reported by ``/health``.
        publisher:        RefreshEventPublisher, for the last refresh summary.
        config:           KubeSourceConfig. Used for namespace metadata.
    """
    from kubesource import __version__

    app = FastAPI(
        title="kubesource",
        summary="Kubernetes service discovery and configuration sources",
        version=__version__,
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
    )

    app.state.discovery_client = discovery_client
    app.state.store = store
    app.state.indexers = list(indexers)
    app.state.publisher = publisher
    app.state.config = config
    app.state.namespace = getattr(config, "namespace", "") if config is not None else ""
    app.state.version = __version__

    app.include_router(router, prefix=_API_PREFIX)

    # -----------------------------------------------------------------------
    # Exception handlers
    # -----------------------------------------------------------------------

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
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                detail="An unexpected error occurred.",
            ).model_dump(),
        )

    return app
