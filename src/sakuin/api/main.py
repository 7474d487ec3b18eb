"""Sakuin FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError

from sakuin import __version__
from sakuin.api.errors import (
    generic_exception_handler,
    http_exception_handler,
    request_validation_error_handler,
    sakuin_error_handler,
)
from sakuin.api.middleware.request_id import RequestIdMiddleware
from sakuin.api.routes.health import router as health_router
from sakuin.api.routes.index import router as index_router
from sakuin.config import Settings, build_service
from sakuin.errors import SakuinError
from sakuin.observability.tracing import configure_tracing
from sakuin.service import IndexService


def create_app(
    service: IndexService | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the sakuin FastAPI application.

    This factory:
    - Binds an IndexService to app.state.index_service
    - Registers the request ID middleware
    - Registers the error envelope exception handlers
    - Mounts the health and index routers

    Args:
        service: IndexService to serve. If None, one is built from settings.
        settings: Settings used when no service is given. If None, read
            from the environment.

    Returns:
        Configured FastAPI application instance.
    """
    if service is None:
        service = build_service(settings or Settings.from_env())

    app = FastAPI(
        title="Sakuin API",
        description="Object and metadata indexing service",
        version=__version__,
    )
    app.state.index_service = service

    configure_tracing()

    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(SakuinError, sakuin_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(health_router)
    app.include_router(index_router)

    return app
