"""
FastAPI application factory.

* Builds the store handle (async engine + session factory) unless one is
  injected, and wires a ``DispatchFacade`` onto ``app.state``.
* Registers routes for rides, locations and admin.
* Maps store faults onto 5xx responses.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ridedispatch.api.middleware import limiter
from ridedispatch.api.routes import admin, locations, rides
from ridedispatch.config import Settings, settings
from ridedispatch.domain.errors import MappingError, StoreFault
from ridedispatch.infrastructure.database import (
    SessionFactory,
    build_engine,
    build_session_factory,
)
from ridedispatch.services.dispatch import DispatchFacade

logger = logging.getLogger(__name__)


async def _store_fault_handler(request: Request, exc: StoreFault) -> JSONResponse:
    logger.error("Store fault on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Store unavailable"})


async def _mapping_error_handler(request: Request, exc: MappingError) -> JSONResponse:
    logger.error("Corrupt record on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


def create_app(
    app_settings: Settings | None = None,
    session_factory: SessionFactory | None = None,
) -> FastAPI:
    app_settings = app_settings or settings
    logging.basicConfig(level=app_settings.log_level)

    engine = None
    if session_factory is None:
        engine = build_engine(app_settings)
        session_factory = build_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Dispose the engine we created on shutdown."""
        yield
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title="Ride Dispatch API",
        description=(
            "Matches riders with nearby drivers and tracks each ride from "
            "request to completion.  Acceptance is exactly-once under "
            "concurrent drivers; proximity uses great-circle distance."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.dispatch = DispatchFacade.from_session_factory(
        session_factory, app_settings
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_exception_handler(StoreFault, _store_fault_handler)
    app.add_exception_handler(MappingError, _mapping_error_handler)

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(locations.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
