"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest
from starlette.responses import Response

from nodegaze import __version__
from nodegaze.api.middleware.cors import setup_cors
from nodegaze.api.routes import api_router
from nodegaze.config.settings import AppConfig
from nodegaze.engine.client import NodeGazeEngine
from nodegaze.errors.gaze_errors import GazeError
from nodegaze.metrics.collector import EngineMetrics
from nodegaze.metrics.middleware import PrometheusMiddleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle hooks.

    Initialises the engine (datastore, cache, services, dispatcher) on
    startup and gracefully shuts it down on exit.
    """
    config: AppConfig = app.state.config
    engine = NodeGazeEngine(
        config,
        metrics=app.state.metrics,
        transport=app.state.transport,
    )

    try:
        await engine.initialize()
        app.state.engine = engine
        logger.info("NodeGaze engine initialized")
        yield
    finally:
        await engine.close()
        logger.info("NodeGaze engine shut down")


def _format_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg', 'invalid')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "invalid request"


def create_app(
    *,
    config: AppConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    Args:
        config: Optional AppConfig. If *None*, a default config is created
            from environment variables.
        transport: Optional httpx transport for outbound deliveries.
    """
    if config is None:
        config = AppConfig()

    app = FastAPI(
        title="nodegaze",
        version=__version__,
        description="NodeGaze event propagation and notification delivery",
        lifespan=_lifespan,
    )

    app.state.config = config
    app.state.transport = transport
    app.state.metrics = EngineMetrics()

    # -- Middleware --
    setup_cors(app)
    if config.metrics.enabled:
        app.add_middleware(PrometheusMiddleware, registry=app.state.metrics.registry)

    # -- Error handlers --
    @app.exception_handler(GazeError)
    async def _gaze_error_handler(request: Request, exc: GazeError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"code": "validation-error", "message": _format_validation_error(exc)},
        )

    # -- Base routes --
    @app.get("/health", tags=["base"])
    async def health() -> dict[str, Any]:
        engine: NodeGazeEngine | None = getattr(app.state, "engine", None)
        if engine is None:
            return {"status": "ok"}
        return {"status": "ok", "components": await engine.health_check()}

    @app.get("/metrics", tags=["base"], include_in_schema=False)
    async def metrics_endpoint() -> Response:
        """Prometheus metrics endpoint."""
        return Response(
            content=generate_latest(app.state.metrics.registry),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    app.include_router(api_router)

    return app
