# This file builds the FastAPI application and registers all API routers.
# It exists so startup behavior, middleware, and error handling are configured in one place.
# The app adds request IDs, timing headers, and Prometheus request metrics.

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import RequestResponseEndpoint

from forecast_curves.api.api_config import get_api_config
from forecast_curves.api.dependencies import get_engine
from forecast_curves.api.error_handlers import register_error_handlers
from forecast_curves.api.routers.curves import router as curves_router
from forecast_curves.api.routers.freshness import router as freshness_router
from forecast_curves.api.routers.health import router as health_router
from forecast_curves.api.routers.upload import router as upload_router
from forecast_curves.common.db import test_connection as database_reachable
from forecast_curves.common.logging import configure_logging

LOGGER = logging.getLogger("api")

API_HTTP_REQUESTS_TOTAL = Counter(
    "curves_api_http_requests_total",
    "Total number of HTTP requests processed by the curve API.",
    ["method", "path", "status_code"],
)
API_HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "curves_api_http_request_duration_seconds",
    "Curve API request duration in seconds.",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)
API_HTTP_INFLIGHT_REQUESTS = Gauge(
    "curves_api_http_inflight_requests",
    "Number of curve API requests currently being processed.",
    ["method", "path"],
)


def _route_label(request: Request) -> str:
    route = request.scope.get("route")
    return str(getattr(route, "path", request.url.path))


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    try:
        app.state.db_connected_at_startup = database_reachable(get_engine())
    except SQLAlchemyError:
        app.state.db_connected_at_startup = False
    if not app.state.db_connected_at_startup:
        LOGGER.warning("Database unreachable at startup; /ready will report not ready")
    yield


def create_app() -> FastAPI:
    """Create configured FastAPI application instance."""

    configure_logging()
    config = get_api_config()

    app = FastAPI(
        title=config.api_name,
        description=(
            "Versioned API for forecast curve catalogs: instance selection, percentile views, "
            "period aggregates, freshness tracking, overlays, exports, and uploads."
        ),
        version=config.app_version,
        lifespan=_lifespan,
        openapi_tags=[
            {"name": "health", "description": "Service liveness, readiness, and version metadata."},
            {"name": "curves", "description": "Curve catalog, data views, analytics, exports, and edits."},
            {"name": "freshness", "description": "Update cadence freshness, streaks, and health scores."},
            {"name": "upload", "description": "Validated, atomic curve uploads."},
        ],
    )

    if config.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def request_context_middleware(
        request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        method_label = request.method
        started = time.perf_counter()
        status_code = 500
        API_HTTP_INFLIGHT_REQUESTS.labels(method=method_label, path=request.url.path).inc()
        try:
            response: Response = await call_next(request)
            status_code = response.status_code
            duration_ms = (time.perf_counter() - started) * 1000.0
            response.headers["x-request-id"] = request_id
            response.headers["x-response-time-ms"] = f"{duration_ms:.2f}"
            return response
        finally:
            path_label = _route_label(request)
            API_HTTP_REQUESTS_TOTAL.labels(
                method=method_label,
                path=path_label,
                status_code=str(status_code),
            ).inc()
            API_HTTP_REQUEST_DURATION_SECONDS.labels(method=method_label, path=path_label).observe(
                time.perf_counter() - started
            )
            API_HTTP_INFLIGHT_REQUESTS.labels(method=method_label, path=request.url.path).dec()

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(curves_router, prefix=config.api_version_path)
    app.include_router(freshness_router, prefix=config.api_version_path)
    app.include_router(upload_router, prefix=config.api_version_path)

    return app


app = create_app()
