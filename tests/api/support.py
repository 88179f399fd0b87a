# This file provides shared helpers for API endpoint tests.
# It exists so tests can override service dependencies without touching a real database.
# The helpers build consistent config objects and scoped TestClient contexts.

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from forecast_curves.api.api_config import ApiConfig
from forecast_curves.api.app import app
from forecast_curves.api.dependencies import (
    get_config,
    get_curve_service,
    get_engine,
    get_freshness_service,
    get_upload_service,
)


def build_test_config(*, max_instances_per_request: int = 3) -> ApiConfig:
    """Create deterministic API config for tests."""

    return ApiConfig(
        api_name="Test Curve API",
        api_version_path="/api/v1",
        schema_version="1.0.0",
        host="0.0.0.0",
        port=8000,
        environment="test",
        database_url="sqlite://",
        default_page_size=2,
        max_page_size=5,
        default_sort_order="definition_id:asc",
        max_instances_per_request=max_instances_per_request,
        allowed_origins=[],
        app_version="0.1.0",
    )


@contextmanager
def api_test_client(
    *,
    config: ApiConfig | None = None,
    engine: Engine | None = None,
    curve_service: Any | None = None,
    freshness_service: Any | None = None,
    upload_service: Any | None = None,
) -> Iterator[TestClient]:
    """Yield a TestClient with scoped dependency overrides."""

    resolved_config = config or build_test_config()

    app.dependency_overrides[get_config] = lambda: resolved_config
    if engine is not None:
        app.dependency_overrides[get_engine] = lambda: engine
    if curve_service is not None:
        app.dependency_overrides[get_curve_service] = lambda: curve_service
    if freshness_service is not None:
        app.dependency_overrides[get_freshness_service] = lambda: freshness_service
    if upload_service is not None:
        app.dependency_overrides[get_upload_service] = lambda: upload_service

    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()
