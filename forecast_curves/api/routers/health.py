# This file defines liveness, readiness, and version endpoints for API operations.
# Readiness confirms database connectivity and that the curve tables exist.

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.engine import Engine

from forecast_curves.api.api_config import ApiConfig
from forecast_curves.api.dependencies import get_config, get_engine
from forecast_curves.api.schema_versions import build_version_fields
from forecast_curves.api.schemas.health_schemas import HealthResponse, ReadinessResponse, VersionResponse
from forecast_curves.common.db import tables_exist
from forecast_curves.common.db import test_connection as database_reachable
from forecast_curves.storage.tables import metadata

router = APIRouter(tags=["health"])
ConfigDep = Annotated[ApiConfig, Depends(get_config)]
EngineDep = Annotated[Engine, Depends(get_engine)]


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@router.get("/health", response_model=HealthResponse)
def health(request: Request, config: ConfigDep) -> dict[str, object]:
    return {
        **build_version_fields(api_version_path=config.api_version_path, schema_version=config.schema_version),
        "request_id": request.state.request_id,
        "status": "ok",
        "environment": config.environment,
        "service_name": config.api_name,
        "timestamp": _utc_now(),
    }


@router.get("/ready", response_model=ReadinessResponse)
def ready(request: Request, config: ConfigDep, engine: EngineDep) -> dict[str, object]:
    db_connected = database_reachable(engine)
    tables_ready = db_connected and tables_exist(engine, sorted(metadata.tables))
    return {
        **build_version_fields(api_version_path=config.api_version_path, schema_version=config.schema_version),
        "request_id": request.state.request_id,
        "db_connected": db_connected,
        "curve_tables_ready": tables_ready,
        "ready": db_connected and tables_ready,
        "database": "reachable" if db_connected else "unreachable",
        "timestamp": _utc_now(),
    }


@router.get("/version", response_model=VersionResponse)
def version(request: Request, config: ConfigDep) -> dict[str, object]:
    return {
        **build_version_fields(api_version_path=config.api_version_path, schema_version=config.schema_version),
        "request_id": request.state.request_id,
        "api_version_path": config.api_version_path,
        "app_version": config.app_version,
        "project": config.api_name,
        "timestamp": _utc_now(),
    }
