# This file provides dependency factories for FastAPI routes.
# Engine, repository, and services are created once and shared through dependency injection.
# Tests replace these factories through `app.dependency_overrides`.

from __future__ import annotations

from functools import lru_cache

from sqlalchemy.engine import Engine

from forecast_curves.api.api_config import ApiConfig, get_api_config
from forecast_curves.api.services.curve_service import CurveService
from forecast_curves.api.services.freshness_service import FreshnessService
from forecast_curves.api.services.upload_service import UploadService
from forecast_curves.common.db import build_engine
from forecast_curves.curves.curve_config import CurveConfig, load_curve_config
from forecast_curves.storage.repository import CurveRepository


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return build_engine(get_api_config().database_url)


@lru_cache(maxsize=1)
def get_curve_config() -> CurveConfig:
    return load_curve_config(get_api_config().curve_config_path)


@lru_cache(maxsize=1)
def get_repository() -> CurveRepository:
    return CurveRepository(get_engine(), trusted_marker=get_curve_config().trusted_creator_marker)


@lru_cache(maxsize=1)
def get_curve_service() -> CurveService:
    return CurveService(config=get_api_config(), curve_config=get_curve_config(), repository=get_repository())


@lru_cache(maxsize=1)
def get_freshness_service() -> FreshnessService:
    return FreshnessService(config=get_api_config(), curve_config=get_curve_config(), repository=get_repository())


@lru_cache(maxsize=1)
def get_upload_service() -> UploadService:
    return UploadService(config=get_api_config(), curve_config=get_curve_config(), repository=get_repository())


def get_config() -> ApiConfig:
    return get_api_config()
