# This file defines the freshness endpoint for a curve definition.
# `as_of` defaults to today in UTC so clients without a clock preference get current status.

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from forecast_curves.api.api_config import ApiConfig
from forecast_curves.api.dependencies import get_config, get_freshness_service
from forecast_curves.api.error_handlers import not_found
from forecast_curves.api.response_envelope import build_object_envelope
from forecast_curves.api.schemas.freshness_schemas import FreshnessResponseV1
from forecast_curves.api.services.freshness_service import FreshnessService

router = APIRouter(prefix="/curves", tags=["freshness"])
FreshnessServiceDep = Annotated[FreshnessService, Depends(get_freshness_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


@router.get("/definitions/{definition_id}/freshness", response_model=FreshnessResponseV1)
def definition_freshness(
    definition_id: int,
    request: Request,
    service: FreshnessServiceDep,
    config: ConfigDep,
    as_of: date | None = Query(default=None),
) -> dict[str, object]:
    resolved_as_of = as_of or datetime.now(tz=UTC).date()
    result = service.get_freshness(definition_id, as_of=resolved_as_of)
    if result is None:
        raise not_found("definition", definition_id)

    warnings = None
    if result["status"] == "UNKNOWN":
        warnings = ["Freshness is unknown: no update frequency or no instances recorded"]
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=result,
        warnings=warnings,
    )
