# This file defines the upload endpoints.
# One-shot bodies are `{curveDetails, pricePoints}` or `{curveDetails, pricePointsCsv}`; bad rows are reported at once.
# The structured flow declares a DRAFT instance, then posts `{rows: [...]}` checked against its declared labels.

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Request

from forecast_curves.api.api_config import ApiConfig
from forecast_curves.api.dependencies import get_config, get_upload_service
from forecast_curves.api.error_handlers import APIError, not_found
from forecast_curves.api.response_envelope import build_object_envelope
from forecast_curves.api.schemas.curve_schemas import InstanceResponseV1
from forecast_curves.api.schemas.upload_schemas import (
    InstanceCreateRequestV1,
    InstanceDataResponseV1,
    UploadResponseV1,
)
from forecast_curves.api.services.upload_service import UploadService
from forecast_curves.ingestion.upload_checks import UploadValidationError
from forecast_curves.storage.repository import InstanceVersionConflict

router = APIRouter(prefix="/curves", tags=["upload"])
UploadServiceDep = Annotated[UploadService, Depends(get_upload_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


@router.post("/upload", response_model=UploadResponseV1, status_code=201)
def curve_upload(
    request: Request,
    service: UploadServiceDep,
    config: ConfigDep,
    payload: dict[str, Any] = Body(),
) -> dict[str, object]:
    try:
        result = service.upload(payload)
    except LookupError as exc:
        raise APIError(status_code=404, error_code="DEFINITION_NOT_FOUND", message=str(exc)) from exc
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=result,
    )


@router.post("/instances", response_model=InstanceResponseV1, status_code=201)
def curve_instance_create(
    body: InstanceCreateRequestV1,
    request: Request,
    service: UploadServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    try:
        created = service.create_instance(**body.model_dump())
    except LookupError as exc:
        raise APIError(status_code=404, error_code="DEFINITION_NOT_FOUND", message=str(exc)) from exc
    except InstanceVersionConflict as exc:
        raise APIError(status_code=409, error_code="INSTANCE_VERSION_EXISTS", message=str(exc)) from exc
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=created,
    )


@router.post("/instances/{instance_id}/data", response_model=InstanceDataResponseV1)
def curve_instance_data(
    instance_id: int,
    request: Request,
    service: UploadServiceDep,
    config: ConfigDep,
    payload: dict[str, Any] = Body(),
) -> dict[str, object]:
    try:
        result = service.upload_instance_data(instance_id, payload)
    except UploadValidationError:
        raise
    except ValueError as exc:
        raise APIError(status_code=409, error_code="INVALID_STATUS_TRANSITION", message=str(exc)) from exc
    if result is None:
        raise not_found("instance", instance_id)
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=result,
    )
