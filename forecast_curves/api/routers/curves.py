# This file defines curve catalog, data, analytics, export, overlay, and edit endpoints.
# Catalog lists are paginated with strict sort validation; data endpoints take explicit instance ids.
# Unknown ids answer 404 and invalid lifecycle moves answer 409, both in the shared error envelope.

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Literal

import pandas as pd
from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel

from forecast_curves.api.api_config import ApiConfig
from forecast_curves.api.dependencies import get_config, get_curve_service
from forecast_curves.api.error_handlers import APIError, not_found
from forecast_curves.api.pagination import compute_total_pages, normalize_pagination, parse_sort
from forecast_curves.api.response_envelope import build_list_envelope, build_object_envelope, csv_attachment
from forecast_curves.api.schemas.common import PaginationMetadata
from forecast_curves.api.schemas.curve_schemas import (
    AggregateResponseV1,
    DefinitionListResponseV1,
    InstanceListResponseV1,
    InstanceResponseV1,
    LocationListResponseV1,
    MetricsResponseV1,
    OverlayRequestV1,
    PointUpdateRequestV1,
    PointUpdateResponseV1,
    SeriesSetResponseV1,
    StatusChangeRequestV1,
    TallDataResponseV1,
    WideDataResponseV1,
)
from forecast_curves.api.services.curve_service import DEFINITION_SORT_FIELDS, CurveService

router = APIRouter(prefix="/curves", tags=["curves"])
CurveServiceDep = Annotated[CurveService, Depends(get_curve_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]
InstanceIdsQuery = Annotated[list[int], Query(description="Curve instance ids; repeat the parameter for several.")]


def _checked_instance_ids(instance_ids: list[int], service: CurveService, config: ApiConfig) -> list[int]:
    unique_ids = list(dict.fromkeys(instance_ids))
    if not unique_ids:
        raise APIError(status_code=400, error_code="INVALID_QUERY_PARAM", message="instance_ids is required.")
    if len(unique_ids) > config.max_instances_per_request:
        raise APIError(
            status_code=400,
            error_code="INVALID_QUERY_PARAM",
            message=f"At most {config.max_instances_per_request} instance ids per request.",
        )
    missing = service.missing_instances(unique_ids)
    if missing:
        raise APIError(
            status_code=404,
            error_code="INSTANCE_NOT_FOUND",
            message="Curve instances not found.",
            details={"instance_ids": missing},
        )
    return unique_ids


@router.get("/locations", response_model=LocationListResponseV1)
def curve_locations(request: Request, service: CurveServiceDep, config: ConfigDep) -> dict[str, object]:
    return build_list_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=service.get_locations(),
    )


@router.get("/definitions", response_model=DefinitionListResponseV1)
def curve_definitions(
    request: Request,
    service: CurveServiceDep,
    config: ConfigDep,
    market: str | None = Query(default=None),
    location: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    sort: str | None = Query(default=None),
) -> dict[str, object]:
    try:
        pagination = normalize_pagination(
            page=page,
            page_size=page_size,
            default_page_size=config.default_page_size,
            max_page_size=config.max_page_size,
        )
        sort_spec = parse_sort(
            requested_sort=sort,
            default_sort=config.default_sort_order,
            allowed_fields=DEFINITION_SORT_FIELDS,
        )
    except ValueError as exc:
        raise APIError(status_code=400, error_code="INVALID_QUERY_PARAM", message=str(exc)) from exc

    result = service.get_definitions(market=market, location=location, pagination=pagination, sort=sort_spec)
    total_count = int(result["total_count"])
    pagination_meta = PaginationMetadata(
        page=pagination.page,
        page_size=pagination.page_size,
        total_count=total_count,
        total_pages=compute_total_pages(total_count=total_count, page_size=pagination.page_size),
        sort=sort_spec.as_text,
    )
    return build_list_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=list(result["rows"]),
        pagination=pagination_meta.model_dump(),
        warnings=result.get("warnings"),
    )


@router.get("/definitions/{definition_id}/instances", response_model=InstanceListResponseV1)
def curve_instances(
    definition_id: int,
    request: Request,
    service: CurveServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    result = service.get_instances(definition_id)
    if result is None:
        raise not_found("definition", definition_id)
    return build_list_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=list(result["rows"]),
        warnings=result.get("warnings"),
    )


@router.get("/data", response_model=None)
def curve_data(
    request: Request,
    service: CurveServiceDep,
    config: ConfigDep,
    instance_ids: InstanceIdsQuery,
    layout: Literal["tall", "wide"] = Query(default="tall"),
    start_ts: datetime | None = Query(default=None),
    end_ts: datetime | None = Query(default=None),
) -> BaseModel:
    if start_ts is not None and end_ts is not None and start_ts > end_ts:
        raise APIError(
            status_code=400,
            error_code="INVALID_TIME_WINDOW",
            message="start_ts must be less than or equal to end_ts.",
        )
    ids = _checked_instance_ids(instance_ids, service, config)
    result = service.get_data(ids, layout=layout, start=start_ts, end=end_ts)
    envelope = build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=list(result["rows"]),
        warnings=result.get("warnings"),
    )
    if layout == "wide":
        return WideDataResponseV1.model_validate(envelope)
    return TallDataResponseV1.model_validate(envelope)


@router.get("/aggregate", response_model=AggregateResponseV1)
def curve_aggregate(
    request: Request,
    service: CurveServiceDep,
    config: ConfigDep,
    instance_ids: InstanceIdsQuery,
    period: Literal["monthly", "annual"] = Query(default="monthly"),
    start_month: str | None = Query(default=None, description="Inclusive lower bound, YYYY-MM."),
    end_month: str | None = Query(default=None, description="Inclusive upper bound, YYYY-MM."),
) -> dict[str, object]:
    ids = _checked_instance_ids(instance_ids, service, config)
    try:
        result = service.get_aggregate(ids, period=period, start_month=start_month, end_month=end_month)
    except ValueError as exc:
        raise APIError(status_code=400, error_code="INVALID_QUERY_PARAM", message=str(exc)) from exc

    warnings = result.pop("warnings", None)
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=result,
        warnings=warnings,
    )


@router.get("/summary", response_model=MetricsResponseV1)
def curve_summary(
    request: Request,
    service: CurveServiceDep,
    config: ConfigDep,
    instance_id: int = Query(),
) -> dict[str, object]:
    _checked_instance_ids([instance_id], service, config)
    metrics = service.get_summary(instance_id)
    warnings = ["Showing placeholder metrics: " + str(metrics["reason"])] if metrics["kind"] == "mock" else None
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=metrics,
        warnings=warnings,
    )


@router.get("/export.csv", response_class=Response)
def curve_export_csv(instance_ids: InstanceIdsQuery, service: CurveServiceDep, config: ConfigDep) -> Response:
    ids = _checked_instance_ids(instance_ids, service, config)
    content = service.export_wide_csv(ids)
    stamp = datetime.now(tz=UTC).strftime("%Y-%m-%d")
    return csv_attachment(content, filename=f"curves_{len(ids)}_{stamp}.csv")


@router.get("/export-batch.csv", response_class=Response)
def curve_export_batch_csv(instance_ids: InstanceIdsQuery, service: CurveServiceDep, config: ConfigDep) -> Response:
    ids = _checked_instance_ids(instance_ids, service, config)
    filename, content = service.export_batch_csv(ids, as_of=pd.Timestamp.now(tz="UTC"))
    return csv_attachment(content, filename=filename)


@router.post("/overlay", response_model=SeriesSetResponseV1)
def curve_overlay(
    body: OverlayRequestV1,
    request: Request,
    service: CurveServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    _checked_instance_ids([body.primary_instance_id, *body.overlay_instance_ids], service, config)
    result = service.build_overlay(
        primary_instance_id=body.primary_instance_id,
        overlay_instance_ids=body.overlay_instance_ids,
        color_assignments=body.color_assignments,
        commodity=body.commodity,
    )
    warnings = result.pop("warnings", None)
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=result,
        warnings=warnings,
    )


@router.patch("/points/{point_id}", response_model=PointUpdateResponseV1)
def curve_point_update(
    point_id: int,
    body: PointUpdateRequestV1,
    request: Request,
    service: CurveServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    try:
        updated = service.update_point(point_id, body.value)
    except ValueError as exc:
        raise APIError(status_code=422, error_code="INVALID_POINT_VALUE", message=str(exc)) from exc
    if updated is None:
        raise not_found("point", point_id)
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=updated,
    )


@router.post("/instances/{instance_id}/status", response_model=InstanceResponseV1)
def curve_instance_status(
    instance_id: int,
    body: StatusChangeRequestV1,
    request: Request,
    service: CurveServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    try:
        moved = service.change_status(instance_id, body.status)
    except ValueError as exc:
        raise APIError(status_code=409, error_code="INVALID_STATUS_TRANSITION", message=str(exc)) from exc
    if moved is None:
        raise not_found("instance", instance_id)
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=moved,
    )
