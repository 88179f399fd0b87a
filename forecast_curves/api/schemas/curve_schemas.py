# This file defines curve catalog, data, aggregation, metric, and overlay contracts.
# Field names are camelCase on the wire so chart clients can bind them directly.

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from pydantic import Field

from forecast_curves.api.schemas.common import CamelModel, EnvelopeFields, PaginationMetadata
from forecast_curves.curves.models import InstanceStatus


class LocationV1(CamelModel):
    market: str
    location: str


class InstanceV1(CamelModel):
    instance_id: int
    definition_id: int
    instance_version: str
    status: str
    created_at: datetime
    created_by: str | None = None
    curve_types: list[str] = Field(default_factory=list)
    commodities: list[str] = Field(default_factory=list)
    scenarios: list[str] = Field(default_factory=list)
    granularity: str | None = None
    degradation_type: str | None = None
    provenance_tier: str
    priority_score: int | None = None
    rank: int | None = None
    is_current_vintage: bool | None = None


class DefinitionV1(CamelModel):
    definition_id: int
    curve_name: str | None = None
    market: str
    location: str
    product: str | None = None
    commodity: str | None = None
    battery_duration: str | None = None
    units: str | None = None
    granularity: str | None = None
    is_active: bool
    update_frequency: str | None = None
    timezone: str | None = None
    description: str | None = None
    created_at: datetime | None = None
    best_instance: InstanceV1 | None = None


class TallPointV1(CamelModel):
    point_id: int | None = None
    instance_id: int
    timestamp: datetime
    value: float | None = None
    curve_type: str | None = None
    commodity: str | None = None
    scenario: str
    units: str | None = None


class WideRowV1(CamelModel):
    instance_id: int
    timestamp: datetime
    curve_type: str | None = None
    commodity: str | None = None
    units: str | None = None
    value_p5: float | None = None
    value_p25: float | None = None
    value_p50: float | None = None
    value_p75: float | None = None
    value_p95: float | None = None


class AggregatedPointV1(CamelModel):
    instance_id: int
    period_key: str
    commodity: str | None = None
    scenario: str | None = None
    average: float
    count: int


class PeriodOverviewV1(CamelModel):
    instance_id: int
    period_key: str
    commodity: str | None = None
    overall_average: float


class AggregateResultV1(CamelModel):
    period: Literal["monthly", "annual"]
    points: list[AggregatedPointV1]
    overview: list[PeriodOverviewV1]


class RealMetricsV1(CamelModel):
    kind: Literal["real"]
    energy_arbitrage: float | None = None
    ancillary_services: float | None = None
    capacity: float | None = None
    total: float | None = None
    total_is_derived: bool = False
    p5: float | None = None
    p50: float | None = None
    p95: float | None = None
    point_count: int


class MockMetricsV1(CamelModel):
    kind: Literal["mock"]
    reason: str


MetricsV1 = Annotated[RealMetricsV1 | MockMetricsV1, Field(discriminator="kind")]


class SeriesPointV1(CamelModel):
    timestamp: datetime
    value: float


class ChartSeriesV1(CamelModel):
    key: str
    label: str
    role: Literal["median", "band_p5_p95", "band_p25_p75", "overlay"]
    color: str
    bound: Literal["lower", "upper"] | None = None
    points: list[SeriesPointV1]


class SeriesSetV1(CamelModel):
    commodity: str
    series: list[ChartSeriesV1]
    color_assignments: dict[str, str]


class OverlayRequestV1(CamelModel):
    primary_instance_id: int
    overlay_instance_ids: list[int] = Field(default_factory=list)
    color_assignments: dict[str, str] = Field(default_factory=dict)
    commodity: str | None = Field(default=None, min_length=1)


class PointUpdateRequestV1(CamelModel):
    value: float = Field(strict=True, allow_inf_nan=False)


class PointUpdateV1(CamelModel):
    point_id: int
    instance_id: int
    value: float | None = None
    updated_at: datetime


class StatusChangeRequestV1(CamelModel):
    status: InstanceStatus


class LocationListResponseV1(EnvelopeFields):
    data: list[LocationV1]


class DefinitionListResponseV1(EnvelopeFields):
    data: list[DefinitionV1]
    pagination: PaginationMetadata


class InstanceListResponseV1(EnvelopeFields):
    data: list[InstanceV1]


class InstanceResponseV1(EnvelopeFields):
    data: InstanceV1


class TallDataResponseV1(EnvelopeFields):
    layout: Literal["tall"] = "tall"
    data: list[TallPointV1]


class WideDataResponseV1(EnvelopeFields):
    layout: Literal["wide"] = "wide"
    data: list[WideRowV1]


class AggregateResponseV1(EnvelopeFields):
    data: AggregateResultV1


class MetricsResponseV1(EnvelopeFields):
    data: MetricsV1


class SeriesSetResponseV1(EnvelopeFields):
    data: SeriesSetV1


class PointUpdateResponseV1(EnvelopeFields):
    data: PointUpdateV1
