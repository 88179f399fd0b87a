# This file defines the upload and instance-declaration contracts.
# Upload and row bodies stay free-form on the way in so every row problem can be reported together.
# Instance declarations are typed because they carry no rows.

from __future__ import annotations

from pydantic import Field, field_validator

from forecast_curves.api.schemas.common import CamelModel, EnvelopeFields
from forecast_curves.api.schemas.curve_schemas import InstanceV1


class UploadResultV1(CamelModel):
    definition_id: int
    instance_id: int
    rows_written: int
    created_definition: bool


class UploadResponseV1(EnvelopeFields):
    data: UploadResultV1


class InstanceCreateRequestV1(CamelModel):
    definition_id: int
    instance_version: str = Field(min_length=1)
    created_by: str | None = "Upload System"
    curve_types: list[str] = Field(default_factory=list)
    commodities: list[str] = Field(default_factory=list)
    scenarios: list[str] = Field(default_factory=list)
    granularity: str | None = None
    degradation_type: str | None = None

    @field_validator("curve_types", "commodities", "scenarios")
    @classmethod
    def _strip_labels(cls, value: list[str]) -> list[str]:
        labels = [item.strip() for item in value if item.strip()]
        return list(dict.fromkeys(labels))


class InstanceDataResultV1(CamelModel):
    instance: InstanceV1
    rows_written: int
    rows_skipped: int
    rows_replaced: int


class InstanceDataResponseV1(EnvelopeFields):
    data: InstanceDataResultV1
