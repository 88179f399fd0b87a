"""
Row-level validation for curve uploads.

Every price point is checked and every problem is collected, so an analyst sees the
full list of bad rows in one pass. Nothing is written unless the whole upload is clean.

Two shapes arrive here: the single-series price point upload (`flow_date_start`, `value`)
and labelled rows (`timestamp`, `curveType`, `commodity`, `scenario`, `value`) checked
against the label lists an instance declared when it was created.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from forecast_curves.curves.models import CurveInstance, InstanceStatus, UpdateFrequency

LOGGER = logging.getLogger("ingestion")

DEFAULT_UNITS = "USD/MWh"
CSV_DATE_COLUMNS = ("flow_date_start", "date", "Date")
CSV_VALUE_COLUMNS = ("value", "Value")
ROW_LABEL_FIELDS: tuple[tuple[str, str], ...] = (
    ("curveType", "curve_types"),
    ("commodity", "commodities"),
    ("scenario", "scenarios"),
)


@dataclass(frozen=True)
class RowError:
    row: int | None
    field: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "field": self.field, "message": self.message}


class UploadValidationError(ValueError):
    def __init__(self, errors: list[RowError]) -> None:
        super().__init__(f"Upload failed validation with {len(errors)} error(s)")
        self.errors = list(errors)

    def to_details(self) -> list[dict[str, Any]]:
        return [item.to_dict() for item in self.errors]


class CurveDetails(BaseModel):
    """Descriptive fields of an upload; they become the instance (and, if needed, the definition)."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    definition_id: int | None = None
    curve_name: str | None = None
    market: str = Field(min_length=1)
    location: str = Field(min_length=1)
    mark_type: str = Field(min_length=1)
    mark_case: str = Field(min_length=1)
    mark_date: str
    value_type: str = Field(min_length=1)
    curve_creator: str = Field(min_length=1)
    granularity: str | None = None
    units: str = DEFAULT_UNITS
    instance_version: str | None = None
    status: InstanceStatus = InstanceStatus.ACTIVE
    update_frequency: UpdateFrequency | None = None
    degradation_type: str | None = None
    description: str | None = None

    @field_validator("mark_date")
    @classmethod
    def _validate_mark_date(cls, value: str) -> str:
        datetime.strptime(value.strip(), "%Y-%m-%d")
        return value.strip()

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("update_frequency", mode="before")
    @classmethod
    def _normalize_frequency(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper() or None
        return value

    def resolved_instance_version(self) -> str:
        return self.instance_version or f"{self.mark_date} {self.mark_case}"

    def mark_timestamp(self) -> datetime:
        return datetime.strptime(self.mark_date, "%Y-%m-%d").replace(tzinfo=UTC)


@dataclass(frozen=True)
class ValidatedPoint:
    timestamp: datetime
    value: float


@dataclass(frozen=True)
class ValidatedUpload:
    details: CurveDetails
    points: list[ValidatedPoint] = field(default_factory=list)

    def to_tall_records(self, instance_id: int) -> list[dict[str, Any]]:
        return [
            {
                "instance_id": instance_id,
                "timestamp": point.timestamp,
                "curve_type": self.details.mark_type,
                "commodity": self.details.value_type,
                "scenario": self.details.mark_case,
                "value": point.value,
                "units": self.details.units,
            }
            for point in self.points
        ]


def value_in_bounds(number: float, *, min_value: float, max_value: float) -> bool:
    return not pd.isna(number) and min_value <= number <= max_value


def _field_path(location: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in location) or "curveDetails"


def _check_details(raw: Any, errors: list[RowError]) -> CurveDetails | None:
    if not isinstance(raw, dict):
        errors.append(RowError(row=None, field="curveDetails", message="curveDetails must be an object"))
        return None
    try:
        return CurveDetails.model_validate(raw)
    except ValidationError as exc:
        for issue in exc.errors():
            errors.append(
                RowError(row=None, field=f"curveDetails.{_field_path(issue['loc'])}", message=str(issue["msg"]))
            )
        return None


def _check_value(
    row: int, raw_value: Any, *, min_value: float, max_value: float, errors: list[RowError]
) -> float | None:
    if isinstance(raw_value, bool) or raw_value is None or raw_value == "":
        errors.append(RowError(row=row, field="value", message="value must be a number"))
        return None
    try:
        number = float(raw_value)
    except (TypeError, ValueError):
        errors.append(RowError(row=row, field="value", message=f"value '{raw_value}' is not a number"))
        return None
    if not value_in_bounds(number, min_value=min_value, max_value=max_value):
        errors.append(
            RowError(row=row, field="value", message=f"value {raw_value} outside [{min_value:g}, {max_value:g}]")
        )
        return None
    return number


def _check_point(
    index: int,
    raw: Any,
    *,
    min_value: float,
    max_value: float,
    date_format: str,
    errors: list[RowError],
) -> ValidatedPoint | None:
    row = index + 1
    if not isinstance(raw, dict):
        errors.append(RowError(row=row, field="pricePoint", message="price point must be an object"))
        return None

    stamp: datetime | None = None
    raw_date = raw.get("flow_date_start")
    if not isinstance(raw_date, str) or not raw_date.strip():
        errors.append(RowError(row=row, field="flow_date_start", message="date is required"))
    else:
        try:
            stamp = datetime.strptime(raw_date.strip(), date_format).replace(tzinfo=UTC)
        except ValueError:
            errors.append(
                RowError(row=row, field="flow_date_start", message=f"invalid date '{raw_date}', expected YYYY-MM-DD")
            )

    number = _check_value(row, raw.get("value"), min_value=min_value, max_value=max_value, errors=errors)

    if stamp is None or number is None:
        return None
    return ValidatedPoint(timestamp=stamp, value=number)


def validate_upload(
    payload: Any,
    *,
    min_value: float,
    max_value: float,
    date_format: str = "%Y-%m-%d",
) -> ValidatedUpload:
    """Validate `{curveDetails, pricePoints}` and raise `UploadValidationError` listing every problem."""

    errors: list[RowError] = []
    if not isinstance(payload, dict):
        raise UploadValidationError([RowError(row=None, field="payload", message="payload must be an object")])

    details = _check_details(payload.get("curveDetails"), errors)

    raw_points = payload.get("pricePoints")
    points: list[ValidatedPoint] = []
    if not isinstance(raw_points, list) or not raw_points:
        errors.append(RowError(row=None, field="pricePoints", message="at least one price point is required"))
    else:
        first_row_by_date: dict[datetime, int] = {}
        for index, raw in enumerate(raw_points):
            point = _check_point(
                index,
                raw,
                min_value=min_value,
                max_value=max_value,
                date_format=date_format,
                errors=errors,
            )
            if point is None:
                continue
            earlier = first_row_by_date.get(point.timestamp)
            if earlier is not None:
                errors.append(
                    RowError(
                        row=index + 1,
                        field="flow_date_start",
                        message=f"duplicate date {point.timestamp.date().isoformat()} (first seen on row {earlier})",
                    )
                )
                continue
            first_row_by_date[point.timestamp] = index + 1
            points.append(point)

    if errors:
        LOGGER.info("Rejected upload with %s validation errors", len(errors))
        raise UploadValidationError(errors)

    assert details is not None
    return ValidatedUpload(details=details, points=sorted(points, key=lambda item: item.timestamp))


def price_points_from_csv(csv_text: str) -> list[dict[str, Any]]:
    """Read a two-column date/value CSV into raw price point dicts for `validate_upload`."""

    frame = pd.read_csv(io.StringIO(csv_text), dtype=str, keep_default_na=False, skipinitialspace=True)
    date_column = next((name for name in CSV_DATE_COLUMNS if name in frame.columns), None)
    value_column = next((name for name in CSV_VALUE_COLUMNS if name in frame.columns), None)
    if date_column is None or value_column is None:
        raise UploadValidationError(
            [
                RowError(
                    row=None,
                    field="csv",
                    message="CSV must have a date column (flow_date_start or Date) and a value column",
                )
            ]
        )
    return [
        {"flow_date_start": row[date_column].strip(), "value": row[value_column].strip()}
        for row in frame.to_dict(orient="records")
    ]


def _parse_row_timestamp(raw: Any) -> datetime | None:
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        stamp = datetime.fromisoformat(raw.strip())
    except ValueError:
        return None
    return stamp.replace(tzinfo=UTC) if stamp.tzinfo is None else stamp.astimezone(UTC)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _check_instance_row(
    row: int,
    raw: dict[str, Any],
    instance: CurveInstance,
    *,
    min_value: float,
    max_value: float,
    errors: list[RowError],
) -> dict[str, Any] | None:
    failed = False
    stamp = _parse_row_timestamp(raw.get("timestamp"))
    if stamp is None:
        message = f"invalid timestamp '{raw.get('timestamp')}', expected ISO-8601"
        errors.append(RowError(row=row, field="timestamp", message=message))
        failed = True

    labels: dict[str, str] = {}
    for field_name, declared_attr in ROW_LABEL_FIELDS:
        raw_label = raw.get(field_name)
        if not isinstance(raw_label, str) or not raw_label.strip():
            errors.append(RowError(row=row, field=field_name, message=f"{field_name} is required"))
            failed = True
            continue
        declared: tuple[str, ...] = getattr(instance, declared_attr)
        label = raw_label.strip()
        if declared and label not in declared:
            errors.append(
                RowError(
                    row=row,
                    field=field_name,
                    message=f"{field_name} '{label}' not in instance {declared_attr}: [{', '.join(declared)}]",
                )
            )
            failed = True
            continue
        labels[field_name] = label

    number = _check_value(row, raw.get("value"), min_value=min_value, max_value=max_value, errors=errors)
    if failed or number is None:
        return None

    units = raw.get("units")
    return {
        "timestamp": stamp,
        "curve_type": labels["curveType"],
        "commodity": labels["commodity"],
        "scenario": labels["scenario"],
        "value": number,
        "units": units.strip() if isinstance(units, str) and units.strip() else None,
    }


@dataclass(frozen=True)
class ValidatedRows:
    records: list[dict[str, Any]]
    skipped: int = 0


def validate_instance_rows(
    payload: Any,
    instance: CurveInstance,
    *,
    min_value: float,
    max_value: float,
    default_units: str | None = None,
) -> ValidatedRows:
    """Validate `{rows: [{timestamp, curveType, commodity, scenario, value}]}` against a declared instance.

    Labels must come from the instance's declared curve types, commodities and scenarios
    (an empty declaration accepts any label). Rows with a blank value are template
    placeholders and are skipped. Every other problem is collected and raised together.
    """

    errors: list[RowError] = []
    if not isinstance(payload, dict):
        raise UploadValidationError([RowError(row=None, field="payload", message="payload must be an object")])

    raw_rows = payload.get("rows")
    records: list[dict[str, Any]] = []
    skipped = 0
    if not isinstance(raw_rows, list) or not raw_rows:
        errors.append(RowError(row=None, field="rows", message="at least one row is required"))
    else:
        first_row_by_key: dict[tuple[Any, ...], int] = {}
        for index, raw in enumerate(raw_rows):
            row = index + 1
            if not isinstance(raw, dict):
                errors.append(RowError(row=row, field="row", message="row must be an object"))
                continue
            if _is_blank(raw.get("value")):
                skipped += 1
                continue
            record = _check_instance_row(
                row, raw, instance, min_value=min_value, max_value=max_value, errors=errors
            )
            if record is None:
                continue
            record["units"] = record["units"] or default_units
            key = (record["timestamp"], record["curve_type"], record["commodity"], record["scenario"])
            earlier = first_row_by_key.get(key)
            if earlier is not None:
                errors.append(
                    RowError(row=row, field="timestamp", message=f"duplicate data point (first seen on row {earlier})")
                )
                continue
            first_row_by_key[key] = row
            records.append(record)
        if not errors and not records:
            errors.append(RowError(row=None, field="rows", message="no rows with values to upload"))

    if errors:
        LOGGER.info("Rejected data for instance %s with %s validation errors", instance.instance_id, len(errors))
        raise UploadValidationError(errors)

    records.sort(key=lambda item: (item["timestamp"], item["curve_type"], item["commodity"], item["scenario"]))
    return ValidatedRows(records=records, skipped=skipped)
