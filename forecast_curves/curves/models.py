# This module defines the catalog and instance records plus the tabular column contracts.
# It exists so storage, engines, and API schemas agree on one shape for definitions, instances, and data frames.
# Records are frozen dataclasses; tall and wide data travel as pandas frames with fixed column lists.

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import pandas as pd

from forecast_curves.curves.taxonomy import ProvenanceTier, resolve_provenance_tier

TALL_COLUMNS: list[str] = [
    "instance_id",
    "timestamp",
    "curve_type",
    "commodity",
    "scenario",
    "value",
    "units",
]

WIDE_KEY_COLUMNS: list[str] = ["instance_id", "timestamp", "curve_type", "commodity"]

PERCENTILE_COLUMN_BY_LABEL: dict[str, str] = {
    "P5": "value_p5",
    "P25": "value_p25",
    "P50": "value_p50",
    "P75": "value_p75",
    "P95": "value_p95",
}

WIDE_COLUMNS: list[str] = [*WIDE_KEY_COLUMNS, "units", *PERCENTILE_COLUMN_BY_LABEL.values()]


class InstanceStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class UpdateFrequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


_ALLOWED_TRANSITIONS: dict[InstanceStatus, set[InstanceStatus]] = {
    InstanceStatus.DRAFT: {InstanceStatus.ACTIVE, InstanceStatus.ARCHIVED},
    InstanceStatus.ACTIVE: {InstanceStatus.ARCHIVED},
    InstanceStatus.ARCHIVED: set(),
}


@dataclass(frozen=True)
class CurveDefinition:
    definition_id: int
    market: str
    location: str
    product: str | None = None
    commodity: str | None = None
    curve_name: str | None = None
    battery_duration: str | None = None
    units: str | None = None
    granularity: str | None = None
    is_active: bool = True
    update_frequency: UpdateFrequency | None = None
    timezone: str | None = None
    description: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class CurveInstance:
    instance_id: int
    definition_id: int
    instance_version: str
    status: InstanceStatus
    created_at: datetime
    created_by: str | None = None
    curve_types: tuple[str, ...] = field(default_factory=tuple)
    commodities: tuple[str, ...] = field(default_factory=tuple)
    scenarios: tuple[str, ...] = field(default_factory=tuple)
    granularity: str | None = None
    degradation_type: str | None = None
    provenance_tier: ProvenanceTier = ProvenanceTier.UNKNOWN

    def with_status(self, status: InstanceStatus) -> CurveInstance:
        validate_status_transition(self.status, status)
        return replace(self, status=status)


def validate_status_transition(current: InstanceStatus, target: InstanceStatus) -> None:
    if current == target:
        return
    if target not in _ALLOWED_TRANSITIONS[current]:
        raise ValueError(f"Cannot move instance from {current.value} to {target.value}")


def _as_utc(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    stamp = pd.Timestamp(value)
    if stamp.tzinfo is None:
        stamp = stamp.tz_localize(UTC)
    return stamp.to_pydatetime()


def _as_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(item) for item in value)


def build_definition(record: Mapping[str, Any]) -> CurveDefinition:
    frequency = record.get("update_frequency")
    created_at = record.get("created_at")
    return CurveDefinition(
        definition_id=int(record["definition_id"]),
        market=str(record["market"]),
        location=str(record["location"]),
        product=record.get("product"),
        commodity=record.get("commodity"),
        curve_name=record.get("curve_name"),
        battery_duration=record.get("battery_duration"),
        units=record.get("units"),
        granularity=record.get("granularity"),
        is_active=bool(record.get("is_active", True)),
        update_frequency=UpdateFrequency(str(frequency).upper()) if frequency else None,
        timezone=record.get("timezone"),
        description=record.get("description"),
        created_at=_as_utc(created_at) if created_at is not None else None,
    )


def build_instance(record: Mapping[str, Any], *, trusted_marker: str) -> CurveInstance:
    """Build an instance from a stored record, resolving its provenance tier once."""

    created_by = record.get("created_by")
    return CurveInstance(
        instance_id=int(record["instance_id"]),
        definition_id=int(record["definition_id"]),
        instance_version=str(record["instance_version"]),
        status=InstanceStatus(str(record.get("status", InstanceStatus.DRAFT.value)).upper()),
        created_at=_as_utc(record["created_at"]),
        created_by=created_by,
        curve_types=_as_tuple(record.get("curve_types")),
        commodities=_as_tuple(record.get("commodities")),
        scenarios=_as_tuple(record.get("scenarios")),
        granularity=record.get("granularity"),
        degradation_type=record.get("degradation_type"),
        provenance_tier=resolve_provenance_tier(created_by, trusted_marker=trusted_marker),
    )


def empty_tall_frame() -> pd.DataFrame:
    return pd.DataFrame(columns=TALL_COLUMNS)


def empty_wide_frame() -> pd.DataFrame:
    return pd.DataFrame(columns=WIDE_COLUMNS)


def tall_frame_from_records(records: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    """Normalize tall data point records into the `TALL_COLUMNS` contract."""

    frame = pd.DataFrame(list(records))
    if frame.empty:
        return empty_tall_frame()
    for column in TALL_COLUMNS:
        if column not in frame.columns:
            frame[column] = None
    frame = frame[TALL_COLUMNS].copy()
    frame["instance_id"] = frame["instance_id"].astype(int)
    frame["timestamp"] = pd.to_datetime(frame["timestamp"], utc=True)
    frame["value"] = pd.to_numeric(frame["value"], errors="coerce").astype(float)
    return frame
