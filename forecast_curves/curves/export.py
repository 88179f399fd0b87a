# This module renders curve data as CSV downloads.
# The wide export puts one column per curve key beside a Date column; the batch export keeps one row per data point.
# Both writers return text so the API and the CLI job can stream or save it as they need.

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import pandas as pd

from forecast_curves.curves.models import CurveDefinition, CurveInstance

DATE_COLUMN = "Date"

BATCH_COLUMNS: list[str] = [
    "Curve Name",
    "Location",
    "Market",
    "Instance Version",
    "Timestamp",
    "Curve Type",
    "Commodity",
    "Scenario",
    "Value",
    "Units",
]


@dataclass(frozen=True)
class ExportContext:
    definition: CurveDefinition
    instance: CurveInstance

    @property
    def curve_name(self) -> str:
        return self.definition.curve_name or f"{self.definition.market} {self.definition.location}"


def curve_key(
    context: ExportContext,
    scenario: str | None = None,
    *,
    curve_type: str | None = None,
    commodity: str | None = None,
) -> str:
    parts = [context.curve_name, context.instance.instance_version]
    parts.extend(part for part in (curve_type, commodity, scenario) if part)
    return " | ".join(parts)


def _varying_columns(points: pd.DataFrame) -> dict[int, set[str]]:
    """Per instance, which of curve type and commodity take more than one value."""

    varying: dict[int, set[str]] = {}
    for instance_id, rows in points.groupby("instance_id", sort=False):
        varying[int(instance_id)] = {
            column for column in ("curve_type", "commodity") if rows[column].nunique(dropna=False) > 1
        }
    return varying


def _label(value: object) -> str | None:
    if value is None or pd.isna(value):
        return None
    return str(value)


def _format_timestamps(stamps: pd.Series) -> pd.Series:
    stamps = pd.to_datetime(stamps, utc=True)
    if (stamps == stamps.dt.normalize()).all():
        return stamps.dt.strftime("%Y-%m-%d")
    return stamps.dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def build_wide_export(points: pd.DataFrame) -> pd.DataFrame:
    """Pivot `timestamp, curve_key, value` rows into one Date column plus one column per curve key."""

    if points.empty:
        return pd.DataFrame(columns=[DATE_COLUMN])

    key_order = list(dict.fromkeys(points["curve_key"].tolist()))
    frame = points[["timestamp", "curve_key", "value"]].copy()
    frame["timestamp"] = pd.to_datetime(frame["timestamp"], utc=True)
    wide = frame.groupby(["timestamp", "curve_key"], sort=True)["value"].first().unstack("curve_key")
    wide = wide.reindex(columns=key_order).sort_index()
    wide.columns.name = None
    wide = wide.reset_index()
    wide.insert(0, DATE_COLUMN, _format_timestamps(wide.pop("timestamp")))
    return wide


def keyed_points(points: pd.DataFrame, contexts: Mapping[int, ExportContext]) -> pd.DataFrame:
    """Attach a curve key per row from its instance context and scenario label.

    Curve type and commodity join the key only for instances where they vary,
    so every (instance, curve type, commodity, scenario) series gets its own column.
    """

    if points.empty:
        return pd.DataFrame(columns=["timestamp", "curve_key", "value"])
    frame = points.loc[points["instance_id"].isin(list(contexts))].copy()
    varying = _varying_columns(frame)
    keys: list[str] = []
    for record in frame[["instance_id", "curve_type", "commodity", "scenario"]].to_dict(orient="records"):
        instance_id = int(record["instance_id"])
        distinct = varying.get(instance_id, set())
        keys.append(
            curve_key(
                contexts[instance_id],
                _label(record["scenario"]),
                curve_type=_label(record["curve_type"]) if "curve_type" in distinct else None,
                commodity=_label(record["commodity"]) if "commodity" in distinct else None,
            )
        )
    frame["curve_key"] = keys
    return frame[["timestamp", "curve_key", "value"]]


def render_wide_csv(points: pd.DataFrame, contexts: Mapping[int, ExportContext]) -> str:
    return build_wide_export(keyed_points(points, contexts)).to_csv(index=False)


def build_batch_export(points: pd.DataFrame, contexts: Mapping[int, ExportContext]) -> pd.DataFrame:
    rows: list[dict[str, object]] = []
    if points.empty:
        return pd.DataFrame(columns=BATCH_COLUMNS)

    ordered = points.sort_values(["instance_id", "timestamp", "curve_type", "commodity", "scenario"], na_position="last")
    for record in ordered.to_dict(orient="records"):
        context = contexts.get(int(record["instance_id"]))
        if context is None:
            continue
        stamp = pd.Timestamp(record["timestamp"])
        if stamp.tzinfo is None:
            stamp = stamp.tz_localize("UTC")
        rows.append(
            {
                "Curve Name": context.curve_name,
                "Location": context.definition.location,
                "Market": context.definition.market,
                "Instance Version": context.instance.instance_version,
                "Timestamp": stamp.tz_convert("UTC").isoformat(),
                "Curve Type": record.get("curve_type"),
                "Commodity": record.get("commodity"),
                "Scenario": record.get("scenario"),
                "Value": record.get("value"),
                "Units": record.get("units") or context.definition.units,
            }
        )
    return pd.DataFrame(rows, columns=BATCH_COLUMNS)


def render_batch_csv(points: pd.DataFrame, contexts: Mapping[int, ExportContext]) -> str:
    return build_batch_export(points, contexts).to_csv(index=False)


def batch_filename(instance_ids: Sequence[int], as_of: pd.Timestamp) -> str:
    return f"curves_batch_{len(instance_ids)}_{as_of.strftime('%Y-%m-%d')}.csv"
