# This module rolls point-level curve values up to monthly or annual summaries.
# Every period average is a plain arithmetic mean of the non-null values that exist; partial years are not padded.
# Groups without any contributing value are omitted instead of being emitted as zero.

from __future__ import annotations

from typing import Literal

import pandas as pd

from forecast_curves.curves.pivot import unpivot_from_wide
from forecast_curves.curves.taxonomy import PERCENTILE_LABELS, normalize_scenario

Period = Literal["monthly", "annual"]

AGGREGATE_COLUMNS: list[str] = ["period_key", "commodity", "scenario", "average", "count"]

_PERIOD_FORMATS: dict[str, str] = {"monthly": "%Y-%m", "annual": "%Y"}


def period_key_format(period: str) -> str:
    try:
        return _PERIOD_FORMATS[period]
    except KeyError as exc:
        supported = ", ".join(sorted(_PERIOD_FORMATS))
        raise ValueError(f"Unsupported period '{period}'. Supported periods: {supported}") from exc


def _canonical_scenario(label: object) -> object:
    if label is None or (isinstance(label, float) and pd.isna(label)):
        return None
    return normalize_scenario(str(label)) or str(label)


def aggregate(
    points: pd.DataFrame,
    period: Period,
    *,
    group_by_instance: bool = False,
) -> pd.DataFrame:
    """Average tall points per (period_key, commodity, scenario)."""

    key_format = period_key_format(period)
    key_columns = ["period_key", "commodity", "scenario"]
    output_columns = list(AGGREGATE_COLUMNS)
    if group_by_instance:
        key_columns = ["instance_id", *key_columns]
        output_columns = ["instance_id", *output_columns]

    if points.empty:
        return pd.DataFrame(columns=output_columns)

    frame = points.loc[points["value"].notna()].copy()
    if frame.empty:
        return pd.DataFrame(columns=output_columns)

    frame["period_key"] = pd.to_datetime(frame["timestamp"], utc=True).dt.strftime(key_format)
    frame["scenario"] = frame["scenario"].map(_canonical_scenario)
    frame["value"] = frame["value"].astype(float)

    grouped = (
        frame.groupby(key_columns, dropna=False, sort=True)["value"]
        .agg(average="mean", count="count")
        .reset_index()
    )
    grouped = grouped.loc[grouped["count"] > 0]
    grouped["commodity"] = grouped["commodity"].astype(object).where(grouped["commodity"].notna(), None)
    grouped["count"] = grouped["count"].astype(int)
    grouped["average"] = grouped["average"].astype(float)
    return grouped[output_columns].reset_index(drop=True)


def aggregate_wide(wide: pd.DataFrame, period: Period, *, group_by_instance: bool = False) -> pd.DataFrame:
    """Apply the same averaging rule to the wide view, one row per percentile column."""

    return aggregate(unpivot_from_wide(wide), period, group_by_instance=group_by_instance)


def overall_average(
    aggregated: pd.DataFrame,
    period_key: str,
    *,
    commodity: str | None = None,
) -> float | None:
    """Unweighted mean of each percentile scenario's period average; None when no scenario has data."""

    if aggregated.empty:
        return None
    mask = (aggregated["period_key"] == period_key) & aggregated["scenario"].isin(PERCENTILE_LABELS)
    if commodity is not None:
        mask &= aggregated["commodity"] == commodity
    subset = aggregated.loc[mask]
    if subset.empty:
        return None
    per_scenario = subset.groupby("scenario")["average"].mean()
    return float(per_scenario.mean())


def period_overview(aggregated: pd.DataFrame) -> pd.DataFrame:
    """One `overall_average` per (period_key, commodity) for summary cards."""

    columns = ["period_key", "commodity", "overall_average"]
    if aggregated.empty:
        return pd.DataFrame(columns=columns)

    rows: list[dict[str, object]] = []
    grouped = aggregated.groupby(["period_key", "commodity"], dropna=False, sort=True)
    for (period_key, commodity), group in grouped:
        value = overall_average(group, str(period_key))
        if value is None:
            continue
        rows.append(
            {
                "period_key": str(period_key),
                "commodity": None if pd.isna(commodity) else commodity,
                "overall_average": value,
            }
        )
    return pd.DataFrame(rows, columns=columns)


def filter_period_range(
    points: pd.DataFrame,
    *,
    start_month: str | None = None,
    end_month: str | None = None,
) -> pd.DataFrame:
    """Keep points whose month lies in the inclusive `YYYY-MM` window."""

    if points.empty or (start_month is None and end_month is None):
        return points

    months = pd.to_datetime(points["timestamp"], utc=True).dt.strftime("%Y-%m")
    mask = pd.Series(True, index=points.index)
    if start_month is not None:
        mask &= months >= _validated_month(start_month)
    if end_month is not None:
        mask &= months <= _validated_month(end_month)
    return points.loc[mask]


def _validated_month(value: str) -> str:
    parsed = pd.to_datetime(value, format="%Y-%m", errors="coerce")
    if pd.isna(parsed):
        raise ValueError(f"Month bounds must look like 'YYYY-MM', got {value!r}")
    return parsed.strftime("%Y-%m")

