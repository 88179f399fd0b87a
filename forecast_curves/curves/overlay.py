# This module turns a primary curve plus overlay curves into chart-ready series.
# Colors come from a fixed palette; a selected curve keeps its color until it is released.
# The transform is pure: it reads frames and returns view models without touching storage or rendering.

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

import pandas as pd

from forecast_curves.curves.curve_config import DEFAULT_CHART_COMMODITY, DEFAULT_PALETTE
from forecast_curves.curves.taxonomy import is_base_scenario, normalize_scenario

LOGGER = logging.getLogger("curves")

SeriesRole = Literal["median", "band_p5_p95", "band_p25_p75", "overlay"]
SeriesBound = Literal["lower", "upper"]

_BANDS: tuple[tuple[SeriesRole, str, str], ...] = (
    ("band_p5_p95", "value_p5", "value_p95"),
    ("band_p25_p75", "value_p25", "value_p75"),
)


class CurveColorAllocator:
    """Hands out palette colors to selected curve keys, reusing released colors first."""

    def __init__(
        self,
        palette: Sequence[str] = DEFAULT_PALETTE,
        *,
        assignments: Mapping[str, str] | None = None,
    ) -> None:
        if not palette:
            raise ValueError("palette must contain at least one color")
        self._palette = tuple(palette)
        self._assigned: dict[str, str] = dict(assignments or {})
        self._selections = len(self._assigned)

    @property
    def assignments(self) -> dict[str, str]:
        return dict(self._assigned)

    def assign(self, key: str) -> str:
        if key in self._assigned:
            return self._assigned[key]

        in_use = set(self._assigned.values())
        color = next((item for item in self._palette if item not in in_use), None)
        if color is None:
            color = self._palette[self._selections % len(self._palette)]
            LOGGER.warning(
                "Palette exhausted with %s curves selected; reusing color %s for %s",
                len(self._assigned),
                color,
                key,
            )
        self._selections += 1
        self._assigned[key] = color
        return color

    def release(self, key: str) -> None:
        self._assigned.pop(key, None)


@dataclass(frozen=True)
class SeriesPoint:
    timestamp: datetime
    value: float


@dataclass(frozen=True)
class ChartSeries:
    key: str
    label: str
    role: SeriesRole
    color: str
    points: tuple[SeriesPoint, ...]
    bound: SeriesBound | None = None


@dataclass(frozen=True)
class OverlayCurve:
    key: str
    label: str
    points: pd.DataFrame


@dataclass(frozen=True)
class SeriesSet:
    series: tuple[ChartSeries, ...] = field(default_factory=tuple)
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def by_role(self, role: SeriesRole) -> list[ChartSeries]:
        return [item for item in self.series if item.role == role]


def _series_points(frame: pd.DataFrame, value_column: str) -> tuple[SeriesPoint, ...]:
    if frame.empty or value_column not in frame.columns:
        return ()
    usable = frame.loc[frame[value_column].notna(), ["timestamp", value_column]].copy()
    if usable.empty:
        return ()
    usable["timestamp"] = pd.to_datetime(usable["timestamp"], utc=True)
    per_timestamp = usable.groupby("timestamp", sort=True)[value_column].mean()
    return tuple(
        SeriesPoint(timestamp=stamp.to_pydatetime(), value=float(value)) for stamp, value in per_timestamp.items()
    )


def _commodity_rows(frame: pd.DataFrame, commodity: str | None) -> pd.DataFrame:
    """Rows for one commodity label (case-insensitive); every row when no commodity is given."""

    if commodity is None or frame.empty or "commodity" not in frame.columns:
        return frame
    wanted = commodity.strip().lower()
    labels = frame["commodity"].astype(object).where(frame["commodity"].notna(), "")
    return frame.loc[labels.map(lambda label: str(label).strip().lower() == wanted)]


def _overlay_rows(points: pd.DataFrame) -> pd.DataFrame:
    if points.empty:
        return points
    scenarios = points["scenario"].astype(str)
    median = points.loc[scenarios.map(normalize_scenario) == "P50"]
    if not median.empty:
        return median
    return points.loc[scenarios.map(is_base_scenario)]


def build_series_set(
    primary_wide: pd.DataFrame,
    overlays: Sequence[OverlayCurve],
    allocator: CurveColorAllocator,
    *,
    primary_key: str = "primary",
    primary_label: str = "Primary",
    commodity: str | None = DEFAULT_CHART_COMMODITY,
) -> SeriesSet:
    """Median line and percentile bands for the primary curve, one line per overlay.

    Rows are narrowed to `commodity` first so components and totals are never averaged together.
    Pass `commodity=None` to keep every row.
    """

    series: list[ChartSeries] = []
    warnings: list[str] = []
    label_suffix = f" ({commodity})" if commodity else ""

    primary_wide = _commodity_rows(primary_wide, commodity)
    primary_color = allocator.assign(primary_key)
    median_points = _series_points(primary_wide, "value_p50")
    if median_points:
        series.append(
            ChartSeries(
                key=primary_key,
                label=f"{primary_label} P50",
                role="median",
                color=primary_color,
                points=median_points,
            )
        )
    else:
        warnings.append(f"{primary_label} has no P50 values{label_suffix}")

    for role, lower_column, upper_column in _BANDS:
        for bound, column in (("lower", lower_column), ("upper", upper_column)):
            points = _series_points(primary_wide, column)
            if not points:
                continue
            series.append(
                ChartSeries(
                    key=f"{primary_key}:{role}:{bound}",
                    label=f"{primary_label} {column.replace('value_', '').upper()}",
                    role=role,
                    color=primary_color,
                    points=points,
                    bound=bound,
                )
            )

    for overlay in overlays:
        color = allocator.assign(overlay.key)
        points = _series_points(_overlay_rows(_commodity_rows(overlay.points, commodity)), "value")
        if not points:
            warnings.append(f"{overlay.label} has no P50 or Base values{label_suffix}")
            continue
        series.append(
            ChartSeries(key=overlay.key, label=overlay.label, role="overlay", color=color, points=points)
        )

    return SeriesSet(series=tuple(series), warnings=tuple(warnings))
