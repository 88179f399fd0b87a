# This module builds the summary metric cards for a single curve instance.
# Real and placeholder summaries are separate types so a mock card can never be shown as real data.
# Component averages come from commodity tags; percentile averages come from the total-revenue rows when present.

from __future__ import annotations

import logging
from typing import Annotated, Literal

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from forecast_curves.curves.taxonomy import (
    CommodityKind,
    is_base_scenario,
    normalize_scenario,
    resolve_commodity_kind,
)

LOGGER = logging.getLogger("curves")

_COMPONENT_KINDS = (
    CommodityKind.ENERGY_ARBITRAGE,
    CommodityKind.ANCILLARY_SERVICES,
    CommodityKind.CAPACITY,
)


class RealMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["real"] = "real"
    energy_arbitrage: float | None = None
    ancillary_services: float | None = None
    capacity: float | None = None
    total: float | None = None
    total_is_derived: bool = False
    p5: float | None = None
    p50: float | None = None
    p95: float | None = None
    point_count: int = 0


class MockMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["mock"] = "mock"
    reason: str


MetricSummary = Annotated[RealMetrics | MockMetrics, Field(discriminator="kind")]


def _mean_or_none(values: pd.Series) -> float | None:
    clean = values.dropna()
    if clean.empty:
        return None
    return float(clean.mean())


def _central_rows(frame: pd.DataFrame) -> pd.DataFrame:
    """P50 rows, then Base rows, then everything."""

    scenarios = frame["scenario"].astype(str)
    median = frame.loc[scenarios.map(normalize_scenario) == "P50"]
    if not median.empty:
        return median
    base = frame.loc[scenarios.map(is_base_scenario)]
    if not base.empty:
        return base
    return frame


def summarize_metrics(points: pd.DataFrame) -> RealMetrics | MockMetrics:
    """Summarize one instance's tall points, or return a placeholder when nothing usable exists."""

    if points.empty or points["value"].dropna().empty:
        return MockMetrics(reason="no data points for the selected instance")

    frame = points.loc[points["value"].notna()].copy()
    frame["kind"] = frame["commodity"].map(lambda commodity: resolve_commodity_kind(commodity).value)

    components: dict[CommodityKind, float | None] = {}
    for kind in (*_COMPONENT_KINDS, CommodityKind.TOTAL):
        subset = frame.loc[frame["kind"] == kind.value]
        components[kind] = _mean_or_none(_central_rows(subset)["value"]) if not subset.empty else None

    total = components[CommodityKind.TOTAL]
    total_is_derived = False
    if total is None:
        present = [components[kind] for kind in _COMPONENT_KINDS if components[kind] is not None]
        if present:
            total = float(sum(present))
            total_is_derived = True

    percentile_source = frame.loc[frame["kind"] == CommodityKind.TOTAL.value]
    if percentile_source.empty:
        percentile_source = frame
    normalized = percentile_source["scenario"].astype(str).map(normalize_scenario)
    percentiles = {
        label: _mean_or_none(percentile_source.loc[normalized == label, "value"]) for label in ("P5", "P50", "P95")
    }

    LOGGER.debug("Summarized %s points into metric cards", len(frame))
    return RealMetrics(
        energy_arbitrage=components[CommodityKind.ENERGY_ARBITRAGE],
        ancillary_services=components[CommodityKind.ANCILLARY_SERVICES],
        capacity=components[CommodityKind.CAPACITY],
        total=total,
        total_is_derived=total_is_derived,
        p5=percentiles["P5"],
        p50=percentiles["P50"],
        p95=percentiles["P95"],
        point_count=int(len(frame)),
    )
