# This file implements catalog browsing, data retrieval, analytics, and edits for curve instances.
# It exists so routers can answer requests without knowing about tables or frame layouts.
# Every payload is a plain dict with snake_case keys; response schemas apply the camelCase aliases.

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import pandas as pd

from forecast_curves.api.api_config import ApiConfig
from forecast_curves.api.pagination import PaginationSpec, SortSpec, paginate, sort_rows
from forecast_curves.curves.aggregation import Period, aggregate, filter_period_range, period_overview
from forecast_curves.curves.curve_config import CurveConfig
from forecast_curves.curves.export import batch_filename, render_batch_csv, render_wide_csv
from forecast_curves.curves.metrics import summarize_metrics
from forecast_curves.curves.models import TALL_COLUMNS, CurveDefinition, CurveInstance, InstanceStatus
from forecast_curves.curves.overlay import CurveColorAllocator, OverlayCurve, build_series_set
from forecast_curves.curves.pivot import pivot_to_wide
from forecast_curves.curves.selection import rank_instances, score_instance
from forecast_curves.curves.vintage import tag_vintages_by_location
from forecast_curves.ingestion.upload_checks import value_in_bounds
from forecast_curves.storage.repository import CurveRepository

LOGGER = logging.getLogger("api")

DEFINITION_SORT_FIELDS: set[str] = {
    "definition_id",
    "curve_name",
    "market",
    "location",
    "created_at",
    "priority_score",
}


def frame_records(frame: pd.DataFrame) -> list[dict[str, Any]]:
    """DataFrame rows as dicts with NaN/NaT replaced by None."""

    if frame.empty:
        return []
    return frame.astype(object).where(frame.notna(), None).to_dict(orient="records")


def definition_payload(definition: CurveDefinition) -> dict[str, Any]:
    return {
        "definition_id": definition.definition_id,
        "curve_name": definition.curve_name,
        "market": definition.market,
        "location": definition.location,
        "product": definition.product,
        "commodity": definition.commodity,
        "battery_duration": definition.battery_duration,
        "units": definition.units,
        "granularity": definition.granularity,
        "is_active": definition.is_active,
        "update_frequency": definition.update_frequency.value if definition.update_frequency else None,
        "timezone": definition.timezone,
        "description": definition.description,
        "created_at": definition.created_at,
    }


def instance_payload(
    instance: CurveInstance,
    *,
    rank: int | None = None,
    is_current_vintage: bool | None = None,
) -> dict[str, Any]:
    return {
        "instance_id": instance.instance_id,
        "definition_id": instance.definition_id,
        "instance_version": instance.instance_version,
        "status": instance.status.value,
        "created_at": instance.created_at,
        "created_by": instance.created_by,
        "curve_types": list(instance.curve_types),
        "commodities": list(instance.commodities),
        "scenarios": list(instance.scenarios),
        "granularity": instance.granularity,
        "degradation_type": instance.degradation_type,
        "provenance_tier": instance.provenance_tier.value,
        "priority_score": score_instance(instance),
        "rank": rank,
        "is_current_vintage": is_current_vintage,
    }


class CurveService:
    """Curve catalog and analytics for the browsing endpoints."""

    def __init__(self, *, config: ApiConfig, curve_config: CurveConfig, repository: CurveRepository) -> None:
        self.config = config
        self.curve_config = curve_config
        self.repository = repository

    def get_locations(self) -> list[dict[str, str]]:
        return self.repository.list_locations()

    def get_definitions(
        self,
        *,
        market: str | None,
        location: str | None,
        pagination: PaginationSpec,
        sort: SortSpec,
    ) -> dict[str, Any]:
        definitions = self.repository.list_definitions(market=market, location=location)
        instances = self.repository.list_instances(
            definition_ids=[item.definition_id for item in definitions]
        )
        by_definition: dict[int, list[CurveInstance]] = defaultdict(list)
        for instance in instances:
            by_definition[instance.definition_id].append(instance)

        rows: list[dict[str, Any]] = []
        without_instance = 0
        for definition in definitions:
            ranked = rank_instances(by_definition.get(definition.definition_id, []))
            best = ranked[0] if ranked else None
            if best is None:
                without_instance += 1
            rows.append(
                {
                    **definition_payload(definition),
                    "priority_score": best.score if best else None,
                    "best_instance": instance_payload(best.instance, rank=best.rank) if best else None,
                }
            )

        ordered = sort_rows(rows, sort, tie_breaker="definition_id")
        warnings: list[str] = []
        if without_instance:
            warnings.append(f"{without_instance} definitions have no active instance")
        return {
            "rows": paginate(ordered, pagination),
            "total_count": len(ordered),
            "warnings": warnings,
        }

    def get_instances(self, definition_id: int) -> dict[str, Any] | None:
        definition = self.repository.get_definition(definition_id)
        if definition is None:
            return None

        neighbours = self.repository.list_definitions(market=definition.market, location=definition.location)
        if all(item.definition_id != definition_id for item in neighbours):
            neighbours.append(definition)
        cohort = self.repository.list_instances(definition_ids=[item.definition_id for item in neighbours])
        vintage_tags = tag_vintages_by_location(
            neighbours,
            cohort,
            tolerance_days=self.curve_config.vintage_tolerance_days,
        )

        own = [item for item in cohort if item.definition_id == definition_id]
        rank_by_id = {item.instance.instance_id: item.rank for item in rank_instances(own)}
        rows = [
            instance_payload(
                instance,
                rank=rank_by_id.get(instance.instance_id),
                is_current_vintage=(
                    vintage_tags[instance.instance_id].is_current_vintage
                    if instance.instance_id in vintage_tags
                    else None
                ),
            )
            for instance in own
        ]
        rows.sort(key=lambda row: (row["rank"] is None, row["rank"] or 0, -row["instance_id"]))
        warnings = [] if rank_by_id else ["No active instance is available for this definition"]
        return {"rows": rows, "warnings": warnings}

    def missing_instances(self, instance_ids: Sequence[int]) -> list[int]:
        found = {
            item.instance_id
            for item in self.repository.list_instances(instance_ids=list(instance_ids), include_archived=True)
        }
        return [item for item in instance_ids if item not in found]

    def _tall_points(
        self,
        instance_ids: Sequence[int],
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> pd.DataFrame:
        return self.repository.fetch_data(instance_ids, start=start, end=end)

    def get_data(
        self,
        instance_ids: Sequence[int],
        *,
        layout: str,
        start: datetime | None,
        end: datetime | None,
    ) -> dict[str, Any]:
        points = self._tall_points(instance_ids, start=start, end=end)
        warnings = [] if not points.empty else ["No data points found for the requested instances"]
        if layout == "wide":
            return {"rows": frame_records(pivot_to_wide(points[TALL_COLUMNS])), "warnings": warnings}
        return {"rows": frame_records(points), "warnings": warnings}

    def get_aggregate(
        self,
        instance_ids: Sequence[int],
        *,
        period: Period,
        start_month: str | None,
        end_month: str | None,
    ) -> dict[str, Any]:
        points = filter_period_range(
            self._tall_points(instance_ids),
            start_month=start_month,
            end_month=end_month,
        )
        aggregated = aggregate(points, period, group_by_instance=True)

        overview_rows: list[dict[str, Any]] = []
        for instance_id, group in aggregated.groupby("instance_id", sort=True):
            for record in frame_records(period_overview(group)):
                overview_rows.append({"instance_id": int(instance_id), **record})

        warnings = [] if not aggregated.empty else ["No values available for aggregation"]
        return {
            "period": period,
            "points": frame_records(aggregated),
            "overview": overview_rows,
            "warnings": warnings,
        }

    def get_summary(self, instance_id: int) -> dict[str, Any]:
        metrics = summarize_metrics(self._tall_points([instance_id]))
        return metrics.model_dump()

    def export_wide_csv(self, instance_ids: Sequence[int]) -> str:
        return render_wide_csv(self._tall_points(instance_ids), self.repository.export_contexts(instance_ids))

    def export_batch_csv(self, instance_ids: Sequence[int], *, as_of: pd.Timestamp) -> tuple[str, str]:
        content = render_batch_csv(self._tall_points(instance_ids), self.repository.export_contexts(instance_ids))
        return batch_filename(instance_ids, as_of), content

    def build_overlay(
        self,
        *,
        primary_instance_id: int,
        overlay_instance_ids: Sequence[int],
        color_assignments: dict[str, str],
        commodity: str | None = None,
    ) -> dict[str, Any]:
        chart_commodity = commodity or self.curve_config.chart_commodity
        all_ids = [primary_instance_id, *[item for item in overlay_instance_ids if item != primary_instance_id]]
        points = self._tall_points(all_ids)
        contexts = self.repository.export_contexts(all_ids)

        primary_points = points.loc[points["instance_id"] == primary_instance_id, TALL_COLUMNS]
        overlays = [
            OverlayCurve(
                key=str(instance_id),
                label=contexts[instance_id].curve_name if instance_id in contexts else str(instance_id),
                points=points.loc[points["instance_id"] == instance_id],
            )
            for instance_id in all_ids[1:]
        ]
        allocator = CurveColorAllocator(self.curve_config.palette, assignments=color_assignments)
        primary_context = contexts.get(primary_instance_id)
        series_set = build_series_set(
            pivot_to_wide(primary_points),
            overlays,
            allocator,
            primary_key=str(primary_instance_id),
            primary_label=primary_context.curve_name if primary_context else str(primary_instance_id),
            commodity=chart_commodity,
        )

        series = [
            {
                "key": item.key,
                "label": item.label,
                "role": item.role,
                "color": item.color,
                "bound": item.bound,
                "points": [{"timestamp": point.timestamp, "value": point.value} for point in item.points],
            }
            for item in series_set.series
        ]
        return {
            "commodity": chart_commodity,
            "series": series,
            "color_assignments": allocator.assignments,
            "warnings": list(series_set.warnings),
        }

    def update_point(self, point_id: int, value: float) -> dict[str, Any] | None:
        """Overwrite one value; raises ValueError when it falls outside the upload bounds."""

        low, high = self.curve_config.upload_min_value, self.curve_config.upload_max_value
        if not value_in_bounds(value, min_value=low, max_value=high):
            raise ValueError(f"value {value:g} outside [{low:g}, {high:g}]")
        updated = self.repository.update_point(point_id, value)
        if updated is None:
            return None
        return {
            "point_id": updated.point_id,
            "instance_id": updated.instance_id,
            "value": updated.value,
            "updated_at": updated.updated_at,
        }

    def change_status(self, instance_id: int, status: InstanceStatus) -> dict[str, Any] | None:
        moved = self.repository.set_instance_status(instance_id, status)
        if moved is None:
            return None
        return instance_payload(moved)
