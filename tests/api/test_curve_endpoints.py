# This file tests curve catalog, data, analytics, export, overlay, and edit endpoints.
# It exists to protect the envelope and camelCase payload contracts chart clients depend on.
# A fake service stands in for storage so each test controls exactly what the router sees.

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from forecast_curves.api.pagination import PaginationSpec, SortSpec, paginate, sort_rows
from forecast_curves.curves.models import InstanceStatus
from tests.api.support import api_test_client, build_test_config

KNOWN_INSTANCES = {1, 2, 3}
STAMP = datetime(2025, 1, 1, tzinfo=UTC)


def _instance_row(instance_id: int, *, status: str = "ACTIVE") -> dict[str, Any]:
    return {
        "instance_id": instance_id,
        "definition_id": 1,
        "instance_version": f"v{instance_id}",
        "status": status,
        "created_at": STAMP,
        "created_by": "GridStor Forecasting",
        "curve_types": ["Revenue"],
        "commodities": ["Total Revenue"],
        "scenarios": ["P50"],
        "granularity": "MONTHLY",
        "degradation_type": None,
        "provenance_tier": "trusted",
        "priority_score": 8,
        "rank": 1,
        "is_current_vintage": True,
    }


def _definition_row(definition_id: int, curve_name: str, priority_score: int | None) -> dict[str, Any]:
    return {
        "definition_id": definition_id,
        "curve_name": curve_name,
        "market": "CAISO",
        "location": "SP15",
        "is_active": True,
        "update_frequency": "MONTHLY",
        "created_at": STAMP,
        "priority_score": priority_score,
        "best_instance": _instance_row(definition_id) if priority_score is not None else None,
    }


class FakeCurveService:
    def __init__(self) -> None:
        self.status_calls: list[tuple[int, InstanceStatus]] = []
        self.overlay_calls: list[dict[str, Any]] = []

    def get_locations(self) -> list[dict[str, str]]:
        return [{"market": "CAISO", "location": "SP15"}]

    def get_definitions(self, *, pagination: PaginationSpec, sort: SortSpec, **_: object) -> dict[str, Any]:
        rows = [
            _definition_row(1, "Alpha", 5),
            _definition_row(2, "Bravo", None),
            _definition_row(3, "Charlie", 9),
        ]
        ordered = sort_rows(rows, sort, tie_breaker="definition_id")
        return {"rows": paginate(ordered, pagination), "total_count": len(ordered), "warnings": []}

    def get_instances(self, definition_id: int) -> dict[str, Any] | None:
        if definition_id != 1:
            return None
        return {"rows": [_instance_row(1)], "warnings": []}

    def missing_instances(self, instance_ids: list[int]) -> list[int]:
        return [item for item in instance_ids if item not in KNOWN_INSTANCES]

    def get_data(self, instance_ids: list[int], *, layout: str, **_: object) -> dict[str, Any]:
        if layout == "wide":
            rows = [
                {
                    "instance_id": 1,
                    "timestamp": STAMP,
                    "curve_type": "Revenue",
                    "commodity": "Total Revenue",
                    "units": "$/kW-mn",
                    "value_p5": 1.0,
                    "value_p25": None,
                    "value_p50": 3.0,
                    "value_p75": None,
                    "value_p95": 5.0,
                }
            ]
        else:
            rows = [
                {
                    "point_id": 10,
                    "instance_id": 1,
                    "timestamp": STAMP,
                    "curve_type": "Revenue",
                    "commodity": "Total Revenue",
                    "scenario": "P50",
                    "value": 3.0,
                    "units": "$/kW-mn",
                }
            ]
        return {"rows": rows, "warnings": []}

    def get_aggregate(self, instance_ids: list[int], *, period: str, start_month: str | None, **_: object) -> dict[str, Any]:
        if start_month == "bad":
            raise ValueError("Month bounds must look like 'YYYY-MM'")
        return {
            "period": period,
            "points": [
                {
                    "instance_id": 1,
                    "period_key": "2025",
                    "commodity": "Total Revenue",
                    "scenario": "P50",
                    "average": 3.0,
                    "count": 12,
                }
            ],
            "overview": [{"instance_id": 1, "period_key": "2025", "commodity": "Total Revenue", "overall_average": 3.0}],
            "warnings": [],
        }

    def get_summary(self, instance_id: int) -> dict[str, Any]:
        if instance_id == 2:
            return {"kind": "mock", "reason": "No data points for this instance"}
        return {
            "kind": "real",
            "energy_arbitrage": 4.0,
            "ancillary_services": 1.0,
            "capacity": 2.0,
            "total": 7.0,
            "total_is_derived": True,
            "p5": None,
            "p50": 7.0,
            "p95": None,
            "point_count": 3,
        }

    def export_wide_csv(self, instance_ids: list[int]) -> str:
        return "Date,Alpha | v1 | P50\n2025-01-01,3.0\n"

    def export_batch_csv(self, instance_ids: list[int], *, as_of: object) -> tuple[str, str]:
        return f"curves_batch_{len(instance_ids)}_2025-01-01.csv", "Curve Name,Value\nAlpha,3.0\n"

    def build_overlay(self, **kwargs: Any) -> dict[str, Any]:
        self.overlay_calls.append(kwargs)
        return {
            "commodity": kwargs.get("commodity") or "Total Revenue",
            "series": [
                {
                    "key": "1",
                    "label": "Alpha P50",
                    "role": "median",
                    "color": "#3B82F6",
                    "bound": None,
                    "points": [{"timestamp": STAMP, "value": 3.0}],
                }
            ],
            "color_assignments": {"1": "#3B82F6", "2": "#10B981"},
            "warnings": ["Bravo has no P50 or Base values"],
        }

    def update_point(self, point_id: int, value: float) -> dict[str, Any] | None:
        if point_id != 10:
            return None
        return {"point_id": 10, "instance_id": 1, "value": value, "updated_at": STAMP}

    def change_status(self, instance_id: int, status: InstanceStatus) -> dict[str, Any] | None:
        self.status_calls.append((instance_id, status))
        if instance_id == 3:
            raise ValueError("Cannot move instance from ARCHIVED to ACTIVE")
        if instance_id not in KNOWN_INSTANCES:
            return None
        return _instance_row(instance_id, status=status.value)


def test_locations_are_listed_in_envelope() -> None:
    with api_test_client(curve_service=FakeCurveService()) as client:
        response = client.get("/api/v1/curves/locations")

    assert response.status_code == 200
    payload = response.json()
    assert payload["api_version"] == "v1"
    assert payload["data"] == [{"market": "CAISO", "location": "SP15"}]


def test_definitions_are_paginated_and_sorted_with_nulls_last() -> None:
    with api_test_client(curve_service=FakeCurveService()) as client:
        first = client.get("/api/v1/curves/definitions", params={"sort": "priority_score:desc"})
        second = client.get("/api/v1/curves/definitions", params={"sort": "priority_score:desc", "page": 2})

    assert first.status_code == 200
    first_payload = first.json()
    assert [row["curveName"] for row in first_payload["data"]] == ["Charlie", "Alpha"]
    assert first_payload["pagination"] == {
        "page": 1,
        "page_size": 2,
        "total_count": 3,
        "total_pages": 2,
        "sort": "priority_score:desc",
    }
    assert first_payload["data"][0]["bestInstance"]["provenanceTier"] == "trusted"
    assert [row["curveName"] for row in second.json()["data"]] == ["Bravo"]


def test_definitions_reject_unknown_sort_and_large_pages() -> None:
    with api_test_client(curve_service=FakeCurveService()) as client:
        bad_sort = client.get("/api/v1/curves/definitions", params={"sort": "color:asc"})
        big_page = client.get("/api/v1/curves/definitions", params={"page_size": 50})

    assert bad_sort.status_code == 400
    assert bad_sort.json()["error_code"] == "INVALID_QUERY_PARAM"
    assert big_page.status_code == 400
    assert "page_size" in big_page.json()["message"]


def test_instances_for_unknown_definition_is_404() -> None:
    with api_test_client(curve_service=FakeCurveService()) as client:
        found = client.get("/api/v1/curves/definitions/1/instances")
        missing = client.get("/api/v1/curves/definitions/9/instances")

    assert found.json()["data"][0]["isCurrentVintage"] is True
    assert missing.status_code == 404
    assert missing.json()["error_code"] == "DEFINITION_NOT_FOUND"


def test_tall_data_is_camel_case() -> None:
    with api_test_client(curve_service=FakeCurveService()) as client:
        response = client.get("/api/v1/curves/data", params={"instance_ids": [1]})

    assert response.status_code == 200
    payload = response.json()
    assert payload["layout"] == "tall"
    assert payload["data"][0]["pointId"] == 10
    assert payload["data"][0]["curveType"] == "Revenue"
    assert payload["request_id"]


def test_wide_data_keeps_missing_percentiles_null() -> None:
    with api_test_client(curve_service=FakeCurveService()) as client:
        response = client.get("/api/v1/curves/data", params={"instance_ids": [1], "layout": "wide"})

    row = response.json()["data"][0]
    assert response.json()["layout"] == "wide"
    assert row["valueP50"] == 3.0
    assert row["valueP25"] is None


def test_data_rejects_unknown_and_too_many_instances() -> None:
    config = build_test_config(max_instances_per_request=2)
    with api_test_client(config=config, curve_service=FakeCurveService()) as client:
        unknown = client.get("/api/v1/curves/data", params={"instance_ids": [1, 7]})
        too_many = client.get("/api/v1/curves/data", params={"instance_ids": [1, 2, 3]})
        reversed_window = client.get(
            "/api/v1/curves/data",
            params={"instance_ids": [1], "start_ts": "2025-02-01T00:00:00Z", "end_ts": "2025-01-01T00:00:00Z"},
        )

    assert unknown.status_code == 404
    assert unknown.json()["error_code"] == "INSTANCE_NOT_FOUND"
    assert unknown.json()["details"] == {"instance_ids": [7]}
    assert too_many.status_code == 400
    assert reversed_window.status_code == 400
    assert reversed_window.json()["error_code"] == "INVALID_TIME_WINDOW"


def test_data_requires_instance_ids() -> None:
    with api_test_client(curve_service=FakeCurveService()) as client:
        response = client.get("/api/v1/curves/data")

    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_ERROR"


def test_aggregate_returns_points_and_overview() -> None:
    with api_test_client(curve_service=FakeCurveService()) as client:
        response = client.get("/api/v1/curves/aggregate", params={"instance_ids": [1], "period": "annual"})
        bad = client.get("/api/v1/curves/aggregate", params={"instance_ids": [1], "start_month": "bad"})

    data = response.json()["data"]
    assert data["period"] == "annual"
    assert data["points"][0]["periodKey"] == "2025"
    assert data["overview"][0]["overallAverage"] == 3.0
    assert bad.status_code == 400


def test_summary_reports_real_and_mock_metrics() -> None:
    with api_test_client(curve_service=FakeCurveService()) as client:
        real = client.get("/api/v1/curves/summary", params={"instance_id": 1})
        mock = client.get("/api/v1/curves/summary", params={"instance_id": 2})

    assert real.json()["data"]["kind"] == "real"
    assert real.json()["data"]["totalIsDerived"] is True
    assert real.json()["warnings"] is None
    assert mock.json()["data"] == {"kind": "mock", "reason": "No data points for this instance"}
    assert mock.json()["warnings"][0].startswith("Showing placeholder metrics")


def test_csv_exports_are_attachments() -> None:
    with api_test_client(curve_service=FakeCurveService()) as client:
        wide = client.get("/api/v1/curves/export.csv", params={"instance_ids": [1]})
        batch = client.get("/api/v1/curves/export-batch.csv", params={"instance_ids": [1, 2]})

    assert wide.status_code == 200
    assert wide.headers["content-type"].startswith("text/csv")
    assert "attachment" in wide.headers["content-disposition"]
    assert wide.text.startswith("Date,")
    assert 'filename="curves_batch_2_2025-01-01.csv"' in batch.headers["content-disposition"]


def test_overlay_passes_color_assignments_through() -> None:
    service = FakeCurveService()
    with api_test_client(curve_service=service) as client:
        response = client.post(
            "/api/v1/curves/overlay",
            json={
                "primaryInstanceId": 1,
                "overlayInstanceIds": [2],
                "colorAssignments": {"1": "#3B82F6"},
                "commodity": "EA Revenue",
            },
        )

    assert response.status_code == 200
    payload = response.json()
    assert payload["data"]["colorAssignments"] == {"1": "#3B82F6", "2": "#10B981"}
    assert payload["data"]["series"][0]["role"] == "median"
    assert payload["warnings"] == ["Bravo has no P50 or Base values"]
    assert payload["data"]["commodity"] == "EA Revenue"
    assert service.overlay_calls[0]["color_assignments"] == {"1": "#3B82F6"}
    assert service.overlay_calls[0]["commodity"] == "EA Revenue"


def test_point_update_and_missing_point() -> None:
    with api_test_client(curve_service=FakeCurveService()) as client:
        updated = client.patch("/api/v1/curves/points/10", json={"value": 42.5})
        missing = client.patch("/api/v1/curves/points/11", json={"value": 1.0})

    assert updated.json()["data"]["value"] == 42.5
    assert missing.status_code == 404
    assert missing.json()["error_code"] == "POINT_NOT_FOUND"


def test_point_update_rejects_null_and_non_numeric_values() -> None:
    with api_test_client(curve_service=FakeCurveService()) as client:
        cleared = client.patch("/api/v1/curves/points/10", json={"value": None})
        text = client.patch("/api/v1/curves/points/10", json={"value": "12.5"})
        absent = client.patch("/api/v1/curves/points/10", json={})

    for response in (cleared, text, absent):
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"


def test_status_change_conflict_is_409() -> None:
    service = FakeCurveService()
    with api_test_client(curve_service=service) as client:
        moved = client.post("/api/v1/curves/instances/1/status", json={"status": "ARCHIVED"})
        conflict = client.post("/api/v1/curves/instances/3/status", json={"status": "ACTIVE"})
        missing = client.post("/api/v1/curves/instances/8/status", json={"status": "ARCHIVED"})

    assert moved.json()["data"]["status"] == "ARCHIVED"
    assert conflict.status_code == 409
    assert conflict.json()["error_code"] == "INVALID_STATUS_TRANSITION"
    assert missing.status_code == 404
    assert service.status_calls[0] == (1, InstanceStatus.ARCHIVED)
