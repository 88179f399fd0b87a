# This file runs the API end to end against an in-memory SQLite catalog.
# Real services and the real repository are wired in; only the engine is swapped.
# It covers upload, browsing, analytics, freshness, overlays, exports, and lifecycle edits together.

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from forecast_curves.api.services.curve_service import CurveService
from forecast_curves.api.services.freshness_service import FreshnessService
from forecast_curves.api.services.upload_service import UploadService
from forecast_curves.curves.curve_config import CurveConfig
from forecast_curves.storage.repository import CurveRepository
from tests.api.support import api_test_client, build_test_config
from tests.factories import memory_engine


def _upload_body(mark_date: str, mark_case: str, values: list[float], **details: Any) -> dict[str, Any]:
    curve_details = {
        "market": "CAISO",
        "location": "SP15",
        "curve_name": "SP15 Revenue",
        "mark_type": "Revenue",
        "mark_case": mark_case,
        "mark_date": mark_date,
        "value_type": "Total Revenue",
        "curve_creator": "GridStor Forecasting",
        "granularity": "MONTHLY",
        "update_frequency": "MONTHLY",
    }
    curve_details.update(details)
    return {
        "curveDetails": curve_details,
        "pricePoints": [
            {"flow_date_start": f"2025-{month:02d}-01", "value": value}
            for month, value in enumerate(values, start=1)
        ],
    }


@pytest.fixture()
def client() -> Iterator[TestClient]:
    config = build_test_config()
    curve_config = CurveConfig()
    engine = memory_engine()
    repository = CurveRepository(engine, trusted_marker=curve_config.trusted_creator_marker)
    services = {
        "curve_service": CurveService(config=config, curve_config=curve_config, repository=repository),
        "freshness_service": FreshnessService(config=config, curve_config=curve_config, repository=repository),
        "upload_service": UploadService(config=config, curve_config=curve_config, repository=repository),
    }
    with api_test_client(config=config, engine=engine, **services) as test_client:
        yield test_client


def test_upload_then_browse_and_analyse(client: TestClient) -> None:
    first = client.post("/api/v1/curves/upload", json=_upload_body("2025-01-01", "P50", [10.0, 20.0, 30.0]))
    second = client.post("/api/v1/curves/upload", json=_upload_body("2025-02-01", "P50", [11.0, 21.0, 31.0]))

    assert first.status_code == 201
    created = first.json()["data"]
    assert created["createdDefinition"] is True
    assert created["rowsWritten"] == 3
    assert second.json()["data"]["definitionId"] == created["definitionId"]
    definition_id = created["definitionId"]
    newest_id = second.json()["data"]["instanceId"]

    locations = client.get("/api/v1/curves/locations").json()["data"]
    assert locations == [{"market": "CAISO", "location": "SP15"}]

    definitions = client.get("/api/v1/curves/definitions").json()
    assert definitions["pagination"]["total_count"] == 1
    assert definitions["data"][0]["bestInstance"]["instanceId"] == newest_id

    instances = client.get(f"/api/v1/curves/definitions/{definition_id}/instances").json()["data"]
    assert [row["instanceId"] for row in instances][0] == newest_id
    assert instances[0]["isCurrentVintage"] is True
    assert instances[1]["isCurrentVintage"] is False

    wide = client.get("/api/v1/curves/data", params={"instance_ids": [newest_id], "layout": "wide"}).json()
    assert [row["valueP50"] for row in wide["data"]] == [11.0, 21.0, 31.0]

    annual = client.get(
        "/api/v1/curves/aggregate",
        params={"instance_ids": [newest_id], "period": "annual"},
    ).json()["data"]
    assert annual["points"][0]["average"] == pytest.approx(21.0)
    assert annual["points"][0]["count"] == 3
    assert annual["overview"][0]["overallAverage"] == pytest.approx(21.0)

    summary = client.get("/api/v1/curves/summary", params={"instance_id": newest_id}).json()["data"]
    assert summary["kind"] == "real"
    assert summary["pointCount"] == 3

    freshness = client.get(
        f"/api/v1/curves/definitions/{definition_id}/freshness",
        params={"as_of": "2025-02-10"},
    ).json()["data"]
    assert freshness["status"] == "FRESH"
    assert freshness["nextExpectedDate"] == "2025-03-01"
    assert freshness["currentStreak"] == 2
    assert freshness["health"]["label"] == "Healthy"


def test_upload_errors_are_reported_per_row(client: TestClient) -> None:
    body = _upload_body("2025-01-01", "P50", [10.0, -5.0, 5000.0])
    body["pricePoints"].append({"flow_date_start": "2025-13-01", "value": 1})

    response = client.post("/api/v1/curves/upload", json=body)

    assert response.status_code == 422
    payload = response.json()
    assert payload["error_code"] == "UPLOAD_VALIDATION_FAILED"
    assert [item["row"] for item in payload["details"]] == [2, 3, 4]
    assert client.get("/api/v1/curves/locations").json()["data"] == []


def test_upload_accepts_csv_price_points(client: TestClient) -> None:
    body = _upload_body("2025-01-01", "P50", [])
    body.pop("pricePoints")
    body["pricePointsCsv"] = "Date,Value\n2025-01-01,10\n2025-02-01,12\n"

    response = client.post("/api/v1/curves/upload", json=body)

    assert response.status_code == 201
    assert response.json()["data"]["rowsWritten"] == 2


def test_upload_to_unknown_definition_is_404(client: TestClient) -> None:
    response = client.post("/api/v1/curves/upload", json=_upload_body("2025-01-01", "P50", [1.0], definition_id=77))

    assert response.status_code == 404
    assert response.json()["error_code"] == "DEFINITION_NOT_FOUND"


def test_overlay_export_and_lifecycle(client: TestClient) -> None:
    primary_id = client.post(
        "/api/v1/curves/upload", json=_upload_body("2025-01-01", "P50", [10.0, 20.0])
    ).json()["data"]["instanceId"]
    overlay_id = client.post(
        "/api/v1/curves/upload",
        json=_upload_body("2025-01-01", "Base", [12.0, 22.0], location="NP15", curve_name="NP15 Revenue"),
    ).json()["data"]["instanceId"]

    overlay = client.post(
        "/api/v1/curves/overlay",
        json={"primaryInstanceId": primary_id, "overlayInstanceIds": [overlay_id]},
    ).json()
    roles = {item["key"]: item["role"] for item in overlay["data"]["series"]}
    assert roles == {str(primary_id): "median", str(overlay_id): "overlay"}
    colors = overlay["data"]["colorAssignments"]
    assert colors[str(primary_id)] != colors[str(overlay_id)]

    export = client.get("/api/v1/curves/export.csv", params={"instance_ids": [primary_id, overlay_id]})
    header = export.text.splitlines()[0]
    assert header == "Date,SP15 Revenue | 2025-01-01 P50 | P50,NP15 Revenue | 2025-01-01 Base | Base"

    batch = client.get("/api/v1/curves/export-batch.csv", params={"instance_ids": [primary_id]})
    assert batch.text.splitlines()[0].startswith("Curve Name,Location,Market")
    assert len(batch.text.strip().splitlines()) == 3

    points = client.get("/api/v1/curves/data", params={"instance_ids": [primary_id]}).json()["data"]
    edited = client.patch(f"/api/v1/curves/points/{points[0]['pointId']}", json={"value": 15.0})
    assert edited.status_code == 200
    refreshed = client.get("/api/v1/curves/data", params={"instance_ids": [primary_id]}).json()["data"]
    assert refreshed[0]["value"] == 15.0

    rejected = client.patch(f"/api/v1/curves/points/{points[0]['pointId']}", json={"value": -99999.0})
    assert rejected.status_code == 422
    assert rejected.json()["error_code"] == "INVALID_POINT_VALUE"
    unchanged = client.get("/api/v1/curves/data", params={"instance_ids": [primary_id]}).json()["data"]
    assert unchanged[0]["value"] == 15.0

    archived = client.post(f"/api/v1/curves/instances/{primary_id}/status", json={"status": "ARCHIVED"})
    assert archived.json()["data"]["status"] == "ARCHIVED"
    revived = client.post(f"/api/v1/curves/instances/{primary_id}/status", json={"status": "ACTIVE"})
    assert revived.status_code == 409


def _labelled_rows(commodity: str, p5: float, p50: float, p95: float) -> list[dict[str, Any]]:
    return [
        {
            "timestamp": "2025-01-01",
            "curveType": "Revenue",
            "commodity": commodity,
            "scenario": scenario,
            "value": value,
        }
        for scenario, value in (("P5", p5), ("P50", p50), ("P95", p95))
    ]


def test_declared_instance_flow_supports_bands_and_commodities(client: TestClient) -> None:
    definition_id = client.post(
        "/api/v1/curves/upload", json=_upload_body("2024-12-01", "P50", [1.0])
    ).json()["data"]["definitionId"]

    created = client.post(
        "/api/v1/curves/instances",
        json={
            "definitionId": definition_id,
            "instanceVersion": "2025-Q1",
            "createdBy": "GridStor Forecasting",
            "curveTypes": ["Revenue"],
            "commodities": ["EA Revenue", "Total Revenue"],
            "scenarios": ["P5", "P50", "P95"],
        },
    )
    assert created.status_code == 201
    draft = created.json()["data"]
    assert draft["status"] == "DRAFT"
    instance_id = draft["instanceId"]

    duplicate = client.post(
        "/api/v1/curves/instances", json={"definitionId": definition_id, "instanceVersion": "2025-Q1"}
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["error_code"] == "INSTANCE_VERSION_EXISTS"

    rejected = client.post(
        f"/api/v1/curves/instances/{instance_id}/data",
        json={"rows": _labelled_rows("AS Revenue", 1.0, 2.0, 3.0)},
    )
    assert rejected.status_code == 422
    assert rejected.json()["error_code"] == "UPLOAD_VALIDATION_FAILED"
    assert {item["field"] for item in rejected.json()["details"]} == {"commodity"}

    stored = client.post(
        f"/api/v1/curves/instances/{instance_id}/data",
        json={
            "rows": _labelled_rows("EA Revenue", 5.0, 10.0, 15.0)
            + _labelled_rows("Total Revenue", 50.0, 100.0, 150.0)
        },
    )
    assert stored.status_code == 200
    result = stored.json()["data"]
    assert result["rowsWritten"] == 6
    assert result["instance"]["status"] == "ACTIVE"
    assert result["instance"]["priorityScore"] == 4

    overlay = client.post("/api/v1/curves/overlay", json={"primaryInstanceId": instance_id}).json()["data"]
    assert overlay["commodity"] == "Total Revenue"
    by_role = {(item["role"], item["bound"]): item["points"][0]["value"] for item in overlay["series"]}
    assert by_role == {
        ("median", None): 100.0,
        ("band_p5_p95", "lower"): 50.0,
        ("band_p5_p95", "upper"): 150.0,
    }

    summary = client.get("/api/v1/curves/summary", params={"instance_id": instance_id}).json()["data"]
    assert summary["energyArbitrage"] == 10.0
    assert summary["total"] == 100.0
    assert (summary["p5"], summary["p50"], summary["p95"]) == (50.0, 100.0, 150.0)

    missing = client.post("/api/v1/curves/instances/999/data", json={"rows": _labelled_rows("EA Revenue", 1, 2, 3)})
    assert missing.status_code == 404
