# This file tests row-level upload validation and the CSV price point reader.

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

from forecast_curves.curves.models import InstanceStatus
from forecast_curves.ingestion.upload_checks import (
    UploadValidationError,
    price_points_from_csv,
    validate_instance_rows,
    validate_upload,
)
from tests.factories import make_instance


def _details(**overrides: Any) -> dict[str, Any]:
    details = {
        "market": "CAISO",
        "location": "SP15",
        "mark_type": "Revenue",
        "mark_case": "P50",
        "mark_date": "2025-03-01",
        "value_type": "Total Revenue",
        "curve_creator": "GridStor Forecasting",
        "granularity": "MONTHLY",
    }
    details.update(overrides)
    return details


def _validate(payload: Any):
    return validate_upload(payload, min_value=-1000.0, max_value=10000.0)


def test_clean_upload_is_sorted_and_defaulted() -> None:
    upload = _validate(
        {
            "curveDetails": _details(),
            "pricePoints": [
                {"flow_date_start": "2025-02-01", "value": "12.5"},
                {"flow_date_start": "2025-01-01", "value": 10},
            ],
        }
    )

    assert [point.timestamp for point in upload.points] == [
        datetime(2025, 1, 1, tzinfo=UTC),
        datetime(2025, 2, 1, tzinfo=UTC),
    ]
    assert [point.value for point in upload.points] == [10.0, 12.5]
    assert upload.details.units == "USD/MWh"
    assert upload.details.status == InstanceStatus.ACTIVE
    assert upload.details.resolved_instance_version() == "2025-03-01 P50"


def test_every_bad_row_is_reported_together() -> None:
    with pytest.raises(UploadValidationError) as excinfo:
        _validate(
            {
                "curveDetails": _details(),
                "pricePoints": [
                    {"flow_date_start": "2025-01-01", "value": 10},
                    {"flow_date_start": "01/02/2025", "value": 11},
                    {"flow_date_start": "2025-03-01", "value": "abc"},
                    {"flow_date_start": "2025-04-01", "value": 99999},
                    {"flow_date_start": "2025-01-01", "value": 12},
                ],
            }
        )

    details = excinfo.value.to_details()
    assert [(item["row"], item["field"]) for item in details] == [
        (2, "flow_date_start"),
        (3, "value"),
        (4, "value"),
        (5, "flow_date_start"),
    ]
    assert "first seen on row 1" in details[-1]["message"]


def test_missing_details_and_points_are_both_reported() -> None:
    with pytest.raises(UploadValidationError) as excinfo:
        _validate({"curveDetails": _details(market="", mark_date="March"), "pricePoints": []})

    fields = {item["field"] for item in excinfo.value.to_details()}
    assert "curveDetails.market" in fields
    assert "curveDetails.mark_date" in fields
    assert "pricePoints" in fields


def test_non_object_payload_is_rejected() -> None:
    with pytest.raises(UploadValidationError) as excinfo:
        _validate(["not", "an", "object"])

    assert excinfo.value.to_details()[0]["field"] == "payload"


def test_boolean_values_are_not_numbers() -> None:
    with pytest.raises(UploadValidationError) as excinfo:
        _validate({"curveDetails": _details(), "pricePoints": [{"flow_date_start": "2025-01-01", "value": True}]})

    assert excinfo.value.to_details() == [{"row": 1, "field": "value", "message": "value must be a number"}]


def test_csv_price_points_are_read_by_header() -> None:
    rows = price_points_from_csv("Date, Value\n2025-01-01, 10.5\n2025-02-01,11\n")

    assert rows == [
        {"flow_date_start": "2025-01-01", "value": "10.5"},
        {"flow_date_start": "2025-02-01", "value": "11"},
    ]


def test_csv_without_known_columns_is_rejected() -> None:
    with pytest.raises(UploadValidationError) as excinfo:
        price_points_from_csv("when,amount\n2025-01-01,1\n")

    assert excinfo.value.to_details()[0]["field"] == "csv"


def _row(timestamp: str, scenario: str, value: Any, **overrides: Any) -> dict[str, Any]:
    row = {"timestamp": timestamp, "curveType": "Revenue", "commodity": "Total Revenue", "scenario": scenario}
    row["value"] = value
    row.update(overrides)
    return row


def test_labelled_rows_carry_every_declared_scenario() -> None:
    instance = make_instance(7, status=InstanceStatus.DRAFT, scenarios=("P5", "P50", "P95"))

    rows = validate_instance_rows(
        {
            "rows": [
                _row("2025-01-01", "P95", 30),
                _row("2025-01-01", "P5", "10"),
                _row("2025-01-01T00:00:00Z", "P50", 20.0, units="$/kW-mn"),
                _row("2025-02-01", "P50", ""),
            ]
        },
        instance,
        min_value=0.0,
        max_value=1000.0,
        default_units="USD/MWh",
    )

    assert [item["scenario"] for item in rows.records] == ["P5", "P50", "P95"]
    assert {item["timestamp"] for item in rows.records} == {datetime(2025, 1, 1, tzinfo=UTC)}
    assert [item["units"] for item in rows.records] == ["USD/MWh", "$/kW-mn", "USD/MWh"]
    assert rows.skipped == 1


def test_labelled_rows_report_every_problem_together() -> None:
    instance = make_instance(7, status=InstanceStatus.DRAFT, scenarios=("P50",))

    with pytest.raises(UploadValidationError) as excinfo:
        validate_instance_rows(
            {
                "rows": [
                    _row("2025-01-01", "P95", 1.0),
                    _row("01/02/2025", "P50", 1.0),
                    _row("2025-03-01", "P50", 5000.0),
                    _row("2025-04-01", "P50", 1.0, commodity="EA Revenue"),
                    _row("2025-05-01", "P50", 1.0, curveType=""),
                    _row("2025-06-01", "P50", 1.0),
                    _row("2025-06-01", "P50", 2.0),
                ]
            },
            instance,
            min_value=0.0,
            max_value=1000.0,
        )

    by_row = {(item.row, item.field) for item in excinfo.value.errors}
    assert by_row == {
        (1, "scenario"),
        (2, "timestamp"),
        (3, "value"),
        (4, "commodity"),
        (5, "curveType"),
        (7, "timestamp"),
    }


def test_rows_with_only_blank_values_are_rejected() -> None:
    instance = make_instance(7, status=InstanceStatus.DRAFT)

    with pytest.raises(UploadValidationError) as excinfo:
        validate_instance_rows({"rows": [_row("2025-01-01", "P50", None)]}, instance, min_value=0.0, max_value=10.0)

    assert excinfo.value.errors[0].field == "rows"
