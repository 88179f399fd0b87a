# This file tests the wide and batch CSV exports.

from __future__ import annotations

import io

import pandas as pd

from forecast_curves.curves.export import (
    BATCH_COLUMNS,
    ExportContext,
    batch_filename,
    build_batch_export,
    render_batch_csv,
    render_wide_csv,
)
from tests.factories import make_definition, make_instance, tall_points, utc


def _contexts() -> dict[int, ExportContext]:
    return {
        1: ExportContext(definition=make_definition(1, curve_name="SP15 Revenue"), instance=make_instance(1, version="Q1")),
        2: ExportContext(definition=make_definition(1, curve_name="SP15 Revenue"), instance=make_instance(2, version="Q2")),
    }


def test_wide_csv_has_one_column_per_curve_key_and_blank_gaps() -> None:
    points = pd.concat(
        [
            tall_points([(utc(2025, 1, 1), "P50", 10.0), (utc(2025, 2, 1), "P50", 11.0)], instance_id=1),
            tall_points([(utc(2025, 2, 1), "P50", 20.0)], instance_id=2),
        ],
        ignore_index=True,
    )

    csv_text = render_wide_csv(points, _contexts())

    lines = csv_text.strip().splitlines()
    assert lines[0] == "Date,SP15 Revenue | Q1 | P50,SP15 Revenue | Q2 | P50"
    assert lines[1] == "2025-01-01,10.0,"
    assert lines[2] == "2025-02-01,11.0,20.0"


def test_wide_csv_gives_each_commodity_its_own_column() -> None:
    points = pd.concat(
        [
            tall_points(
                [(utc(2025, 1, 1), "P50", 10.0, "EA Revenue"), (utc(2025, 1, 1), "P50", 100.0, "Total Revenue")],
                instance_id=1,
            ),
            tall_points([(utc(2025, 1, 1), "P50", 20.0)], instance_id=2),
        ],
        ignore_index=True,
    )

    lines = render_wide_csv(points, _contexts()).strip().splitlines()

    assert lines[0] == (
        "Date,SP15 Revenue | Q1 | EA Revenue | P50,SP15 Revenue | Q1 | Total Revenue | P50,SP15 Revenue | Q2 | P50"
    )
    assert lines[1] == "2025-01-01,10.0,100.0,20.0"


def test_wide_csv_keeps_intraday_timestamps() -> None:
    points = tall_points([(pd.Timestamp("2025-01-01T13:00:00Z"), "P50", 1.0)], instance_id=1)

    csv_text = render_wide_csv(points, _contexts())

    assert csv_text.splitlines()[1].startswith("2025-01-01T13:00:00Z")


def test_batch_csv_lists_every_point_with_context() -> None:
    points = tall_points([(utc(2025, 1, 1), "P5", 1.0), (utc(2025, 1, 1), "P95", 9.0)], instance_id=1)

    frame = pd.read_csv(io.StringIO(render_batch_csv(points, _contexts())))

    assert list(frame.columns) == BATCH_COLUMNS
    assert frame["Scenario"].tolist() == ["P5", "P95"]
    assert frame["Instance Version"].unique().tolist() == ["Q1"]
    assert frame["Curve Name"].unique().tolist() == ["SP15 Revenue"]
    assert frame["Timestamp"].iloc[0] == "2025-01-01T00:00:00+00:00"


def test_points_without_context_are_skipped() -> None:
    points = tall_points([(utc(2025, 1, 1), "P50", 1.0)], instance_id=42)

    frame = build_batch_export(points, _contexts())

    assert frame.empty
    assert list(frame.columns) == BATCH_COLUMNS


def test_batch_filename_counts_instances() -> None:
    assert batch_filename([1, 2, 3], pd.Timestamp("2025-03-04")) == "curves_batch_3_2025-03-04.csv"
