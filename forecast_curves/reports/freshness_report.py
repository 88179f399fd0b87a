"""
Freshness and health report across every active curve definition.
Writes one CSV row per definition and prints a label summary, so stale curves can be chased in one pass.
"""

from __future__ import annotations

import argparse
import json
import logging
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from forecast_curves.common.db import build_engine
from forecast_curves.common.logging import configure_logging
from forecast_curves.common.settings import get_settings
from forecast_curves.curves.curve_config import CurveConfig, load_curve_config
from forecast_curves.curves.freshness import compute_freshness, current_streak_length
from forecast_curves.curves.health import compute_health_score
from forecast_curves.storage.repository import CurveRepository

LOGGER = logging.getLogger("curves")

REPORT_COLUMNS = [
    "definition_id",
    "curve_name",
    "market",
    "location",
    "update_frequency",
    "status",
    "last_received_date",
    "next_expected_date",
    "days_overdue",
    "current_streak",
    "freshness_score",
    "compliance_score",
    "total_score",
    "label",
]


def build_freshness_report(repository: CurveRepository, curve_config: CurveConfig, as_of: date) -> pd.DataFrame:
    rows: list[dict[str, Any]] = []
    for definition in repository.list_definitions():
        state = compute_freshness(
            repository.mark_dates(definition.definition_id),
            definition.update_frequency,
            as_of,
            grace_days=curve_config.streak_grace_days,
        )
        health = compute_health_score(state, as_of=as_of)
        rows.append(
            {
                "definition_id": definition.definition_id,
                "curve_name": definition.curve_name,
                "market": definition.market,
                "location": definition.location,
                "update_frequency": definition.update_frequency.value if definition.update_frequency else None,
                "status": state.status.value,
                "last_received_date": state.last_received_date,
                "next_expected_date": state.next_expected_date,
                "days_overdue": state.days_overdue(as_of),
                "current_streak": current_streak_length(state.streak),
                "freshness_score": health.freshness_score,
                "compliance_score": health.compliance_score,
                "total_score": health.total_score,
                "label": health.label,
            }
        )
    frame = pd.DataFrame(rows, columns=REPORT_COLUMNS)
    return frame.sort_values(["total_score", "definition_id"], ascending=[True, True], ignore_index=True)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Report update freshness and health for all curve definitions")
    parser.add_argument("--as-of", default=None, help="YYYY-MM-DD; defaults to today in UTC.")
    parser.add_argument("--output-dir", default="reports/curves")
    parser.add_argument("--curves-config", default=None)
    return parser.parse_args()


def main() -> None:
    configure_logging()
    args = parse_args()
    as_of = date.fromisoformat(args.as_of) if args.as_of else datetime.now(tz=UTC).date()
    curve_config = load_curve_config(args.curves_config)
    repository = CurveRepository(
        build_engine(get_settings().DATABASE_URL),
        trusted_marker=curve_config.trusted_creator_marker,
    )

    report = build_freshness_report(repository, curve_config, as_of)
    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / f"freshness_{as_of.isoformat()}.csv"
    report.to_csv(output_path, index=False)
    LOGGER.info("Wrote freshness report for %s definitions to %s", len(report), output_path)

    summary = {
        "as_of": as_of.isoformat(),
        "definitions": int(len(report)),
        "labels": {str(label): int(count) for label, count in report["label"].value_counts().items()},
        "output_path": str(output_path),
    }
    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
