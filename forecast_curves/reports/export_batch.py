"""
Batch CSV export of curve instances from the command line.
Produces the same file as the `export-batch.csv` endpoint, for scheduled drops to shared folders.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

import pandas as pd

from forecast_curves.common.db import build_engine
from forecast_curves.common.logging import configure_logging
from forecast_curves.common.settings import get_settings
from forecast_curves.curves.curve_config import load_curve_config
from forecast_curves.curves.export import batch_filename, render_batch_csv
from forecast_curves.storage.repository import CurveRepository

LOGGER = logging.getLogger("curves")


def export_batch(repository: CurveRepository, instance_ids: list[int], output_dir: Path, as_of: pd.Timestamp) -> Path:
    contexts = repository.export_contexts(instance_ids)
    missing = [item for item in instance_ids if item not in contexts]
    if missing:
        raise LookupError(f"Curve instances not found: {missing}")

    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / batch_filename(instance_ids, as_of)
    output_path.write_text(render_batch_csv(repository.fetch_data(instance_ids), contexts), encoding="utf-8")
    LOGGER.info("Exported %s instances to %s", len(instance_ids), output_path)
    return output_path


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Export curve instances to one batch CSV")
    parser.add_argument("--instance-ids", required=True, help="Comma-separated curve instance ids.")
    parser.add_argument("--output-dir", default="reports/curves/exports")
    return parser.parse_args()


def main() -> None:
    configure_logging()
    args = parse_args()
    instance_ids = list(dict.fromkeys(int(item) for item in args.instance_ids.split(",") if item.strip()))
    repository = CurveRepository(
        build_engine(get_settings().DATABASE_URL),
        trusted_marker=load_curve_config().trusted_creator_marker,
    )
    output_path = export_batch(repository, instance_ids, Path(args.output_dir), pd.Timestamp.now(tz="UTC"))
    print(json.dumps({"instances": instance_ids, "output_path": str(output_path)}, indent=2))


if __name__ == "__main__":
    main()
