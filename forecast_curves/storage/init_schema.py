"""
Create the curve catalog tables.
Run once per database before starting the API: `python -m forecast_curves.storage.init_schema`.
"""

from __future__ import annotations

import argparse
import json
import logging

from forecast_curves.common.db import build_engine, tables_exist
from forecast_curves.common.logging import configure_logging
from forecast_curves.common.settings import get_settings
from forecast_curves.storage.tables import create_schema, metadata

LOGGER = logging.getLogger("storage")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create curve catalog tables if they are missing")
    parser.add_argument("--database-url", default=None, help="Overrides DATABASE_URL from the environment.")
    return parser.parse_args()


def main() -> None:
    configure_logging()
    args = parse_args()
    engine = build_engine(args.database_url or get_settings().DATABASE_URL)
    create_schema(engine)
    table_names = sorted(metadata.tables)
    LOGGER.info("Curve schema ensured for tables: %s", ", ".join(table_names))
    print(json.dumps({"tables": table_names, "ready": tables_exist(engine, table_names)}, indent=2))


if __name__ == "__main__":
    main()
