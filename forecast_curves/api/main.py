"""Uvicorn entrypoint: `python -m forecast_curves.api.main`."""

from __future__ import annotations

import uvicorn

from forecast_curves.api.api_config import get_api_config


def main() -> None:
    config = get_api_config()
    uvicorn.run("forecast_curves.api.app:app", host=config.host, port=config.port)


if __name__ == "__main__":
    main()
