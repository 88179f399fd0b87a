"""
Package marker for source code under `forecast_curves`.
It groups the curve engines, persistence, ingestion, and API modules under a stable import path.
Most functionality lives in the sibling packages; this file intentionally stays lightweight.
"""

__version__ = "0.1.0"
