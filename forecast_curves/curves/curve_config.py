# This module defines the runtime configuration for the curve engines.
# It exists so the API, CLI reports, and tests share one set of defaults for selection, freshness, and upload bounds.
# The config is resolved from repo YAML defaults plus environment overrides to keep behavior reproducible.

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATH = "configs/curves.yaml"
DEFAULT_CHART_COMMODITY = "Total Revenue"

DEFAULT_PALETTE: tuple[str, ...] = (
    "#3B82F6",
    "#10B981",
    "#EF4444",
    "#8B5CF6",
    "#F59E0B",
    "#06B6D4",
    "#EC4899",
    "#6366F1",
    "#14B8A6",
    "#F97316",
)


def _load_yaml(path: str) -> dict[str, Any]:
    with open(path, encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config at {path} must be a mapping, got: {type(loaded).__name__}")
    return dict(loaded)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


@dataclass(frozen=True)
class CurveConfig:
    trusted_creator_marker: str = "gridstor"
    vintage_tolerance_days: int = 30
    streak_grace_days: int = 0
    upload_min_value: float = 0.0
    upload_max_value: float = 1000.0
    upload_date_format: str = "%Y-%m-%d"
    palette: tuple[str, ...] = field(default=DEFAULT_PALETTE)
    chart_commodity: str = DEFAULT_CHART_COMMODITY

    def __post_init__(self) -> None:
        if not self.trusted_creator_marker.strip():
            raise ValueError("trusted_creator_marker cannot be empty")
        if self.vintage_tolerance_days < 0:
            raise ValueError("vintage_tolerance_days must be >= 0")
        if self.streak_grace_days < 0:
            raise ValueError("streak_grace_days must be >= 0")
        if self.upload_min_value > self.upload_max_value:
            raise ValueError("upload_min_value must be <= upload_max_value")
        if not self.palette:
            raise ValueError("palette must contain at least one color")
        if not self.chart_commodity.strip():
            raise ValueError("chart_commodity cannot be empty")

    def to_dict(self) -> dict[str, Any]:
        return {
            "trusted_creator_marker": self.trusted_creator_marker,
            "vintage_tolerance_days": self.vintage_tolerance_days,
            "streak_grace_days": self.streak_grace_days,
            "upload_min_value": self.upload_min_value,
            "upload_max_value": self.upload_max_value,
            "upload_date_format": self.upload_date_format,
            "palette": list(self.palette),
            "chart_commodity": self.chart_commodity,
        }


def load_curve_config(path: str | None = None) -> CurveConfig:
    """Resolve engine config from YAML defaults plus `CURVES_*` environment overrides."""

    config_path = path or os.getenv("CURVES_CONFIG_PATH", DEFAULT_CONFIG_PATH)
    raw: dict[str, Any] = _load_yaml(config_path) if Path(config_path).exists() else {}

    selection = dict(raw.get("selection", {}))
    vintage = dict(raw.get("vintage", {}))
    freshness = dict(raw.get("freshness", {}))
    upload = dict(raw.get("upload", {}))
    overlay = dict(raw.get("overlay", {}))

    palette = tuple(str(color) for color in overlay.get("palette", DEFAULT_PALETTE))

    return CurveConfig(
        trusted_creator_marker=_env_str(
            "CURVES_TRUSTED_CREATOR_MARKER", str(selection.get("trusted_creator_marker", "gridstor"))
        ),
        vintage_tolerance_days=_env_int(
            "CURVES_VINTAGE_TOLERANCE_DAYS", int(vintage.get("tolerance_days", 30))
        ),
        streak_grace_days=_env_int(
            "CURVES_STREAK_GRACE_DAYS", int(freshness.get("streak_grace_days", 0))
        ),
        upload_min_value=_env_float("CURVES_UPLOAD_MIN_VALUE", float(upload.get("min_value", 0.0))),
        upload_max_value=_env_float("CURVES_UPLOAD_MAX_VALUE", float(upload.get("max_value", 1000.0))),
        upload_date_format=str(upload.get("date_format", "%Y-%m-%d")),
        palette=palette,
        chart_commodity=_env_str(
            "CURVES_CHART_COMMODITY", str(overlay.get("commodity", DEFAULT_CHART_COMMODITY))
        ),
    )
