"""
Canonical tags resolved once when records enter the system.

Provenance and commodity labels arrive as free text ("GridStor Forecasting", "EA Revenue").
Scoring and metric code compare enum members instead of repeating substring tests.
"""

from __future__ import annotations

import re
from enum import Enum

_PERCENTILE_RE = re.compile(r"^P0*(\d{1,2})$")
_TOKEN_RE = re.compile(r"[a-z0-9]+")

PERCENTILE_LABELS: tuple[str, ...] = ("P5", "P25", "P50", "P75", "P95")
BASE_SCENARIO = "Base"


class ProvenanceTier(str, Enum):
    TRUSTED = "trusted"
    EXTERNAL = "external"
    UNKNOWN = "unknown"


class CommodityKind(str, Enum):
    ENERGY_ARBITRAGE = "energy_arbitrage"
    ANCILLARY_SERVICES = "ancillary_services"
    CAPACITY = "capacity"
    TOTAL = "total"
    OTHER = "other"


def resolve_provenance_tier(created_by: str | None, *, trusted_marker: str) -> ProvenanceTier:
    """Case-insensitive substring match of the trusted marker against the creator label."""

    if created_by is None or not created_by.strip():
        return ProvenanceTier.UNKNOWN
    if trusted_marker.strip().lower() in created_by.lower():
        return ProvenanceTier.TRUSTED
    return ProvenanceTier.EXTERNAL


def resolve_commodity_kind(commodity: str | None) -> CommodityKind:
    if not commodity:
        return CommodityKind.OTHER
    tokens = set(_TOKEN_RE.findall(commodity.lower()))
    if "total" in tokens:
        return CommodityKind.TOTAL
    if tokens & {"ea", "energy", "arbitrage"}:
        return CommodityKind.ENERGY_ARBITRAGE
    if tokens & {"as", "ancillary"}:
        return CommodityKind.ANCILLARY_SERVICES
    if tokens & {"cap", "capacity"}:
        return CommodityKind.CAPACITY
    return CommodityKind.OTHER


def normalize_scenario(label: str | None) -> str | None:
    """Return the canonical percentile label (`P05` -> `P5`) or None for non-percentile labels."""

    if label is None:
        return None
    match = _PERCENTILE_RE.match(label.strip().upper())
    if match is None:
        return None
    canonical = f"P{int(match.group(1))}"
    return canonical if canonical in PERCENTILE_LABELS else None


def is_base_scenario(label: str | None) -> bool:
    return label is not None and label.strip().lower() == BASE_SCENARIO.lower()


def has_full_percentile_set(scenarios: list[str] | tuple[str, ...]) -> bool:
    """True when the P5 (or P05) and P95 extremes are present alongside P50."""

    normalized = {normalize_scenario(label) for label in scenarios}
    return {"P5", "P50", "P95"}.issubset(normalized)
