# This module condenses freshness and delivery history into one 0-100 health score.
# Weights are fixed: freshness 40%, schedule compliance 40%, data quality 20%.
# Labels follow the same thresholds the catalog badges use.

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any

from forecast_curves.curves.freshness import FreshnessState, FreshnessStatus, StreakEntry, as_date

FRESHNESS_WEIGHT = 0.4
COMPLIANCE_WEIGHT = 0.4
QUALITY_WEIGHT = 0.2
DEFAULT_QUALITY_SCORE = 100
OVERDUE_PENALTY_PER_DAY = 10

HEALTH_LABELS: tuple[tuple[int, str], ...] = (
    (80, "Healthy"),
    (60, "Warning"),
    (40, "At Risk"),
)
LOWEST_HEALTH_LABEL = "Critical"


@dataclass(frozen=True)
class HealthScore:
    freshness_score: int
    compliance_score: int
    quality_score: int
    total_score: int
    label: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "freshness_score": self.freshness_score,
            "compliance_score": self.compliance_score,
            "quality_score": self.quality_score,
            "total_score": self.total_score,
            "label": self.label,
        }


def health_label(score: int) -> str:
    for threshold, label in HEALTH_LABELS:
        if score >= threshold:
            return label
    return LOWEST_HEALTH_LABEL


def freshness_score(freshness: FreshnessState, as_of: date) -> int:
    if freshness.status is FreshnessStatus.UNKNOWN:
        return 0
    if freshness.status is FreshnessStatus.FRESH:
        return 100
    return max(0, 100 - freshness.days_overdue(as_of) * OVERDUE_PENALTY_PER_DAY)


def _lateness_score(days_late: int) -> int:
    if days_late <= 0:
        return 100
    if days_late <= 1:
        return 90
    if days_late <= 2:
        return 75
    if days_late <= 5:
        return 50
    return 25


def compliance_score(streak_history: Sequence[StreakEntry]) -> int:
    """Mean score over expected/actual pairs; each skipped slot counts as a missing delivery."""

    scores: list[int] = []
    for entry in streak_history:
        if entry.expected_date is None:
            continue
        scores.append(_lateness_score(entry.days_late))
        scores.extend([0] * entry.missed_slots)
    if not scores:
        return 0
    return int(round(sum(scores) / len(scores)))


def compute_health_score(
    freshness: FreshnessState,
    streak_history: Sequence[StreakEntry] | None = None,
    *,
    as_of: Any,
    quality_score: int | None = None,
) -> HealthScore:
    cutoff = as_date(as_of)
    history = freshness.streak if streak_history is None else streak_history
    fresh = freshness_score(freshness, cutoff)
    compliance = compliance_score(history)
    quality = DEFAULT_QUALITY_SCORE if quality_score is None else int(quality_score)
    if not 0 <= quality <= 100:
        raise ValueError("quality_score must be between 0 and 100")

    total = int(round(fresh * FRESHNESS_WEIGHT + compliance * COMPLIANCE_WEIGHT + quality * QUALITY_WEIGHT))
    return HealthScore(
        freshness_score=fresh,
        compliance_score=compliance,
        quality_score=quality,
        total_score=total,
        label=health_label(total),
    )
