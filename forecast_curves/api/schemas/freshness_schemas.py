# This file defines the freshness, streak, and health score contract for one curve definition.

from __future__ import annotations

from datetime import date

from forecast_curves.api.schemas.common import CamelModel, EnvelopeFields


class StreakEntryV1(CamelModel):
    mark_date: date
    on_time: bool
    expected_date: date | None = None
    days_late: int = 0
    missed_slots: int = 0


class HealthScoreV1(CamelModel):
    freshness_score: int
    compliance_score: int
    quality_score: int
    total_score: int
    label: str


class FreshnessV1(CamelModel):
    definition_id: int
    update_frequency: str | None = None
    as_of: date
    status: str
    last_received_date: date | None = None
    next_expected_date: date | None = None
    is_currently_fresh: bool | None = None
    current_streak: int
    streak: list[StreakEntryV1]
    health: HealthScoreV1


class FreshnessResponseV1(EnvelopeFields):
    data: FreshnessV1
