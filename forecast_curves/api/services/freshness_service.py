# This file implements the freshness view for a curve definition.
# Marks are the creation dates of the definition's non-archived instances; cadence is its update frequency.

from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Any

from forecast_curves.api.api_config import ApiConfig
from forecast_curves.curves.curve_config import CurveConfig
from forecast_curves.curves.freshness import compute_freshness, current_streak_length
from forecast_curves.curves.health import compute_health_score
from forecast_curves.storage.repository import CurveRepository


class FreshnessService:
    """Cadence freshness, on-time streak, and health score per definition."""

    def __init__(self, *, config: ApiConfig, curve_config: CurveConfig, repository: CurveRepository) -> None:
        self.config = config
        self.curve_config = curve_config
        self.repository = repository

    def get_freshness(self, definition_id: int, *, as_of: date) -> dict[str, Any] | None:
        definition = self.repository.get_definition(definition_id)
        if definition is None:
            return None

        state = compute_freshness(
            self.repository.mark_dates(definition_id),
            definition.update_frequency,
            as_of,
            grace_days=self.curve_config.streak_grace_days,
        )
        health = compute_health_score(state, as_of=as_of)
        return {
            "definition_id": definition_id,
            "update_frequency": definition.update_frequency.value if definition.update_frequency else None,
            "as_of": as_of,
            "status": state.status.value,
            "last_received_date": state.last_received_date,
            "next_expected_date": state.next_expected_date,
            "is_currently_fresh": state.is_currently_fresh,
            "current_streak": current_streak_length(state.streak),
            "streak": [asdict(entry) for entry in state.streak],
            "health": health.to_dict(),
        }
