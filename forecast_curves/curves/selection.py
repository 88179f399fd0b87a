# This module picks the instance shown by default for a curve definition.
# It ranks instances by provenance and percentile completeness, then by recency, and never touches storage.
# Callers persist the chosen instance as UI state; nothing here mutates instance records.

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from forecast_curves.curves.models import CurveInstance, InstanceStatus
from forecast_curves.curves.taxonomy import ProvenanceTier, has_full_percentile_set

LOGGER = logging.getLogger("curves")

SCORE_TRUSTED_WITH_PERCENTILES = 4
SCORE_PERCENTILES_ONLY = 3
SCORE_TRUSTED_ONLY = 2
SCORE_FALLBACK = 1


@dataclass(frozen=True)
class RankedInstance:
    instance: CurveInstance
    score: int
    rank: int


def score_instance(instance: CurveInstance) -> int:
    trusted = instance.provenance_tier is ProvenanceTier.TRUSTED
    full_set = has_full_percentile_set(instance.scenarios)
    if trusted and full_set:
        return SCORE_TRUSTED_WITH_PERCENTILES
    if full_set:
        return SCORE_PERCENTILES_ONLY
    if trusted:
        return SCORE_TRUSTED_ONLY
    return SCORE_FALLBACK


def _sort_key(instance: CurveInstance) -> tuple[int, float, int]:
    return (score_instance(instance), instance.created_at.timestamp(), instance.instance_id)


def rank_instances(instances: Sequence[CurveInstance]) -> list[RankedInstance]:
    """Order ACTIVE instances best-first: score, then newest `created_at`, then highest id."""

    eligible = [item for item in instances if item.status is InstanceStatus.ACTIVE]
    skipped = len(instances) - len(eligible)
    if skipped:
        LOGGER.debug("Ignoring %s non-active instances during ranking", skipped)

    ordered = sorted(eligible, key=_sort_key, reverse=True)
    return [
        RankedInstance(instance=instance, score=score_instance(instance), rank=position)
        for position, instance in enumerate(ordered, start=1)
    ]


def select_best_instance(instances: Sequence[CurveInstance]) -> CurveInstance | None:
    ranked = rank_instances(instances)
    if not ranked:
        return None
    return ranked[0].instance
