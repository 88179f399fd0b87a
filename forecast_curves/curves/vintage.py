# This module tags instances that belong to the current forecast vintage.
# A vintage is the cohort created within a tolerance window of the newest instance; it is independent of cadence freshness.
# Tagging is per (market, location) so one stale location does not hide another's current cohort.

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from forecast_curves.curves.models import CurveDefinition, CurveInstance

DEFAULT_TOLERANCE_DAYS = 30


@dataclass(frozen=True)
class VintageTag:
    instance: CurveInstance
    is_current_vintage: bool
    age_days: int


def current_vintage(instances: Sequence[CurveInstance]) -> datetime | None:
    """Newest `created_at` among the instances, or None when there are none."""

    if not instances:
        return None
    return max(item.created_at for item in instances)


def tag_current_vintage(
    instances: Sequence[CurveInstance],
    *,
    tolerance_days: int = DEFAULT_TOLERANCE_DAYS,
) -> list[VintageTag]:
    newest = current_vintage(instances)
    if newest is None:
        return []
    window = timedelta(days=tolerance_days)
    return [
        VintageTag(
            instance=item,
            is_current_vintage=newest - item.created_at <= window,
            age_days=(newest - item.created_at).days,
        )
        for item in instances
    ]


def tag_vintages_by_location(
    definitions: Sequence[CurveDefinition],
    instances: Sequence[CurveInstance],
    *,
    tolerance_days: int = DEFAULT_TOLERANCE_DAYS,
) -> dict[int, VintageTag]:
    """Vintage tags keyed by instance id, with the cohort rule applied per market and location."""

    location_by_definition = {item.definition_id: (item.market, item.location) for item in definitions}
    grouped: dict[tuple[str, str], list[CurveInstance]] = defaultdict(list)
    for instance in instances:
        location = location_by_definition.get(instance.definition_id)
        if location is None:
            continue
        grouped[location].append(instance)

    tags: dict[int, VintageTag] = {}
    for members in grouped.values():
        for tag in tag_current_vintage(members, tolerance_days=tolerance_days):
            tags[tag.instance.instance_id] = tag
    return tags
