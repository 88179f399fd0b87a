"""
Cadence-based freshness and on-time streaks for curve definitions.

A mark is one recorded update (the creation date of an instance). Freshness compares
the newest mark plus one cadence step against an explicit `as_of` date; streaks walk
the marks in order against the expected schedule.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

import pandas as pd

from forecast_curves.curves.models import UpdateFrequency

LOGGER = logging.getLogger("curves")


class FreshnessStatus(str, Enum):
    FRESH = "FRESH"
    STALE = "STALE"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class StreakEntry:
    mark_date: date
    on_time: bool
    expected_date: date | None = None
    days_late: int = 0
    missed_slots: int = 0


@dataclass(frozen=True)
class FreshnessState:
    status: FreshnessStatus
    last_received_date: date | None
    next_expected_date: date | None
    is_currently_fresh: bool | None
    streak: tuple[StreakEntry, ...] = field(default_factory=tuple)

    def days_overdue(self, as_of: date) -> int:
        if self.next_expected_date is None:
            return 0
        return max((as_of - self.next_expected_date).days, 0)


def as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return pd.Timestamp(value).date()


def parse_frequency(frequency: UpdateFrequency | str | None) -> UpdateFrequency | None:
    if frequency is None or frequency == "":
        return None
    if isinstance(frequency, UpdateFrequency):
        return frequency
    return UpdateFrequency(str(frequency).strip().upper())


def next_expected_date(last_received: Any, frequency: UpdateFrequency | str) -> date:
    """Last mark plus one cadence step; monthly steps follow the calendar (Jan 31 -> Feb 28)."""

    cadence = parse_frequency(frequency)
    start = as_date(last_received)
    if cadence is UpdateFrequency.DAILY:
        return start + timedelta(days=1)
    if cadence is UpdateFrequency.WEEKLY:
        return start + timedelta(weeks=1)
    if cadence is UpdateFrequency.MONTHLY:
        return (pd.Timestamp(start) + pd.DateOffset(months=1)).date()
    raise ValueError(f"Unsupported update frequency: {frequency!r}")


def _sorted_marks(mark_dates: Iterable[Any], as_of: date) -> list[date]:
    marks = sorted({as_date(item) for item in mark_dates})
    future = [item for item in marks if item > as_of]
    if future:
        LOGGER.warning("Ignoring %s marks dated after as_of=%s", len(future), as_of.isoformat())
    return [item for item in marks if item <= as_of]


def compute_streak(
    mark_dates: Iterable[Any],
    frequency: UpdateFrequency | str | None,
    as_of: Any,
    *,
    grace_days: int = 0,
) -> list[StreakEntry]:
    """Match marks against the expected schedule in chronological order; newest entry first."""

    cadence = parse_frequency(frequency)
    cutoff = as_date(as_of)
    marks = _sorted_marks(mark_dates, cutoff)
    if cadence is None or not marks:
        return []

    grace = timedelta(days=grace_days)
    slot = marks[0]
    entries: list[StreakEntry] = []
    for mark in marks:
        if mark < slot:
            entries.append(StreakEntry(mark_date=mark, on_time=False))
            continue
        if mark <= slot + grace:
            entries.append(StreakEntry(mark_date=mark, on_time=True, expected_date=slot))
            slot = next_expected_date(slot, cadence)
            continue

        missed = 0
        following = next_expected_date(slot, cadence)
        while following + grace < mark:
            missed += 1
            following = next_expected_date(following, cadence)
        entries.append(
            StreakEntry(
                mark_date=mark,
                on_time=False,
                expected_date=slot,
                days_late=(mark - slot).days,
                missed_slots=missed,
            )
        )
        slot = next_expected_date(mark, cadence)

    entries.reverse()
    return entries


def current_streak_length(streak: list[StreakEntry] | tuple[StreakEntry, ...]) -> int:
    """Consecutive on-time marks counting back from the newest."""

    length = 0
    for entry in streak:
        if not entry.on_time:
            break
        length += 1
    return length


def compute_freshness(
    mark_dates: Iterable[Any],
    frequency: UpdateFrequency | str | None,
    as_of: Any,
    *,
    grace_days: int = 0,
) -> FreshnessState:
    cadence = parse_frequency(frequency)
    cutoff = as_date(as_of)
    marks = _sorted_marks(mark_dates, cutoff)
    last_received = marks[-1] if marks else None

    if cadence is None or last_received is None:
        return FreshnessState(
            status=FreshnessStatus.UNKNOWN,
            last_received_date=last_received,
            next_expected_date=None,
            is_currently_fresh=None,
        )

    expected = next_expected_date(last_received, cadence)
    fresh = cutoff <= expected
    return FreshnessState(
        status=FreshnessStatus.FRESH if fresh else FreshnessStatus.STALE,
        last_received_date=last_received,
        next_expected_date=expected,
        is_currently_fresh=fresh,
        streak=tuple(compute_streak(marks, cadence, cutoff, grace_days=grace_days)),
    )
