# This module converts curve data between the tall (row per scenario) and wide (row per timestamp) layouts.
# It exists so charts get P5..P95 columns while storage and exports keep the raw scenario rows.
# Missing percentiles stay null; labels outside the percentile set are dropped from the wide view only.

from __future__ import annotations

import logging

import pandas as pd

from forecast_curves.curves.models import (
    PERCENTILE_COLUMN_BY_LABEL,
    TALL_COLUMNS,
    WIDE_COLUMNS,
    WIDE_KEY_COLUMNS,
    empty_tall_frame,
    empty_wide_frame,
)
from forecast_curves.curves.taxonomy import normalize_scenario

LOGGER = logging.getLogger("curves")

_LABEL_BY_COLUMN = {column: label for label, column in PERCENTILE_COLUMN_BY_LABEL.items()}
_NULL_KEY = "\x00null"
_NULLABLE_KEYS = ["curve_type", "commodity"]


class PivotError(ValueError):
    def __init__(self, message: str, *, duplicate_keys: list[dict[str, object]] | None = None) -> None:
        super().__init__(message)
        self.duplicate_keys = duplicate_keys or []


def _missing_columns(frame: pd.DataFrame, required: list[str]) -> list[str]:
    return [column for column in required if column not in frame.columns]


def pivot_to_wide(tall: pd.DataFrame) -> pd.DataFrame:
    missing = _missing_columns(tall, TALL_COLUMNS)
    if missing:
        raise PivotError(f"tall frame missing columns: {missing}")
    if tall.empty:
        return empty_wide_frame()

    frame = tall.copy()
    frame["percentile"] = frame["scenario"].map(normalize_scenario)
    dropped = int(frame["percentile"].isna().sum())
    if dropped:
        LOGGER.debug("Dropping %s non-percentile rows from wide view", dropped)
    frame = frame.loc[frame["percentile"].notna()].copy()
    if frame.empty:
        return empty_wide_frame()

    # pivot/unstack cannot carry null index labels, so nullable keys get a sentinel for the reshape.
    for column in _NULLABLE_KEYS:
        frame[column] = frame[column].astype(object).where(frame[column].notna(), _NULL_KEY)

    dupes = frame.duplicated(subset=[*WIDE_KEY_COLUMNS, "percentile"], keep=False)
    if dupes.any():
        keys = (
            frame.loc[dupes, [*WIDE_KEY_COLUMNS, "percentile"]]
            .replace({_NULL_KEY: None})
            .drop_duplicates()
            .to_dict(orient="records")
        )
        raise PivotError(
            f"{len(keys)} (instance, timestamp, curve type, commodity, scenario) keys have more than one row",
            duplicate_keys=keys,
        )

    values = frame.pivot(index=WIDE_KEY_COLUMNS, columns="percentile", values="value")
    values = values.rename(columns=PERCENTILE_COLUMN_BY_LABEL)
    for column in PERCENTILE_COLUMN_BY_LABEL.values():
        if column not in values.columns:
            values[column] = float("nan")

    units = frame.groupby(WIDE_KEY_COLUMNS)["units"].first()

    wide = values.join(units).reset_index()
    wide.columns.name = None
    wide = wide[WIDE_COLUMNS].sort_values(WIDE_KEY_COLUMNS, kind="stable").reset_index(drop=True)
    for column in _NULLABLE_KEYS:
        wide[column] = wide[column].where(wide[column] != _NULL_KEY, None)
    for column in PERCENTILE_COLUMN_BY_LABEL.values():
        wide[column] = wide[column].astype(float)
    return wide


def unpivot_from_wide(wide: pd.DataFrame) -> pd.DataFrame:
    missing = _missing_columns(wide, WIDE_COLUMNS)
    if missing:
        raise PivotError(f"wide frame missing columns: {missing}")
    if wide.empty:
        return empty_tall_frame()

    tall = wide.melt(
        id_vars=[*WIDE_KEY_COLUMNS, "units"],
        value_vars=list(PERCENTILE_COLUMN_BY_LABEL.values()),
        var_name="percentile_column",
        value_name="value",
    )
    tall = tall.loc[tall["value"].notna()].copy()
    tall["scenario"] = tall["percentile_column"].map(_LABEL_BY_COLUMN)
    tall["value"] = tall["value"].astype(float)
    tall = tall[TALL_COLUMNS].reset_index(drop=True)
    return tall
