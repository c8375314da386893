from __future__ import annotations

import math

import pandas as pd


def safe_percentage(value: float, total: float) -> float:
    if not total:
        return 0
    return value / total * 100


def round_half_up(value: float, digits: int = 0) -> float | int:
    """Round halves towards positive infinity, so 2.5 -> 3 and -2.5 -> -2.

    Built-in ``round`` uses banker's rounding, which would shift shares and
    growth rates that sit exactly on a half.
    """
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return 0
    factor = 10 ** digits
    rounded = math.floor(value * factor + 0.5) / factor
    if digits == 0:
        return int(rounded)
    return rounded


def percent(value: float, total: float, digits: int = 0) -> float | int:
    return round_half_up(safe_percentage(value, total), digits)


def rank_counts(values: pd.Series, limit: int | None = None) -> pd.Series:
    """Count values and order by count descending, ties in first-seen order."""
    counts = tally(values).sort_values(ascending=False, kind="stable")
    if limit is not None:
        counts = counts.head(limit)
    return counts


def counts_to_rows(counts: pd.Series, key: str, total: int | None = None) -> list[dict]:
    rows = []
    for value, count in counts.items():
        row = {key: value, "count": int(count)}
        if total is not None:
            row["percentage"] = percent(count, total)
        rows.append(row)
    return rows


def tally(values: pd.Series) -> pd.Series:
    """Count values keeping first-seen order."""
    if values.empty:
        return pd.Series(dtype="int64")
    return values.groupby(values, sort=False).size()
