from __future__ import annotations

import calendar
import logging
from typing import Mapping

import pandas as pd

from workforce_intel.core.stats import rank_counts, round_half_up


logger = logging.getLogger(__name__)

EMERGING_SENTINEL = 999
UNKNOWN_AGENCY = "Unknown"
OTHER_CATEGORY = "Other"
VELOCITY_TRAILING_PERIODS = 3
VELOCITY_THRESHOLD = 10
TREND_LIST_LIMIT = 10

HIGH_SEASON_FACTOR = 1.2
LOW_SEASON_FACTOR = 0.8
RAMP_UP_FACTOR = 0.3
CONSISTENT_VARIATION = 0.2
VARIABLE_VARIATION = 0.5
NO_RAMP_UP = "Not detected"


def empty_seasonal_summary() -> dict:
    return {
        "high_season_months": [],
        "low_season_months": [],
        "typical_ramp_up_period": NO_RAMP_UP,
        "year_over_year_pattern": "consistent",
        "monthly_averages": {},
    }


def empty_momentum() -> dict:
    return {
        "current_velocity": 0,
        "previous_velocity": 0,
        "momentum": "steady",
        "momentum_index": 0,
    }


def empty_trends() -> dict:
    return {
        "agency_time_series": [],
        "category_time_series": [],
        "seasonal_patterns": [],
        "seasonal_summary": empty_seasonal_summary(),
        "emerging_categories": [],
        "declining_categories": [],
        "category_trends": [],
        "velocity_indicators": [],
    }


def classify_growth(growth_rate: float, threshold: int = 20) -> str:
    if growth_rate > threshold:
        return "Rising"
    if growth_rate < -threshold:
        return "Declining"
    return "Stable"


def growth_trends(
    first_counts: Mapping[str, int],
    last_counts: Mapping[str, int],
    key: str = "category",
    first_period=None,
    last_period=None,
    min_first: int = 5,
    min_emerging: int = 3,
    threshold: int = 20,
) -> list[dict]:
    """Compare the first populated period against the last one.

    Only names with at least ``min_first`` occurrences in the first period get
    a growth rate. Names missing from the first period but reaching
    ``min_emerging`` in the last are reported as Emerging with the 999
    sentinel instead of a percentage.
    """
    trends: list[dict] = []

    for name, first_count in first_counts.items():
        if first_count < min_first:
            continue
        last_count = int(last_counts.get(name, 0))
        growth_rate = round_half_up((last_count - first_count) / first_count * 100)
        trends.append(
            {
                key: name,
                "first_period": first_period,
                "last_period": last_period,
                "first_count": int(first_count),
                "last_count": last_count,
                "growth_rate": growth_rate,
                "total_positions": int(first_count) + last_count,
                "trend": classify_growth(growth_rate, threshold),
            }
        )

    for name, last_count in last_counts.items():
        if name in first_counts or last_count < min_emerging:
            continue
        trends.append(
            {
                key: name,
                "first_period": first_period,
                "last_period": last_period,
                "first_count": 0,
                "last_count": int(last_count),
                "growth_rate": EMERGING_SENTINEL,
                "total_positions": int(last_count),
                "trend": "Emerging",
            }
        )

    trends.sort(key=lambda row: abs(row["growth_rate"]), reverse=True)
    return trends


def restrict_to_window(
    records: pd.DataFrame,
    months_window: int | None,
    now: pd.Timestamp | None = None,
) -> pd.DataFrame:
    if not months_window:
        return records
    reference = pd.Timestamp.now() if now is None else pd.Timestamp(now)
    start = (reference.normalize() - pd.DateOffset(months=months_window)).replace(day=1)
    return records[records["posting_date"] >= start]


def _dated_frame(records: pd.DataFrame) -> pd.DataFrame:
    dated = records[records["posting_date"].notna()].copy()
    dated["period"] = dated["posting_date"].dt.strftime("%Y-%m")
    dated["agency_key"] = dated["agency"].where(dated["agency"] != "", UNKNOWN_AGENCY)
    dated["category_key"] = dated["primary_category"].where(dated["primary_category"] != "", OTHER_CATEGORY)
    return dated


def _time_series(dated: pd.DataFrame, column: str) -> list[dict]:
    rows = []
    for period, group in dated.groupby("period", sort=True):
        row = {"period": period}
        counts = group[column].groupby(group[column], sort=False).size()
        row.update({name: int(count) for name, count in counts.items()})
        row["total"] = len(group)
        rows.append(row)
    return rows


def _period_counts(dated: pd.DataFrame, column: str) -> pd.DataFrame:
    return dated.groupby(["period", column]).size().unstack(fill_value=0).sort_index()


def seasonal_patterns(dated: pd.DataFrame) -> list[dict]:
    if dated.empty:
        return []

    working = dated.assign(
        month=dated["posting_date"].dt.month,
        year=dated["posting_date"].dt.year,
    )
    patterns = []
    for month, group in working.groupby("month", sort=True):
        years = group["year"].nunique()
        peak = rank_counts(group["category_key"], limit=3)
        patterns.append(
            {
                "month": int(month),
                "month_name": calendar.month_abbr[int(month)],
                "total_jobs": len(group),
                "years": int(years),
                "average_jobs": round_half_up(len(group) / years, 1),
                "peak_categories": list(peak.index),
            }
        )
    return patterns


def seasonal_summary(patterns: list[dict]) -> dict:
    """Classify calendar months against the average month.

    Months without postings count as zero. High season is above 1.2x the
    monthly mean, low season below 0.8x. The ramp-up is the first month to
    month increase larger than 0.3x the mean. The coefficient of variation
    across months labels the pattern consistent (< 0.2), variable (> 0.5) or
    cyclical.
    """
    if not patterns:
        return empty_seasonal_summary()

    by_month = {row["month"]: row["average_jobs"] for row in patterns}
    averages = pd.Series({calendar.month_name[month]: float(by_month.get(month, 0)) for month in range(1, 13)})
    mean = float(averages.mean())

    ramp_up = NO_RAMP_UP
    for current, following in zip(averages.index[:-1], averages.index[1:]):
        if averages[following] - averages[current] > mean * RAMP_UP_FACTOR:
            ramp_up = f"Late {current} - Early {following}"
            break

    variation = float(averages.std(ddof=0)) / mean if mean else 0
    if variation < CONSISTENT_VARIATION:
        pattern = "consistent"
    elif variation > VARIABLE_VARIATION:
        pattern = "variable"
    else:
        pattern = "cyclical"

    return {
        "high_season_months": list(averages[averages > mean * HIGH_SEASON_FACTOR].index),
        "low_season_months": list(averages[averages < mean * LOW_SEASON_FACTOR].index),
        "typical_ramp_up_period": ramp_up,
        "year_over_year_pattern": pattern,
        "monthly_averages": {month: round_half_up(value, 1) for month, value in averages.items()},
    }


def velocity_indicators(period_counts: pd.DataFrame, limit: int = 15) -> list[dict]:
    """Compare each category's latest period with its trailing average.

    The trailing average covers up to three periods before the latest one,
    with missing periods counted as zero.
    """
    if len(period_counts.index) < 2:
        return []

    latest = period_counts.iloc[-1]
    trailing = period_counts.iloc[-(VELOCITY_TRAILING_PERIODS + 1):-1].mean()

    indicators = []
    for category in period_counts.columns:
        last_count = float(latest[category])
        baseline = float(trailing[category])
        if baseline > 0:
            acceleration = round_half_up((last_count - baseline) / baseline * 100, 1)
        elif last_count > 0:
            acceleration = 100.0
        else:
            acceleration = 0.0

        if acceleration > VELOCITY_THRESHOLD:
            trend = "rising"
        elif acceleration < -VELOCITY_THRESHOLD:
            trend = "falling"
        else:
            trend = "stable"

        indicators.append(
            {
                "category": category,
                "latest_count": int(last_count),
                "trailing_average": round_half_up(baseline, 1),
                "acceleration": acceleration,
                "trend": trend,
            }
        )

    indicators.sort(key=lambda row: abs(row["acceleration"]), reverse=True)
    return indicators[:limit]


def compute_trends(
    records: pd.DataFrame,
    months_window: int | None = None,
    now: pd.Timestamp | None = None,
    min_first: int = 5,
    min_emerging: int = 3,
    threshold: int = 20,
    list_limit: int = TREND_LIST_LIMIT,
) -> dict:
    windowed = restrict_to_window(records, months_window, now)
    dated = _dated_frame(windowed)
    if dated.empty:
        return empty_trends()

    result = empty_trends()
    result["agency_time_series"] = _time_series(dated, "agency_key")
    result["category_time_series"] = _time_series(dated, "category_key")
    result["seasonal_patterns"] = seasonal_patterns(dated)
    result["seasonal_summary"] = seasonal_summary(result["seasonal_patterns"])

    period_counts = _period_counts(dated, "category_key")
    if len(period_counts.index) < 2:
        logger.debug("Only %d period(s) present; skipping trend detection", len(period_counts.index))
        return result

    first_period = period_counts.index[0]
    last_period = period_counts.index[-1]
    first_counts = {name: int(count) for name, count in period_counts.loc[first_period].items() if count > 0}
    last_counts = {name: int(count) for name, count in period_counts.loc[last_period].items() if count > 0}

    trends = growth_trends(
        first_counts,
        last_counts,
        key="category",
        first_period=first_period,
        last_period=last_period,
        min_first=min_first,
        min_emerging=min_emerging,
        threshold=threshold,
    )
    result["category_trends"] = trends
    result["emerging_categories"] = [row for row in trends if row["trend"] == "Emerging"][:list_limit]
    result["declining_categories"] = [row for row in trends if row["trend"] == "Declining"][:list_limit]
    result["velocity_indicators"] = velocity_indicators(period_counts)

    logger.debug("Computed trends over %d periods for %d records", len(period_counts.index), len(dated))
    return result


def market_momentum(records: pd.DataFrame) -> dict:
    dated = _dated_frame(records)
    monthly = dated.groupby("period").size().sort_index() if not dated.empty else pd.Series(dtype="int64")

    if len(monthly) < 2:
        return empty_momentum()

    recent = monthly.iloc[-3:]
    previous = monthly.iloc[-6:-3]
    current_velocity = float(recent.mean())
    previous_velocity = float(previous.mean()) if not previous.empty else current_velocity

    momentum_index = (current_velocity - previous_velocity) / previous_velocity * 100 if previous_velocity > 0 else 0
    if momentum_index > VELOCITY_THRESHOLD:
        momentum = "accelerating"
    elif momentum_index < -VELOCITY_THRESHOLD:
        momentum = "decelerating"
    else:
        momentum = "steady"

    return {
        "current_velocity": round_half_up(current_velocity, 1),
        "previous_velocity": round_half_up(previous_velocity, 1),
        "momentum": momentum,
        "momentum_index": round_half_up(momentum_index, 1),
    }
