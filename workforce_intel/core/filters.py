from __future__ import annotations

import logging
from dataclasses import dataclass

import pandas as pd


logger = logging.getLogger(__name__)

ALL = "all"

TIME_RANGE_MONTHS = {
    "4weeks": 1,
    "8weeks": 2,
    "3months": 3,
    "6months": 6,
    "1year": 12,
}


@dataclass(frozen=True)
class FilterOptions:
    selected_agency: str = ALL
    time_range: str = ALL

    @property
    def is_agency_view(self) -> bool:
        return self.selected_agency != ALL


def resolve_time_window(time_range: str, now: pd.Timestamp | None = None) -> pd.Timestamp | None:
    months = TIME_RANGE_MONTHS.get(time_range)
    if months is None:
        return None
    reference = pd.Timestamp.now() if now is None else pd.Timestamp(now)
    return reference - pd.DateOffset(months=months)


def apply_agency_filter(records: pd.DataFrame, selected_agency: str) -> pd.DataFrame:
    if selected_agency == ALL:
        return records
    return records[records["agency"] == selected_agency]


def apply_time_filter(
    records: pd.DataFrame,
    time_range: str,
    now: pd.Timestamp | None = None,
) -> pd.DataFrame:
    cutoff = resolve_time_window(time_range, now)
    if cutoff is None:
        return records

    posting_dates = records["posting_date"]
    # Undated postings stay visible in every window.
    keep = posting_dates.isna() | (posting_dates > cutoff)
    return records[keep]


def filter_records(
    records: pd.DataFrame,
    options: FilterOptions,
    now: pd.Timestamp | None = None,
) -> pd.DataFrame:
    try:
        filtered = apply_agency_filter(records, options.selected_agency)
        filtered = apply_time_filter(filtered, options.time_range, now)
    except Exception:
        logger.exception("Filtering failed; returning unfiltered records")
        return records

    logger.debug("Filtered %d records down to %d", len(records), len(filtered))
    return filtered.reset_index(drop=True)
