from __future__ import annotations

import logging

import pandas as pd

from workforce_intel.core.stats import rank_counts, round_half_up, safe_percentage


logger = logging.getLogger(__name__)

UNKNOWN_AGENCY = "Unknown"


def position_label(share: float, is_leader: bool) -> str:
    if is_leader:
        return "Market Leader"
    if share >= 15:
        return "Strong Player"
    if share >= 5:
        return "Active"
    return "Niche Player"


def empty_competition() -> dict:
    return {
        "total_jobs": 0,
        "agencies": [],
        "leader": None,
        "concentration": 0,
        "competitiveness": 0,
    }


def _agency_counts(records: pd.DataFrame) -> pd.Series:
    agencies = records["agency"].where(records["agency"] != "", UNKNOWN_AGENCY)
    return rank_counts(agencies)


def agency_competition(records: pd.DataFrame) -> dict:
    """Rank agencies by postings and label each by its share of the total.

    Concentration is the leader's share; competitiveness is what remains.
    """
    if records.empty:
        return empty_competition()

    total = len(records)
    agencies = []
    for rank, (agency, count) in enumerate(_agency_counts(records).items(), start=1):
        share = safe_percentage(count, total)
        is_leader = rank == 1
        agencies.append(
            {
                "agency": agency,
                "count": int(count),
                "percentage": round_half_up(share, 1),
                "rank": rank,
                "is_leader": is_leader,
                "position": position_label(share, is_leader),
            }
        )

    leader = agencies[0]
    concentration = leader["percentage"]
    return {
        "total_jobs": total,
        "agencies": agencies,
        "leader": leader["agency"],
        "concentration": concentration,
        "competitiveness": round_half_up(100 - concentration, 1),
    }


def category_competition(records: pd.DataFrame, category: str) -> dict:
    if records.empty:
        return empty_competition()
    subset = records[records["primary_category"] == category]
    result = agency_competition(subset)
    result["category"] = category
    return result


def skill_competition(records: pd.DataFrame, skill: str) -> dict:
    if records.empty:
        return empty_competition()
    subset = records[records["job_labels"].str.lower().str.contains(str(skill).lower(), regex=False)]
    result = agency_competition(subset)
    result["skill"] = skill
    return result


def market_concentration(records: pd.DataFrame) -> dict:
    if records.empty:
        return {
            "herfindahl_index": 0,
            "top_n_concentration": {"top3": 0, "top5": 0, "top10": 0},
            "market_leader": {"agency": UNKNOWN_AGENCY, "market_share": 0},
        }

    shares = _agency_counts(records) / len(records) * 100
    herfindahl = float(((shares / 100) ** 2).sum() * 10000)

    return {
        "herfindahl_index": round_half_up(herfindahl, 1),
        "top_n_concentration": {
            "top3": round_half_up(float(shares.head(3).sum()), 1),
            "top5": round_half_up(float(shares.head(5).sum()), 1),
            "top10": round_half_up(float(shares.head(10).sum()), 1),
        },
        "market_leader": {
            "agency": shares.index[0],
            "market_share": round_half_up(float(shares.iloc[0]), 1),
        },
    }
