from __future__ import annotations

import logging

import numpy as np
import pandas as pd

from workforce_intel.core.categories import CategoryDictionary
from workforce_intel.core.settings import DEFAULT_SETTINGS, AnalyticsSettings
from workforce_intel.core.stats import counts_to_rows, percent, rank_counts, round_half_up, tally
from workforce_intel.core.temporal import EMERGING_SENTINEL, growth_trends


logger = logging.getLogger(__name__)

FREQUENCY_COLUMNS = ["skill", "count", "agency_count", "location_count"]
EXPLODED_COLUMNS = ["row", "job_key", "agency", "duty_country", "up_grade", "posting_year", "skill"]

GRADE_TIERS = {
    "Entry": ["P1", "P2", "G1", "G2", "G3", "NOA", "NOB"],
    "Mid": ["P3", "P4", "G4", "G5", "G6", "NOC", "NOD"],
    "Senior": ["P5", "P6", "G7", "G8", "L6", "L7"],
    "Executive": ["D1", "D2", "ASG", "USG"],
}


def tokenize_labels(labels) -> list[str]:
    if labels is None or (isinstance(labels, float) and np.isnan(labels)):
        return []
    text = str(labels)
    if not text.strip():
        return []
    tokens = [token.strip() for token in text.split(",")]
    return [token for token in tokens if len(token) > 1]


def explode_skills(records: pd.DataFrame) -> pd.DataFrame:
    """One row per skill token occurrence, in record then token order."""
    if records.empty:
        return pd.DataFrame(columns=EXPLODED_COLUMNS)

    working = records.reset_index(drop=True)
    working = pd.DataFrame(
        {
            "row": working.index,
            "job_key": working["id"].where(working["id"] != "", "row-" + working.index.to_series().astype(str)),
            "agency": working["agency"].where(working["agency"] != "", "Unknown"),
            "duty_country": working["duty_country"].where(working["duty_country"] != "", "Unknown"),
            "up_grade": working["up_grade"],
            "posting_year": working["posting_year"],
            "skill": working["job_labels"].map(tokenize_labels),
        }
    )
    exploded = working.explode("skill")
    exploded = exploded[exploded["skill"].notna()]
    return exploded.reset_index(drop=True)


def skill_frequency(records: pd.DataFrame) -> pd.DataFrame:
    exploded = explode_skills(records)
    if exploded.empty:
        return pd.DataFrame(columns=FREQUENCY_COLUMNS)

    frequency = exploded.groupby("skill", sort=False).agg(
        count=("skill", "size"),
        agency_count=("agency", "nunique"),
        location_count=("duty_country", "nunique"),
    )
    frequency = frequency.sort_values("count", ascending=False, kind="stable").reset_index()
    return frequency[FREQUENCY_COLUMNS]


def _frequency_rows(frequency: pd.DataFrame) -> list[dict]:
    return [
        {
            "skill": row["skill"],
            "count": int(row["count"]),
            "agency_count": int(row["agency_count"]),
            "location_count": int(row["location_count"]),
        }
        for row in frequency.to_dict("records")
    ]


def top_skills(records: pd.DataFrame, limit: int = 20) -> list[dict]:
    return _frequency_rows(skill_frequency(records).head(limit))


def _skill_counts(records: pd.DataFrame) -> pd.Series:
    exploded = explode_skills(records)
    return rank_counts(exploded["skill"]) if not exploded.empty else pd.Series(dtype="int64")


def is_digital_skill(skill: str, dictionary: CategoryDictionary) -> bool:
    lowered = str(skill).lower()
    return any(keyword in lowered for keyword in dictionary.digital_keywords)


def digital_skills(frequency: pd.DataFrame, dictionary: CategoryDictionary, limit: int = 15) -> list[dict]:
    if frequency.empty:
        return []
    mask = frequency["skill"].map(lambda skill: is_digital_skill(skill, dictionary))
    return _frequency_rows(frequency[mask].head(limit))


def skills_by_category(records: pd.DataFrame, dictionary: CategoryDictionary, limit: int = 6) -> list[dict]:
    exploded = explode_skills(records)
    if exploded.empty:
        return []

    lowered = exploded["skill"].str.lower()
    groups = []
    for group in dictionary.skill_groups:
        matches = lowered.map(lambda skill: any(keyword in skill for keyword in group.keywords))
        if not matches.any():
            continue
        groups.append(
            {
                "category": group.name,
                "total_positions": int(exploded.loc[matches, "job_key"].nunique()),
                "skills": counts_to_rows(rank_counts(lowered[matches], limit=limit), "skill"),
            }
        )
    return groups


def competition_level(agency_count: int) -> str:
    if agency_count >= 5:
        return "High"
    if agency_count >= 3:
        return "Medium"
    return "Low"


def talent_competition(
    frequency: pd.DataFrame,
    records: pd.DataFrame,
    limit: int = 10,
    urgency_days: int = 21,
) -> list[dict]:
    if frequency.empty or records.empty:
        return []

    labels = records["job_labels"].str.lower()
    windows = pd.to_numeric(records["application_window_days"], errors="coerce")
    grades = records["up_grade"]

    results = []
    for row in frequency.head(limit).to_dict("records"):
        skill = row["skill"]
        agency_count = int(row["agency_count"])
        mask = labels.str.contains(str(skill).lower(), regex=False)
        matched = int(mask.sum())

        skill_grades = grades[mask]
        grade_counts = rank_counts(skill_grades[skill_grades.str.strip() != ""])
        if grade_counts.empty:
            most_common_grade, grade_count = "N/A", 0
        else:
            most_common_grade, grade_count = grade_counts.index[0], int(grade_counts.iloc[0])

        skill_windows = windows[mask]
        urgent = int(((skill_windows > 0) & (skill_windows <= urgency_days)).sum())

        results.append(
            {
                "skill": skill,
                "positions": int(row["count"]),
                "agencies": agency_count,
                "most_common_grade": most_common_grade,
                "grade_distribution": percent(grade_count, matched),
                "urgency_rate": percent(urgent, matched),
                "competition_level": competition_level(agency_count),
            }
        )
    return results


def career_progression(records: pd.DataFrame, limit: int = 6) -> dict:
    if records.empty:
        return {}

    grades = records["up_grade"].fillna("")
    progression = {}
    for tier, codes in GRADE_TIERS.items():
        tier_jobs = records[grades.map(lambda grade: any(code in grade for code in codes))]
        counts = _skill_counts(tier_jobs).head(limit)
        progression[tier] = {
            "total_jobs": len(tier_jobs),
            "top_skills": counts_to_rows(counts, "skill", total=len(tier_jobs)),
        }
    return progression


def geographic_distribution(
    records: pd.DataFrame,
    min_jobs: int = 3,
    skills_per_location: int = 3,
    limit: int = 12,
) -> list[dict]:
    if records.empty:
        return []

    located = records[(records["job_labels"].str.strip() != "") & (records["duty_country"] != "")]
    locations = []
    for country, group in located.groupby("duty_country", sort=False):
        if len(group) < min_jobs:
            continue
        counts = _skill_counts(group)
        locations.append(
            {
                "location": country,
                "total_jobs": len(group),
                "top_skills": counts_to_rows(counts.head(skills_per_location), "skill", total=len(group)),
                "skill_diversity": int(len(counts)),
            }
        )

    locations.sort(key=lambda row: row["total_jobs"], reverse=True)
    return locations[:limit]


def agency_vs_market(
    agency_records: pd.DataFrame,
    market_records: pd.DataFrame,
    agency_name: str = "",
    limit: int = 6,
) -> dict:
    agency_counts = _skill_counts(agency_records)
    market_counts = _skill_counts(market_records)
    agency_total = len(agency_records)
    market_total = len(market_records)

    comparison = []
    for skill, agency_count in agency_counts.items():
        market_count = int(market_counts.get(skill, 0))
        agency_share = agency_count / agency_total * 100 if agency_total else 0
        market_share = market_count / market_total * 100 if market_count > 0 and market_total else 0
        comparison.append(
            {
                "skill": skill,
                "agency_count": int(agency_count),
                "market_count": market_count,
                "agency_share": round_half_up(agency_share, 1),
                "market_share": round_half_up(market_share, 1),
                "is_strength": agency_share > market_share,
                "gap": round_half_up(abs(agency_share - market_share), 1),
            }
        )

    return {
        "is_agency_view": True,
        "agency_name": agency_name,
        "strengths": [row for row in comparison if row["is_strength"] and row["gap"] > 1][:limit],
        "gaps": [row for row in comparison if not row["is_strength"] and row["gap"] > 1][:limit],
        "top_skills": comparison[:8],
    }


def agency_specializations(
    records: pd.DataFrame,
    min_jobs: int = 5,
    skills_per_agency: int = 4,
    limit: int = 8,
) -> dict:
    specializations = []
    named = records[records["agency"] != ""] if not records.empty else records
    for agency, group in named.groupby("agency", sort=False):
        if len(group) < min_jobs:
            continue
        counts = _skill_counts(group).head(skills_per_agency)
        specializations.append(
            {
                "agency": agency,
                "total_jobs": len(group),
                "top_skills": counts_to_rows(counts, "skill"),
            }
        )

    specializations.sort(key=lambda row: row["total_jobs"], reverse=True)
    return {"is_agency_view": False, "agency_specializations": specializations[:limit]}


def skill_trends(
    records: pd.DataFrame,
    limit: int = 12,
    min_first: int = 5,
    min_emerging: int = 3,
    threshold: int = 20,
) -> list[dict]:
    exploded = explode_skills(records)
    exploded = exploded[exploded["posting_year"].notna()] if not exploded.empty else exploded
    if exploded.empty:
        return []

    exploded = exploded.assign(skill=exploded["skill"].str.lower(), posting_year=exploded["posting_year"].astype(int))
    years = sorted(exploded["posting_year"].unique())
    if len(years) < 2:
        return []

    first_year, last_year = int(years[0]), int(years[-1])
    first_counts = tally(exploded.loc[exploded["posting_year"] == first_year, "skill"])
    last_counts = tally(exploded.loc[exploded["posting_year"] == last_year, "skill"])

    trends = growth_trends(
        first_counts.to_dict(),
        last_counts.to_dict(),
        key="skill",
        first_period=first_year,
        last_period=last_year,
        min_first=min_first,
        min_emerging=min_emerging,
        threshold=threshold,
    )
    return trends[:limit]


def key_metrics(analysis: dict, total_jobs: int) -> dict:
    top = analysis["top_skills"][0] if analysis["top_skills"] else None
    fastest = next(
        (row for row in analysis["skill_trends"] if 0 < row["growth_rate"] < EMERGING_SENTINEL),
        None,
    )
    digital_total = sum(row["count"] for row in analysis["digital_skills"])
    competitive = next((row for row in analysis["top_skills"] if row["agency_count"] >= 3), None)

    return {
        "top_skill": top["skill"] if top else "N/A",
        "top_skill_count": top["count"] if top else 0,
        "trending_skill": fastest["skill"] if fastest else "N/A",
        "trending_growth": fastest["growth_rate"] if fastest else 0,
        "digital_maturity": percent(digital_total, total_jobs) if digital_total else 0,
        "most_competitive": competitive["skill"] if competitive else "N/A",
        "competitive_agencies": competitive["agency_count"] if competitive else 0,
    }


def empty_skills_analysis() -> dict:
    return {
        "total_jobs": 0,
        "total_unique_skills": 0,
        "avg_skills_per_job": 0,
        "top_skills": [],
        "digital_skills": [],
        "cross_agency_skills": [],
        "rare_skills": [],
        "skills_by_category": [],
        "talent_competition": [],
        "skill_trends": [],
        "career_progression": {},
        "geographic_distribution": [],
        "agency_analysis": {"is_agency_view": False, "agency_specializations": []},
        "key_metrics": {
            "top_skill": "N/A",
            "top_skill_count": 0,
            "trending_skill": "N/A",
            "trending_growth": 0,
            "digital_maturity": 0,
            "most_competitive": "N/A",
            "competitive_agencies": 0,
        },
    }


class SkillAggregator:
    def __init__(self, dictionary: CategoryDictionary, settings: AnalyticsSettings = DEFAULT_SETTINGS):
        self.dictionary = dictionary
        self.settings = settings

    def analyze(
        self,
        records: pd.DataFrame,
        market_records: pd.DataFrame | None = None,
        selected_agency: str = "all",
    ) -> dict:
        if records.empty:
            return empty_skills_analysis()

        settings = self.settings
        market = records if market_records is None else market_records
        frequency = skill_frequency(records)

        analysis = empty_skills_analysis()
        analysis.update(
            {
                "total_jobs": len(records),
                "total_unique_skills": len(frequency),
                "avg_skills_per_job": round_half_up(frequency["count"].sum() / len(records), 2),
                "top_skills": [
                    {**row, "is_digital": is_digital_skill(row["skill"], self.dictionary)}
                    for row in _frequency_rows(frequency.head(settings.top_skills_limit))
                ],
                "digital_skills": digital_skills(frequency, self.dictionary, settings.digital_skills_limit),
                "cross_agency_skills": _frequency_rows(frequency[frequency["agency_count"] >= 3].head(30)),
                "rare_skills": _frequency_rows(frequency[frequency["count"] <= 2].head(10)),
                "skills_by_category": skills_by_category(records, self.dictionary),
                "talent_competition": talent_competition(
                    frequency,
                    records,
                    limit=settings.talent_competition_limit,
                    urgency_days=settings.skills_urgency_days,
                ),
                "skill_trends": skill_trends(
                    records,
                    limit=settings.skill_trend_limit,
                    min_first=settings.trend_min_first,
                    min_emerging=settings.emerging_min_last,
                    threshold=settings.trend_threshold,
                ),
                "career_progression": career_progression(records),
                "geographic_distribution": geographic_distribution(records),
            }
        )

        if selected_agency != "all":
            analysis["agency_analysis"] = agency_vs_market(records, market, agency_name=selected_agency)
        else:
            analysis["agency_analysis"] = agency_specializations(market)

        analysis["key_metrics"] = key_metrics(analysis, len(records))
        logger.debug("Analyzed %d skills across %d jobs", len(frequency), len(records))
        return analysis
