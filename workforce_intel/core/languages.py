from __future__ import annotations

import pandas as pd

from workforce_intel.core.stats import percent, rank_counts, round_half_up


def split_languages(value: str) -> list[str]:
    return [language.strip() for language in str(value).split(",") if language.strip()]


def empty_language_analysis() -> dict:
    return {
        "required_languages": [],
        "multilingual_jobs_percentage": 0,
        "average_language_count": 0,
        "top_language_pairs": [],
        "agency_language_profiles": [],
    }


def language_requirements(records: pd.DataFrame) -> dict:
    if records.empty:
        return empty_language_analysis()

    languages = records["languages"].map(split_languages)
    language_counts = languages.map(len)
    mentions = rank_counts(languages.explode().dropna())

    pairs = languages[language_counts == 2].map(lambda pair: " + ".join(sorted(pair)))

    agencies = records["agency"].where(records["agency"] != "", "Unknown")
    profiles = []
    for agency, group in languages.groupby(agencies, sort=False):
        distinct = list(dict.fromkeys(language for job_languages in group for language in job_languages))
        profiles.append(
            {
                "agency": agency,
                "required_languages": distinct,
                "total_jobs": len(group),
                "language_diversity": len(distinct),
            }
        )
    profiles.sort(key=lambda row: row["total_jobs"], reverse=True)

    return {
        "required_languages": [
            {"language": language, "count": int(count)} for language, count in mentions.head(10).items()
        ],
        "multilingual_jobs_percentage": percent(int((language_counts > 1).sum()), len(records), 1),
        "average_language_count": round_half_up(language_counts.sum() / len(records), 1),
        "top_language_pairs": [
            {"pair": pair, "count": int(count)} for pair, count in rank_counts(pairs, limit=5).items()
        ],
        "agency_language_profiles": profiles[:10],
    }
