from __future__ import annotations

import logging

import pandas as pd

from workforce_intel.core.data import DEFAULT_CONFIDENCE
from workforce_intel.core.stats import counts_to_rows, percent, rank_counts, round_half_up


logger = logging.getLogger(__name__)

CONFIDENCE_BINS = [
    ("High (70-100%)", 70, None),
    ("Medium (40-69%)", 40, 70),
    ("Low (0-39%)", None, 40),
]

PRIORITY_ORDER = {"High": 3, "Medium": 2, "Low": 1}

VERY_LOW_CONFIDENCE = 25
LOW_CONFIDENCE = 40
EMERGING_TERMS_LIMIT = 2


def quality_label(average_confidence: float) -> str:
    if average_confidence >= 70:
        return "High"
    if average_confidence >= 40:
        return "Medium"
    return "Low"


def _confidence(records: pd.DataFrame) -> pd.Series:
    return pd.to_numeric(records["classification_confidence"], errors="coerce").fillna(DEFAULT_CONFIDENCE)


def confidence_distribution(records: pd.DataFrame) -> list[dict]:
    confidence = _confidence(records)
    total = len(records)
    distribution = []
    for label, lower, upper in CONFIDENCE_BINS:
        mask = pd.Series(True, index=confidence.index)
        if lower is not None:
            mask &= confidence >= lower
        if upper is not None:
            mask &= confidence < upper
        count = int(mask.sum())
        distribution.append({"range": label, "count": count, "percentage": percent(count, total)})
    return distribution


def category_performance(records: pd.DataFrame) -> list[dict]:
    if records.empty:
        return []

    working = records.assign(confidence=_confidence(records))
    grouped = working.groupby("primary_category", sort=False).agg(
        total_jobs=("confidence", "size"),
        confidence_sum=("confidence", "sum"),
        ambiguous=("is_ambiguous_category", "sum"),
    )

    rows = []
    for category, stats in grouped.iterrows():
        total = int(stats["total_jobs"])
        average = stats["confidence_sum"] / total
        rows.append(
            {
                "category": category,
                "total_jobs": total,
                "avg_confidence": round_half_up(average),
                "ambiguity_rate": percent(stats["ambiguous"], total),
                "quality": quality_label(average),
            }
        )

    rows.sort(key=lambda row: row["total_jobs"], reverse=True)
    return rows


def empty_quality_metrics() -> dict:
    return {
        "total_jobs": 0,
        "avg_confidence": 0,
        "ambiguity_rate": 0,
        "low_confidence_rate": 0,
        "confidence_distribution": [],
        "category_performance": [],
    }


def classification_quality(records: pd.DataFrame) -> dict:
    if records.empty:
        return empty_quality_metrics()

    total = len(records)
    confidence = _confidence(records)
    ambiguous = int(records["is_ambiguous_category"].astype(bool).sum())
    low_confidence = int((confidence < LOW_CONFIDENCE).sum())

    return {
        "total_jobs": total,
        "avg_confidence": round_half_up(confidence.sum() / total),
        "ambiguity_rate": percent(ambiguous, total),
        "low_confidence_rate": percent(low_confidence, total),
        "confidence_distribution": confidence_distribution(records),
        "category_performance": category_performance(records),
    }


def _review_reason(confidence: float, ambiguous: bool, term_count: int) -> tuple[str, str]:
    if confidence < VERY_LOW_CONFIDENCE:
        return "Very low classification confidence", "High"
    if ambiguous:
        return "Ambiguous between multiple categories", "Medium"
    if confidence < LOW_CONFIDENCE:
        return "Low classification confidence", "Medium"
    if term_count > EMERGING_TERMS_LIMIT:
        return "Contains multiple unrecognized terms", "Low"
    raise ValueError("Job does not meet any review trigger")


def review_queue(records: pd.DataFrame, limit: int = 20) -> list[dict]:
    """Jobs whose classification a reviewer should look at first.

    A job qualifies with confidence below 40, an ambiguous category or more
    than two unrecognized terms. Priority follows the first matching check,
    so very low confidence outranks ambiguity.
    """
    if records.empty:
        return []

    confidence = _confidence(records)
    term_counts = records["emerging_terms_found"].map(len)
    ambiguous = records["is_ambiguous_category"].astype(bool)
    flagged = records[(confidence < LOW_CONFIDENCE) | ambiguous | (term_counts > EMERGING_TERMS_LIMIT)]

    queue = []
    for index, job in flagged.iterrows():
        job_confidence = float(confidence[index])
        reason, priority = _review_reason(job_confidence, bool(ambiguous[index]), int(term_counts[index]))
        queue.append(
            {
                "id": job["id"],
                "title": job["title"],
                "category": job["primary_category"],
                "confidence": job_confidence,
                "reason": reason,
                "priority": priority,
                "emerging_terms": list(job["emerging_terms_found"]),
            }
        )

    queue.sort(key=lambda item: PRIORITY_ORDER[item["priority"]], reverse=True)
    return queue[:limit]


def emerging_terms(records: pd.DataFrame, min_frequency: int = 2, limit: int = 15) -> list[dict]:
    if records.empty:
        return []

    terms = records["emerging_terms_found"].explode().dropna()
    counts = rank_counts(terms)
    counts = counts[counts >= min_frequency].head(limit)
    return [
        {"term": term, "frequency": int(count), "percentage": percent(count, len(records))}
        for term, count in counts.items()
    ]


def hybrid_candidates(records: pd.DataFrame, limit: int = 8) -> list[dict]:
    if records.empty:
        return []

    candidates = records["hybrid_category_candidate"]
    counts = rank_counts(candidates[candidates != ""], limit=limit)
    return counts_to_rows(counts, "pattern", total=len(records))


def urgent_share(records: pd.DataFrame, urgency_days: int = 14) -> int:
    if records.empty:
        return 0
    windows = pd.to_numeric(records["application_window_days"], errors="coerce")
    urgent = int(((windows > 0) & (windows <= urgency_days)).sum())
    return percent(urgent, len(records))
