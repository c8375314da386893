from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AnalyticsSettings:
    # Skills and classification screens use different urgency cut-offs.
    skills_urgency_days: int = 21
    review_urgency_days: int = 14

    top_skills_limit: int = 50
    digital_skills_limit: int = 15
    talent_competition_limit: int = 10
    skill_trend_limit: int = 12
    review_queue_limit: int = 20

    temporal_months: int = 12
    emerging_min_last: int = 3
    trend_min_first: int = 5
    trend_threshold: int = 20
    trend_list_limit: int = 10


DEFAULT_SETTINGS = AnalyticsSettings()
