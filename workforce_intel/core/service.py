from __future__ import annotations

import copy
import hashlib
import logging
import threading
from typing import Callable, Iterable, Mapping

import pandas as pd

from workforce_intel.core.categories import CategoryDictionary, load_category_dictionary
from workforce_intel.core.classification import (
    classification_quality,
    emerging_terms,
    empty_quality_metrics,
    hybrid_candidates,
    review_queue,
    urgent_share,
)
from workforce_intel.core.competitive import (
    agency_competition,
    category_competition,
    empty_competition,
    market_concentration,
)
from workforce_intel.core.data import empty_records, normalize_records
from workforce_intel.core.filters import FilterOptions, filter_records
from workforce_intel.core.languages import empty_language_analysis, language_requirements
from workforce_intel.core.settings import DEFAULT_SETTINGS, AnalyticsSettings
from workforce_intel.core.skills import SkillAggregator, empty_skills_analysis
from workforce_intel.core.temporal import compute_trends, empty_momentum, empty_trends, market_momentum


logger = logging.getLogger(__name__)

LIST_COLUMNS = ["emerging_terms_found"]

_MISSING = object()


def dataset_fingerprint(records: pd.DataFrame) -> str:
    """Content hash of a job frame, stable across calls on equal data."""
    digest = hashlib.sha256()
    digest.update(str(len(records)).encode("utf-8"))
    digest.update("|".join(map(str, records.columns)).encode("utf-8"))

    scalar = records.drop(columns=[column for column in LIST_COLUMNS if column in records.columns])
    if not scalar.empty:
        digest.update(pd.util.hash_pandas_object(scalar, index=False).values.tobytes())

    for column in LIST_COLUMNS:
        if column in records.columns and not records.empty:
            joined = records[column].map(lambda terms: "\x1f".join(map(str, terms)))
            digest.update(pd.util.hash_pandas_object(joined, index=False).values.tobytes())

    return digest.hexdigest()


def _reference_day(now: pd.Timestamp | None) -> pd.Timestamp:
    return (pd.Timestamp.now() if now is None else pd.Timestamp(now)).normalize()


def _empty_metrics() -> dict:
    metrics = empty_quality_metrics()
    metrics.update({"review_queue": [], "emerging_terms": [], "hybrid_candidates": [], "urgent_rate": 0})
    return metrics


def _empty_temporal() -> dict:
    trends = empty_trends()
    trends["momentum"] = empty_momentum()
    return trends


def _empty_competition() -> dict:
    result = empty_competition()
    result["market_concentration"] = market_concentration(empty_records())
    return result


class AnalyticsService:
    """Entry point used by presentation code.

    Every query filters the records, runs one aggregator and memoizes the
    result per dataset content and options. Failures, including records that
    cannot be normalized, are logged and turned into empty results so a
    broken panel never takes the page down.
    """

    def __init__(
        self,
        dictionary: CategoryDictionary | None = None,
        settings: AnalyticsSettings | None = None,
    ):
        self.dictionary = dictionary if dictionary is not None else load_category_dictionary()
        self.settings = settings or DEFAULT_SETTINGS
        self.skill_aggregator = SkillAggregator(self.dictionary, self.settings)
        self._cache: dict = {}
        self._lock = threading.Lock()

    @staticmethod
    def prepare(records: pd.DataFrame | Iterable[Mapping]) -> pd.DataFrame:
        if isinstance(records, pd.DataFrame) and "agency" in records.columns:
            return records
        return normalize_records(records)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def cache_size(self) -> int:
        with self._lock:
            return len(self._cache)

    def _query(self, operation: str, build: Callable[[], tuple], fallback: Callable):
        """Run ``build`` for a cache key and a compute callable, then memoize.

        Everything, from normalizing the records to computing the result,
        runs under one guard. Failed queries are never cached.
        """
        try:
            key, compute = build()
            with self._lock:
                cached = self._cache.get(key, _MISSING)
            if cached is _MISSING:
                result = compute()
                with self._lock:
                    cached = self._cache.setdefault(key, result)
            return copy.deepcopy(cached)
        except Exception:
            logger.exception("Analytics operation %s failed; returning empty result", operation)
            return fallback()

    def filter(
        self,
        records: pd.DataFrame,
        options: FilterOptions = FilterOptions(),
        now: pd.Timestamp | None = None,
    ) -> pd.DataFrame:
        def build():
            prepared = self.prepare(records)
            key = ("filter", dataset_fingerprint(prepared), options, _reference_day(now))
            return key, lambda: filter_records(prepared, options, now)

        return self._query("filter", build, lambda: records)

    def metrics(
        self,
        records: pd.DataFrame,
        options: FilterOptions = FilterOptions(),
        now: pd.Timestamp | None = None,
    ) -> dict:
        settings = self.settings

        def build():
            filtered = self.filter(self.prepare(records), options, now)

            def compute() -> dict:
                metrics = classification_quality(filtered)
                metrics["review_queue"] = review_queue(filtered, limit=settings.review_queue_limit)
                metrics["emerging_terms"] = emerging_terms(filtered)
                metrics["hybrid_candidates"] = hybrid_candidates(filtered)
                metrics["urgent_rate"] = urgent_share(filtered, settings.review_urgency_days)
                return metrics

            return ("metrics", dataset_fingerprint(filtered), options), compute

        return self._query("metrics", build, _empty_metrics)

    def skills(
        self,
        records: pd.DataFrame,
        options: FilterOptions = FilterOptions(),
        now: pd.Timestamp | None = None,
    ) -> dict:
        def build():
            # Agency comparisons are measured against the whole dataset.
            market = self.prepare(records)
            filtered = self.filter(market, options, now)
            key = ("skills", dataset_fingerprint(filtered), dataset_fingerprint(market), options)
            return key, lambda: self.skill_aggregator.analyze(filtered, market, options.selected_agency)

        return self._query("skills", build, empty_skills_analysis)

    def temporal(
        self,
        records: pd.DataFrame,
        months: int | None = None,
        now: pd.Timestamp | None = None,
    ) -> dict:
        settings = self.settings
        months = settings.temporal_months if months is None else months

        def build():
            prepared = self.prepare(records)

            def compute() -> dict:
                trends = compute_trends(
                    prepared,
                    months_window=months,
                    now=now,
                    min_first=settings.trend_min_first,
                    min_emerging=settings.emerging_min_last,
                    threshold=settings.trend_threshold,
                    list_limit=settings.trend_list_limit,
                )
                trends["momentum"] = market_momentum(prepared)
                return trends

            return ("temporal", dataset_fingerprint(prepared), months, _reference_day(now)), compute

        return self._query("temporal", build, _empty_temporal)

    def competition(
        self,
        records: pd.DataFrame,
        category: str | None = None,
        options: FilterOptions = FilterOptions(),
        now: pd.Timestamp | None = None,
    ) -> dict:
        def build():
            filtered = self.filter(self.prepare(records), options, now)

            def compute() -> dict:
                result = category_competition(filtered, category) if category else agency_competition(filtered)
                result["market_concentration"] = market_concentration(filtered)
                return result

            return ("competition", dataset_fingerprint(filtered), category, options), compute

        return self._query("competition", build, _empty_competition)

    def languages(
        self,
        records: pd.DataFrame,
        options: FilterOptions = FilterOptions(),
        now: pd.Timestamp | None = None,
    ) -> dict:
        def build():
            filtered = self.filter(self.prepare(records), options, now)
            key = ("languages", dataset_fingerprint(filtered), options)
            return key, lambda: language_requirements(filtered)

        return self._query("languages", build, empty_language_analysis)

    def summary(
        self,
        records: pd.DataFrame,
        options: FilterOptions = FilterOptions(),
        months: int | None = None,
        now: pd.Timestamp | None = None,
    ) -> dict:
        try:
            prepared = self.prepare(records)
        except Exception:
            logger.exception("Analytics operation summary failed; returning empty result")
            prepared = empty_records()

        filtered = self.filter(prepared, options, now)
        return {
            "filters": {"selected_agency": options.selected_agency, "time_range": options.time_range},
            "total_jobs": len(prepared),
            "filtered_jobs": len(filtered),
            "metrics": self.metrics(prepared, options, now),
            "skills": self.skills(prepared, options, now),
            "temporal": self.temporal(filtered, months, now),
            "competition": self.competition(prepared, options=options, now=now),
            "languages": self.languages(prepared, options, now),
        }
