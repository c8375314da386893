"""Tests for the cached analytics service."""

import pytest

from workforce_intel.core import service as service_module
from workforce_intel.core.filters import FilterOptions
from workforce_intel.core.languages import empty_language_analysis
from workforce_intel.core.service import AnalyticsService, dataset_fingerprint


@pytest.fixture
def service(dictionary):
    return AnalyticsService(dictionary=dictionary)


class TestDatasetFingerprint:
    """dataset_fingerprint()"""

    def test_stable_for_equal_content(self, jobs):
        """Copies of the same data hash identically"""
        assert dataset_fingerprint(jobs) == dataset_fingerprint(jobs.copy())

    def test_middle_record_change_detected(self, jobs):
        """Same length and boundary ids but a different middle row"""
        changed = jobs.copy()
        changed.loc[1, "job_labels"] = "Cobol"
        assert dataset_fingerprint(changed) != dataset_fingerprint(jobs)

    def test_term_lists_included(self, jobs):
        """Unrecognized term lists contribute to the hash"""
        changed = jobs.copy()
        changed["emerging_terms_found"] = [[], [], ["web3"], []]
        assert dataset_fingerprint(changed) != dataset_fingerprint(jobs)


class TestAnalyticsServiceCache:
    """Memoization of aggregate results"""

    def test_repeat_call_hits_cache(self, service, jobs, now):
        """Identical calls reuse cached entries"""
        first = service.languages(jobs, now=now)
        size = service.cache_size()
        second = service.languages(jobs, now=now)
        assert first == second
        assert service.cache_size() == size

    def test_options_are_part_of_key(self, service, jobs, now):
        """Different filters produce separate entries"""
        everyone = service.languages(jobs, now=now)
        undp = service.languages(jobs, FilterOptions(selected_agency="UNDP"), now=now)
        assert everyone != undp
        assert undp["required_languages"] == [
            {"language": "English", "count": 1},
            {"language": "French", "count": 1},
        ]

    def test_cached_results_are_isolated(self, service, jobs, now):
        """Mutating a returned result does not corrupt the cache"""
        result = service.competition(jobs, now=now)
        result["agencies"].clear()
        assert service.competition(jobs, now=now)["agencies"]

    def test_clear_cache(self, service, jobs, now):
        """clear_cache empties the store"""
        service.metrics(jobs, now=now)
        assert service.cache_size() > 0
        service.clear_cache()
        assert service.cache_size() == 0

    def test_changed_dataset_recomputes(self, service, jobs, now):
        """A different middle record is not served from cache"""
        before = service.skills(jobs, now=now)
        changed = jobs.copy()
        changed.loc[1, "job_labels"] = "Cobol"
        after = service.skills(changed, now=now)
        assert before["top_skills"] != after["top_skills"]


class TestAnalyticsServiceOperations:
    """Service operations end to end"""

    def test_accepts_raw_records(self, service, now):
        """Plain record lists are normalized first"""
        result = service.skills([{"job_labels": "Python, Python, SQL"}], now=now)
        assert [(row["skill"], row["count"]) for row in result["top_skills"]] == [("Python", 2), ("SQL", 1)]

    def test_agency_view_skills(self, service, jobs, now):
        """Agency selection switches to the market comparison"""
        result = service.skills(jobs, FilterOptions(selected_agency="UNDP"), now=now)
        assert result["agency_analysis"]["is_agency_view"] is True
        assert result["total_jobs"] == 1

    def test_metrics(self, service, jobs, now):
        """Metrics bundle quality, queue and urgency"""
        metrics = service.metrics(jobs, now=now)
        assert metrics["total_jobs"] == 4
        assert [item["id"] for item in metrics["review_queue"]] == ["J3", "J4"]
        assert metrics["urgent_rate"] == 50

    def test_temporal(self, service, jobs, now):
        """Temporal analysis respects the explicit month window"""
        result = service.temporal(jobs, months=0, now=now)
        assert [row["period"] for row in result["category_time_series"]] == ["2024-01", "2024-02", "2024-03"]
        assert "momentum" in result

    def test_summary(self, service, jobs, now):
        """Summary combines every panel"""
        summary = service.summary(jobs, FilterOptions(time_range="4weeks"), months=0, now=now)
        assert summary["total_jobs"] == 4
        assert summary["filtered_jobs"] == 2
        assert set(summary) >= {"metrics", "skills", "temporal", "competition", "languages"}


class TestAnalyticsServiceDegradation:
    """Failures degrade to empty results"""

    def test_failure_returns_empty_and_is_not_cached(self, service, jobs, now, monkeypatch):
        """A failing aggregator yields its empty result without caching it"""

        def broken(records):
            raise RuntimeError("boom")

        monkeypatch.setattr(service_module, "language_requirements", broken)
        result = service.languages(jobs, now=now)
        assert result == empty_language_analysis()
        size = service.cache_size()

        monkeypatch.undo()
        recovered = service.languages(jobs, now=now)
        assert recovered["required_languages"]
        assert service.cache_size() == size + 1

    def test_failure_is_logged(self, service, jobs, now, monkeypatch, caplog):
        """The failure is logged with the operation name"""

        def broken(records):
            raise RuntimeError("boom")

        monkeypatch.setattr(service_module, "language_requirements", broken)
        service.languages(jobs, now=now)
        assert "languages" in caplog.text


class TestAnalyticsServiceDates:
    """Timestamps with a UTC suffix"""

    @pytest.fixture
    def utc_jobs(self):
        recent = [
            {"id": f"R{index}", "posting_date": f"2024-03-0{index + 1}T00:00:00.000Z",
             "apply_until": f"2024-03-1{index + 1}T00:00:00.000Z"}
            for index in range(3)
        ]
        older = [
            {"id": f"O{index}", "posting_date": "2024-01-10T00:00:00.000Z",
             "apply_until": "2024-02-10T00:00:00.000Z", "primary_category": "Health & Medical"}
            for index in range(6)
        ]
        return recent + older

    def test_metrics_with_utc_dates(self, service, now):
        """Raw records with Z timestamps are analysed"""
        metrics = service.metrics([{"posting_date": "2024-01-10T00:00:00.000Z"}], now=now)
        assert metrics["total_jobs"] == 1

    def test_time_filter_with_utc_dates(self, service, utc_jobs, now):
        """The time window applies to Z timestamps"""
        filtered = service.filter(utc_jobs, FilterOptions(time_range="4weeks"), now=now)
        assert sorted(filtered["id"]) == ["R0", "R1", "R2"]

    def test_temporal_with_utc_dates(self, service, utc_jobs, now):
        """Trends are computed from Z timestamps"""
        result = service.temporal(utc_jobs, months=0, now=now)
        assert [row["period"] for row in result["category_time_series"]] == ["2024-01", "2024-03"]
        assert [row["category"] for row in result["declining_categories"]] == ["Health & Medical"]

    def test_normalization_failure_degrades(self, service, now, monkeypatch):
        """Records that cannot be normalized yield empty results"""

        def broken(records):
            raise TypeError("bad records")

        monkeypatch.setattr(service_module, "normalize_records", broken)
        metrics = service.metrics([{"id": "J1"}], now=now)
        assert metrics["total_jobs"] == 0
        assert metrics["review_queue"] == []
        assert service.temporal([{"id": "J1"}], now=now)["category_time_series"] == []


class TestAnalyticsServiceMarketBaseline:
    """Agency comparisons against the whole dataset"""

    def test_time_range_does_not_shrink_market(self, service, now):
        """Market shares use every record, not just the time window"""
        records = [
            {"id": "U1", "short_agency": "UNDP", "job_labels": "Python", "posting_date": "2024-03-10"}
        ] + [
            {"id": f"W{index}", "short_agency": "WFP", "job_labels": "Logistics", "posting_date": "2023-06-10"}
            for index in range(9)
        ]
        result = service.skills(records, FilterOptions(selected_agency="UNDP", time_range="4weeks"), now=now)
        python = result["agency_analysis"]["strengths"][0]
        assert python["skill"] == "Python"
        assert python["agency_share"] == 100.0
        assert python["market_share"] == 10.0
        assert python["gap"] == 90.0
        assert python["is_strength"] is True

    def test_specializations_use_whole_dataset(self, service, now):
        """Market view specializations include agencies outside the window"""
        records = [
            {"id": f"W{index}", "short_agency": "WFP", "job_labels": "Logistics", "posting_date": "2023-06-10"}
            for index in range(5)
        ] + [{"id": "U1", "short_agency": "UNDP", "job_labels": "Python", "posting_date": "2024-03-10"}]
        result = service.skills(records, FilterOptions(time_range="4weeks"), now=now)
        assert result["total_jobs"] == 1
        specializations = result["agency_analysis"]["agency_specializations"]
        assert [row["agency"] for row in specializations] == ["WFP"]


class TestAnalyticsServiceEmpty:
    """Zero-record datasets"""

    def test_every_panel_empty(self, service, now):
        """An empty dataset produces empty panels without raising"""
        summary = service.summary([], months=12, now=now)
        assert summary["total_jobs"] == 0
        assert summary["temporal"]["category_time_series"] == []
        assert summary["skills"]["top_skills"] == []
        assert summary["languages"]["required_languages"] == []
