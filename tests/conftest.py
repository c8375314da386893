import pandas as pd
import pytest

from workforce_intel.core.categories import build_category_dictionary
from workforce_intel.core.data import normalize_records


def make_job(**overrides):
    job = {
        "id": "",
        "title": "Programme Officer",
        "primary_category": "Digital & Technology",
        "classification_confidence": 80,
        "is_ambiguous_category": False,
        "job_labels": "",
        "up_grade": "",
        "short_agency": "UNDP",
        "long_agency": "",
        "duty_country": "Kenya",
        "posting_date": "2024-05-01",
        "apply_until": "2024-05-31",
        "emerging_terms_found": [],
        "languages": "English",
        "hybrid_category_candidate": "",
    }
    job.update(overrides)
    return job


def make_records(jobs):
    return normalize_records([make_job(**job) for job in jobs])


@pytest.fixture
def dictionary():
    return build_category_dictionary(
        {
            "categories": [
                {
                    "id": "digital-technology",
                    "name": "Digital & Technology",
                    "core_keywords": ["software", "python", "data"],
                    "support_keywords": ["cloud", "SQL"],
                },
                {
                    "id": "climate-environment",
                    "name": "Climate & Environment",
                    "core_keywords": ["climate", "gis"],
                },
            ],
            "skill_groups": [
                {"category": "digital-technology", "keyword_limit": 2},
                {"name": "Leadership & Management", "keywords": ["management", "leadership"]},
            ],
        }
    )


@pytest.fixture
def jobs():
    return make_records(
        [
            {
                "id": "J1",
                "job_labels": "Python, SQL, Project Management",
                "up_grade": "P3",
                "short_agency": "UNDP",
                "duty_country": "Kenya",
                "posting_date": "2024-01-10",
                "apply_until": "2024-01-20",
                "languages": "English, French",
            },
            {
                "id": "J2",
                "job_labels": "Python, Data Analysis",
                "up_grade": "P3",
                "short_agency": "UNICEF",
                "duty_country": "Kenya",
                "posting_date": "2024-02-10",
                "apply_until": "2024-03-30",
                "languages": "English",
            },
            {
                "id": "J3",
                "job_labels": "Python, Leadership",
                "up_grade": "D1",
                "short_agency": "WFP",
                "duty_country": "Kenya",
                "posting_date": "2024-03-05",
                "apply_until": "2024-03-15",
                "classification_confidence": 30,
                "languages": "English, French",
            },
            {
                "id": "J4",
                "job_labels": "Climate Finance, GIS",
                "up_grade": "P2",
                "short_agency": "",
                "long_agency": "Food and Agriculture Organization",
                "duty_country": "Italy",
                "posting_date": "",
                "apply_until": "",
                "primary_category": "Climate & Environment",
                "is_ambiguous_category": True,
                "languages": "",
            },
        ]
    )


@pytest.fixture
def now():
    return pd.Timestamp("2024-03-20")
