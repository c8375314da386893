from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping

import numpy as np
import pandas as pd


logger = logging.getLogger(__name__)

REQUIRED_JOB_COLUMNS = [
    "id",
    "url",
    "title",
    "description",
    "primary_category",
    "classification_confidence",
    "is_ambiguous_category",
    "job_labels",
    "up_grade",
    "short_agency",
    "long_agency",
    "duty_country",
    "duty_station",
    "posting_date",
    "apply_until",
    "application_window_days",
    "emerging_terms_found",
    "languages",
    "hybrid_category_candidate",
]

TEXT_COLUMNS = [
    "id",
    "url",
    "title",
    "description",
    "primary_category",
    "job_labels",
    "up_grade",
    "short_agency",
    "long_agency",
    "duty_country",
    "duty_station",
    "languages",
    "hybrid_category_candidate",
]

DEFAULT_CONFIDENCE = 50
TRUTHY_VALUES = {"true", "1", "yes", "t"}


def project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def raw_data_dir() -> Path:
    return project_root() / "data" / "raw"


def _ensure_columns(frame: pd.DataFrame, columns: list[str]) -> pd.DataFrame:
    for column in columns:
        if column not in frame.columns:
            frame[column] = ""
    return frame


def _clean_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and np.isnan(value):
        return ""
    text = str(value).strip()
    if text.lower() in {"nan", "none", "null", "nat"}:
        return ""
    return text


def _parse_flag(value) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    return _clean_text(value).lower() in TRUTHY_VALUES


def _parse_terms(value) -> list[str]:
    if isinstance(value, (list, tuple, set, np.ndarray)):
        return [str(term).strip() for term in value if str(term).strip()]

    text = _clean_text(value).strip("[]")
    if not text:
        return []
    parts = text.replace(";", ",").split(",")
    return [part.strip().strip("'\"").strip() for part in parts if part.strip().strip("'\"").strip()]


def _parse_dates(values: pd.Series) -> pd.Series:
    # Offsets such as a trailing Z are folded into naive UTC timestamps.
    parsed = pd.to_datetime(values, errors="coerce", utc=True, format="mixed")
    return parsed.dt.tz_convert(None)


def _resolve_agency(short_agency: pd.Series, long_agency: pd.Series) -> pd.Series:
    return short_agency.where(short_agency != "", long_agency)


def _application_window(frame: pd.DataFrame) -> pd.Series:
    provided = pd.to_numeric(frame["application_window_days"], errors="coerce")
    computed = (frame["apply_until"] - frame["posting_date"]).dt.days.clip(lower=0)
    return computed.where(computed.notna(), provided)


def normalize_records(records: pd.DataFrame | Iterable[Mapping]) -> pd.DataFrame:
    """Build the normalized job frame every aggregator consumes.

    Accepts a DataFrame or any iterable of mappings and never modifies the
    caller's object. Blank or unparseable fields become neutral defaults:
    empty strings, NaT dates, a confidence of 50 and empty term lists.
    """
    if isinstance(records, pd.DataFrame):
        frame = records.copy()
    else:
        frame = pd.DataFrame(list(records))

    frame = _ensure_columns(frame, REQUIRED_JOB_COLUMNS)

    for column in TEXT_COLUMNS:
        frame[column] = frame[column].map(_clean_text)

    frame["agency"] = _resolve_agency(frame["short_agency"], frame["long_agency"])

    confidence = pd.to_numeric(frame["classification_confidence"], errors="coerce")
    frame["classification_confidence"] = confidence.fillna(DEFAULT_CONFIDENCE).astype(float)

    frame["is_ambiguous_category"] = frame["is_ambiguous_category"].map(_parse_flag).astype(bool)
    frame["emerging_terms_found"] = frame["emerging_terms_found"].map(_parse_terms)

    frame["posting_date"] = _parse_dates(frame["posting_date"])
    frame["apply_until"] = _parse_dates(frame["apply_until"])
    frame["application_window_days"] = _application_window(frame)

    frame["posting_year"] = frame["posting_date"].dt.year.astype("Int64")
    frame["posting_month"] = frame["posting_date"].dt.strftime("%Y-%m").fillna("")

    frame = frame.reset_index(drop=True)
    logger.debug("Normalized %d job records", len(frame))
    return frame


def load_records(path: Path | str) -> pd.DataFrame:
    source = Path(path)
    if not source.exists():
        raise FileNotFoundError(f"Job dataset not found: {source}")

    suffix = source.suffix.lower()
    if suffix == ".csv":
        raw = pd.read_csv(source, dtype=str, keep_default_na=False)
    elif suffix == ".json":
        raw = pd.read_json(source, dtype=False)
    else:
        raise ValueError(f"Unsupported dataset format: {source.suffix}")

    logger.info("Loaded %d job records from %s", len(raw), source)
    return normalize_records(raw)


def empty_records() -> pd.DataFrame:
    return normalize_records([])
