from __future__ import annotations

import argparse
import json
import logging

from workforce_intel.core.data import load_records, raw_data_dir
from workforce_intel.core.filters import ALL, TIME_RANGE_MONTHS, FilterOptions
from workforce_intel.core.service import AnalyticsService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Summarize a job postings dataset as JSON.")
    parser.add_argument(
        "path",
        nargs="?",
        default=str(raw_data_dir() / "jobs.csv"),
        help="CSV or JSON file of classified job postings (default: data/raw/jobs.csv)",
    )
    parser.add_argument("--agency", default=ALL, help="Restrict to one agency (default: all)")
    parser.add_argument(
        "--time-range",
        default=ALL,
        choices=[ALL, *TIME_RANGE_MONTHS],
        help="Posting date window (default: all)",
    )
    parser.add_argument("--months", type=int, default=None, help="Months of history for trend analysis")
    parser.add_argument("--verbose", action="store_true", help="Log debug output")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    records = load_records(args.path)
    service = AnalyticsService()
    options = FilterOptions(selected_agency=args.agency, time_range=args.time_range)
    summary = service.summary(records, options, months=args.months)
    print(json.dumps(summary, indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
