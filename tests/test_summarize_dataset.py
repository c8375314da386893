"""Tests for the dataset summary command."""

import json

import pytest

from workforce_intel.scripts.summarize_dataset import build_parser, main


def test_summary_printed_as_json(tmp_path, capsys):
    """The command prints the full summary for a CSV file"""
    path = tmp_path / "jobs.csv"
    path.write_text(
        "id,title,short_agency,job_labels,posting_date,languages\n"
        "J1,Data Analyst,UNDP,\"Python, SQL\",2024-02-01,English\n"
        "J2,Statistician,WFP,Python,2024-03-01,\"English, French\"\n",
        encoding="utf-8",
    )
    assert main([str(path), "--months", "0"]) == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["total_jobs"] == 2
    assert summary["skills"]["top_skills"][0]["skill"] == "Python"


def test_agency_option(tmp_path, capsys):
    """--agency narrows every panel"""
    path = tmp_path / "jobs.csv"
    path.write_text("id,short_agency\nJ1,UNDP\nJ2,WFP\n", encoding="utf-8")
    main([str(path), "--agency", "WFP", "--months", "0"])
    summary = json.loads(capsys.readouterr().out)
    assert summary["filtered_jobs"] == 1
    assert summary["filters"]["selected_agency"] == "WFP"


def test_rejects_unknown_time_range():
    """Only known time ranges are accepted"""
    with pytest.raises(SystemExit):
        build_parser().parse_args(["jobs.csv", "--time-range", "decade"])
