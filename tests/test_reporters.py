"""Tests for the text and CSV report writers."""

import dataclasses

import pandas as pd
import pytest

from conftest import CRASHES_CSV, write_tables
from nzcrash.core.verify import run_checks
from nzcrash.io.readers import load
from nzcrash.io.reporters import REPORT_COLUMNS, write_csv_report, write_text_report


@pytest.fixture
def flagged_results(tmp_path):
    """Checks run over tables with an N2 failure, a duplicate vehicle and orphans."""
    crashes = CRASHES_CSV.replace("fatal,1,", "minor,1,")
    tables = load(write_tables(tmp_path / "data", crashes=crashes), strict=False)

    vehicles = pd.concat([tables.vehicles, tables.vehicles.iloc[[1]]], ignore_index=True)
    objects_struck = pd.concat([
        tables.objects_struck,
        pd.DataFrame({"id": pd.array(["c9"], dtype="string"), "object": ["Pole"]}),
    ], ignore_index=True)
    tables = dataclasses.replace(tables, vehicles=vehicles, objects_struck=objects_struck)
    return run_checks(tables)


def _read(path):
    return pd.read_csv(path, encoding="utf-8-sig", dtype=str, keep_default_na=False)


def test_csv_keys_in_their_own_columns(flagged_results, tmp_path):
    report = _read(write_csv_report(flagged_results, tmp_path / "report.csv"))

    assert report.columns.tolist()[:len(REPORT_COLUMNS)] == REPORT_COLUMNS
    rows = report.set_index("check_id")

    assert rows.loc["N2", "table"] == "crashes"
    assert rows.loc["N2", "id"] == "c2"
    assert "severity 'minor'" in rows.loc["N2", "reason"]

    assert rows.loc["N4", "table"] == "vehicles"
    assert (rows.loc["N4", "id"], rows.loc["N4", "vehicle_id"]) == ("c1", "2")
    assert rows.loc["N4", "rows"] == "2"

    assert rows.loc["N6.3", "table"] == "objects_struck"
    assert rows.loc["N6.3", "id"] == "c9"
    assert rows.loc["N6.3", "status"] == "warning"


def test_csv_one_row_per_flagged_record(flagged_results, tmp_path):
    report = _read(write_csv_report(flagged_results, tmp_path / "report.csv"))

    # the N6 parent only aggregates its sub-checks
    assert sorted(report["check_id"]) == ["N2", "N4", "N6.3"]


def test_csv_missing_column_failure(tables, tmp_path):
    crashes = tables.crashes.drop(columns=["northing"])
    results = run_checks(dataclasses.replace(tables, crashes=crashes), checks=["N5"])

    report = _read(write_csv_report(results, tmp_path / "report.csv"))

    assert report[["check_id", "status", "table"]].values.tolist() == [["N5", "fail", "crashes"]]
    assert "northing" in report.loc[0, "reason"]
    assert report.loc[0, "id"] == ""


def test_csv_clean_data_has_header_only(tables, tmp_path):
    report = _read(write_csv_report(run_checks(tables), tmp_path / "report.csv"))

    assert report.empty
    assert report.columns.tolist() == REPORT_COLUMNS


def test_text_report(flagged_results, tmp_path):
    path = write_text_report(
        flagged_results,
        tmp_path / "out" / "report.txt",
        table_counts={"crashes": 4, "vehicles": 7},
    )

    text = path.read_text(encoding="utf-8")
    assert "NZ Crash Data Verification Report" in text
    assert "Rows per table:" in text
    assert "6 checks run: 2 failed, 1 with warnings" in text
    assert "✗ N2: Severity valid and consistent with fatalities [crashes]" in text
    assert "    ⚠ N6.3: objects_struck ids present in crashes [objects_struck]" in text
    assert text.rstrip().endswith("=" * 80)


def test_text_report_caps_flagged_rows(tables, tmp_path):
    crashes = tables.crashes.copy()
    crashes["northing"] = None
    results = run_checks(dataclasses.replace(tables, crashes=crashes), checks=["N5"])

    text = write_text_report(results, tmp_path / "report.txt", max_rows=1).read_text(encoding="utf-8")

    assert "… 2 more" in text
