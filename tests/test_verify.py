"""Tests for the data-quality checks."""

import dataclasses
import datetime as dt

import pandas as pd
import pytest

from nzcrash.core.verify import CHECKS, combine_date_time, run_checks


def _replace(tables, **frames):
    return dataclasses.replace(tables, **frames)


def test_sample_data_passes_every_check(tables):
    results = run_checks(tables)

    assert [r.check_id for r in results] == list(CHECKS)
    assert all(r.status == "pass" for r in results), [r.summary for r in results]


def test_run_selected_checks(tables):
    results = run_checks(tables, checks=["N3", "N1"])

    assert [r.check_id for r in results] == ["N1", "N3"]


def test_unknown_check_id(tables):
    with pytest.raises(ValueError, match="N9"):
        run_checks(tables, checks=["N9"])


def test_n1_duplicate_and_missing_ids(tables):
    crashes = pd.concat([tables.crashes, tables.crashes.iloc[[0]]], ignore_index=True)
    crashes.loc[1, "id"] = None

    result = run_checks(_replace(tables, crashes=crashes), checks=["N1"])[0]

    assert result.status == "fail"
    assert result.issue_count == 2
    assert "c1" in result.details["id"].tolist()


def test_n2_fatality_not_fatal(tables):
    crashes = tables.crashes.copy()
    crashes["severity"] = crashes["severity"].astype(str)
    crashes.loc[crashes["id"] == "c2", "severity"] = "minor"

    result = run_checks(_replace(tables, crashes=crashes), checks=["N2"])[0]

    assert result.status == "fail"
    assert result.details["id"].tolist() == ["c2"]


def test_n2_unknown_severity(tables):
    crashes = tables.crashes.copy()
    crashes["severity"] = crashes["severity"].astype(str)
    crashes.loc[crashes["id"] == "c4", "severity"] = "bad"

    result = run_checks(_replace(tables, crashes=crashes), checks=["N2"])[0]

    assert result.issue_count == 1
    assert "Unknown severity" in result.details["reason"].item()


def test_n3_mismatched_datetime(tables):
    crashes = tables.crashes.copy()
    crashes.loc[crashes["id"] == "c2", "datetime"] = pd.Timestamp("2020-06-01 09:00")

    result = run_checks(_replace(tables, crashes=crashes), checks=["N3"])[0]

    assert result.status == "fail"
    assert result.details["id"].tolist() == ["c2"]


def test_n3_time_without_datetime(tables):
    crashes = tables.crashes.copy()
    crashes.loc[crashes["id"] == "c3", "datetime"] = pd.NaT

    result = run_checks(_replace(tables, crashes=crashes), checks=["N3"])[0]

    assert result.issue_count == 1
    assert "datetime missing" in result.details["reason"].item()


def test_n3_accepts_aware_datetimes(tables):
    crashes = tables.crashes.copy()
    crashes["datetime"] = crashes["datetime"].dt.tz_localize("Pacific/Auckland").dt.tz_convert("UTC")

    result = run_checks(_replace(tables, crashes=crashes), checks=["N3"])[0]

    assert result.status == "pass"


def test_n4_duplicate_vehicle_key(tables):
    vehicles = pd.concat([tables.vehicles, tables.vehicles.iloc[[1]]], ignore_index=True)

    result = run_checks(_replace(tables, vehicles=vehicles), checks=["N4"])[0]

    assert result.status == "fail"
    assert result.details[["id", "vehicle_id"]].values.tolist() == [["c1", 2]]


def test_n5_single_coordinate(tables):
    crashes = tables.crashes.copy()
    crashes.loc[crashes["id"] == "c1", "northing"] = None

    result = run_checks(_replace(tables, crashes=crashes), checks=["N5"])[0]

    assert result.status == "fail"
    assert result.details["id"].tolist() == ["c1"]


def test_n6_orphans_are_warnings(tables):
    causes = pd.concat([
        tables.causes,
        pd.DataFrame({
            "id": pd.array(["c9", "c2"], dtype="string"),
            "vehicle_id": pd.array([1, 5], dtype="Int64"),
            "cause_category": ["Driver", "Driver"],
            "cause_subcategory": ["Inattentive", "Inattentive"],
            "cause": ["Failed to look", "Failed to look"],
        }),
    ], ignore_index=True)

    result = run_checks(_replace(tables, causes=causes), checks=["N6"])[0]

    assert result.status == "warning"
    by_id = {sub.check_id: sub for sub in result.sub_results}
    assert by_id["N6.1"].details["id"].tolist() == ["c9"]
    assert by_id["N6.1"].table == "causes"
    assert by_id["N6.4"].table == "causes"
    assert by_id["N6.2"].status == "pass"
    # (c9, 1) and (c2, 5) match no vehicle
    assert by_id["N6.4"].issue_count == 2
    assert result.issue_count == 3


def test_missing_column_fails_check(tables):
    crashes = tables.crashes.drop(columns=["easting"])

    result = run_checks(_replace(tables, crashes=crashes), checks=["N5"])[0]

    assert result.status == "fail"
    assert "easting" in result.summary


def test_combine_date_time():
    dates = pd.Series(pd.to_datetime(["2020-01-01", "2020-06-01"]))
    times = pd.Series([None, dt.time(8, 5, 30)], dtype=object)

    out = combine_date_time(dates, times)

    assert pd.isna(out[0])
    assert out[1] == pd.Timestamp("2020-06-01 08:05:30")
