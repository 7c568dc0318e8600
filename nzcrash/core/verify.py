"""
Data-quality verification checks for the crash tables.

Checks N1–N5 cover the invariants every analysis relies on; a violation is a
``"fail"``.  N6 covers referential integrity between the tables, where an
orphan row only makes a join drop it, so violations are ``"warning"``.

Every public ``check_*`` function follows the same contract:

    Parameters
    ----------
    tables : CrashTables

    Returns
    -------
    VerificationResult
"""

from __future__ import annotations

import logging

import pandas as pd

from nzcrash.config.constants import (
    COL_DATE,
    COL_DATETIME,
    COL_EASTING,
    COL_FATALITIES,
    COL_ID,
    COL_NORTHING,
    COL_SEVERITY,
    COL_TIME,
    COL_VEHICLE_ID,
    NZ_TIMEZONE,
    SEVERITY_FATAL,
    SEVERITY_LEVELS,
    TABLE_CAUSES,
    TABLE_CRASHES,
    TABLE_OBJECTS_STRUCK,
    TABLE_VEHICLES,
)
from nzcrash.core.tables import CrashTables
from nzcrash.io.reporters import COL_REASON, VerificationResult

logger = logging.getLogger(__name__)


def _missing_columns(
    check_id: str,
    check_name: str,
    df: pd.DataFrame,
    columns: list[str],
    table: str,
) -> VerificationResult | None:
    missing = [c for c in columns if c not in df.columns]
    if not missing:
        return None
    return VerificationResult(
        check_id=check_id,
        check_name=check_name,
        status="fail",
        summary=f"✗ Missing columns: {missing}",
        issue_count=0,
        table=table,
    )


def _result(
    check_id: str,
    check_name: str,
    rows: list[dict],
    ok_summary: str,
    bad_summary: str,
    *,
    table: str,
    bad_status: str = "fail",
) -> VerificationResult:
    n = len(rows)
    return VerificationResult(
        check_id=check_id,
        check_name=check_name,
        status="pass" if n == 0 else bad_status,
        summary=ok_summary if n == 0 else bad_summary.format(n=n),
        issue_count=n,
        details=pd.DataFrame(rows) if rows else None,
        table=table,
    )


def combine_date_time(dates: pd.Series, times: pd.Series) -> pd.Series:
    """Combine a date column and a time-of-day column into local datetimes.

    Rows without a time give ``NaT``.
    """
    has_time = times.notna()
    as_text = times.map(lambda t: None if pd.isna(t) else str(t))
    offsets = pd.to_timedelta(as_text, errors="coerce")
    combined = pd.to_datetime(dates).dt.normalize() + offsets
    return combined.where(has_time)


def _naive_local(series: pd.Series) -> pd.Series:
    series = pd.to_datetime(series)
    if getattr(series.dt, "tz", None) is not None:
        series = series.dt.tz_convert(NZ_TIMEZONE).dt.tz_localize(None)
    return series


# ╔═══════════════════════════════════════════════════════════════════════════╗
# ║  INVARIANT CHECKS  (N1 – N5)                                            ║
# ╚═══════════════════════════════════════════════════════════════════════════╝


def check_n1_crash_key(tables: CrashTables) -> VerificationResult:
    """**N1 — Crash primary key** is present and unique."""
    name = "Crash primary key (id) unique and present"
    crashes = tables.crashes
    bad = _missing_columns("N1", name, crashes, [COL_ID], TABLE_CRASHES)
    if bad is not None:
        return bad

    rows = []
    n_null = int(crashes[COL_ID].isna().sum())
    if n_null:
        rows.append({COL_ID: None, COL_REASON: f"Missing id ({n_null} rows)"})

    counts = crashes[COL_ID].dropna().value_counts()
    for cid, n in counts[counts > 1].sort_index().items():
        rows.append({COL_ID: cid, COL_REASON: f"Duplicate id ({n} rows)"})

    return _result(
        "N1", name, rows,
        f"✓ All {len(crashes):,} crashes have a unique id",
        "✗ {n} crash ids missing or duplicated",
        table=TABLE_CRASHES,
    )


def check_n2_severity(tables: CrashTables) -> VerificationResult:
    """**N2 — Severity** is a known level and every crash with a fatality
    is classified ``fatal``."""
    name = "Severity valid and consistent with fatalities"
    crashes = tables.crashes
    bad = _missing_columns(
        "N2", name, crashes, [COL_ID, COL_SEVERITY, COL_FATALITIES], TABLE_CRASHES
    )
    if bad is not None:
        return bad

    severity = crashes[COL_SEVERITY].astype("string")
    fatalities = pd.to_numeric(crashes[COL_FATALITIES], errors="coerce")

    unknown = crashes[~severity.isin(SEVERITY_LEVELS).fillna(False)]
    bad_fatal = crashes[(fatalities > 0).fillna(False) & (severity != SEVERITY_FATAL).fillna(True)]
    negative = crashes[(fatalities < 0).fillna(False) | fatalities.isna()]

    rows = []
    for _, r in unknown.iterrows():
        rows.append({COL_ID: r[COL_ID], COL_REASON: f"Unknown severity {r[COL_SEVERITY]!r}"})
    for _, r in bad_fatal.iterrows():
        if r.name in unknown.index:
            continue
        rows.append({
            COL_ID: r[COL_ID],
            COL_REASON: f"{r[COL_FATALITIES]} fatalities but severity {r[COL_SEVERITY]!r}",
        })
    for _, r in negative.iterrows():
        rows.append({COL_ID: r[COL_ID], COL_REASON: f"Invalid fatality count {r[COL_FATALITIES]!r}"})

    return _result(
        "N2", name, rows,
        "✓ Every crash with a fatality is classified fatal",
        "✗ {n} crashes with invalid or inconsistent severity",
        table=TABLE_CRASHES,
    )


def check_n3_time(tables: CrashTables) -> VerificationResult:
    """**N3 — Date/time consistency**.

    ``date`` is never null, ``datetime`` is null exactly when ``time`` is,
    and otherwise equals ``date`` combined with ``time``.
    """
    name = "Date, time and datetime consistency"
    crashes = tables.crashes
    bad = _missing_columns(
        "N3", name, crashes, [COL_ID, COL_DATE, COL_TIME, COL_DATETIME], TABLE_CRASHES
    )
    if bad is not None:
        return bad

    has_time = crashes[COL_TIME].notna()
    has_datetime = crashes[COL_DATETIME].notna()
    actual = _naive_local(crashes[COL_DATETIME])
    expected = combine_date_time(crashes[COL_DATE], crashes[COL_TIME])

    rows = []
    for cid in crashes.loc[crashes[COL_DATE].isna(), COL_ID]:
        rows.append({COL_ID: cid, COL_REASON: "Missing date"})
    for cid in crashes.loc[has_time & ~has_datetime, COL_ID]:
        rows.append({COL_ID: cid, COL_REASON: "time recorded but datetime missing"})
    for cid in crashes.loc[~has_time & has_datetime, COL_ID]:
        rows.append({COL_ID: cid, COL_REASON: "datetime present but time missing"})

    both = has_time & has_datetime & crashes[COL_DATE].notna()
    mismatch = both & (actual != expected)
    for idx in crashes.index[mismatch]:
        rows.append({
            COL_ID: crashes.at[idx, COL_ID],
            COL_REASON: f"datetime {actual[idx]} != date + time {expected[idx]}",
        })

    return _result(
        "N3", name, rows,
        "✓ All crashes have consistent date, time and datetime",
        "✗ {n} crashes with inconsistent date/time fields",
        table=TABLE_CRASHES,
    )


def check_n4_vehicle_key(tables: CrashTables) -> VerificationResult:
    """**N4 — Vehicle key** ``(id, vehicle_id)`` is unique."""
    name = "Vehicle key (id, vehicle_id) unique"
    vehicles = tables.vehicles
    keys = [COL_ID, COL_VEHICLE_ID]
    bad = _missing_columns("N4", name, vehicles, keys, TABLE_VEHICLES)
    if bad is not None:
        return bad

    counts = vehicles.groupby(keys, dropna=False).size()
    dups = counts[counts > 1]
    rows = [
        {COL_ID: cid, COL_VEHICLE_ID: vid, "rows": int(n)}
        for (cid, vid), n in dups.items()
    ]

    return _result(
        "N4", name, rows,
        f"✓ All {len(vehicles):,} vehicle rows have a unique key",
        "✗ {n} duplicated (id, vehicle_id) pairs",
        table=TABLE_VEHICLES,
    )


def check_n5_coordinates(tables: CrashTables) -> VerificationResult:
    """**N5 — Coordinates** are both present or both absent."""
    name = "Easting/northing present together"
    crashes = tables.crashes
    bad = _missing_columns("N5", name, crashes, [COL_ID, COL_EASTING, COL_NORTHING], TABLE_CRASHES)
    if bad is not None:
        return bad

    half = crashes[COL_EASTING].isna() != crashes[COL_NORTHING].isna()
    rows = [
        {
            COL_ID: r[COL_ID],
            COL_EASTING: r[COL_EASTING],
            COL_NORTHING: r[COL_NORTHING],
        }
        for _, r in crashes[half].iterrows()
    ]
    n_located = int((crashes[COL_EASTING].notna() & crashes[COL_NORTHING].notna()).sum())

    return _result(
        "N5", name, rows,
        f"✓ Coordinates consistent ({n_located:,} of {len(crashes):,} crashes located)",
        "✗ {n} crashes with only one coordinate",
        table=TABLE_CRASHES,
    )


# ╔═══════════════════════════════════════════════════════════════════════════╗
# ║  REFERENTIAL INTEGRITY  (N6)                                             ║
# ╚═══════════════════════════════════════════════════════════════════════════╝


def _orphan_ids(
    check_id: str,
    child: pd.DataFrame,
    child_name: str,
    crash_ids: set,
) -> VerificationResult:
    ids = child[COL_ID].dropna()
    orphans = sorted(set(ids.unique()) - crash_ids, key=str)
    rows = [{COL_ID: cid} for cid in orphans]
    return _result(
        check_id,
        f"{child_name} ids present in crashes",
        rows,
        f"✓ All {child_name} rows belong to a known crash",
        f"⚠ {{n}} {child_name} crash ids not found in crashes",
        bad_status="warning",
        table=child_name,
    )


def check_n6_referential_integrity(tables: CrashTables) -> VerificationResult:
    """**N6 — Referential integrity** between the four tables.

    Sub-checks:
      * N6.1  causes.id in crashes.
      * N6.2  vehicles.id in crashes.
      * N6.3  objects_struck.id in crashes.
      * N6.4  causes (id, vehicle_id) in vehicles, where vehicle_id is set.
    """
    name = "Referential integrity between tables"
    for table, df in (
        (TABLE_CRASHES, tables.crashes),
        (TABLE_CAUSES, tables.causes),
        (TABLE_VEHICLES, tables.vehicles),
        (TABLE_OBJECTS_STRUCK, tables.objects_struck),
    ):
        bad = _missing_columns("N6", f"{name} ({table})", df, [COL_ID], table)
        if bad is not None:
            return bad

    crash_ids = set(tables.crashes[COL_ID].dropna().unique())
    sub_results = [
        _orphan_ids("N6.1", tables.causes, TABLE_CAUSES, crash_ids),
        _orphan_ids("N6.2", tables.vehicles, TABLE_VEHICLES, crash_ids),
        _orphan_ids("N6.3", tables.objects_struck, TABLE_OBJECTS_STRUCK, crash_ids),
    ]

    keys = [COL_ID, COL_VEHICLE_ID]
    if all(k in tables.causes.columns for k in keys) and all(
        k in tables.vehicles.columns for k in keys
    ):
        attributed = tables.causes.dropna(subset=keys)[keys].drop_duplicates()
        known = tables.vehicles[keys].drop_duplicates()
        merged = attributed.merge(known, on=keys, how="left", indicator=True)
        unmatched = merged[merged["_merge"] == "left_only"]
        rows = [
            {COL_ID: r[COL_ID], COL_VEHICLE_ID: r[COL_VEHICLE_ID]}
            for _, r in unmatched.iterrows()
        ]
        sub_results.append(_result(
            "N6.4",
            "causes (id, vehicle_id) present in vehicles",
            rows,
            "✓ Every vehicle-attributed cause matches a vehicle",
            "⚠ {n} cause vehicle keys not found in vehicles",
            bad_status="warning",
            table=TABLE_CAUSES,
        ))

    total = sum(s.issue_count for s in sub_results)
    return VerificationResult(
        check_id="N6",
        check_name=name,
        status="pass" if total == 0 else "warning",
        summary=f"{total} total issues across sub-checks",
        issue_count=total,
        sub_results=sub_results,
    )


# ╔═══════════════════════════════════════════════════════════════════════════╗
# ║  RUNNER                                                                 ║
# ╚═══════════════════════════════════════════════════════════════════════════╝

CHECKS = {
    "N1": check_n1_crash_key,
    "N2": check_n2_severity,
    "N3": check_n3_time,
    "N4": check_n4_vehicle_key,
    "N5": check_n5_coordinates,
    "N6": check_n6_referential_integrity,
}

# Row invariants enforced by a strict load
INVARIANT_CHECKS: list[str] = ["N2", "N3", "N5"]


def run_checks(
    tables: CrashTables,
    *,
    checks: list[str] | None = None,
) -> list[VerificationResult]:
    """Run selected verification checks and return results.

    Parameters
    ----------
    tables : CrashTables
    checks : list[str], optional
        Run only checks whose id appears in this list (e.g. ``["N1", "N3"]``).
        If ``None``, run all.

    Returns
    -------
    list[VerificationResult]
    """
    if checks is not None:
        unknown = [c for c in checks if c not in CHECKS]
        if unknown:
            raise ValueError(f"unknown checks {unknown}; expected some of {list(CHECKS)}")

    results = []
    for check_id, func in CHECKS.items():
        if checks is not None and check_id not in checks:
            continue
        result = func(tables)
        logger.debug("%s: %s (%d issues)", check_id, result.status, result.issue_count)
        results.append(result)

    return results

