"""
Example analyses over the crash tables.

Each function returns an already-aggregated table, ready to print or chart.
They follow three rules:

  1. Time buckets come from ``date`` (via :func:`derive_year`), never from
     ``datetime``, so crashes with no recorded time still count.
  2. Counts of crashes through a child table (causes, vehicles, objects)
     are distinct crash counts (:func:`count_crashes`).
  3. Counts of *fatal crashes* and sums of *fatalities* are kept in separate
     columns.
"""

from __future__ import annotations

import logging

import pandas as pd

from nzcrash.config.constants import (
    COL_CAUSE,
    COL_CAUSE_CATEGORY,
    COL_CAUSE_SUBCATEGORY,
    COL_COUNT,
    COL_DATE,
    COL_FATALITIES,
    COL_HOUR,
    COL_ID,
    COL_OBJECT,
    COL_SEVERITY,
    COL_TIME,
    COL_VEHICLE,
    COL_VEHICLE_ID,
    COL_YEAR,
    SEVERITY_FATAL,
    TABLE_CAUSES,
    TABLE_CRASHES,
    TABLE_OBJECTS_STRUCK,
    TABLE_VEHICLES,
)
from nzcrash.core.relational import (
    SEVERITY_RANKS,
    aggregate,
    as_ordered,
    count_crashes,
    derive_year,
    join,
    rank_levels,
    require_columns,
)

logger = logging.getLogger(__name__)

CAUSE_LEVELS: dict[str, str] = {
    "category": COL_CAUSE_CATEGORY,
    "subcategory": COL_CAUSE_SUBCATEGORY,
    "cause": COL_CAUSE,
}


def _with_year(crashes: pd.DataFrame) -> pd.DataFrame:
    require_columns(crashes, [COL_DATE], TABLE_CRASHES)
    out = crashes.copy()
    out[COL_YEAR] = derive_year(out[COL_DATE])
    return out


def _ranked(df: pd.DataFrame, label_col: str) -> pd.DataFrame:
    """Order *df* by descending count and make *label_col* an ordered axis."""
    levels = rank_levels(df[label_col], weights=df[COL_COUNT])
    out = df.copy()
    out[label_col] = as_ordered(out[label_col].astype("string"), levels)
    return out.sort_values(label_col).reset_index(drop=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Crash counts over time
# ═══════════════════════════════════════════════════════════════════════════════

def filter_by_year(
    crashes: pd.DataFrame,
    start_year: int,
    end_year: int,
) -> pd.DataFrame:
    """Return crashes whose ``date`` year is within ``[start_year, end_year]``."""
    years = derive_year(crashes[COL_DATE])
    mask = (years >= start_year) & (years <= end_year)
    return crashes.loc[mask.fillna(False)].copy()


def crashes_by_year(crashes: pd.DataFrame) -> pd.DataFrame:
    """Number of crashes per calendar year: ``year, n``."""
    return aggregate(_with_year(crashes), COL_YEAR, "count", table_name=TABLE_CRASHES)


def fatalities_by_year(crashes: pd.DataFrame) -> pd.DataFrame:
    """Fatal crashes and fatalities per year.

    Returns ``year, fatal_crashes, fatalities``.  A crash that killed three
    people is one fatal crash and three fatalities.
    """
    df = _with_year(crashes)
    require_columns(df, [COL_SEVERITY, COL_FATALITIES], TABLE_CRASHES)
    df["_is_fatal"] = (df[COL_SEVERITY].astype("string") == SEVERITY_FATAL).astype(int)

    fatal = aggregate(df, COL_YEAR, "sum", column="_is_fatal", name="fatal_crashes")
    deaths = aggregate(df, COL_YEAR, "sum", column=COL_FATALITIES)
    return fatal.merge(deaths, on=COL_YEAR)


def severity_by_year(crashes: pd.DataFrame) -> pd.DataFrame:
    """Crashes per year and severity: ``year, severity, n``.

    ``severity`` is ordered most to least severe.
    """
    df = _with_year(crashes)
    require_columns(df, [COL_SEVERITY], TABLE_CRASHES)
    df[COL_SEVERITY] = as_ordered(df[COL_SEVERITY].astype("string"), SEVERITY_RANKS)
    return aggregate(df, [COL_YEAR, COL_SEVERITY], "count", table_name=TABLE_CRASHES)


def crashes_by_hour(crashes: pd.DataFrame) -> tuple[pd.DataFrame, int]:
    """Crashes per hour of day, from the recorded ``time``.

    Returns
    -------
    (counts, n_without_time)
        ``counts`` has columns ``hour, n`` over crashes with a recorded time;
        ``n_without_time`` is the number of crashes left out because their
        time was not recorded.
    """
    require_columns(crashes, [COL_TIME], TABLE_CRASHES)
    has_time = crashes[COL_TIME].notna()
    timed = crashes.loc[has_time].copy()
    timed[COL_HOUR] = timed[COL_TIME].map(lambda t: t.hour).astype("int64")
    n_missing = int((~has_time).sum())
    if n_missing:
        logger.info("crashes_by_hour: %d crashes have no recorded time", n_missing)
    return aggregate(timed, COL_HOUR, "count", table_name=TABLE_CRASHES), n_missing


# ═══════════════════════════════════════════════════════════════════════════════
# Causes
# ═══════════════════════════════════════════════════════════════════════════════

def crashes_by_cause(
    causes: pd.DataFrame,
    level: str = "category",
) -> pd.DataFrame:
    """Distinct crashes per cause, most frequent first.

    Parameters
    ----------
    causes : pd.DataFrame
    level : str
        ``"category"``, ``"subcategory"`` or ``"cause"``.

    Returns
    -------
    pd.DataFrame — ``<cause column>, n`` with the cause column an ordered
    categorical ranked by ``n``.
    """
    if level not in CAUSE_LEVELS:
        raise ValueError(f"level must be one of {list(CAUSE_LEVELS)}, not {level!r}")
    col = CAUSE_LEVELS[level]
    counts = count_crashes(causes, col, table_name=TABLE_CAUSES)
    return _ranked(counts, col)


def cause_trend(
    causes: pd.DataFrame,
    crashes: pd.DataFrame,
    subcategory: str,
) -> pd.DataFrame:
    """Crashes per year with at least one cause in *subcategory*.

    E.g. ``cause_trend(causes, crashes, "Alcohol or drugs")``.  Years with no
    such crash are reported with ``n == 0``.
    """
    require_columns(causes, [COL_ID, COL_CAUSE_SUBCATEGORY], TABLE_CAUSES)
    selected = causes.loc[causes[COL_CAUSE_SUBCATEGORY] == subcategory, [COL_ID]]
    dated = _with_year(crashes)[[COL_ID, COL_YEAR]]
    matched = join(selected, dated, COL_ID, left_name=TABLE_CAUSES, right_name=TABLE_CRASHES)
    counts = count_crashes(matched, COL_YEAR, table_name=TABLE_CAUSES)

    years = pd.DataFrame({COL_YEAR: sorted(dated[COL_YEAR].dropna().unique())})
    years[COL_YEAR] = years[COL_YEAR].astype("Int64")
    out = years.merge(counts, on=COL_YEAR, how="left")
    out[COL_COUNT] = out[COL_COUNT].fillna(0).astype("int64")
    return out


def vehicle_causes(
    causes: pd.DataFrame,
    vehicles: pd.DataFrame,
    vehicle: str,
    level: str = "subcategory",
) -> pd.DataFrame:
    """Causes attributed to vehicles of type *vehicle*, e.g. ``"Bicycle"``.

    Causes join to vehicles on ``(id, vehicle_id)``, so a cause attributed
    to the car in a car-vs-bicycle crash is not counted against the
    bicycle.  Returns distinct crash counts like :func:`crashes_by_cause`.
    """
    require_columns(vehicles, [COL_VEHICLE], TABLE_VEHICLES)
    of_type = vehicles.loc[vehicles[COL_VEHICLE] == vehicle, [COL_ID, COL_VEHICLE_ID]]
    attributed = join(
        causes,
        of_type,
        [COL_ID, COL_VEHICLE_ID],
        left_name=TABLE_CAUSES,
        right_name=TABLE_VEHICLES,
    )
    return crashes_by_cause(attributed, level)


# ═══════════════════════════════════════════════════════════════════════════════
# Vehicles and objects struck
# ═══════════════════════════════════════════════════════════════════════════════

def crashes_by_vehicle(vehicles: pd.DataFrame) -> pd.DataFrame:
    """Distinct crashes involving each vehicle type, most frequent first."""
    counts = count_crashes(vehicles, COL_VEHICLE, table_name=TABLE_VEHICLES)
    return _ranked(counts, COL_VEHICLE)


def objects_struck_counts(objects_struck: pd.DataFrame) -> pd.DataFrame:
    """Distinct crashes per object struck, most frequent first."""
    counts = count_crashes(objects_struck, COL_OBJECT, table_name=TABLE_OBJECTS_STRUCK)
    return _ranked(counts, COL_OBJECT)
