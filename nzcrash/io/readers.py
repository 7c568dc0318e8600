"""
Readers and writers for the crash tables.

All encoding, dtype handling and structural validation is centralised here.
A table that cannot be read, is empty, lacks a required column, has a value
of the wrong type, or repeats a key raises :class:`LoadError`.
"""

from __future__ import annotations

import logging
from pathlib import Path

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
    CSV_ENCODING,
    NZ_TIMEZONE,
    REQUIRED_COLUMNS,
    SEVERITY_LEVELS,
    TABLE_CAUSES,
    TABLE_CRASHES,
    TABLE_FILES,
    TABLE_NAMES,
    TABLE_VEHICLES,
    TIME_FORMATS,
)
from nzcrash.core.relational import SEVERITY_RANKS, as_ordered
from nzcrash.core.tables import CrashTables
from nzcrash.core.verify import INVARIANT_CHECKS, run_checks
from nzcrash.errors import LoadError

logger = logging.getLogger(__name__)

# Trailing UTC offset, e.g. "+13:00", "+1200" or "Z"
_OFFSET_PATTERN = r"(?:[+-]\d{2}:?\d{2}|Z)$"


# ═══════════════════════════════════════════════════════════════════════════════
# Raw CSV I/O
# ═══════════════════════════════════════════════════════════════════════════════

def load_csv(
    path: str | Path,
    *,
    encoding: str = CSV_ENCODING,
) -> pd.DataFrame:
    """Read a crash-table CSV file with the correct encoding.

    Key columns are read as strings so ids compare equal across tables; all
    other conversion happens in :func:`load_table`.

    Parameters
    ----------
    path : str or Path
        Absolute or relative path to the CSV file.
    encoding : str, optional
        Character encoding.  Defaults to ``utf-8-sig``.

    Returns
    -------
    pd.DataFrame
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"CSV file not found: {path}")

    return pd.read_csv(
        path,
        encoding=encoding,
        dtype={COL_ID: "string"},
        keep_default_na=True,
        low_memory=False,
    )


def save_csv(
    df: pd.DataFrame,
    path: str | Path,
    *,
    encoding: str = CSV_ENCODING,
) -> Path:
    """Write a DataFrame to CSV with the standard encoding.

    Returns
    -------
    Path — the written file path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False, encoding=encoding)
    return path


# ═══════════════════════════════════════════════════════════════════════════════
# Column conversion
# ═══════════════════════════════════════════════════════════════════════════════

def _bad_values(table: str, col: str, raw: pd.Series, mask: pd.Series) -> LoadError:
    sample = raw[mask].astype(str).head(3).tolist()
    return LoadError(
        table,
        f"column {col!r} has {int(mask.sum())} values of the wrong type, e.g. {sample}",
    )


def _to_integer(table: str, col: str, raw: pd.Series, *, nullable: bool) -> pd.Series:
    num = pd.to_numeric(raw, errors="coerce")
    bad = (raw.notna() & num.isna()) | (num.notna() & (num % 1 != 0))
    if bad.any():
        raise _bad_values(table, col, raw, bad)
    if not nullable and num.isna().any():
        raise LoadError(table, f"column {col!r} has {int(num.isna().sum())} missing values")
    return num.astype("Int64" if nullable else "int64")


def _to_float(table: str, col: str, raw: pd.Series) -> pd.Series:
    num = pd.to_numeric(raw, errors="coerce")
    bad = raw.notna() & num.isna()
    if bad.any():
        raise _bad_values(table, col, raw, bad)
    return num.astype("float64")


def _to_date(table: str, raw: pd.Series) -> pd.Series:
    # a calendar date has no UTC offset; mixed offsets would also defeat the parser
    text = raw.astype("string").str.strip()
    has_offset = text.str.contains(_OFFSET_PATTERN, regex=True).fillna(False).astype(bool)
    parsed = pd.to_datetime(text.where(~has_offset), format="ISO8601", errors="coerce")
    bad = (
        has_offset
        | (raw.notna() & parsed.isna())
        | (parsed.notna() & (parsed != parsed.dt.normalize()))
    )
    if bad.any():
        raise _bad_values(table, COL_DATE, raw, bad)
    if parsed.isna().any():
        raise LoadError(table, f"column {COL_DATE!r} has {int(parsed.isna().sum())} missing values")
    return parsed


def _to_time(table: str, raw: pd.Series) -> pd.Series:
    """Parse a time-of-day column into ``datetime.time`` objects (or None)."""
    text = raw.astype("string").str.strip()
    parsed = pd.Series(pd.NaT, index=raw.index, dtype="datetime64[ns]")
    for fmt in TIME_FORMATS:
        attempt = pd.to_datetime(text, format=fmt, errors="coerce")
        parsed = parsed.fillna(attempt)
    bad = raw.notna() & parsed.isna()
    if bad.any():
        raise _bad_values(table, COL_TIME, raw, bad)
    return parsed.dt.time.astype(object).where(parsed.notna(), None)


def _to_local_datetime(table: str, raw: pd.Series) -> pd.Series:
    """Parse a datetime column to naive NZ local wall-clock time.

    Values carrying a UTC offset are converted to Pacific/Auckland first;
    values without one are already local.
    """
    text = raw.astype("string").str.strip()
    has_offset = text.str.contains(_OFFSET_PATTERN, regex=True).fillna(False).astype(bool)
    parsed = pd.to_datetime(text.where(~has_offset), format="ISO8601", errors="coerce")
    if has_offset.any():
        aware = pd.to_datetime(text.where(has_offset), format="ISO8601", utc=True, errors="coerce")
        parsed = parsed.where(~has_offset, aware.dt.tz_convert(NZ_TIMEZONE).dt.tz_localize(None))
    bad = raw.notna() & parsed.isna()
    if bad.any():
        raise _bad_values(table, COL_DATETIME, raw, bad)
    return parsed


def _to_severity(table: str, raw: pd.Series) -> pd.Series:
    text = raw.astype("string").str.strip().str.lower()
    bad = ~text.isin(SEVERITY_LEVELS).fillna(False)
    if bad.any():
        raise LoadError(
            table,
            f"column {COL_SEVERITY!r} has {int(bad.sum())} values outside "
            f"{SEVERITY_LEVELS}, e.g. {raw[bad].astype(str).head(3).tolist()}",
        )
    return as_ordered(text.astype(object), SEVERITY_RANKS)


# ═══════════════════════════════════════════════════════════════════════════════
# Per-table conversion and structural checks
# ═══════════════════════════════════════════════════════════════════════════════

def _check_unique(table: str, df: pd.DataFrame, keys: list[str]) -> None:
    dups = df.duplicated(subset=keys, keep=False)
    if dups.any():
        sample = df.loc[dups, keys].drop_duplicates().head(3).to_dict("records")
        raise LoadError(
            table,
            f"duplicate key {tuple(keys)} on {int(dups.sum())} rows, e.g. {sample}",
        )


def coerce_table(name: str, df: pd.DataFrame) -> pd.DataFrame:
    """Convert the columns of table *name* to their types and check its keys.

    Parameters
    ----------
    name : str
        One of ``crashes``, ``causes``, ``vehicles``, ``objects_struck``.
    df : pd.DataFrame
        Raw table as read from storage.

    Returns
    -------
    pd.DataFrame — converted copy.
    """
    if len(df) == 0:
        raise LoadError(name, "table is empty")

    missing = [c for c in REQUIRED_COLUMNS[name] if c not in df.columns]
    if missing:
        raise LoadError(name, f"missing required columns {missing}")

    df = df.copy()
    df[COL_ID] = df[COL_ID].astype("string").str.strip()
    if df[COL_ID].isna().any():
        raise LoadError(name, f"column {COL_ID!r} has {int(df[COL_ID].isna().sum())} missing values")

    if name == TABLE_CRASHES:
        df[COL_DATE] = _to_date(name, df[COL_DATE])
        df[COL_TIME] = _to_time(name, df[COL_TIME])
        df[COL_DATETIME] = _to_local_datetime(name, df[COL_DATETIME])
        df[COL_SEVERITY] = _to_severity(name, df[COL_SEVERITY])
        df[COL_FATALITIES] = _to_integer(name, COL_FATALITIES, df[COL_FATALITIES], nullable=False)
        if (df[COL_FATALITIES] < 0).any():
            raise LoadError(name, f"column {COL_FATALITIES!r} has negative counts")
        df[COL_EASTING] = _to_float(name, COL_EASTING, df[COL_EASTING])
        df[COL_NORTHING] = _to_float(name, COL_NORTHING, df[COL_NORTHING])
        _check_unique(name, df, [COL_ID])

    elif name == TABLE_VEHICLES:
        df[COL_VEHICLE_ID] = _to_integer(name, COL_VEHICLE_ID, df[COL_VEHICLE_ID], nullable=False)
        _check_unique(name, df, [COL_ID, COL_VEHICLE_ID])

    elif name == TABLE_CAUSES:
        df[COL_VEHICLE_ID] = _to_integer(name, COL_VEHICLE_ID, df[COL_VEHICLE_ID], nullable=True)

    return df


def load_table(
    name: str,
    path: str | Path,
    *,
    encoding: str = CSV_ENCODING,
) -> pd.DataFrame:
    """Read and convert one table, raising :class:`LoadError` on any problem."""
    path = Path(path)
    try:
        raw = load_csv(path, encoding=encoding)
    except FileNotFoundError as exc:
        raise LoadError(name, f"file not found: {path}") from exc
    except pd.errors.EmptyDataError as exc:
        raise LoadError(name, f"file is empty: {path}") from exc
    except (pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise LoadError(name, f"cannot parse {path}: {exc}") from exc

    df = coerce_table(name, raw)
    logger.info("Loaded %s: %s rows from %s", name, f"{len(df):,}", path)
    return df


# ═══════════════════════════════════════════════════════════════════════════════
# Dataset loader
# ═══════════════════════════════════════════════════════════════════════════════

def load(
    data_dir: str | Path,
    *,
    strict: bool = True,
    encoding: str = CSV_ENCODING,
) -> CrashTables:
    """Load the four crash tables from *data_dir*.

    Parameters
    ----------
    data_dir : str or Path
        Directory holding ``crashes.csv``, ``causes.csv``, ``vehicles.csv``
        and ``objects_struck.csv``.
    strict : bool
        If ``True`` (default) the crash row invariants (severity vs.
        fatalities, time vs. datetime, paired coordinates) must hold too.
        With ``False`` they are left to :func:`nzcrash.core.verify.run_checks`.
    encoding : str

    Returns
    -------
    CrashTables
    """
    data_dir = Path(data_dir)
    tables = CrashTables.from_mapping({
        name: load_table(name, data_dir / TABLE_FILES[name], encoding=encoding)
        for name in TABLE_NAMES
    })

    if strict:
        for result in run_checks(tables, checks=INVARIANT_CHECKS):
            if not result.passed:
                raise LoadError(TABLE_CRASHES, f"{result.check_id} {result.check_name}: {result.summary}")

    return tables


def save_tables(tables: CrashTables, out_dir: str | Path) -> dict[str, Path]:
    """Write the four tables as CSV files that :func:`load` reads back."""
    out_dir = Path(out_dir)
    paths = {}
    for name, df in tables.items():
        out = df.copy()
        if name == TABLE_CRASHES:
            out[COL_DATE] = out[COL_DATE].dt.strftime("%Y-%m-%d")
            out[COL_DATETIME] = out[COL_DATETIME].dt.strftime("%Y-%m-%d %H:%M:%S")
        paths[name] = save_csv(out, out_dir / TABLE_FILES[name])
    return paths
