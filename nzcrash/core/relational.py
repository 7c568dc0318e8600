"""
Relational helpers over the crash tables.

The four tables are plain :class:`pandas.DataFrame` objects; this module adds
the join and aggregate contract the analyses rely on:

  1. ``join`` is an inner equi-join with SQL null semantics and **no**
     implicit deduplication.  A crash with three vehicles appears three times.
  2. ``aggregate`` keeps null group keys as their own group.
  3. ``count_crashes`` deduplicates by ``(keys, id)`` before counting, which
     is the only safe way to count crashes through a fan-out table.
  4. ``derive_year`` buckets by calendar year in NZ time.  Always bucket on
     ``date``: ``time``/``datetime`` are missing for part of the data.

Ordered categories (severity, frequency-ranked chart axes) are modelled with
:class:`RankedLevel`, which carries its own rank.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Sequence, Union

import pandas as pd

from nzcrash.config.constants import (
    COL_COUNT,
    COL_ID,
    NZ_TIMEZONE,
    SEVERITY_LEVELS,
)
from nzcrash.errors import SchemaError

logger = logging.getLogger(__name__)

Reducer = Union[str, Callable[[pd.Series], Any]]

# Reducers whose result does not depend on row order
REDUCERS: set[str] = {"count", "sum", "min", "max", "nunique"}


# ═══════════════════════════════════════════════════════════════════════════════
# Column checks
# ═══════════════════════════════════════════════════════════════════════════════

def require_columns(
    df: pd.DataFrame,
    columns: Iterable[str],
    table: str = "table",
) -> None:
    """Raise :class:`SchemaError` for the first column missing from *df*."""
    for col in columns:
        if col not in df.columns:
            raise SchemaError(col, table)


def _as_keys(keys: str | Sequence[str]) -> list[str]:
    if isinstance(keys, str):
        return [keys]
    return list(keys)


# ═══════════════════════════════════════════════════════════════════════════════
# Join
# ═══════════════════════════════════════════════════════════════════════════════

def join(
    left: pd.DataFrame,
    right: pd.DataFrame,
    keys: str | Sequence[str],
    *,
    left_name: str = "left",
    right_name: str = "right",
    suffixes: tuple[str, str] = ("", "_right"),
) -> pd.DataFrame:
    """Inner equi-join of *left* and *right* on *keys*.

    Rows whose key contains a null never match, as in SQL.  The result has
    one row per matching (left row, right row) pair, so joining crashes to a
    child table fans out: callers that count crashes afterwards must
    deduplicate (see :func:`count_crashes`).

    Parameters
    ----------
    left, right : pd.DataFrame
    keys : str or list[str]
        Key column(s), present under the same name on both sides.  Causes
        join to vehicles on ``["id", "vehicle_id"]``, to crashes on ``"id"``.
    left_name, right_name : str
        Table names used in :class:`SchemaError` messages.
    suffixes : tuple[str, str]
        Passed to :meth:`pandas.DataFrame.merge` for overlapping non-key
        columns.

    Returns
    -------
    pd.DataFrame — new frame, inputs are not modified.
    """
    keys = _as_keys(keys)
    require_columns(left, keys, left_name)
    require_columns(right, keys, right_name)

    left_ok = left.dropna(subset=keys)
    right_ok = right.dropna(subset=keys)

    out = left_ok.merge(right_ok, on=keys, how="inner", suffixes=suffixes)
    logger.debug(
        "join %s (%d rows) x %s (%d rows) on %s -> %d rows",
        left_name, len(left), right_name, len(right), keys, len(out),
    )
    return out.reset_index(drop=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Aggregate
# ═══════════════════════════════════════════════════════════════════════════════

def aggregate(
    table: pd.DataFrame,
    group_keys: str | Sequence[str],
    reducer: Reducer = "count",
    *,
    column: str | None = None,
    name: str | None = None,
    table_name: str = "table",
) -> pd.DataFrame:
    """Group *table* by *group_keys* and reduce each group.

    Null key values form their own group rather than being dropped.

    Parameters
    ----------
    table : pd.DataFrame
    group_keys : str or list[str]
    reducer : str or callable
        ``"count"`` counts rows per group (no *column* needed).  ``"sum"``,
        ``"min"``, ``"max"``, ``"nunique"`` or any callable reduce *column*.
    column : str, optional
        Column to reduce; required unless *reducer* is ``"count"``.
    name : str, optional
        Name of the result column.  Defaults to ``"n"`` for counts and to
        *column* otherwise.  Must differ from the group keys; a non-key
        column of *table* with the same name is simply not carried over.
    table_name : str
        Table name used in :class:`SchemaError` messages.

    Returns
    -------
    pd.DataFrame — one row per group: the key columns then the result column.
    """
    keys = _as_keys(group_keys)
    require_columns(table, keys, table_name)

    out_name = name or (COL_COUNT if reducer == "count" else column)
    if out_name in keys:
        raise ValueError(
            f"result column {out_name!r} is also a group key; pass name= to rename it"
        )

    grouped = table.groupby(keys, dropna=False, sort=True, observed=True)

    if reducer == "count":
        return grouped.size().reset_index(name=out_name)

    if column is None:
        raise ValueError(f"reducer {reducer!r} needs a column to reduce")
    require_columns(table, [column], table_name)
    if isinstance(reducer, str) and reducer not in REDUCERS:
        raise ValueError(
            f"unknown reducer {reducer!r}; expected one of {sorted(REDUCERS)}"
        )

    return grouped[column].agg(reducer).reset_index(name=out_name)


def count_crashes(
    table: pd.DataFrame,
    by: str | Sequence[str],
    *,
    name: str = COL_COUNT,
    table_name: str = "table",
) -> pd.DataFrame:
    """Count distinct crashes per group of *by*.

    A crash with two causes in the same category counts once for that
    category: rows are deduplicated by ``(*by, id)`` before counting.
    """
    keys = _as_keys(by)
    require_columns(table, [*keys, COL_ID], table_name)
    distinct = table.drop_duplicates(subset=[*keys, COL_ID])
    return aggregate(distinct, keys, "count", name=name, table_name=table_name)


# ═══════════════════════════════════════════════════════════════════════════════
# Year bucketing
# ═══════════════════════════════════════════════════════════════════════════════

def _year_of_scalar(value: Any) -> int:
    # NaT is a datetime subclass, so test for missing values first
    if value is None or value is pd.NaT:
        raise ValueError("cannot derive a year from a missing date")
    if isinstance(value, pd.Timestamp):
        if value.tzinfo is not None:
            value = value.tz_convert(NZ_TIMEZONE)
        return int(value.year)
    if isinstance(value, dt.datetime):
        if value.tzinfo is not None:
            value = pd.Timestamp(value).tz_convert(NZ_TIMEZONE)
        return int(value.year)
    if isinstance(value, dt.date):
        return value.year
    raise TypeError(f"cannot derive a year from {type(value).__name__}")


def derive_year(date_or_datetime):
    """Calendar year of a date or datetime in Pacific/Auckland time.

    Accepts a scalar (``date``, ``datetime``, ``Timestamp``) or a Series.
    Timezone-aware values are converted to NZ time first; naive values are
    taken to be NZ local time already.  A Series yields a nullable ``Int64``
    Series, so null inputs stay null instead of being dropped.  A missing
    scalar (``None``, ``NaT``) raises ``ValueError``; any other type raises
    ``TypeError``.

    Derive time buckets from the ``date`` column: bucketing on ``datetime``
    silently loses every crash whose time was not recorded.
    """
    if not isinstance(date_or_datetime, pd.Series):
        return _year_of_scalar(date_or_datetime)

    series = date_or_datetime
    if not pd.api.types.is_datetime64_any_dtype(series):
        series = pd.to_datetime(series)
    if getattr(series.dt, "tz", None) is not None:
        series = series.dt.tz_convert(NZ_TIMEZONE)
    return series.dt.year.astype("Int64")


# ═══════════════════════════════════════════════════════════════════════════════
# Ordered categories
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, order=True)
class RankedLevel:
    """A category label with an explicit rank (0 sorts first)."""

    rank: int
    label: str

    def __str__(self) -> str:
        return self.label


SEVERITY_RANKS: list[RankedLevel] = [
    RankedLevel(rank, label) for rank, label in enumerate(SEVERITY_LEVELS)
]


def rank_levels(
    values: pd.Series,
    weights: pd.Series | None = None,
) -> list[RankedLevel]:
    """Rank the distinct non-null *values* by descending frequency.

    If *weights* is given (aligned with *values*) the weights are summed
    instead of counting rows, e.g. ranking causes by an already-computed
    crash count.  Ties are broken alphabetically so the ranking does not
    depend on row order.
    """
    if weights is None:
        totals = values.dropna().value_counts()
    else:
        frame = pd.DataFrame({"value": values, "weight": weights})
        totals = frame.dropna(subset=["value"]).groupby("value")["weight"].sum()

    ordered = sorted(totals.items(), key=lambda kv: (-kv[1], str(kv[0])))
    return [RankedLevel(rank, str(label)) for rank, (label, _) in enumerate(ordered)]


def as_ordered(
    series: pd.Series,
    levels: Sequence[RankedLevel],
) -> pd.Series:
    """Return *series* as an ordered categorical following *levels* by rank.

    Values that are not among *levels* become null.
    """
    labels = [lvl.label for lvl in sorted(levels)]
    return pd.Series(
        pd.Categorical(series, categories=labels, ordered=True),
        index=series.index,
        name=series.name,
    )
