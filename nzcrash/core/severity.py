"""
Crash severity classification.

Severity is derived, never set independently:

  1. ``fatal``       — the crash has at least one fatality.
  2. ``serious``     — otherwise, a recorded casualty counts as "severe".
  3. ``minor``       — otherwise, a recorded casualty counts as minor.
  4. ``non-injury``  — otherwise.

The upstream source never defines what makes an injury "severe", so this
module ships no threshold.  Steps 2 and 3 are decided by a
:class:`SeverityPolicy` supplied by the caller, which keeps the policy
testable on its own and makes the choice visible wherever it is made.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np
import pandas as pd

from nzcrash.config.constants import (
    COL_FATALITIES,
    COL_SEVERITY,
    SEVERITY_FATAL,
    SEVERITY_MINOR,
    SEVERITY_NON_INJURY,
    SEVERITY_SERIOUS,
)
from nzcrash.core.relational import SEVERITY_RANKS, as_ordered, require_columns

Predicate = Callable[[pd.DataFrame], pd.Series]


@dataclass(frozen=True)
class SeverityPolicy:
    """Injected rules for the non-fatal severity levels.

    Attributes
    ----------
    serious : callable
        ``DataFrame -> bool Series``; ``True`` where the crash had a severe
        casualty.
    minor : callable
        ``DataFrame -> bool Series``; ``True`` where the crash had any other
        recorded casualty.
    """

    serious: Predicate
    minor: Predicate

    @classmethod
    def from_columns(cls, serious_col: str, minor_col: str) -> "SeverityPolicy":
        """Policy reading recorded casualty counts from two columns.

        A crash is serious if ``serious_col > 0`` and minor if
        ``minor_col > 0``.  Which casualties land in *serious_col* is the
        data provider's decision, not this package's.
        """

        def _positive(col: str) -> Predicate:
            def predicate(df: pd.DataFrame) -> pd.Series:
                require_columns(df, [col], "crashes")
                return pd.to_numeric(df[col], errors="coerce").fillna(0) > 0
            return predicate

        return cls(serious=_positive(serious_col), minor=_positive(minor_col))


def classify_severity(
    crashes: pd.DataFrame,
    policy: SeverityPolicy,
) -> pd.Series:
    """Derive the severity of every crash.

    Parameters
    ----------
    crashes : pd.DataFrame
        Must have a ``fatalities`` column plus whatever *policy* reads.
    policy : SeverityPolicy

    Returns
    -------
    pd.Series — ordered categorical (``fatal`` ranks first), aligned with
    *crashes*.
    """
    require_columns(crashes, [COL_FATALITIES], "crashes")

    fatal = pd.to_numeric(crashes[COL_FATALITIES], errors="coerce").fillna(0) > 0
    serious = policy.serious(crashes).fillna(False).astype(bool)
    minor = policy.minor(crashes).fillna(False).astype(bool)

    labels = np.select(
        [fatal.to_numpy(), serious.to_numpy(), minor.to_numpy()],
        [SEVERITY_FATAL, SEVERITY_SERIOUS, SEVERITY_MINOR],
        default=SEVERITY_NON_INJURY,
    )
    return as_ordered(
        pd.Series(labels, index=crashes.index, name=COL_SEVERITY),
        SEVERITY_RANKS,
    )
