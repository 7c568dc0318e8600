"""Tests for severity classification with an injected policy."""

import pandas as pd
import pytest

from nzcrash.core.severity import SeverityPolicy, classify_severity
from nzcrash.errors import SchemaError


@pytest.fixture
def casualties():
    return pd.DataFrame({
        "id": ["a", "b", "c", "d", "e"],
        "fatalities": [2, 0, 0, 0, 1],
        "serious_injuries": [0, 1, 0, 0, 0],
        "minor_injuries": [5, 3, 2, 0, 0],
    })


def test_policy_from_columns(casualties):
    policy = SeverityPolicy.from_columns("serious_injuries", "minor_injuries")

    out = classify_severity(casualties, policy)

    assert out.astype(str).tolist() == ["fatal", "serious", "minor", "non-injury", "fatal"]


def test_fatal_regardless_of_policy(casualties):
    everything_serious = SeverityPolicy(
        serious=lambda df: pd.Series(True, index=df.index),
        minor=lambda df: pd.Series(True, index=df.index),
    )

    out = classify_severity(casualties, everything_serious)

    assert (out[casualties["fatalities"] > 0] == "fatal").all()
    assert (out[casualties["fatalities"] == 0] == "serious").all()


def test_policy_is_swappable(casualties):
    # a stricter policy: two or more minor injuries count as serious
    strict = SeverityPolicy(
        serious=lambda df: (df["serious_injuries"] > 0) | (df["minor_injuries"] >= 2),
        minor=lambda df: df["minor_injuries"] > 0,
    )

    out = classify_severity(casualties, strict)

    assert out.astype(str).tolist()[:4] == ["fatal", "serious", "serious", "non-injury"]


def test_result_is_ordered_by_severity(casualties):
    policy = SeverityPolicy.from_columns("serious_injuries", "minor_injuries")

    out = classify_severity(casualties, policy)

    assert out.cat.ordered
    assert out.min() == "fatal"
    assert out.max() == "non-injury"
    assert out.name == "severity"


def test_policy_column_missing(casualties):
    policy = SeverityPolicy.from_columns("severe", "minor_injuries")

    with pytest.raises(SchemaError, match="severe"):
        classify_severity(casualties, policy)


def test_requires_fatalities():
    policy = SeverityPolicy.from_columns("s", "m")

    with pytest.raises(SchemaError, match="fatalities"):
        classify_severity(pd.DataFrame({"s": [1], "m": [0]}), policy)
