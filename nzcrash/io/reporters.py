"""
Report writers for nzcrash verification results.

The text report lists each check with its flagged rows rendered as a small
table; the CSV report has one row per flagged record with the record's keys
(``table``, ``id``, ``vehicle_id``) in columns of their own, so it can be
joined back onto the data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from nzcrash.config.constants import COL_ID, COL_VEHICLE_ID, CSV_ENCODING, TABLE_NAMES

STATUS_ICONS: dict[str, str] = {"pass": "✓", "warning": "⚠", "fail": "✗"}

# Detail column holding the explanation of a flagged row
COL_REASON = "reason"

# Leading CSV columns; check-specific detail columns follow
REPORT_COLUMNS = ["check_id", "status", "table", COL_ID, COL_VEHICLE_ID, COL_REASON]

_RULE = "=" * 80


@dataclass
class VerificationResult:
    """Outcome of one check over the crash tables.

    ``details`` holds one row per flagged record, keyed by ``id`` (and
    ``vehicle_id`` for vehicle-level checks) plus a ``reason`` where the
    check has more to say than its summary.  ``table`` names the table the
    flagged rows come from.
    """

    check_id: str
    check_name: str
    status: str  # "pass" | "warning" | "fail"
    summary: str
    issue_count: int = 0
    details: Optional[pd.DataFrame] = None
    sub_results: list["VerificationResult"] = field(default_factory=list)
    table: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.status == "pass"

    def flatten(self) -> list["VerificationResult"]:
        """This result followed by its sub-results."""
        return [self, *self.sub_results]

    def flagged(self) -> pd.DataFrame:
        """Flagged records tagged with this check's id, status and table.

        A failed check with no per-record details (e.g. a missing column)
        yields a single row carrying its summary as the reason.
        """
        if self.details is not None and len(self.details) > 0:
            rows = self.details.copy()
        elif self.issue_count > 0 or self.status == "fail":
            rows = pd.DataFrame({COL_REASON: [self.summary]})
        else:
            return pd.DataFrame(columns=REPORT_COLUMNS)
        if COL_REASON not in rows.columns:
            rows[COL_REASON] = self.summary
        return rows.assign(check_id=self.check_id, status=self.status, table=self.table)


# ═══════════════════════════════════════════════════════════════════════════════
# Plain-text report
# ═══════════════════════════════════════════════════════════════════════════════

def write_text_report(
    results: list[VerificationResult],
    path: str | Path,
    *,
    title: str = "NZ Crash Data Verification Report",
    table_counts: dict[str, int] | None = None,
    max_rows: int = 50,
) -> Path:
    """Write a human-readable report and return its path.

    At most *max_rows* flagged records are printed per check; the CSV report
    carries all of them.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    lines = [_RULE, title, f"Generated: {datetime.now():%Y-%m-%d %H:%M:%S}", _RULE, ""]

    if table_counts:
        lines.append("Rows per table:")
        lines.extend(
            f"  {name:<16}{table_counts[name]:>10,}"
            for name in TABLE_NAMES
            if name in table_counts
        )
        lines.append("")

    n_fail = sum(r.status == "fail" for r in results)
    n_warn = sum(r.status == "warning" for r in results)
    lines.append(f"{len(results)} checks run: {n_fail} failed, {n_warn} with warnings")
    lines.append("")

    for result in results:
        for item in result.flatten():
            lines.extend(_section(item, indent=0 if item is result else 4, max_rows=max_rows))

    lines += [_RULE, "End of Report", _RULE]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def _section(result: VerificationResult, *, indent: int, max_rows: int) -> list[str]:
    pad = " " * indent
    icon = STATUS_ICONS.get(result.status, "?")
    where = f" [{result.table}]" if result.table else ""
    out = [
        f"{pad}{icon} {result.check_id}: {result.check_name}{where}",
        f"{pad}  {result.summary}",
    ]
    if result.details is not None and len(result.details) > 0:
        shown = result.details.head(max_rows).to_string(index=False)
        out.extend(f"{pad}    {line}" for line in shown.splitlines())
        hidden = len(result.details) - max_rows
        if hidden > 0:
            out.append(f"{pad}    … {hidden:,} more")
    out.append("")
    return out


# ═══════════════════════════════════════════════════════════════════════════════
# CSV report
# ═══════════════════════════════════════════════════════════════════════════════

def write_csv_report(
    results: list[VerificationResult],
    path: str | Path,
) -> Path:
    """Write one CSV row per flagged record and return the path.

    Columns are ``check_id, status, table, id, vehicle_id, reason`` followed
    by any check-specific detail columns (e.g. ``easting``, ``northing``).
    Keys a check does not produce are left empty.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    frames = [
        item.flagged()
        for result in results
        for item in result.flatten()
        if not item.sub_results
    ]
    # object dtype keeps integer keys integral where other checks leave them empty
    frames = [f.astype(object) for f in frames if len(f) > 0]
    flagged = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame()

    extra = [c for c in flagged.columns if c not in REPORT_COLUMNS]
    flagged = flagged.reindex(columns=REPORT_COLUMNS + extra)
    flagged.to_csv(path, index=False, encoding=CSV_ENCODING)
    return path
