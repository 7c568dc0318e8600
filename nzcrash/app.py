"""
nzcrash — Streamlit web dashboard.

Launch with::

    nzcrash web                     # via CLI entry-point
    streamlit run nzcrash/app.py    # directly

Walks through the example analyses of the crash tables as charts, and runs
the data-quality checks.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

import pandas as pd
import streamlit as st

from nzcrash.config.constants import (
    COL_CAUSE_SUBCATEGORY,
    COL_COUNT,
    COL_HOUR,
    COL_SEVERITY,
    COL_VEHICLE,
    COL_YEAR,
)
from nzcrash.errors import NzcrashError

# ─────────────────────────────────────────────────────────────────────────────
#  Page config
# ─────────────────────────────────────────────────────────────────────────────

st.set_page_config(
    page_title="NZ Crash Statistics",
    page_icon="🚗",
    layout="wide",
)

st.markdown("""
    <style>
        .stAppDeployButton {display:none;}
    </style>
    """, unsafe_allow_html=True)

st.title("🚗 New Zealand Crash Statistics")
st.markdown(
    "Point the sidebar at a directory holding **crashes.csv**, **causes.csv**, "
    "**vehicles.csv** and **objects_struck.csv**."
)


# ─────────────────────────────────────────────────────────────────────────────
#  Helpers
# ─────────────────────────────────────────────────────────────────────────────

@st.cache_data(show_spinner="Loading tables…")
def _load_tables(data_dir: str, strict: bool):
    """Load the four tables once per directory."""
    from nzcrash.io.readers import load

    return load(data_dir, strict=strict)


def _chart_frame(df: pd.DataFrame, index_col: str) -> pd.DataFrame:
    """Index *df* by *index_col* as strings so chart axes keep row order."""
    out = df.copy()
    out[index_col] = out[index_col].astype(str)
    return out.set_index(index_col)


data_dir = st.sidebar.text_input("Data directory", value="data")
strict = st.sidebar.checkbox("Enforce row invariants on load", value=False)

try:
    tables = _load_tables(data_dir, strict)
except NzcrashError as exc:
    st.error(f"✗ {exc}")
    st.stop()

counts = tables.row_counts()
st.sidebar.dataframe(
    pd.DataFrame({"table": list(counts), "rows": list(counts.values())}),
    hide_index=True,
)

tab_explore, tab_verify, tab_about = st.tabs([
    "📈 Explore",
    "🔍 Verify",
    "ℹ️ About",
])


# ═══════════════════════════════════════════════════════════════════════════════
#  TAB 1 — EXPLORE
# ═══════════════════════════════════════════════════════════════════════════════

with tab_explore:
    from nzcrash.core import analysis

    st.header("Fatal crashes and fatalities")
    fatal = analysis.fatalities_by_year(tables.crashes)
    st.line_chart(_chart_frame(fatal, COL_YEAR))
    st.caption(
        "A crash that kills three people is one fatal crash and three fatalities; "
        "the two lines are not interchangeable."
    )

    st.header("Crashes by severity")
    by_severity = analysis.severity_by_year(tables.crashes)
    wide = by_severity.pivot(index=COL_YEAR, columns=COL_SEVERITY, values=COL_COUNT).fillna(0)
    wide.index = wide.index.astype(str)
    st.bar_chart(wide)

    st.header("Causes")
    level = st.radio("Cause level", ["category", "subcategory", "cause"], horizontal=True)
    by_cause = analysis.crashes_by_cause(tables.causes, level)
    top = st.slider("Show top", min_value=5, max_value=50, value=15)
    st.bar_chart(_chart_frame(by_cause.head(top), by_cause.columns[0]), horizontal=True)

    subcategories = sorted(tables.causes[COL_CAUSE_SUBCATEGORY].dropna().unique().tolist())
    if subcategories:
        default = subcategories.index("Alcohol or drugs") if "Alcohol or drugs" in subcategories else 0
        chosen = st.selectbox("Crashes per year with cause", subcategories, index=default)
        st.line_chart(_chart_frame(analysis.cause_trend(tables.causes, tables.crashes, chosen), COL_YEAR))

    st.header("Causes by vehicle type")
    vehicle_types = analysis.crashes_by_vehicle(tables.vehicles)[COL_VEHICLE].astype(str).tolist()
    if vehicle_types:
        default = vehicle_types.index("Bicycle") if "Bicycle" in vehicle_types else 0
        vehicle = st.selectbox("Vehicle", vehicle_types, index=default)
        attributed = analysis.vehicle_causes(tables.causes, tables.vehicles, vehicle)
        st.bar_chart(_chart_frame(attributed.head(top), attributed.columns[0]), horizontal=True)

    st.header("Objects struck")
    objects = analysis.objects_struck_counts(tables.objects_struck)
    st.bar_chart(_chart_frame(objects.head(top), objects.columns[0]), horizontal=True)

    st.header("Time of day")
    by_hour, n_untimed = analysis.crashes_by_hour(tables.crashes)
    st.bar_chart(_chart_frame(by_hour, COL_HOUR))
    if n_untimed:
        st.info(f"{n_untimed:,} crashes have no recorded time and are not shown here.")


# ═══════════════════════════════════════════════════════════════════════════════
#  TAB 2 — VERIFY
# ═══════════════════════════════════════════════════════════════════════════════

with tab_verify:
    st.header("Data Quality Verification")

    if st.button("▶ Run all checks", type="primary", key="btn_verify"):
        from nzcrash.core.verify import run_checks
        from nzcrash.io.reporters import STATUS_ICONS, write_csv_report, write_text_report

        with st.spinner("Running verification checks…"):
            results = run_checks(tables)

        summary_rows = []
        for r in results:
            for item in r.flatten():
                summary_rows.append({
                    "Check": item.check_id if item is r else f"  {item.check_id}",
                    "Status": f"{STATUS_ICONS.get(item.status, '?')} {item.status}",
                    "Issues": item.issue_count,
                    "Description": item.check_name,
                })
        st.dataframe(pd.DataFrame(summary_rows), width="stretch", hide_index=True)

        for r in results:
            for item in r.flatten():
                if item.details is not None and len(item.details) > 0:
                    with st.expander(f"{item.check_id}: {item.check_name} — {len(item.details):,} issues"):
                        st.dataframe(item.details, width="stretch", hide_index=True)

        st.subheader("Download reports")
        dl1, dl2 = st.columns(2)
        with tempfile.TemporaryDirectory() as tmpdir:
            txt_path = write_text_report(results, Path(tmpdir) / "report.txt", table_counts=counts)
            csv_path = write_csv_report(results, Path(tmpdir) / "report.csv")
            with dl1:
                st.download_button(
                    "📄 Download text report",
                    data=txt_path.read_text(encoding="utf-8"),
                    file_name="nzcrash_quality_report.txt",
                    mime="text/plain",
                )
            with dl2:
                st.download_button(
                    "📊 Download CSV report",
                    data=csv_path.read_bytes(),
                    file_name="nzcrash_quality_report.csv",
                    mime="text/csv",
                )


# ═══════════════════════════════════════════════════════════════════════════════
#  TAB 3 — ABOUT
# ═══════════════════════════════════════════════════════════════════════════════

with tab_about:
    st.header("About the tables")
    st.markdown("""
| Table | One row per | Joins to |
|-------|-------------|----------|
| **crashes** | crash | — |
| **causes** | contributing cause | crashes on `id`; vehicles on `id` + `vehicle_id` |
| **vehicles** | vehicle in a crash | crashes on `id` |
| **objects_struck** | object struck | crashes on `id` |

Crashes have many causes, vehicles and objects, so counts through those
tables are counts of **distinct crashes**.  Years are taken from `date`,
because `time` is not recorded for every crash.

### Checks

| ID | Check |
|----|-------|
| **N1** | Crash primary key unique |
| **N2** | Severity consistent with fatalities |
| **N3** | Date, time and datetime consistent |
| **N4** | Vehicle key (id, vehicle_id) unique |
| **N5** | Coordinates present together |
| **N6** | Referential integrity between tables |

### Severity

Upstream data does not define what makes an injury "severe", so the
package ships no threshold; see `nzcrash.core.severity.SeverityPolicy`.
""")
