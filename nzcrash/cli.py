"""
nzcrash — Command-line interface.

Usage examples::

    # Run all data-quality checks on a directory of tables
    nzcrash verify --data-dir ./data

    # Run only specific checks
    nzcrash verify --data-dir ./data --checks N1,N3

    # Print the summary tables of the example analyses
    nzcrash summary --data-dir ./data --start-year 2010 --end-year 2015

    # Launch the web dashboard
    nzcrash web
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import pandas as pd
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from nzcrash.config.constants import COL_ID
from nzcrash.errors import NzcrashError

app = typer.Typer(
    name="nzcrash",
    help="New Zealand crash statistics toolkit",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()

STATUS_MARKUP = {
    "pass": "[green]✓[/green]",
    "warning": "[yellow]⚠[/yellow]",
    "fail": "[red]✗[/red]",
}


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show progress logging."),
):
    """New Zealand crash statistics toolkit."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _print_frame(df: pd.DataFrame, title: str) -> None:
    table = Table(title=title)
    for i, col in enumerate(df.columns):
        table.add_column(str(col), style="cyan" if i == 0 else None, justify="left" if i == 0 else "right")
    for _, row in df.iterrows():
        table.add_row(*[
            f"{v:,}" if isinstance(v, int) else str(v)
            for v in row.tolist()
        ])
    console.print(table)


def _split_ids(values: Optional[List[str]]) -> Optional[List[str]]:
    """Flatten ``["N1,N3", "N5"]`` into ``["N1", "N3", "N5"]``."""
    if not values:
        return None
    return [v.strip().upper() for value in values for v in value.split(",") if v.strip()]


# ─────────────────────────────────────────────────────────────────────────────
#  verify
# ─────────────────────────────────────────────────────────────────────────────

@app.command()
def verify(
    data_dir: Path = typer.Option(
        ..., "--data-dir", "-d",
        help="Directory holding crashes.csv, causes.csv, vehicles.csv and objects_struck.csv.",
        exists=True,
        file_okay=False,
    ),
    output_dir: Path = typer.Option(
        ".", "--output-dir", "-o",
        help="Directory for the output report files.",
    ),
    checks: Optional[List[str]] = typer.Option(
        None, "--checks",
        help="Run only specific checks by ID, comma-separated or repeated (e.g. --checks N1,N3). Omit to run all.",
    ),
    report_format: str = typer.Option(
        "both", "--format",
        help="Report format: 'txt', 'csv', or 'both'.",
    ),
):
    """Run data-quality verification checks on the crash tables."""
    from nzcrash.core.verify import run_checks
    from nzcrash.io.readers import load
    from nzcrash.io.reporters import write_csv_report, write_text_report

    console.print("\n[bold]Loading data…[/bold]")
    try:
        tables = load(data_dir, strict=False)
        counts = tables.row_counts()
        console.print("  " + "   ".join(f"{k}: {v:,}" for k, v in counts.items()))

        console.print("\n[bold]Running checks…[/bold]")
        results = run_checks(tables, checks=_split_ids(checks))
    except (NzcrashError, ValueError) as exc:
        console.print(f"\n[red]✗ {exc}[/red]\n")
        raise typer.Exit(code=1)

    summary = Table(title="Verification Summary")
    summary.add_column("Check", style="cyan")
    summary.add_column("Status", justify="center")
    summary.add_column("Issues", justify="right")
    summary.add_column("Description")

    for r in results:
        summary.add_row(r.check_id, STATUS_MARKUP.get(r.status, "?"), str(r.issue_count), r.check_name)
        for sub in r.sub_results:
            summary.add_row(f"  {sub.check_id}", STATUS_MARKUP.get(sub.status, "?"), str(sub.issue_count), sub.check_name)

    console.print(summary)

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    if report_format in ("txt", "both"):
        txt_path = write_text_report(
            results,
            output_dir / "nzcrash_quality_report.txt",
            table_counts=counts,
        )
        console.print(f"\n  Text report: [cyan]{txt_path}[/cyan]")

    if report_format in ("csv", "both"):
        csv_path = write_csv_report(results, output_dir / "nzcrash_quality_report.csv")
        console.print(f"  CSV report:  [cyan]{csv_path}[/cyan]")

    total_issues = sum(r.issue_count for r in results)
    if total_issues == 0:
        console.print("\n[green]✓ All checks passed![/green]\n")
    else:
        console.print(f"\n[yellow]⚠ {total_issues} total issues found. See reports for details.[/yellow]\n")
    if any(r.status == "fail" for r in results):
        raise typer.Exit(code=1)


# ─────────────────────────────────────────────────────────────────────────────
#  summary
# ─────────────────────────────────────────────────────────────────────────────

@app.command()
def summary(
    data_dir: Path = typer.Option(
        ..., "--data-dir", "-d",
        help="Directory holding the four crash tables.",
        exists=True,
        file_okay=False,
    ),
    start_year: Optional[int] = typer.Option(
        None, "--start-year",
        help="If set (with --end-year), only crashes dated in this year range.",
    ),
    end_year: Optional[int] = typer.Option(
        None, "--end-year",
        help="If set (with --start-year), only crashes dated in this year range.",
    ),
    top: int = typer.Option(10, "--top", help="Rows to show in ranked tables."),
):
    """Print the summary tables of the example analyses."""
    from nzcrash.core import analysis
    from nzcrash.io.readers import load

    try:
        tables = load(data_dir)
    except NzcrashError as exc:
        console.print(f"\n[red]✗ {exc}[/red]\n")
        raise typer.Exit(code=1)

    crashes = tables.crashes
    causes = tables.causes
    if start_year is not None and end_year is not None:
        crashes = analysis.filter_by_year(crashes, start_year, end_year)
        causes = causes[causes[COL_ID].isin(crashes[COL_ID])]
        console.print(f"\n[bold]{len(crashes):,}[/bold] crashes dated {start_year}–{end_year}")

    _print_frame(analysis.fatalities_by_year(crashes), "Fatal crashes and fatalities by year")
    _print_frame(analysis.crashes_by_year(crashes), "Crashes by year")
    _print_frame(analysis.crashes_by_cause(causes).head(top), "Crashes by cause category")

    by_hour, n_untimed = analysis.crashes_by_hour(crashes)
    _print_frame(by_hour, "Crashes by hour of day")
    if n_untimed:
        console.print(f"  [yellow]⚠ {n_untimed:,} crashes have no recorded time[/yellow]")
    console.print()


# ─────────────────────────────────────────────────────────────────────────────
#  web
# ─────────────────────────────────────────────────────────────────────────────

@app.command()
def web(
    port: int = typer.Option(8501, "--port", "-p", help="Port for the Streamlit server."),
):
    """Launch the nzcrash web dashboard."""
    import subprocess
    import sys

    app_path = Path(__file__).parent / "app.py"
    console.print(f"\n[bold]Launching web dashboard on port {port}…[/bold]\n")
    subprocess.run(
        [sys.executable, "-m", "streamlit", "run", str(app_path), "--server.port", str(port)],
    )


# ─────────────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
