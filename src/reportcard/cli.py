"""Command-line interface for the report card consolidation pipeline."""

from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    import pandas as pd

    from reportcard.config.settings import PipelineConfig

app = typer.Typer(
    name="reportcard",
    help="Consolidate multi-year school report card extracts into one dataset.",
    no_args_is_help=True,
)

console = Console()

ConfigOption = Annotated[
    Path,
    typer.Option(
        "--config",
        "-c",
        help="Path to configuration YAML file.",
        exists=True,
        dir_okay=False,
    ),
]


def _load(config: Path) -> "PipelineConfig":
    """Load configuration, exiting with code 1 on any configuration error."""
    from reportcard.config.loader import load_config

    try:
        return load_config(config)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Invalid configuration {config}:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e


def _frame_table(df: "pd.DataFrame", title: str) -> Table:
    """Render a small DataFrame as a rich table."""
    import pandas as pd

    table = Table(title=title, show_header=True, header_style="bold")
    for i, col in enumerate(df.columns):
        if i == 0:
            table.add_column(str(col), style="cyan")
        else:
            table.add_column(str(col), justify="right")
    for row in df.itertuples(index=False, name=None):
        table.add_row(*["-" if pd.isna(v) else escape(str(v)) for v in row])
    return table


@app.callback()
def main(
    log_level: Annotated[
        str,
        typer.Option(
            "--log-level",
            help="Log level (DEBUG, INFO, WARNING, ERROR).",
        ),
    ] = "INFO",
    json_logs: Annotated[
        bool,
        typer.Option(
            "--json-logs",
            help="Emit logs as JSON lines on stderr.",
        ),
    ] = False,
) -> None:
    """Report card consolidation pipeline."""
    from reportcard.utils.logging import configure_logging

    configure_logging(log_level, json_output=json_logs)


@app.command()
def consolidate(
    config: ConfigOption,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            help="Run all stages but write no files.",
        ),
    ] = False,
    show_anomalies: Annotated[
        bool,
        typer.Option(
            "--anomalies/--no-anomalies",
            help="List every anomaly after the checks.",
        ),
    ] = True,
) -> None:
    """
    Read all sources, consolidate, validate and export the canonical dataset.

    Exits with code 1 if an invariant check fails; in that case no
    canonical dataset is left in the output directory and the quality
    report explains which records broke which invariant.
    """
    from reportcard.etl import run_pipeline
    from reportcard.validation import InvariantViolationError, QualityReporter

    pipeline_config = _load(config)
    reporter = QualityReporter(console)

    console.print(f"[blue]Consolidating {pipeline_config.project}[/blue]")
    console.print(
        f"[dim]District {pipeline_config.district_irn}, "
        f"years {', '.join(pipeline_config.years)}[/dim]"
    )

    try:
        result = run_pipeline(pipeline_config, write=not dry_run)
    except InvariantViolationError as e:
        reporter.print_report(e.report, show_anomalies=show_anomalies)
        console.print()
        console.print("[red]Invariant violation; no canonical dataset written.[/red]")
        if not dry_run:
            console.print(f"[dim]Diagnostic: {pipeline_config.quality_report_path}[/dim]")
        raise typer.Exit(code=1) from e

    reporter.print_report(result.report, show_anomalies=show_anomalies)

    if result.output_paths:
        console.print()
        for kind, path in result.output_paths.items():
            console.print(f"[green]Saved {kind}:[/green] {path}")
    else:
        console.print("\n[yellow]Dry run: no files written.[/yellow]")


@app.command()
def inspect(config: ConfigOption) -> None:
    """
    Show how each configured workbook resolves, without consolidating.

    Lists the selected sheet and the header used for every field, plus any
    fallbacks, ambiguities and unreadable files.
    """
    from reportcard.etl import ConsolidationPipeline

    pipeline_config = _load(config)
    stage = ConsolidationPipeline(pipeline_config).read_sources()

    table = Table(title="Source resolution", show_header=True, header_style="bold")
    table.add_column("Category", style="cyan")
    table.add_column("Year")
    table.add_column("Status", justify="center")
    table.add_column("Sheet")
    table.add_column("Columns")
    table.add_column("In scope", justify="right")

    results = {(r.category.value, r.year): r for r in stage.results}
    for source in stage.summaries:
        read = results.get((source.category, source.year))
        columns = (
            "\n".join(f"{k} <- {v or '-'}" for k, v in read.columns.items())
            if read is not None
            else "-"
        )
        style = {"read": "green", "missing": "yellow"}.get(source.status, "red")
        table.add_row(
            source.category,
            source.year,
            f"[{style}]{source.status}[/{style}]",
            source.sheet or "-",
            escape(columns),
            str(source.rows_in_scope) if source.ok else "-",
        )

    console.print(table)

    if stage.anomalies:
        console.print(f"\n[bold]Anomalies ({len(stage.anomalies)})[/bold]")
        for anomaly in stage.anomalies:
            console.print(f"  - {anomaly.as_line()}", markup=False)
    else:
        console.print("\n[green]No anomalies.[/green]")


@app.command()
def summary(
    config: ConfigOption,
    data: Annotated[
        Path | None,
        typer.Option(
            "--data",
            "-d",
            help="Canonical CSV. Defaults to the configured output location.",
        ),
    ] = None,
    top: Annotated[
        int,
        typer.Option(
            "--top",
            "-n",
            help="Number of schools to list per ranking.",
            min=0,
        ),
    ] = 10,
) -> None:
    """
    Descriptive district summary from the canonical CSV.

    Prints per-year totals and averages, the performance index trend, the
    correlation between metrics, and the top and most improved schools.
    """
    from reportcard.analysis import (
        correlation_matrix,
        performance_change,
        performance_trend,
        summarize_by_year,
        top_schools,
    )
    from reportcard.export import read_canonical

    pipeline_config = _load(config)
    path = data or pipeline_config.canonical_csv_path

    try:
        records = read_canonical(path)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        console.print(
            f"[yellow]Run consolidation first: reportcard consolidate --config {config}[/yellow]"
        )
        raise typer.Exit(code=1) from e
    except ValueError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    years = pipeline_config.years
    by_year = summarize_by_year(records, years)
    console.print(_frame_table(by_year, "District summary by year"))
    console.print()
    console.print(_frame_table(performance_trend(by_year), "Performance index trend"))
    console.print()

    corr = correlation_matrix(records).round(3).reset_index(names="metric")
    console.print(_frame_table(corr, "Correlation (Pearson, pairwise complete)"))

    if top > 0:
        latest = years[-1]
        columns = ["school_name", "school_id", "performance_index_score", "enrollment"]
        console.print()
        console.print(
            _frame_table(
                top_schools(records, latest, n=top)[columns],
                f"Top {top} by performance index ({latest})",
            )
        )
        improved = performance_change(records, years[0], latest).head(top)
        console.print()
        console.print(
            _frame_table(improved, f"Most improved ({years[0]} to {latest})")
        )


@app.command()
def version() -> None:
    """Show version information."""
    from reportcard import __version__

    console.print(f"reportcard version {__version__}")


if __name__ == "__main__":
    app()
