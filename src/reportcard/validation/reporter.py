"""
Reporter for quality reports.

Formats quality reports for console output using Rich.
"""

from typing import ClassVar

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from reportcard.validation.report import CheckResult, CheckStatus, QualityReport


class QualityReporter:
    """
    Formats and displays quality reports.

    Uses Rich for formatted console output.
    """

    STATUS_STYLES: ClassVar[dict[CheckStatus, tuple[str, str]]] = {
        CheckStatus.PASS: ("PASS", "green"),
        CheckStatus.WARN: ("WARN", "yellow"),
        CheckStatus.FAIL: ("FAIL", "red"),
        CheckStatus.SKIP: ("SKIP", "dim"),
    }

    SOURCE_STYLES: ClassVar[dict[str, str]] = {
        "read": "green",
        "missing": "yellow",
        "failed": "red",
    }

    def __init__(self, console: Console | None = None) -> None:
        """
        Initialize reporter.

        Args:
            console: Rich console for output. Creates new if not provided.
        """
        self.console = console or Console()

    def print_report(self, report: QualityReport, *, show_anomalies: bool = True) -> None:
        """
        Print the full quality report.

        Args:
            report: QualityReport to display.
            show_anomalies: Also list every anomaly.
        """
        self.console.print()
        self._print_header(report)

        if report.sources:
            self.console.print()
            self._print_sources(report)

        if report.completeness:
            self.console.print()
            self._print_completeness(report)

        self.console.print()
        self._print_checks_table(report)

        problems = [
            c for c in report.checks if c.status in (CheckStatus.FAIL, CheckStatus.WARN)
        ]
        if problems:
            self.console.print()
            self._print_details(problems)

        if show_anomalies and report.anomalies:
            self.console.print()
            self.console.print(Text(f"Anomalies ({report.anomaly_count})", style="bold"))
            for anomaly in report.anomalies:
                self.console.print(Text(f"  - {anomaly.as_line()}"))

    def _print_header(self, report: QualityReport) -> None:
        status_text, status_style = self.STATUS_STYLES[report.overall_status]

        summary = Table(show_header=False, box=None)
        summary.add_column("Label", style="bold")
        summary.add_column("Value")
        summary.add_row("District:", report.district_irn)
        summary.add_row("Years:", ", ".join(report.years))
        summary.add_row("Records:", str(report.total_records))
        summary.add_row("Unique schools:", str(report.unique_schools))
        summary.add_row("Name conflicts:", str(report.name_conflicts))
        summary.add_row(
            "Dropped join rows:",
            str(report.dropped_join_keys + report.duplicate_keys),
        )
        summary.add_row("Digest:", report.digest or "-")
        summary.add_row("Overall status:", Text(status_text, style=status_style))

        self.console.print(
            Panel(
                summary,
                title=f"Quality Report: {report.project}",
                border_style=status_style,
            )
        )

    def _print_sources(self, report: QualityReport) -> None:
        table = Table(title="Sources", show_header=True, header_style="bold")
        table.add_column("Category", style="cyan")
        table.add_column("Year")
        table.add_column("Status", justify="center")
        table.add_column("Sheet")
        table.add_column("Rows", justify="right")
        table.add_column("In scope", justify="right")
        table.add_column("Missing", justify="right")
        table.add_column("Non-numeric", justify="right")

        for s in report.sources:
            table.add_row(
                s.category,
                s.year,
                Text(s.status, style=self.SOURCE_STYLES.get(s.status, "")),
                s.sheet or "-",
                str(s.rows_total),
                str(s.rows_in_scope),
                str(s.missing_values),
                str(s.non_numeric),
            )

        self.console.print(table)

    def _print_completeness(self, report: QualityReport) -> None:
        table = Table(
            title="Completeness (% populated)", show_header=True, header_style="bold"
        )
        table.add_column("Field", style="cyan")
        table.add_column("All", justify="right")
        for year in report.years:
            table.add_column(year, justify="right")

        threshold = report.completeness_threshold
        for name, pct in report.completeness.items():
            cells = [self._pct(pct, flagged=pct < threshold)]
            for year in report.years:
                year_pct = report.completeness_by_year.get(year, {}).get(name, 0.0)
                cells.append(self._pct(year_pct, flagged=year_pct < threshold))
            table.add_row(name, *cells)

        self.console.print(table)

    def _pct(self, value: float, *, flagged: bool) -> Text:
        return Text(f"{value:.1f}", style="yellow" if flagged else "")

    def _print_checks_table(self, report: QualityReport) -> None:
        table = Table(title="Quality Checks", show_header=True, header_style="bold")
        table.add_column("Check", style="cyan", min_width=20)
        table.add_column("Status", justify="center", min_width=8)
        table.add_column("Result", min_width=40)

        for check in report.checks:
            status_text, status_style = self.STATUS_STYLES[check.status]
            table.add_row(
                check.name, Text(status_text, style=status_style), Text(check.message)
            )

        self.console.print(table)

    def _print_details(self, checks: list[CheckResult]) -> None:
        """Print offending records and specifics of failed or warned checks."""
        for check in checks:
            _, style = self.STATUS_STYLES[check.status]
            self.console.print(
                Text.assemble((check.name, style), f": {check.message}")
            )
            for detail in check.details:
                self.console.print(Text(f"  - {detail}", style="dim"))

