"""
Quality report of one consolidation run.

Holds check results, per-source summaries, completeness and anomalies, and
renders them as a deterministic plain-text document.
"""

from dataclasses import dataclass, field
from enum import Enum

from reportcard.validation.anomalies import Anomaly, AnomalyKind


class CheckStatus(Enum):
    """Status of an individual check."""

    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"
    SKIP = "skip"


@dataclass
class CheckResult:
    """
    Result of a single quality check.

    Attributes:
        name: Check name.
        status: Pass/warn/fail/skip.
        message: Human-readable description.
        details: Offending records or other specifics, one per line.
        n_checked: Number of rows checked.
        n_failed: Number of rows failing.
    """

    name: str
    status: CheckStatus
    message: str
    details: list[str] = field(default_factory=list)
    n_checked: int = 0
    n_failed: int = 0

    @property
    def is_fatal(self) -> bool:
        return self.status == CheckStatus.FAIL


@dataclass(frozen=True)
class SourceSummary:
    """
    What one configured workbook contributed.

    Attributes:
        category: Source category name.
        year: Year label.
        path: Workbook path (None if not configured).
        status: "read", "missing" or "failed".
        sheet: Sheet that was read.
        rows_total: Data rows before the district filter.
        rows_in_scope: Rows kept for the district.
        missing_values: In-scope rows with a null metric.
        non_numeric: In-scope cells holding text that coerced to null.
    """

    category: str
    year: str
    path: str | None
    status: str
    sheet: str | None = None
    rows_total: int = 0
    rows_in_scope: int = 0
    missing_values: int = 0
    non_numeric: int = 0

    @property
    def ok(self) -> bool:
        return self.status == "read"


@dataclass
class QualityReport:
    """
    Result of validating the consolidated records.

    Attributes:
        project: Project name.
        district_irn: Target district identifier.
        years: Configured year labels.
        total_records: Number of canonical records.
        unique_schools: Number of distinct school ids.
        completeness: Field -> % of records with a value.
        completeness_by_year: Year -> field -> % populated.
        checks: Individual check results.
        anomalies: Recoverable conditions in the order they were recorded.
        sources: Per-workbook read summaries.
        dropped_join_keys: Rows dropped for a missing school id.
        duplicate_keys: Rows dropped as repeated keys within a source.
        name_conflicts: Records whose sources spell the name differently.
        digest: Content digest of the canonical records (set on export).
        completeness_threshold: % below which a field is flagged.
    """

    project: str
    district_irn: str
    years: tuple[str, ...]
    total_records: int = 0
    unique_schools: int = 0
    completeness: dict[str, float] = field(default_factory=dict)
    completeness_by_year: dict[str, dict[str, float]] = field(default_factory=dict)
    checks: list[CheckResult] = field(default_factory=list)
    anomalies: list[Anomaly] = field(default_factory=list)
    sources: list[SourceSummary] = field(default_factory=list)
    dropped_join_keys: int = 0
    duplicate_keys: int = 0
    name_conflicts: int = 0
    digest: str | None = None
    completeness_threshold: float = 50.0

    @property
    def overall_status(self) -> CheckStatus:
        """Determine overall status from individual checks."""
        if any(c.status == CheckStatus.FAIL for c in self.checks):
            return CheckStatus.FAIL
        if any(c.status == CheckStatus.WARN for c in self.checks):
            return CheckStatus.WARN
        if self.checks and all(c.status == CheckStatus.SKIP for c in self.checks):
            return CheckStatus.SKIP
        return CheckStatus.PASS

    @property
    def is_fatal(self) -> bool:
        """Whether any invariant check failed."""
        return any(c.is_fatal for c in self.checks)

    @property
    def fatal_checks(self) -> list[CheckResult]:
        return [c for c in self.checks if c.is_fatal]

    @property
    def anomaly_count(self) -> int:
        return len(self.anomalies)

    def anomalies_of(self, *kinds: AnomalyKind) -> list[Anomaly]:
        """Anomalies of the given kinds, in recorded order."""
        return [a for a in self.anomalies if a.kind in kinds]

    def check(self, name: str) -> CheckResult | None:
        """Look up a check result by name."""
        return next((c for c in self.checks if c.name == name), None)

    def render_text(self) -> str:
        """
        Render the report as plain text.

        The output depends only on the report contents, so identical runs
        produce identical files.
        """
        lines = [
            f"Quality report: {self.project}",
            f"District: {self.district_irn}",
            f"Years: {', '.join(self.years)}",
            f"Overall status: {self.overall_status.name}",
            "",
            f"Records: {self.total_records}",
            f"Unique schools: {self.unique_schools}",
            f"Rows dropped without school_id: {self.dropped_join_keys}",
            f"Duplicate source keys dropped: {self.duplicate_keys}",
            f"School name conflicts: {self.name_conflicts}",
            f"Canonical digest: {self.digest or '-'}",
        ]

        if self.completeness:
            lines += ["", "Completeness (% of records with a value)"]
            header = f"  {'field':<26}{'all':>8}"
            header += "".join(f"{year:>12}" for year in self.years)
            lines.append(header)
            for name, pct in self.completeness.items():
                row = f"  {name:<26}{pct:>8.1f}"
                for year in self.years:
                    year_pct = self.completeness_by_year.get(year, {}).get(name, 0.0)
                    row += f"{year_pct:>12.1f}"
                lines.append(row)

        if self.sources:
            lines += ["", "Sources"]
            for s in self.sources:
                lines.append(
                    f"  {s.category:<12} {s.year}  {s.status:<8}"
                    f" sheet={s.sheet or '-'} rows={s.rows_total}"
                    f" in_scope={s.rows_in_scope} missing={s.missing_values}"
                    f" non_numeric={s.non_numeric}"
                    f" path={s.path or '-'}"
                )

        lines += ["", "Checks"]
        for c in self.checks:
            lines.append(f"  [{c.status.name}] {c.name}: {c.message}")
            lines.extend(f"      - {d}" for d in c.details)

        lines += ["", f"Anomalies ({self.anomaly_count})"]
        if self.anomalies:
            lines.extend(f"  - {a.as_line()}" for a in self.anomalies)
        else:
            lines.append("  none")

        return "\n".join(lines) + "\n"
