"""
Quality checks over the consolidated records.

Invariant checks (schema, key uniqueness, district scope, year set) are
fatal; coverage and completeness checks only warn. FAIL checks name the
offending records so the diagnostic is actionable.
"""

from collections.abc import Iterable, Sequence

import pandas as pd
from pandera.errors import SchemaErrors

from reportcard.config.settings import PipelineConfig
from reportcard.schemas.canonical import (
    CANONICAL_COLUMNS,
    JOIN_KEY,
    NUMERIC_FIELDS,
    SCOPE_COLUMN,
    CanonicalRecordSchema,
)
from reportcard.utils.logging import get_logger
from reportcard.validation.anomalies import Anomaly, AnomalyKind
from reportcard.validation.report import (
    CheckResult,
    CheckStatus,
    QualityReport,
    SourceSummary,
)

log = get_logger(__name__)

SOURCE_KINDS = (AnomalyKind.MISSING_SOURCE, AnomalyKind.SOURCE_READ_FAILED)
RESOLUTION_KINDS = (
    AnomalyKind.SHEET_FALLBACK,
    AnomalyKind.SHEET_AMBIGUOUS,
    AnomalyKind.COLUMN_AMBIGUOUS,
    AnomalyKind.COLUMN_UNRESOLVED,
)
JOIN_KINDS = (AnomalyKind.JOIN_KEY_MISSING, AnomalyKind.DUPLICATE_SOURCE_KEY)
RANGE_KINDS = (AnomalyKind.VALUE_OUT_OF_RANGE,)


class InvariantViolationError(Exception):
    """Raised when the consolidated records break a fatal invariant."""

    def __init__(self, report: QualityReport) -> None:
        self.report = report
        parts = []
        for check in report.fatal_checks:
            part = f"{check.name}: {check.message}"
            if check.details:
                part += f" (first: {check.details[0]})"
            parts.append(part)
        super().__init__("Invariant violation; " + "; ".join(parts))


def _describe(row: pd.Series) -> str:
    text = (
        f"school_id={row.get('school_id')!r} year={row.get('year')!r} "
        f"school_name={row.get('school_name')!r}"
    )
    if SCOPE_COLUMN in row.index:
        text += f" district_irn={row[SCOPE_COLUMN]!r}"
    return text


def _completeness(records: pd.DataFrame) -> dict[str, float]:
    if records.empty:
        return {col: 0.0 for col in NUMERIC_FIELDS}
    return {
        col: round(float(records[col].notna().mean()) * 100, 1) for col in NUMERIC_FIELDS
    }


class QualityValidator:
    """
    Runs quality checks over the consolidated records.

    The records are read, never modified.
    """

    # Offending records listed per failed check
    MAX_DETAILS = 20

    def __init__(self, config: PipelineConfig) -> None:
        """
        Initialize validator.

        Args:
            config: Pipeline configuration (target district, years, threshold).
        """
        self.config = config

    def run(
        self,
        records: pd.DataFrame,
        anomalies: Iterable[Anomaly] = (),
        sources: Iterable[SourceSummary] = (),
        *,
        dropped_join_keys: int = 0,
        duplicate_keys: int = 0,
        name_conflicts: int = 0,
    ) -> QualityReport:
        """
        Validate records and build the quality report.

        Args:
            records: Consolidated records (canonical columns plus provenance).
            anomalies: Anomalies collected by earlier stages.
            sources: Per-workbook read summaries.
            dropped_join_keys: Rows dropped for a missing school id.
            duplicate_keys: Rows dropped as repeated source keys.
            name_conflicts: Records with differing name spellings.

        Returns:
            QualityReport; callers decide what a fatal report means.
        """
        anomalies = list(anomalies)
        report = QualityReport(
            project=self.config.project,
            district_irn=self.config.district_irn,
            years=tuple(self.config.years),
            total_records=len(records),
            unique_schools=(
                int(records["school_id"].nunique()) if "school_id" in records else 0
            ),
            anomalies=anomalies,
            sources=list(sources),
            dropped_join_keys=dropped_join_keys,
            duplicate_keys=duplicate_keys,
            name_conflicts=name_conflicts,
            completeness_threshold=self.config.validation.completeness_threshold,
        )

        if set(NUMERIC_FIELDS) <= set(records.columns):
            report.completeness = _completeness(records)
            if "year" in records:
                report.completeness_by_year = {
                    year: _completeness(records[records["year"] == year])
                    for year in self.config.years
                }

        report.checks = [
            self._check_schema(records),
            self._check_unique_keys(records),
            self._check_scope(records),
            self._check_year_set(records),
            self._check_completeness(report),
            self._check_anomalies(
                "source_coverage",
                anomalies,
                SOURCE_KINDS,
                ok="all configured workbooks read",
                problem="workbook(s) missing or unreadable",
            ),
            self._check_anomalies(
                "resolution_fallbacks",
                anomalies,
                RESOLUTION_KINDS,
                ok="all sheets and columns resolved unambiguously",
                problem="sheet/column fallback(s) or ambiguities",
            ),
            self._check_anomalies(
                "join_artifacts",
                anomalies,
                JOIN_KINDS,
                ok="no rows dropped at the join",
                problem="row(s) dropped for missing or repeated join keys",
            ),
            self._check_anomalies(
                "value_ranges",
                anomalies,
                RANGE_KINDS,
                ok="all metric values within their plausible range",
                problem="workbook(s) with implausible metric values",
            ),
        ]

        log.info(
            "Validation complete",
            overall=report.overall_status.value,
            records=report.total_records,
            schools=report.unique_schools,
            anomalies=report.anomaly_count,
            failed=[c.name for c in report.fatal_checks],
        )
        return report

    def _check_schema(self, records: pd.DataFrame) -> CheckResult:
        """Validate the six canonical columns against CanonicalRecordSchema."""
        missing = [c for c in CANONICAL_COLUMNS if c not in records.columns]
        if missing:
            return CheckResult(
                name="canonical_schema",
                status=CheckStatus.FAIL,
                message=f"missing canonical column(s) {missing}",
                n_checked=len(records),
            )

        try:
            CanonicalRecordSchema.validate(records[CANONICAL_COLUMNS].copy(), lazy=True)
        except SchemaErrors as e:
            cases = e.failure_cases
            details = []
            for case in cases.head(self.MAX_DETAILS).itertuples(index=False):
                detail = f"{case.column}: {case.check} failed with {case.failure_case!r}"
                if pd.notna(case.index) and case.index in records.index:
                    detail += f" at {_describe(records.loc[case.index])}"
                details.append(detail)
            return CheckResult(
                name="canonical_schema",
                status=CheckStatus.FAIL,
                message=f"{len(cases)} schema failure(s)",
                details=details,
                n_checked=len(records),
                n_failed=len(cases),
            )

        return CheckResult(
            name="canonical_schema",
            status=CheckStatus.PASS,
            message="records match the canonical schema",
            n_checked=len(records),
        )

    def _check_unique_keys(self, records: pd.DataFrame) -> CheckResult:
        """(school_id, year) appears at most once."""
        if not set(JOIN_KEY) <= set(records.columns):
            return CheckResult(
                name="unique_keys",
                status=CheckStatus.FAIL,
                message=f"join key columns {JOIN_KEY} missing",
            )

        duplicated = records.duplicated(subset=JOIN_KEY, keep=False)
        return self._offenders(
            "unique_keys",
            records,
            duplicated,
            ok="(school_id, year) is unique",
            problem="record(s) share a (school_id, year) key",
        )

    def _check_scope(self, records: pd.DataFrame) -> CheckResult:
        """Every record comes from the target district."""
        if SCOPE_COLUMN not in records.columns:
            return CheckResult(
                name="district_scope",
                status=CheckStatus.SKIP,
                message="no district provenance on records",
            )

        outside = records[SCOPE_COLUMN] != self.config.district_irn
        return self._offenders(
            "district_scope",
            records,
            outside,
            ok=f"all records belong to district {self.config.district_irn}",
            problem=f"record(s) outside district {self.config.district_irn}",
        )

    def _check_year_set(self, records: pd.DataFrame) -> CheckResult:
        """The distinct years equal the configured set."""
        expected = set(self.config.years)
        if "year" not in records.columns:
            return CheckResult(
                name="year_set",
                status=CheckStatus.FAIL,
                message="year column missing",
            )

        unexpected = ~records["year"].isin(expected)
        observed = set(records.loc[~unexpected, "year"])
        absent = sorted(expected - observed)

        result = self._offenders(
            "year_set",
            records,
            unexpected,
            ok=f"years are exactly {sorted(expected)}",
            problem="record(s) with a year outside the configured set",
        )
        if absent:
            result.status = CheckStatus.FAIL
            message = f"no records for configured year(s) {absent}"
            result.message = (
                message if not unexpected.any() else f"{result.message}; {message}"
            )
        return result

    def _check_completeness(self, report: QualityReport) -> CheckResult:
        """Warn for fields populated below the threshold, overall or per year."""
        threshold = report.completeness_threshold
        details = [
            f"{name}: {pct:.1f}% overall"
            for name, pct in report.completeness.items()
            if pct < threshold
        ]
        for year in report.years:
            details += [
                f"{name}: {pct:.1f}% in {year}"
                for name, pct in report.completeness_by_year.get(year, {}).items()
                if pct < threshold
            ]

        if not report.completeness:
            return CheckResult(
                name="completeness",
                status=CheckStatus.SKIP,
                message="numeric fields missing",
            )
        if details:
            return CheckResult(
                name="completeness",
                status=CheckStatus.WARN,
                message=f"{len(details)} field/year(s) below {threshold:.0f}% populated",
                details=details,
            )
        return CheckResult(
            name="completeness",
            status=CheckStatus.PASS,
            message=f"all fields at least {threshold:.0f}% populated in every year",
        )

    def _check_anomalies(
        self,
        name: str,
        anomalies: Sequence[Anomaly],
        kinds: tuple[AnomalyKind, ...],
        *,
        ok: str,
        problem: str,
    ) -> CheckResult:
        """Warn if any anomaly of the given kinds was recorded."""
        hits = [a for a in anomalies if a.kind in kinds]
        if not hits:
            return CheckResult(name=name, status=CheckStatus.PASS, message=ok)
        return CheckResult(
            name=name,
            status=CheckStatus.WARN,
            message=f"{len(hits)} {problem}",
            details=[a.as_line() for a in hits[: self.MAX_DETAILS]],
            n_failed=len(hits),
        )

    def _offenders(
        self,
        name: str,
        records: pd.DataFrame,
        mask: pd.Series,
        *,
        ok: str,
        problem: str,
    ) -> CheckResult:
        """FAIL listing the records selected by ``mask``, PASS if none."""
        offending = records[mask]
        if offending.empty:
            return CheckResult(
                name=name, status=CheckStatus.PASS, message=ok, n_checked=len(records)
            )

        log.error("Check failed", check=name, n=len(offending))
        return CheckResult(
            name=name,
            status=CheckStatus.FAIL,
            message=f"{len(offending)} {problem}",
            details=[
                _describe(row)
                for _, row in offending.head(self.MAX_DETAILS).iterrows()
            ],
            n_checked=len(records),
            n_failed=len(offending),
        )


def validate_records(
    config: PipelineConfig,
    records: pd.DataFrame,
    anomalies: Iterable[Anomaly] = (),
    sources: Iterable[SourceSummary] = (),
) -> QualityReport:
    """
    Convenience function to validate consolidated records.

    Args:
        config: Pipeline configuration.
        records: Consolidated records.
        anomalies: Anomalies from earlier stages.
        sources: Per-workbook read summaries.

    Returns:
        QualityReport.
    """
    return QualityValidator(config).run(records, anomalies, sources)
