"""
Consolidation pipeline implementation.

Reads every configured workbook, consolidates the three categories,
validates the result and exports the canonical dataset with its quality
report. Stages run strictly in sequence.
"""

from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd

from reportcard.analysis.summary import summarize_by_year
from reportcard.config.settings import CATEGORY_ORDER, PipelineConfig, SourceCategory
from reportcard.etl.consolidate import ConsolidationResult, Consolidator
from reportcard.export.writer import (
    remove_canonical_outputs,
    write_canonical_csv,
    write_canonical_xlsx,
    write_quality_report,
    write_summary,
)
from reportcard.ingestion import READERS
from reportcard.ingestion.base import (
    SourceReadError,
    SourceReadResult,
    empty_normalized_frame,
)
from reportcard.normalization.reconcile import SchemaReconciler
from reportcard.utils.hashing import hash_dataframe
from reportcard.utils.logging import get_logger, log_stage
from reportcard.validation.anomalies import Anomaly, AnomalyKind
from reportcard.validation.core import InvariantViolationError, QualityValidator
from reportcard.validation.report import QualityReport, SourceSummary

log = get_logger(__name__)


@dataclass
class SourceStage:
    """
    Output of the reading stage.

    Attributes:
        frames: Category -> normalized rows of all years read.
        results: Successful reads in category/year order.
        anomalies: Anomalies from reading, in category/year order.
        summaries: One summary per configured category/year.
    """

    frames: dict[SourceCategory, pd.DataFrame]
    results: list[SourceReadResult] = field(default_factory=list)
    anomalies: list[Anomaly] = field(default_factory=list)
    summaries: list[SourceSummary] = field(default_factory=list)

    @property
    def n_failed(self) -> int:
        return sum(1 for s in self.summaries if not s.ok)


@dataclass
class PipelineResult:
    """
    Result of a successful pipeline run.

    Attributes:
        records: Canonical records (six columns).
        report: Quality report.
        summary: Per-year district summary.
        output_paths: Written files by kind ("csv", "xlsx", "summary", "report").
    """

    records: pd.DataFrame
    report: QualityReport
    summary: pd.DataFrame
    output_paths: dict[str, Path] = field(default_factory=dict)


class ConsolidationPipeline:
    """
    Report card consolidation pipeline.

    Every path is resolved from the configuration before any workbook is
    opened. Per-file problems degrade into anomalies; invariant violations
    stop the run before anything is exported.
    """

    def __init__(self, config: PipelineConfig) -> None:
        """
        Initialize pipeline.

        Args:
            config: Pipeline configuration.
        """
        self.config = config
        self.reconciler = SchemaReconciler(config)
        self.consolidator = Consolidator(config)
        self.validator = QualityValidator(config)

    def run(self, *, write: bool = True) -> PipelineResult:
        """
        Run the full pipeline.

        Args:
            write: Whether to write the output files.

        Returns:
            PipelineResult with records, report and summary.

        Raises:
            InvariantViolationError: If a fatal check failed. Stale canonical
                files are removed and the quality report is still written.
        """
        log.info(
            "Starting consolidation",
            project=self.config.project,
            district=self.config.district_irn,
            years=list(self.config.years),
        )

        with log_stage("read"):
            stage = self.read_sources()

        with log_stage("consolidate"):
            consolidation = self.consolidator.consolidate(stage.frames)

        with log_stage("validate"):
            report = self.validate(stage, consolidation)

        if report.is_fatal:
            log.error(
                "Invariant violation, nothing exported",
                failed=[c.name for c in report.fatal_checks],
            )
            if write:
                remove_canonical_outputs(self.config)
                write_quality_report(report, self.config.quality_report_path)
            raise InvariantViolationError(report)

        records = consolidation.canonical.reset_index(drop=True)
        report.digest = hash_dataframe(records)
        summary = summarize_by_year(records, self.config.years)

        result = PipelineResult(records=records, report=report, summary=summary)
        if write:
            with log_stage("export", output_dir=str(self.config.output_dir)):
                result.output_paths = self._export(result)

        log.info(
            "Consolidation complete",
            records=report.total_records,
            schools=report.unique_schools,
            status=report.overall_status.value,
            anomalies=report.anomaly_count,
            digest=report.digest,
        )
        return result

    def read_sources(self) -> SourceStage:
        """
        Read every configured workbook, one at a time.

        A workbook that fails is recorded and skipped; it never aborts the
        stage.
        """
        parts: dict[SourceCategory, list[pd.DataFrame]] = {c: [] for c in CATEGORY_ORDER}
        stage = SourceStage(frames={})

        for category in CATEGORY_ORDER:
            reader = READERS[category](self.config, self.reconciler)
            for year in self.config.years:
                try:
                    result = reader.read_configured(year)
                except SourceReadError as e:
                    log.warning(
                        "Skipping source",
                        category=category.value,
                        year=year,
                        kind=e.kind.value,
                        error=str(e),
                    )
                    stage.anomalies.append(e.to_anomaly())
                    stage.summaries.append(
                        SourceSummary(
                            category=category.value,
                            year=year,
                            path=str(e.path) if e.path else None,
                            status=(
                                "missing"
                                if e.kind == AnomalyKind.MISSING_SOURCE
                                else "failed"
                            ),
                        )
                    )
                    continue

                stage.results.append(result)
                stage.anomalies.extend(result.anomalies)
                stage.summaries.append(
                    SourceSummary(
                        category=category.value,
                        year=year,
                        path=str(result.path),
                        status="read",
                        sheet=result.sheet,
                        rows_total=result.rows_total,
                        rows_in_scope=result.rows_in_scope,
                        missing_values=int(result.rows["value"].isna().sum()),
                        non_numeric=result.non_numeric,
                    )
                )
                if not result.rows.empty:
                    parts[category].append(result.rows)

        for category, frames in parts.items():
            stage.frames[category] = (
                pd.concat(frames, ignore_index=True) if frames else empty_normalized_frame()
            )

        log.info(
            "Read sources",
            read=len(stage.results),
            failed=stage.n_failed,
            anomalies=len(stage.anomalies),
        )
        return stage

    def validate(
        self, stage: SourceStage, consolidation: ConsolidationResult
    ) -> QualityReport:
        """Validate consolidated records together with the reading stage's findings."""
        return self.validator.run(
            consolidation.records,
            [*stage.anomalies, *consolidation.anomalies],
            stage.summaries,
            dropped_join_keys=consolidation.n_dropped_join_keys,
            duplicate_keys=consolidation.n_duplicate_keys,
            name_conflicts=consolidation.name_conflicts,
        )

    def _export(self, result: PipelineResult) -> dict[str, Path]:
        """Write canonical files, summary and report; the report goes last."""
        config = self.config
        return {
            "csv": write_canonical_csv(result.records, config.canonical_csv_path),
            "xlsx": write_canonical_xlsx(result.records, config.canonical_xlsx_path),
            "summary": write_summary(result.summary, config.summary_path),
            "report": write_quality_report(result.report, config.quality_report_path),
        }


def run_pipeline(config: PipelineConfig, *, write: bool = True) -> PipelineResult:
    """
    Convenience function to run the consolidation pipeline.

    Args:
        config: Pipeline configuration.
        write: Whether to write the output files.

    Returns:
        PipelineResult.
    """
    return ConsolidationPipeline(config).run(write=write)
