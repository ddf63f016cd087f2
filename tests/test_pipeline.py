"""End-to-end tests for the consolidation pipeline over synthetic workbooks."""

from pathlib import Path

import pandas as pd
import pytest

from conftest import YEARS, ReportCardFiles, school_ids
from reportcard.config import PipelineConfig, SourceCategory
from reportcard.etl import ConsolidationPipeline, run_pipeline
from reportcard.export import read_canonical
from reportcard.ingestion.base import SourceReader
from reportcard.schemas import CANONICAL_COLUMNS
from reportcard.utils.hashing import hash_dataframe
from reportcard.validation import AnomalyKind, CheckStatus, InvariantViolationError


def _all_sources(
    files: ReportCardFiles,
    ids: list[str],
    *,
    years: tuple[str, ...] = YEARS,
    extra_enrollment: list[str | None] | None = None,
) -> ReportCardFiles:
    for year in years:
        enrollment_ids = ids + (extra_enrollment or []) if year == years[-1] else ids
        files.enrollment(year, enrollment_ids)
        files.value_added(year, ids)
        files.achievement(year, ids)
    return files


class TestThreeYearRun:
    """Tests for a full run with one unpublished value-added year."""

    @pytest.fixture
    def result(self, full_sources: ReportCardFiles, tmp_path: Path):
        config = full_sources.config(tmp_path / "output")
        return run_pipeline(config)

    def test_record_counts(self, result) -> None:
        """Test that every school/year found in any source gives one record."""
        assert len(result.records) == 110 + 112 + 112
        assert result.report.total_records == 334
        assert result.report.unique_schools == 112
        assert list(result.records.columns) == CANONICAL_COLUMNS
        assert not result.records.duplicated(subset=["school_id", "year"]).any()

    def test_only_district_schools(self, result) -> None:
        """Test that neighbouring district rows never reach the records."""
        assert result.records["school_id"].str.startswith("00").all()
        assert "Elsewhere A" not in set(result.records["school_name"])

    def test_missing_value_added_year(self, result) -> None:
        """Test that the unpublished year leaves value-added null and warns."""
        first_year = result.records[result.records["year"] == YEARS[0]]
        assert first_year["value_added_composite"].isna().all()
        assert first_year["enrollment"].notna().all()

        report = result.report
        assert report.completeness_by_year[YEARS[0]]["value_added_composite"] == 0.0
        assert report.check("completeness").status == CheckStatus.WARN
        assert report.check("source_coverage").status == CheckStatus.WARN

        missing = report.anomalies_of(AnomalyKind.MISSING_SOURCE)
        assert [(a.category, a.year) for a in missing] == [("value_added", YEARS[0])]
        assert not report.is_fatal
        assert report.overall_status == CheckStatus.WARN

    def test_source_summaries(self, result) -> None:
        """Test that every configured category/year is accounted for."""
        sources = result.report.sources
        assert len(sources) == 9
        assert [s.status for s in sources].count("read") == 8
        enrollment = next(
            s for s in sources if s.category == "enrollment" and s.year == YEARS[0]
        )
        assert enrollment.rows_total == 113
        assert enrollment.rows_in_scope == 110
        assert enrollment.sheet == "BUILDING_OVERVIEW"

    def test_summary(self, result) -> None:
        """Test the per-year district summary."""
        summary = result.summary
        assert summary["year"].tolist() == list(YEARS)
        assert summary["total_schools"].tolist() == [110, 112, 112]
        assert summary["schools_with_va"].tolist() == [0, 112, 112]
        assert pd.isna(summary.loc[0, "avg_value_added"])

    def test_outputs(self, result) -> None:
        """Test that all four files are written and the CSV reads back."""
        paths = result.output_paths
        assert set(paths) == {"csv", "xlsx", "summary", "report"}
        assert all(p.exists() for p in paths.values())

        restored = read_canonical(paths["csv"])
        pd.testing.assert_frame_equal(restored, result.records)
        assert result.report.digest == hash_dataframe(result.records)
        assert result.report.digest in paths["report"].read_text(encoding="utf-8")


class TestDeterminism:
    """Tests for reproducible outputs."""

    def test_rerun_is_byte_identical(
        self, full_sources: ReportCardFiles, tmp_path: Path
    ) -> None:
        """Test that running twice on unchanged inputs rewrites the same bytes."""
        config = full_sources.config(tmp_path / "output")

        first = run_pipeline(config)
        csv_bytes = config.canonical_csv_path.read_bytes()
        report_text = config.quality_report_path.read_text(encoding="utf-8")

        second = run_pipeline(config)
        assert config.canonical_csv_path.read_bytes() == csv_bytes
        assert config.quality_report_path.read_text(encoding="utf-8") == report_text
        assert first.report.digest == second.report.digest

    def test_dry_run_writes_nothing(
        self, full_sources: ReportCardFiles, tmp_path: Path
    ) -> None:
        """Test that write=False runs every stage without touching the disk."""
        config = full_sources.config(tmp_path / "output")
        result = run_pipeline(config, write=False)

        assert result.output_paths == {}
        assert result.report.digest is not None
        assert not config.output_dir.exists()


class TestDegradedSources:
    """Tests for per-file problems that must not stop the run."""

    def test_malformed_row_adds_one_anomaly(self, tmp_path: Path) -> None:
        """Test that a row without an id is dropped with exactly one anomaly."""
        ids = school_ids(5)
        baseline_files = _all_sources(ReportCardFiles(tmp_path / "baseline"), ids)
        malformed_files = _all_sources(
            ReportCardFiles(tmp_path / "malformed"), ids, extra_enrollment=[None]
        )

        baseline = run_pipeline(baseline_files.config(tmp_path / "out"), write=False)
        malformed = run_pipeline(malformed_files.config(tmp_path / "out"), write=False)

        assert malformed.report.anomaly_count == baseline.report.anomaly_count + 1
        dropped = malformed.report.anomalies_of(AnomalyKind.JOIN_KEY_MISSING)
        assert len(dropped) == 1
        assert dropped[0].category == "enrollment"
        assert malformed.report.dropped_join_keys == 1
        pd.testing.assert_frame_equal(malformed.records, baseline.records)

    def test_enrollment_only_school(self, tmp_path: Path) -> None:
        """Test that a school missing from two categories still gets a record."""
        files = _all_sources(
            ReportCardFiles(tmp_path / "data"), school_ids(3), extra_enrollment=["012345"]
        )
        result = run_pipeline(files.config(tmp_path / "output"), write=False)

        record = result.records[result.records["school_id"] == "012345"]
        assert len(record) == 1
        assert record.iloc[0]["school_name"] == "School 12345"
        assert record.iloc[0]["year"] == YEARS[-1]
        assert record.iloc[0]["enrollment"] == 253.0
        assert pd.isna(record.iloc[0]["value_added_composite"])
        assert pd.isna(record.iloc[0]["performance_index_score"])

    def test_missing_file_is_skipped(self, tmp_path: Path) -> None:
        """Test that a configured but absent workbook only costs its own rows."""
        files = _all_sources(ReportCardFiles(tmp_path / "data"), school_ids(4))
        files.register(SourceCategory.ACHIEVEMENT, YEARS[1], "achievement/gone.xlsx")

        result = run_pipeline(files.config(tmp_path / "output"), write=False)

        second_year = result.records[result.records["year"] == YEARS[1]]
        assert len(second_year) == 4
        assert second_year["performance_index_score"].isna().all()
        assert second_year["enrollment"].notna().all()

        status = {(s.category, s.year): s.status for s in result.report.sources}
        assert status[("achievement", YEARS[1])] == "missing"
        assert not result.report.is_fatal

    def test_unreadable_file_is_skipped(self, tmp_path: Path) -> None:
        """Test that a corrupt workbook is recorded as failed."""
        files = _all_sources(ReportCardFiles(tmp_path / "data"), school_ids(4))
        corrupt = files.root / "value_added" / "corrupt.xlsx"
        corrupt.write_text("not a workbook", encoding="utf-8")
        files.register(SourceCategory.VALUE_ADDED, YEARS[2], "value_added/corrupt.xlsx")

        result = run_pipeline(files.config(tmp_path / "output"), write=False)

        status = {(s.category, s.year): s.status for s in result.report.sources}
        assert status[("value_added", YEARS[2])] == "failed"
        failed = result.report.anomalies_of(AnomalyKind.SOURCE_READ_FAILED)
        assert len(failed) == 1
        assert len(result.records) == 12


    def test_negative_enrollment_is_a_warning(self, tmp_path: Path) -> None:
        """Test that an implausible count is exported and reported, not fatal."""
        ids = school_ids(3)
        files = _all_sources(ReportCardFiles(tmp_path / "data"), ids)
        files.enrollment(YEARS[0], ids, values=[250, "-12", 300])

        result = run_pipeline(files.config(tmp_path / "output"))

        report = result.report
        assert not report.is_fatal
        assert report.check("canonical_schema").status == CheckStatus.PASS
        assert report.check("value_ranges").status == CheckStatus.WARN
        out_of_range = report.anomalies_of(AnomalyKind.VALUE_OUT_OF_RANGE)
        assert [(a.category, a.year) for a in out_of_range] == [("enrollment", YEARS[0])]

        record = result.records[
            (result.records["school_id"] == "009001") & (result.records["year"] == YEARS[0])
        ]
        assert record.iloc[0]["enrollment"] == -12.0
        assert result.output_paths["csv"].exists()


class TestFatalRun:
    """Tests for runs that break an invariant."""

    def test_district_filter_regression_is_fatal(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that neighbouring rows let through by the readers stop the export."""
        files = _all_sources(ReportCardFiles(tmp_path / "data"), school_ids(3))
        config = files.config(tmp_path / "output")
        monkeypatch.setattr(
            SourceReader, "_in_district", lambda self, district: district.notna()
        )

        with pytest.raises(InvariantViolationError) as exc_info:
            run_pipeline(config)

        scope = exc_info.value.report.check("district_scope")
        assert scope.status == CheckStatus.FAIL
        # Three neighbouring buildings in each of three years
        assert scope.n_failed == 9
        assert any("Elsewhere A" in line for line in scope.details)
        assert not config.canonical_csv_path.exists()

    def test_missing_year_is_fatal(self, tmp_path: Path) -> None:
        """Test that a year with no sources stops the export and removes stale files."""
        files = _all_sources(
            ReportCardFiles(tmp_path / "data"), school_ids(3), years=YEARS[:2]
        )
        config: PipelineConfig = files.config(tmp_path / "output")
        config.output_dir.mkdir(parents=True)
        config.canonical_csv_path.write_text("stale\n", encoding="utf-8")

        with pytest.raises(InvariantViolationError) as exc_info:
            ConsolidationPipeline(config).run()

        report = exc_info.value.report
        assert report.check("year_set").status == CheckStatus.FAIL
        assert YEARS[2] in report.check("year_set").message
        assert len(report.anomalies_of(AnomalyKind.MISSING_SOURCE)) == 3

        assert not config.canonical_csv_path.exists()
        assert not config.canonical_xlsx_path.exists()
        text = config.quality_report_path.read_text(encoding="utf-8")
        assert "[FAIL] year_set" in text
        assert "Canonical digest: -" in text

    def test_fatal_dry_run_leaves_files(self, tmp_path: Path) -> None:
        """Test that a fatal dry run neither deletes nor writes anything."""
        files = _all_sources(
            ReportCardFiles(tmp_path / "data"), school_ids(3), years=YEARS[:2]
        )
        config = files.config(tmp_path / "output")
        config.output_dir.mkdir(parents=True)
        config.canonical_csv_path.write_text("stale\n", encoding="utf-8")

        with pytest.raises(InvariantViolationError):
            run_pipeline(config, write=False)

        assert config.canonical_csv_path.read_text(encoding="utf-8") == "stale\n"
        assert not config.quality_report_path.exists()
