"""Tests for the consolidator."""

import pandas as pd

from conftest import OTHER_DISTRICT, YEARS, normalized_rows
from reportcard.config import PipelineConfig, SourceCategory
from reportcard.etl import Consolidator, consolidate
from reportcard.schemas import CANONICAL_COLUMNS
from reportcard.validation.anomalies import AnomalyKind

ENROLLMENT = SourceCategory.ENROLLMENT
VALUE_ADDED = SourceCategory.VALUE_ADDED
ACHIEVEMENT = SourceCategory.ACHIEVEMENT


def _record(records: pd.DataFrame, school_id: str, year: str) -> pd.Series:
    match = records[(records["school_id"] == school_id) & (records["year"] == year)]
    assert len(match) == 1
    return match.iloc[0]


class TestOuterJoin:
    """Tests for joining the three categories."""

    def test_full_outer_join(self, config: PipelineConfig) -> None:
        """Test that a school found in any category yields one record."""
        year = YEARS[0]
        result = Consolidator(config).consolidate(
            {
                ENROLLMENT: normalized_rows("enrollment", year, [("000101", "Alpha", 300.0)]),
                VALUE_ADDED: normalized_rows("value_added", year, [("000101", "Alpha", 1.5)]),
                ACHIEVEMENT: normalized_rows("achievement", year, [("000202", "Beta", 70.0)]),
            }
        )
        records = result.records

        assert len(records) == 2
        alpha = _record(records, "000101", year)
        assert alpha["enrollment"] == 300.0
        assert alpha["value_added_composite"] == 1.5
        assert pd.isna(alpha["performance_index_score"])

        beta = _record(records, "000202", year)
        assert beta["school_name"] == "Beta"
        assert pd.isna(beta["enrollment"])
        assert pd.isna(beta["value_added_composite"])
        assert beta["performance_index_score"] == 70.0

    def test_years_are_separate_records(self, config: PipelineConfig) -> None:
        """Test that the same school in two years gives two records."""
        result = consolidate(
            config,
            {
                ENROLLMENT: pd.concat(
                    [
                        normalized_rows("enrollment", YEARS[0], [("000101", "Alpha", 300.0)]),
                        normalized_rows("enrollment", YEARS[1], [("000101", "Alpha", 310.0)]),
                    ],
                    ignore_index=True,
                ),
            },
        )
        assert result.records["year"].tolist() == [YEARS[0], YEARS[1]]
        assert result.records["enrollment"].tolist() == [300.0, 310.0]

    def test_missing_categories(self, config: PipelineConfig) -> None:
        """Test that categories without rows leave their field null."""
        result = consolidate(
            config,
            {ENROLLMENT: normalized_rows("enrollment", YEARS[2], [("000101", "Alpha", 300.0)])},
        )
        assert list(result.canonical.columns) == CANONICAL_COLUMNS
        assert result.records["value_added_composite"].isna().all()
        assert result.records["performance_index_score"].isna().all()
        assert result.records["value_added_composite"].dtype == "float64"

    def test_no_rows_at_all(self, config: PipelineConfig) -> None:
        """Test that consolidating nothing gives an empty canonical table."""
        result = consolidate(config, {})
        assert result.records.empty
        assert list(result.canonical.columns) == CANONICAL_COLUMNS
        assert result.anomalies == []


class TestSchoolName:
    """Tests for school name precedence."""

    def test_enrollment_name_wins(self, config: PipelineConfig) -> None:
        """Test that the overview spelling is used and the conflict counted."""
        year = YEARS[1]
        result = consolidate(
            config,
            {
                ENROLLMENT: normalized_rows("enrollment", year, [("000101", "Alpha Elem", 300.0)]),
                VALUE_ADDED: normalized_rows("value_added", year, [("000101", "ALPHA", 1.0)]),
                ACHIEVEMENT: normalized_rows(
                    "achievement", year, [("000101", "Alpha Elementary", 60.0)]
                ),
            },
        )
        assert result.records["school_name"].tolist() == ["Alpha Elem"]
        assert result.name_conflicts == 1

    def test_falls_back_to_achievement_name(self, config: PipelineConfig) -> None:
        """Test that achievement names fill in before value-added names."""
        year = YEARS[1]
        result = consolidate(
            config,
            {
                ENROLLMENT: normalized_rows("enrollment", year, [("000101", None, 300.0)]),
                VALUE_ADDED: normalized_rows("value_added", year, [("000101", "ALPHA", 1.0)]),
                ACHIEVEMENT: normalized_rows(
                    "achievement", year, [("000101", "Alpha Elementary", 60.0)]
                ),
            },
        )
        assert result.records["school_name"].tolist() == ["Alpha Elementary"]

    def test_matching_names_are_not_conflicts(self, config: PipelineConfig) -> None:
        """Test that identical spellings do not count as conflicts."""
        year = YEARS[0]
        result = consolidate(
            config,
            {
                ENROLLMENT: normalized_rows("enrollment", year, [("000101", "Alpha", 300.0)]),
                ACHIEVEMENT: normalized_rows("achievement", year, [("000101", "Alpha", 60.0)]),
            },
        )
        assert result.name_conflicts == 0


class TestJoinArtifacts:
    """Tests for rows that cannot be joined."""

    def test_rows_without_school_id_are_dropped(self, config: PipelineConfig) -> None:
        """Test that each row without a key is dropped with one anomaly."""
        year = YEARS[2]
        result = consolidate(
            config,
            {
                ENROLLMENT: normalized_rows(
                    "enrollment",
                    year,
                    [("000101", "Alpha", 300.0), (None, "Ghost", 5.0), ("  ", "Blank", 6.0)],
                ),
                ACHIEVEMENT: normalized_rows("achievement", year, [(None, "Ghost", 50.0)]),
            },
        )

        assert result.records["school_id"].tolist() == ["000101"]
        assert result.n_dropped_join_keys == 3
        kinds = [a.kind for a in result.anomalies]
        assert kinds == [AnomalyKind.JOIN_KEY_MISSING] * 3
        assert [a.category for a in result.anomalies] == [
            "enrollment",
            "enrollment",
            "achievement",
        ]

    def test_duplicate_source_keys(self, config: PipelineConfig) -> None:
        """Test that a repeated key within one source keeps its first row."""
        year = YEARS[2]
        result = consolidate(
            config,
            {
                ENROLLMENT: normalized_rows(
                    "enrollment",
                    year,
                    [("000101", "Alpha", 300.0), ("000101", "Alpha", 999.0)],
                ),
            },
        )
        assert result.records["enrollment"].tolist() == [300.0]
        assert result.n_duplicate_keys == 1
        assert [a.kind for a in result.anomalies] == [AnomalyKind.DUPLICATE_SOURCE_KEY]

    def test_keys_are_unique(self, config: PipelineConfig) -> None:
        """Test that the output has one record per (school_id, year)."""
        rows = [("000101", "Alpha", 1.0), ("000202", "Beta", 2.0)]
        sources = {
            category: pd.concat(
                [normalized_rows(category.value, year, rows) for year in YEARS],
                ignore_index=True,
            )
            for category in SourceCategory
        }
        records = consolidate(config, sources).records
        assert len(records) == 6
        assert not records.duplicated(subset=["school_id", "year"]).any()


class TestOrderAndProvenance:
    """Tests for output order and the district provenance column."""

    def test_sort_order(self, config: PipelineConfig) -> None:
        """Test ordering by school_name, year, school_id with unnamed schools last."""
        result = consolidate(
            config,
            {
                ENROLLMENT: pd.concat(
                    [
                        normalized_rows(
                            "enrollment",
                            YEARS[1],
                            [
                                ("000202", "Beta", 1.0),
                                ("000303", "Alpha", 2.0),
                                ("000909", None, 3.0),
                                ("000101", "Alpha", 4.0),
                            ],
                        ),
                        normalized_rows("enrollment", YEARS[0], [("000202", "Beta", 5.0)]),
                    ],
                    ignore_index=True,
                ),
            },
        )
        records = result.records
        assert list(zip(records["school_name"], records["year"], records["school_id"])) == [
            ("Alpha", YEARS[1], "000101"),
            ("Alpha", YEARS[1], "000303"),
            ("Beta", YEARS[0], "000202"),
            ("Beta", YEARS[1], "000202"),
            (None, YEARS[1], "000909"),
        ]

    def test_provenance_column(self, config: PipelineConfig) -> None:
        """Test that the district a record came from is carried along."""
        year = YEARS[0]
        result = consolidate(
            config,
            {
                ENROLLMENT: normalized_rows("enrollment", year, [("000101", "Alpha", 1.0)]),
                ACHIEVEMENT: normalized_rows(
                    "achievement", year, [("000101", "Alpha", 60.0)], district=OTHER_DISTRICT
                ),
            },
        )
        assert result.records["district_irn"].tolist() == [OTHER_DISTRICT]
        assert "district_irn" not in result.canonical.columns
