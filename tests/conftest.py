"""Pytest configuration and shared fixtures."""

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from reportcard.config import (
    DataPathsConfig,
    DistrictConfig,
    OutputConfig,
    PipelineConfig,
    SourceCategory,
)

DISTRICT = "043786"
OTHER_DISTRICT = "044909"
YEARS = ("2020-2021", "2021-2022", "2022-2023")


def school_ids(n: int) -> list[str]:
    """Six-digit building identifiers, several with leading zeros."""
    return [f"{9000 + i:06d}" for i in range(n)]


def school_name(school_id: str) -> str:
    return f"School {int(school_id)}"


class ReportCardFiles:
    """
    Writes synthetic report card workbooks in the portal's layout.

    Each call writes one workbook for one category and year and registers
    it for the pipeline configuration. Rows for a neighbouring district are
    always included so the district filter has something to drop.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.sources: dict[SourceCategory, dict[str, Path]] = {c: {} for c in SourceCategory}

    def _write(
        self,
        category: SourceCategory,
        year: str,
        filename: str,
        sheets: dict[str, pd.DataFrame],
    ) -> Path:
        rel_path = Path(category.value) / filename
        path = self.root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for sheet, frame in sheets.items():
                frame.to_excel(writer, sheet_name=sheet, index=False)
        self.sources[category][year] = rel_path
        return path

    @staticmethod
    def _frame(
        ids: Sequence[str | None],
        values: Sequence[Any],
        value_header: str,
        district: str = DISTRICT,
        extra: dict[str, Sequence[Any]] | None = None,
    ) -> pd.DataFrame:
        frame = pd.DataFrame(
            {
                "District IRN": [district] * len(ids),
                "Building IRN": list(ids),
                "Building Name": [school_name(i) if i else "Unnamed" for i in ids],
                value_header: list(values),
                **(extra or {}),
            }
        )
        neighbours = pd.DataFrame(
            {
                "District IRN": [OTHER_DISTRICT] * 3,
                "Building IRN": ["700001", "700002", "700003"],
                "Building Name": ["Elsewhere A", "Elsewhere B", "Elsewhere C"],
                value_header: [1.0, 2.0, 3.0],
                **{k: [None] * 3 for k in (extra or {})},
            }
        )
        return pd.concat([neighbours.iloc[:1], frame, neighbours.iloc[1:]], ignore_index=True)

    def enrollment(
        self,
        year: str,
        ids: Sequence[str | None],
        values: Sequence[Any] | None = None,
    ) -> Path:
        if values is None:
            values = [250 + k for k in range(len(ids))]
        frame = self._frame(ids, values, f"Enrollment {year}")
        notes = pd.DataFrame({"Note": ["Building overview extract"]})
        return self._write(
            SourceCategory.ENROLLMENT,
            year,
            f"BUILDING_HIGH_LEVEL_{year}.xlsx",
            {"Notes": notes, "BUILDING_OVERVIEW": frame},
        )

    def value_added(
        self,
        year: str,
        ids: Sequence[str | None],
        values: Sequence[Any] | None = None,
        sheet: str = "OVERALL VA OVERVIEW",
    ) -> Path:
        if values is None:
            values = [round(k % 9 - 4 + 0.25, 2) for k in range(len(ids))]
        frame = self._frame(ids, values, "Overall Composite")
        legend = pd.DataFrame({"Legend": ["NC = not calculated"]})
        return self._write(
            SourceCategory.VALUE_ADDED,
            year,
            f"{year}_VA_ORG_DETAILS.xlsx",
            {"Legend": legend, sheet: frame},
        )

    def achievement(
        self,
        year: str,
        ids: Sequence[str | None],
        values: Sequence[Any] | None = None,
    ) -> Path:
        if values is None:
            values = [round(55 + k * 0.5, 1) for k in range(len(ids))]
        start = int(year[:4])
        prior = f"Performance Index Score {start - 1}-{start}"
        frame = self._frame(
            ids,
            values,
            f"Performance Index Score {year}",
            extra={prior: [40.0] * len(ids)},
        )
        ratings = pd.DataFrame({"Rating": ["Achievement component"]})
        return self._write(
            SourceCategory.ACHIEVEMENT,
            year,
            f"{year}_Achievement_Building.xlsx",
            {"Report Card Ratings": ratings, "Performance_Index": frame},
        )

    def register(self, category: SourceCategory, year: str, rel_path: str) -> None:
        """Configure a path without writing a workbook."""
        self.sources[category][year] = Path(rel_path)

    def config(self, output_root: Path, **overrides: Any) -> PipelineConfig:
        """Pipeline configuration pointing at the written workbooks."""
        fields: dict[str, Any] = {
            "project": "test-district",
            "district": DistrictConfig(irn=DISTRICT, name="Test District"),
            "years": YEARS,
            "data_paths": DataPathsConfig(
                data_root=self.root,
                sources={c: dict(paths) for c, paths in self.sources.items() if paths},
            ),
            "output": OutputConfig(output_root=output_root),
        }
        fields.update(overrides)
        return PipelineConfig(**fields)


@pytest.fixture
def report_card_files(tmp_path: Path) -> ReportCardFiles:
    """Empty workbook factory rooted in a temporary data directory."""
    return ReportCardFiles(tmp_path / "data")


@pytest.fixture
def full_sources(report_card_files: ReportCardFiles) -> ReportCardFiles:
    """
    Three years of all three categories.

    110 schools in the first year, 112 in the next two; growth data for
    the first year was never published.
    """
    first_year = school_ids(110)
    later_years = school_ids(112)
    for year in YEARS:
        ids = first_year if year == YEARS[0] else later_years
        report_card_files.enrollment(year, ids)
        report_card_files.achievement(year, ids)
        if year != YEARS[0]:
            report_card_files.value_added(year, ids)
    return report_card_files


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., PipelineConfig]:
    """Factory for configurations without source files."""

    def factory(**overrides: Any) -> PipelineConfig:
        fields: dict[str, Any] = {
            "project": "test-district",
            "district": DistrictConfig(irn=DISTRICT),
            "years": YEARS,
            "data_paths": DataPathsConfig(data_root=tmp_path / "data"),
            "output": OutputConfig(output_root=tmp_path / "output"),
        }
        fields.update(overrides)
        return PipelineConfig(**fields)

    return factory


@pytest.fixture
def config(make_config: Callable[..., PipelineConfig]) -> PipelineConfig:
    """Default test configuration."""
    return make_config()


def normalized_rows(
    category: str,
    year: str,
    rows: Sequence[tuple[str | None, str | None, float | None]],
    district: str = DISTRICT,
) -> pd.DataFrame:
    """Normalized rows as a reader would emit them: (school_id, name, value)."""
    return pd.DataFrame(
        {
            "school_id": pd.Series([r[0] for r in rows], dtype=object),
            "school_name": pd.Series([r[1] for r in rows], dtype=object),
            "district_irn": pd.Series([district] * len(rows), dtype=object),
            "year": pd.Series([year] * len(rows), dtype=object),
            "value": pd.Series([r[2] for r in rows], dtype="float64"),
            "category": pd.Series([category] * len(rows), dtype=object),
        }
    )


@pytest.fixture
def canonical_records() -> pd.DataFrame:
    """Small consolidated record set with provenance, already sorted."""
    return pd.DataFrame(
        {
            "school_name": pd.Series(
                ["Alpha", "Alpha", "Alpha", "Beta", "Beta", "Beta"], dtype=object
            ),
            "school_id": pd.Series(["000101"] * 3 + ["000202"] * 3, dtype=object),
            "year": pd.Series(list(YEARS) * 2, dtype=object),
            "enrollment": [300.0, 310.0, 320.0, 500.0, 480.0, 470.0],
            "value_added_composite": [None, 1.5, 2.5, None, -1.0, 0.5],
            "performance_index_score": [60.0, 62.0, 66.0, 70.0, 68.0, 71.0],
            "district_irn": pd.Series([DISTRICT] * 6, dtype=object),
        }
    )
