"""
Typed configuration models using Pydantic.

All configuration is defined here with explicit typing and validation.
No hardcoded district/year logic in processing code.
"""

import re
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from reportcard.config.aliases import DEFAULT_ALIASES


class SourceCategory(str, Enum):
    """Source categories published by the reporting portal."""

    ENROLLMENT = "enrollment"  # building overview / high level files
    VALUE_ADDED = "value_added"  # VA org details files
    ACHIEVEMENT = "achievement"  # achievement / performance index files

    @property
    def value_column(self) -> str:
        """Canonical column receiving this category's numeric value."""
        return VALUE_COLUMNS[self]


VALUE_COLUMNS: dict[SourceCategory, str] = {
    SourceCategory.ENROLLMENT: "enrollment",
    SourceCategory.VALUE_ADDED: "value_added_composite",
    SourceCategory.ACHIEVEMENT: "performance_index_score",
}

# Join order of the consolidated table
CATEGORY_ORDER: tuple[SourceCategory, ...] = (
    SourceCategory.ENROLLMENT,
    SourceCategory.VALUE_ADDED,
    SourceCategory.ACHIEVEMENT,
)

# Precedence for school_name when sources disagree
NAME_PRECEDENCE: tuple[SourceCategory, ...] = (
    SourceCategory.ENROLLMENT,
    SourceCategory.ACHIEVEMENT,
    SourceCategory.VALUE_ADDED,
)

SEMANTIC_FIELDS: tuple[str, ...] = ("school_id", "school_name", "district_irn", "value")
REQUIRED_FIELDS: tuple[str, ...] = ("school_id", "district_irn", "value")

_YEAR_LABEL = re.compile(r"^(\d{4})-(\d{4})$")


def split_year_label(label: str) -> tuple[int, int]:
    """
    Split a school year label such as "2022-2023" into its two years.

    Raises:
        ValueError: If the label is malformed or the years are not consecutive.
    """
    match = _YEAR_LABEL.match(label)
    if match is None:
        msg = f"Year label must look like 'YYYY-YYYY', got: {label!r}"
        raise ValueError(msg)
    start, end = int(match.group(1)), int(match.group(2))
    if end != start + 1:
        msg = f"Year label must span consecutive years, got: {label!r}"
        raise ValueError(msg)
    return start, end


class DistrictConfig(BaseModel):
    """Target district. Identifiers are strings: leading zeros are significant."""

    model_config = ConfigDict(frozen=True)

    irn: str = Field(description="District identifier (IRN), e.g. '043786'")
    name: str | None = Field(default=None, description="Human-readable district name")
    id_width: int = Field(
        default=6, ge=1, le=12, description="Width of district and school identifiers"
    )

    @model_validator(mode="after")
    def validate_irn(self) -> "DistrictConfig":
        """Ensure the IRN is a digit string of the configured width."""
        if not self.irn.isdigit() or len(self.irn) != self.id_width:
            msg = (
                f"District IRN must be a {self.id_width}-digit string, "
                f"got: {self.irn!r} (length {len(self.irn)})"
            )
            raise ValueError(msg)
        return self


class AliasSet(BaseModel):
    """Sheet and column aliases for one category (and optionally one year)."""

    model_config = ConfigDict(frozen=True)

    sheets: tuple[str, ...] = Field(default=(), description="Sheet name aliases, in order")
    columns: dict[str, tuple[str, ...]] = Field(
        default_factory=dict, description="Semantic field -> header aliases, in order"
    )

    @field_validator("columns")
    @classmethod
    def validate_fields(cls, v: dict[str, tuple[str, ...]]) -> dict[str, tuple[str, ...]]:
        """Only the known semantic fields can be aliased."""
        unknown = sorted(set(v) - set(SEMANTIC_FIELDS))
        if unknown:
            msg = f"Unknown alias fields: {unknown} (expected any of {list(SEMANTIC_FIELDS)})"
            raise ValueError(msg)
        return v

    def merged_over(self, base: "AliasSet") -> "AliasSet":
        """Return an alias set where this set's entries override ``base`` field by field."""
        return AliasSet(
            sheets=self.sheets or base.sheets,
            columns={**base.columns, **{k: v for k, v in self.columns.items() if v}},
        )


def parse_alias_table(raw: dict[str, Any]) -> dict[SourceCategory, dict[str, AliasSet]]:
    """Build typed alias sets from a raw ``category -> key -> aliases`` mapping."""
    table: dict[SourceCategory, dict[str, AliasSet]] = {}
    for category_name, entries in raw.items():
        category = SourceCategory(category_name)
        table[category] = {
            str(key): AliasSet.model_validate(value or {})
            for key, value in (entries or {}).items()
        }
    return table


class DataPathsConfig(BaseModel):
    """Source workbook paths, one per category and year, relative to data_root."""

    model_config = ConfigDict(frozen=True)

    data_root: Path = Field(
        default=Path("./report_card_data"), description="Root directory for source files"
    )
    sources: dict[SourceCategory, dict[str, Path]] = Field(
        default_factory=dict, description="Category -> year label -> workbook path"
    )

    def resolve(self, category: SourceCategory, year: str) -> Path | None:
        """Resolve the workbook path for a category/year, or None if not configured."""
        rel_path = self.sources.get(category, {}).get(year)
        if rel_path is None:
            return None
        return self.data_root / rel_path


class ValidationConfig(BaseModel):
    """Quality report thresholds."""

    model_config = ConfigDict(frozen=True)

    completeness_threshold: float = Field(
        default=50.0,
        ge=0.0,
        le=100.0,
        description="Warn when a numeric field is populated for less than this percentage",
    )


class OutputConfig(BaseModel):
    """Output paths configuration.

    Structure: ./output/{project}/canonical.csv, ./output/{project}/quality_report.txt, etc.
    """

    model_config = ConfigDict(frozen=True)

    output_root: Path = Field(
        default=Path("./output"), description="Root directory for all outputs"
    )


def _default_aliases() -> dict[SourceCategory, dict[str, AliasSet]]:
    return parse_alias_table(DEFAULT_ALIASES)


class PipelineConfig(BaseModel):
    """Complete pipeline configuration.

    The project name drives the output directory: ./output/{project}/
    """

    model_config = ConfigDict(frozen=True)

    project: str = Field(description="Project identifier (e.g., 'cmsd-2021-2023')")

    district: DistrictConfig
    years: tuple[str, str, str] = Field(description="The three school year labels")
    data_paths: DataPathsConfig
    aliases: dict[SourceCategory, dict[str, AliasSet]] = Field(
        default_factory=_default_aliases
    )
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @field_validator("years")
    @classmethod
    def validate_years(cls, v: tuple[str, str, str]) -> tuple[str, str, str]:
        """Ensure three distinct, well-formed year labels."""
        for label in v:
            split_year_label(label)
        if len(set(v)) != len(v):
            msg = f"Year labels must be distinct, got: {list(v)}"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def validate_source_years(self) -> "PipelineConfig":
        """Source paths may only be configured for the configured years."""
        for category, by_year in self.data_paths.sources.items():
            unknown = sorted(set(by_year) - set(self.years))
            if unknown:
                msg = (
                    f"Sources for {category.value} reference unknown years {unknown}; "
                    f"configured years are {list(self.years)}"
                )
                raise ValueError(msg)
        return self

    @property
    def district_irn(self) -> str:
        """Convenience accessor for the target district identifier."""
        return self.district.irn

    def aliases_for(self, category: SourceCategory, year: str) -> AliasSet:
        """Alias set for a category and year: year entry merged over the default entry."""
        entries = self.aliases.get(category, {})
        base = entries.get("default", AliasSet())
        override = entries.get(year)
        return override.merged_over(base) if override is not None else base

    # Output path helpers
    @property
    def output_dir(self) -> Path:
        """Path to this project's output directory."""
        return self.output.output_root / self.project

    @property
    def canonical_csv_path(self) -> Path:
        """Path to the canonical dataset (delimited text)."""
        return self.output_dir / "canonical.csv"

    @property
    def canonical_xlsx_path(self) -> Path:
        """Path to the canonical dataset (spreadsheet)."""
        return self.output_dir / "canonical.xlsx"

    @property
    def quality_report_path(self) -> Path:
        """Path to the quality report text artifact."""
        return self.output_dir / "quality_report.txt"

    @property
    def summary_path(self) -> Path:
        """Path to the per-year summary statistics CSV."""
        return self.output_dir / "summary_by_year.csv"
