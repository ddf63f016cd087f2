"""
Structured anomaly entries collected during a pipeline run.

Anomalies are non-fatal: every fallback, ambiguity, skipped source and
dropped row leaves one entry here and ends up in the quality report.
"""

from dataclasses import dataclass
from enum import Enum


class AnomalyKind(str, Enum):
    """Kinds of recoverable conditions."""

    MISSING_SOURCE = "missing_source"  # file not configured or not on disk
    SOURCE_READ_FAILED = "source_read_failed"  # unreadable workbook / missing column
    SHEET_FALLBACK = "sheet_fallback"  # no sheet alias matched, first sheet used
    SHEET_AMBIGUOUS = "sheet_ambiguous"  # several sheets matched, first used
    COLUMN_AMBIGUOUS = "column_ambiguous"  # several headers matched, first used
    COLUMN_UNRESOLVED = "column_unresolved"  # optional field without a matching header
    JOIN_KEY_MISSING = "join_key_missing"  # in-scope row without school id
    DUPLICATE_SOURCE_KEY = "duplicate_source_key"  # repeated (school_id, year) in a source
    VALUE_OUT_OF_RANGE = "value_out_of_range"  # metric outside its plausible range, kept


@dataclass(frozen=True)
class Anomaly:
    """A single recoverable condition, identified by category/year/file."""

    kind: AnomalyKind
    message: str
    category: str | None = None
    year: str | None = None
    path: str | None = None

    def as_line(self) -> str:
        """One-line rendering for the text report."""
        where = "/".join(part for part in (self.category, self.year) if part)
        prefix = f"[{self.kind.value}]"
        if where:
            prefix = f"{prefix} {where}"
        line = f"{prefix}: {self.message}"
        if self.path:
            line = f"{line} ({self.path})"
        return line
