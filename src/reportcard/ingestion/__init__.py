"""
Source workbook ingestion, one reader per source category.

All raw spreadsheet reading happens through this package so that sheet
selection, column resolution, district filtering and cell coercion are
applied identically at the system boundary.
"""

from reportcard.config.settings import SourceCategory
from reportcard.ingestion.achievement import AchievementReader
from reportcard.ingestion.base import SourceReader, SourceReadError, SourceReadResult
from reportcard.ingestion.enrollment import EnrollmentReader
from reportcard.ingestion.value_added import ValueAddedReader

READERS: dict[SourceCategory, type[SourceReader]] = {
    SourceCategory.ENROLLMENT: EnrollmentReader,
    SourceCategory.VALUE_ADDED: ValueAddedReader,
    SourceCategory.ACHIEVEMENT: AchievementReader,
}

__all__ = [
    "READERS",
    "AchievementReader",
    "EnrollmentReader",
    "SourceReadError",
    "SourceReadResult",
    "SourceReader",
    "ValueAddedReader",
]
