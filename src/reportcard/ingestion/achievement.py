"""
Achievement ingestion from building achievement workbooks.

The Performance_Index sheet embeds the school year in its score header
("Performance Index Score 2022-2023") and often carries prior-year columns
too; the year placeholders in the alias table pick the current one.
"""

from reportcard.config.settings import PipelineConfig, SourceCategory
from reportcard.ingestion.base import SourceReader, SourceReadResult

# Performance index scale of the reporting portal
PERFORMANCE_INDEX_MAX = 120.0


class AchievementReader(SourceReader):
    """Reader for performance index workbooks."""

    category = SourceCategory.ACHIEVEMENT
    value_range = (0.0, PERFORMANCE_INDEX_MAX)


def read_achievement(
    config: PipelineConfig, year: str, *, validate: bool = True
) -> SourceReadResult:
    """
    Convenience function to read the configured achievement workbook for a year.

    Args:
        config: Pipeline configuration.
        year: Year label.
        validate: Whether to validate against schema.

    Returns:
        SourceReadResult with the district's performance index rows.
    """
    reader = AchievementReader(config)
    return reader.read_configured(year, validate=validate)
