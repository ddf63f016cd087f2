"""
Enrollment ingestion from building overview workbooks.

The portal publishes one BUILDING_HIGH_LEVEL workbook per school year; its
BUILDING_OVERVIEW sheet lists every building with its district and
enrollment.
"""

from reportcard.config.settings import PipelineConfig, SourceCategory
from reportcard.ingestion.base import SourceReader, SourceReadResult


class EnrollmentReader(SourceReader):
    """Reader for building overview (enrollment) workbooks."""

    category = SourceCategory.ENROLLMENT
    value_range = (0.0, None)


def read_enrollment(
    config: PipelineConfig, year: str, *, validate: bool = True
) -> SourceReadResult:
    """
    Convenience function to read the configured enrollment workbook for a year.

    Args:
        config: Pipeline configuration.
        year: Year label.
        validate: Whether to validate against schema.

    Returns:
        SourceReadResult with the district's enrollment rows.
    """
    reader = EnrollmentReader(config)
    return reader.read_configured(year, validate=validate)
