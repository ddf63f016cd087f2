"""
Value-added (growth) ingestion from VA org details workbooks.

Sheet names drift between years ("OVERVIEW" vs "OVERALL VA OVERVIEW") and
whole years can be missing when growth reporting was suspended; both are
handled by the alias table and the pipeline's missing-source handling.
"""

import pandas as pd

from reportcard.config.settings import PipelineConfig, SourceCategory
from reportcard.ingestion.base import SourceReader, SourceReadResult
from reportcard.utils.logging import get_logger

log = get_logger(__name__)


class ValueAddedReader(SourceReader):
    """Reader for value-added composite workbooks."""

    category = SourceCategory.VALUE_ADDED

    def _coerce_values(self, raw_values: pd.Series) -> pd.Series:
        """Composite scores are signed; "NC" (not calculated) markers become null."""
        values = super()._coerce_values(raw_values)
        if values.notna().sum() == 0 and len(values) > 0:
            log.warning("No value-added composite reported for any school", rows=len(values))
        return values


def read_value_added(
    config: PipelineConfig, year: str, *, validate: bool = True
) -> SourceReadResult:
    """
    Convenience function to read the configured value-added workbook for a year.

    Args:
        config: Pipeline configuration.
        year: Year label.
        validate: Whether to validate against schema.

    Returns:
        SourceReadResult with the district's value-added rows.
    """
    reader = ValueAddedReader(config)
    return reader.read_configured(year, validate=validate)
