"""
Descriptive analytics over the canonical dataset.
"""

from reportcard.analysis.summary import (
    SUMMARY_COLUMNS,
    LinearFit,
    correlation_matrix,
    linear_fit,
    performance_change,
    performance_trend,
    summarize_by_year,
    top_schools,
)

__all__ = [
    "SUMMARY_COLUMNS",
    "LinearFit",
    "correlation_matrix",
    "linear_fit",
    "performance_change",
    "performance_trend",
    "summarize_by_year",
    "top_schools",
]
