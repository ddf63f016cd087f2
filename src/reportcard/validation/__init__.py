"""
Quality validation of the consolidated records.

Invariant checks, the quality report, and its console rendering.
"""

from reportcard.validation.anomalies import Anomaly, AnomalyKind
from reportcard.validation.core import (
    InvariantViolationError,
    QualityValidator,
    validate_records,
)
from reportcard.validation.report import (
    CheckResult,
    CheckStatus,
    QualityReport,
    SourceSummary,
)
from reportcard.validation.reporter import QualityReporter

__all__ = [
    "Anomaly",
    "AnomalyKind",
    "CheckResult",
    "CheckStatus",
    "InvariantViolationError",
    "QualityReport",
    "QualityReporter",
    "QualityValidator",
    "SourceSummary",
    "validate_records",
]
