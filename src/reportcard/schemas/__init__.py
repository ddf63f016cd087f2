"""
Schema definitions using Pandera for data validation.

The normalized per-source rows and the canonical record set are the two
data contracts of the pipeline.
"""

from reportcard.schemas.canonical import (
    CANONICAL_COLUMNS,
    JOIN_KEY,
    NUMERIC_FIELDS,
    SCOPE_COLUMN,
    CanonicalRecordSchema,
)
from reportcard.schemas.sources import NORMALIZED_COLUMNS, NormalizedRowSchema

__all__ = [
    "CANONICAL_COLUMNS",
    "JOIN_KEY",
    "NORMALIZED_COLUMNS",
    "NUMERIC_FIELDS",
    "SCOPE_COLUMN",
    "CanonicalRecordSchema",
    "NormalizedRowSchema",
]
