"""
Pandera schema for the canonical record set.
"""

import numpy as np
import pandas as pd
import pandera.pandas as pa
from pandera.typing import Series

CANONICAL_COLUMNS: list[str] = [
    "school_name",
    "school_id",
    "year",
    "enrollment",
    "value_added_composite",
    "performance_index_score",
]

NUMERIC_FIELDS: list[str] = [
    "enrollment",
    "value_added_composite",
    "performance_index_score",
]

# Join key of the consolidated table
JOIN_KEY: list[str] = ["school_id", "year"]

# Provenance column carried next to the canonical columns for the scope check;
# never exported
SCOPE_COLUMN = "district_irn"


class CanonicalRecordSchema(pa.DataFrameModel):
    """
    Schema for the consolidated dataset: one row per (school, year).

    Numeric fields may be null; a school missing from a source keeps its record.
    Key uniqueness, district scope and the year set are checked by the
    quality validator, which can name the offending records.
    """

    school_name: Series[str] = pa.Field(
        nullable=True,
        description="School display name",
    )
    school_id: Series[str] = pa.Field(
        str_length={"min_value": 1},
        description="School identifier (soft key, unique within a year)",
    )
    year: Series[str] = pa.Field(
        str_matches=r"^\d{4}-\d{4}$",
        description="School year label",
    )
    enrollment: Series[float] = pa.Field(
        nullable=True,
        coerce=True,
        description="Enrollment count",
    )
    value_added_composite: Series[float] = pa.Field(
        nullable=True,
        coerce=True,
        description="Value-added composite (growth vs. expectation)",
    )
    performance_index_score: Series[float] = pa.Field(
        nullable=True,
        coerce=True,
        description="Performance index score",
    )

    @pa.check(
        "enrollment",
        "value_added_composite",
        "performance_index_score",
        name="finite",
    )
    @classmethod
    def numeric_is_finite(cls, series: Series[float]) -> Series[bool]:
        """Populated numeric cells must be finite numbers."""
        return pd.Series(np.isfinite(series.to_numpy(dtype="float64")), index=series.index)

    class Config:
        """Schema configuration."""

        name = "CanonicalRecordSchema"
        strict = True
        ordered = True
