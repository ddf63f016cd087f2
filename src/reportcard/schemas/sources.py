"""
Pandera schema for normalized source rows.

Every Source Reader emits this shape regardless of how the workbook for
its category and year was laid out.
"""

import pandera.pandas as pa
from pandera.typing import Series

NORMALIZED_COLUMNS: list[str] = [
    "school_id",
    "school_name",
    "district_irn",
    "year",
    "value",
    "category",
]


class NormalizedRowSchema(pa.DataFrameModel):
    """
    Schema for one category's rows for one year.

    ``value`` means enrollment, value-added composite or performance index
    depending on ``category``. ``school_id`` may be null only for malformed
    rows, which the consolidator drops and reports.
    """

    school_id: Series[str] = pa.Field(
        nullable=True,
        description="School (building) identifier",
    )
    school_name: Series[str] = pa.Field(
        nullable=True,
        description="School display name as spelled in this source",
    )
    district_irn: Series[str] = pa.Field(
        str_matches=r"^\d+$",
        description="District identifier read from the source row",
    )
    year: Series[str] = pa.Field(
        str_matches=r"^\d{4}-\d{4}$",
        description="School year label",
    )
    value: Series[float] = pa.Field(
        nullable=True,
        coerce=True,
        description="Category metric, null when absent or not reported",
    )
    category: Series[str] = pa.Field(
        isin=["enrollment", "value_added", "achievement"],
        description="Source category",
    )

    class Config:
        """Schema configuration."""

        name = "NormalizedRowSchema"
        strict = True
