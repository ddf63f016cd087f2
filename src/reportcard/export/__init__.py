"""
Writers for the canonical dataset and its companion files.
"""

from reportcard.export.writer import (
    read_canonical,
    remove_canonical_outputs,
    write_canonical_csv,
    write_canonical_xlsx,
    write_quality_report,
    write_summary,
)

__all__ = [
    "read_canonical",
    "remove_canonical_outputs",
    "write_canonical_csv",
    "write_canonical_xlsx",
    "write_quality_report",
    "write_summary",
]
