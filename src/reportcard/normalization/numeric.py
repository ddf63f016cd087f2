"""
Cell coercion for numeric values and identifiers.

Spreadsheet cells arrive as ints, floats, strings with separators or
suppression markers ("NC", "N/A", "--") and empty cells. Everything numeric
leaves this module as a finite float or None.
"""

import math
import re
from typing import Any

import pandas as pd

# Every character that is not an ASCII digit, '.', '-' or '+' is removed
# before parsing: thousands separators, percent and currency signs,
# whitespace (including non-breaking spaces) and letters.
_NON_NUMERIC = re.compile(r"[^0-9.\-+]")

# Exponent notation, e.g. "1.5E+3", keeps its "E"
_SCIENTIFIC = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)[eE][+-]?\d+")


def _is_missing(raw: Any) -> bool:
    if raw is None:
        return True
    try:
        return bool(pd.isna(raw))
    except (TypeError, ValueError):
        return False


def parse_numeric_cell(raw: Any) -> float | None:
    """
    Parse one spreadsheet cell into a finite float.

    Policy:
        - None, NaN/NaT and booleans -> None
        - int/float -> float, or None if not finite
        - exponent notation such as "1.5E+3" -> parsed directly
        - other strings -> characters outside ``[0-9.+-]`` are stripped, the
          remainder is parsed with ``float()``; an empty or unparsable
          remainder (e.g. from "NC" or "1.2.3") -> None

    A value that cannot be read is never turned into zero.

    Args:
        raw: Cell value as read from the workbook.

    Returns:
        Finite float or None.
    """
    if isinstance(raw, bool) or _is_missing(raw):
        return None

    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if math.isfinite(value) else None

    text = str(raw).strip()
    cleaned = text if _SCIENTIFIC.fullmatch(text) else _NON_NUMERIC.sub("", text)
    if not cleaned:
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def coerce_numeric(values: pd.Series) -> pd.Series:
    """Apply :func:`parse_numeric_cell` to a column, returning float64 with NaN for None."""
    return values.map(parse_numeric_cell).astype("float64")


def count_unparsed(raw: pd.Series, parsed: pd.Series) -> int:
    """Count cells that held something but coerced to null (e.g. "NC" markers)."""
    present = raw.map(lambda v: not _is_missing(v) and str(v).strip() != "")
    return int((present & parsed.isna()).sum())


def normalize_identifier(raw: Any, width: int | None = None) -> str | None:
    """
    Normalize an identifier cell to a string.

    Whitespace is stripped and a float artefact (``"43786.0"``) is removed.
    Purely numeric identifiers shorter than ``width`` are left-padded with
    zeros, since a workbook that stores an IRN as a number drops them.

    Args:
        raw: Cell value.
        width: Identifier width for zero padding (None disables padding).

    Returns:
        Identifier string, or None if the cell is empty.
    """
    if isinstance(raw, bool) or _is_missing(raw):
        return None

    if isinstance(raw, float):
        if not math.isfinite(raw):
            return None
        text = str(int(raw)) if raw.is_integer() else str(raw)
    else:
        text = str(raw).strip()
        if re.fullmatch(r"\d+\.0+", text):
            text = text.split(".", 1)[0]

    if not text:
        return None
    if width is not None and text.isdigit():
        text = text.zfill(width)
    return text


def normalize_text(raw: Any) -> str | None:
    """Strip a free-text cell (e.g. a school name); empty cells become None."""
    if _is_missing(raw):
        return None
    text = " ".join(str(raw).split())
    return text or None
