"""
Writers for the canonical dataset, the quality report and the summary.

The CSV is the durable interchange format: fixed column order, header row,
"\\n" line endings, empty fields for nulls and shortest round-trip float
text, so re-running on unchanged inputs reproduces it byte for byte.
"""

from pathlib import Path

import pandas as pd

from reportcard.config.settings import PipelineConfig
from reportcard.schemas.canonical import CANONICAL_COLUMNS, NUMERIC_FIELDS
from reportcard.utils.logging import get_logger
from reportcard.validation.report import QualityReport

log = get_logger(__name__)

TEXT_COLUMNS = ["school_name", "school_id", "year"]


def _canonical_only(records: pd.DataFrame) -> pd.DataFrame:
    missing = [c for c in CANONICAL_COLUMNS if c not in records.columns]
    if missing:
        msg = f"Records lack canonical column(s): {missing}"
        raise ValueError(msg)
    return records[CANONICAL_COLUMNS]


def write_canonical_csv(records: pd.DataFrame, path: Path) -> Path:
    """
    Write the canonical records as CSV.

    Only the six canonical columns are written; provenance columns are
    dropped.

    Args:
        records: Consolidated records.
        path: Target file.

    Returns:
        The written path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    _canonical_only(records).to_csv(
        path, index=False, encoding="utf-8", lineterminator="\n"
    )
    log.info("Wrote canonical CSV", path=str(path), rows=len(records))
    return path


def write_canonical_xlsx(
    records: pd.DataFrame, path: Path, sheet_name: str = "canonical"
) -> Path:
    """Write the canonical records as a single-sheet workbook."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        _canonical_only(records).to_excel(writer, sheet_name=sheet_name, index=False)
    log.info("Wrote canonical workbook", path=str(path), rows=len(records))
    return path


def write_quality_report(report: QualityReport, path: Path) -> Path:
    """Write the quality report as plain text."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report.render_text(), encoding="utf-8")
    log.info("Wrote quality report", path=str(path), status=report.overall_status.value)
    return path


def write_summary(summary: pd.DataFrame, path: Path) -> Path:
    """Write the per-year district summary as CSV."""
    path.parent.mkdir(parents=True, exist_ok=True)
    summary.to_csv(path, index=False, encoding="utf-8", lineterminator="\n")
    log.info("Wrote summary", path=str(path), rows=len(summary))
    return path


def remove_canonical_outputs(config: PipelineConfig) -> list[Path]:
    """
    Delete canonical files left by an earlier run.

    Called when a run is fatal, so no stale dataset outlives it.

    Returns:
        Paths that were removed.
    """
    removed = []
    for path in (
        config.canonical_csv_path,
        config.canonical_xlsx_path,
        config.summary_path,
    ):
        if path.exists():
            path.unlink()
            removed.append(path)

    if removed:
        log.warning("Removed stale canonical outputs", paths=[str(p) for p in removed])
    return removed


def read_canonical(path: Path) -> pd.DataFrame:
    """
    Read a canonical CSV back into a records frame.

    Identifiers stay strings (leading zeros kept), only empty fields are
    null, and floats are parsed at round-trip precision.

    Args:
        path: Canonical CSV.

    Returns:
        DataFrame with the six canonical columns; text nulls are None.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the header is not the canonical column list.
    """
    if not path.exists():
        msg = f"Canonical dataset not found: {path}"
        raise FileNotFoundError(msg)

    df = pd.read_csv(
        path,
        dtype={col: str for col in TEXT_COLUMNS},
        keep_default_na=False,
        na_values=[""],
        float_precision="round_trip",
        encoding="utf-8",
    )
    if list(df.columns) != CANONICAL_COLUMNS:
        msg = f"Unexpected columns in {path}: {list(df.columns)}"
        raise ValueError(msg)

    for col in TEXT_COLUMNS:
        df[col] = df[col].astype(object).where(df[col].notna(), None)
    for col in NUMERIC_FIELDS:
        df[col] = df[col].astype("float64")

    log.debug("Read canonical dataset", path=str(path), rows=len(df))
    return df
