"""
Base classes and utilities for source workbook readers.

Provides the shared read path: open the workbook, reconcile sheet and
columns, filter to the target district, coerce cells, validate the
normalized rows.
"""

from abc import ABC
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar

import pandas as pd

from reportcard.config.settings import PipelineConfig, SourceCategory
from reportcard.normalization.numeric import (
    coerce_numeric,
    count_unparsed,
    normalize_identifier,
    normalize_text,
)
from reportcard.normalization.reconcile import SchemaReconciler
from reportcard.schemas.sources import NORMALIZED_COLUMNS, NormalizedRowSchema
from reportcard.utils.logging import get_logger, log_context
from reportcard.validation.anomalies import Anomaly, AnomalyKind

log = get_logger(__name__)


class SourceReadError(Exception):
    """A source workbook could not contribute rows (missing, unreadable, incomplete)."""

    def __init__(
        self,
        message: str,
        *,
        category: SourceCategory,
        year: str,
        path: Path | None,
        kind: AnomalyKind = AnomalyKind.SOURCE_READ_FAILED,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.year = year
        self.path = path
        self.kind = kind

    def to_anomaly(self) -> Anomaly:
        """Record this failure as a quality report entry."""
        return Anomaly(
            kind=self.kind,
            message=str(self),
            category=self.category.value,
            year=self.year,
            path=str(self.path) if self.path else None,
        )


@dataclass
class SourceReadResult:
    """
    Result of reading one workbook.

    Attributes:
        category: Source category.
        year: Year label.
        path: Workbook path.
        sheet: Sheet that was read.
        columns: Semantic field -> header actually used.
        rows: Normalized rows (NormalizedRowSchema).
        rows_total: Data rows in the sheet before the district filter.
        non_numeric: In-scope cells that held text but coerced to null.
        anomalies: Fallbacks and ambiguities recorded while reading.
    """

    category: SourceCategory
    year: str
    path: Path
    sheet: str
    columns: dict[str, str | None]
    rows: pd.DataFrame
    rows_total: int
    non_numeric: int = 0
    anomalies: list[Anomaly] = field(default_factory=list)

    @property
    def rows_in_scope(self) -> int:
        """Rows kept after the district filter."""
        return len(self.rows)


def _bound(limit: float | None, open_end: str) -> str:
    return open_end if limit is None else f"{limit:g}"


def empty_normalized_frame() -> pd.DataFrame:
    """An empty frame with the normalized row columns and dtypes."""
    frame = pd.DataFrame({col: pd.Series(dtype=object) for col in NORMALIZED_COLUMNS})
    frame["value"] = frame["value"].astype("float64")
    return frame


class SourceReader(ABC):
    """
    Abstract base class for source workbook readers.

    Subclasses pin the category. All readers share the same failure
    semantics: any problem that prevents a file from contributing rows
    raises SourceReadError, which the pipeline records before moving on.
    """

    category: ClassVar[SourceCategory]
    # Plausible (min, max) of the metric; values outside are kept and reported
    value_range: ClassVar[tuple[float | None, float | None]] = (None, None)

    def __init__(
        self,
        config: PipelineConfig,
        reconciler: SchemaReconciler | None = None,
    ) -> None:
        """
        Initialize source reader.

        Args:
            config: Pipeline configuration.
            reconciler: Alias resolver (defaults to one built from config).
        """
        self.config = config
        self.reconciler = reconciler or SchemaReconciler(config)

    def read_configured(self, year: str, *, validate: bool = True) -> SourceReadResult:
        """
        Read the workbook configured for this category and year.

        Raises:
            SourceReadError: If no workbook is configured, or reading fails.
        """
        path = self.config.data_paths.resolve(self.category, year)
        if path is None:
            msg = f"No {self.category.value} workbook configured for {year}"
            raise SourceReadError(
                msg,
                category=self.category,
                year=year,
                path=None,
                kind=AnomalyKind.MISSING_SOURCE,
            )
        return self.read(path, year, validate=validate)

    def read(self, path: Path, year: str, *, validate: bool = True) -> SourceReadResult:
        """
        Read one workbook for one year into normalized rows.

        Args:
            path: Workbook path.
            year: Year label; must be one of the configured years.
            validate: Whether to validate rows against NormalizedRowSchema.

        Returns:
            SourceReadResult with the in-scope rows.

        Raises:
            ValueError: If ``year`` is not a configured year label.
            SourceReadError: If the file is missing, unreadable or lacks a
                required column.
        """
        if year not in self.config.years:
            msg = f"Unknown year label {year!r}; expected one of {list(self.config.years)}"
            raise ValueError(msg)

        with log_context(category=self.category.value, year=year):
            if not path.exists():
                msg = f"{self.category.value} workbook for {year} not found: {path}"
                raise SourceReadError(
                    msg,
                    category=self.category,
                    year=year,
                    path=path,
                    kind=AnomalyKind.MISSING_SOURCE,
                )

            log.info("Reading workbook", path=str(path))
            anomalies: list[Anomaly] = []

            try:
                with pd.ExcelFile(path, engine="openpyxl") as xls:
                    sheet_names = [str(name) for name in xls.sheet_names]
                    if not sheet_names:
                        msg = f"Workbook has no sheets: {path}"
                        raise SourceReadError(
                            msg, category=self.category, year=year, path=path
                        )

                    sheet = self.reconciler.resolve_sheet(
                        self.category, year, sheet_names, path
                    )
                    anomalies.extend(sheet.anomalies)
                    raw = pd.read_excel(xls, sheet_name=sheet.sheet)
            except SourceReadError:
                raise
            except Exception as e:
                msg = (
                    f"Cannot read {self.category.value} workbook for {year}: "
                    f"{type(e).__name__}: {e}"
                )
                raise SourceReadError(
                    msg, category=self.category, year=year, path=path
                ) from e

            resolution = self.reconciler.resolve_columns(
                self.category, year, list(raw.columns), path
            )
            anomalies.extend(resolution.anomalies)
            if resolution.missing_required:
                msg = (
                    f"Sheet {sheet.sheet!r} lacks required column(s) "
                    f"{resolution.missing_required}; headers: {list(map(str, raw.columns))}"
                )
                raise SourceReadError(msg, category=self.category, year=year, path=path)

            rows, non_numeric = self._normalize(raw, resolution.columns, year)
            anomalies.extend(self._check_range(rows, year, path))
            if validate:
                rows = NormalizedRowSchema.validate(rows)

            log.info(
                "Read workbook",
                sheet=sheet.sheet,
                rows_total=len(raw),
                rows_in_scope=len(rows),
                missing_values=int(rows["value"].isna().sum()),
                non_numeric=non_numeric,
            )

        return SourceReadResult(
            category=self.category,
            year=year,
            path=path,
            sheet=sheet.sheet,
            columns=dict(resolution.columns),
            rows=rows,
            rows_total=len(raw),
            non_numeric=non_numeric,
            anomalies=anomalies,
        )

    def _normalize(
        self,
        raw: pd.DataFrame,
        columns: dict[str, str | None],
        year: str,
    ) -> tuple[pd.DataFrame, int]:
        """
        Filter raw rows to the district and build normalized rows.

        The district filter compares identifier strings, so leading zeros
        matter; numeric cells are padded back to the identifier width first.
        Each row keeps the district identifier it was read with.
        """
        width = self.config.district.id_width
        district = raw[columns["district_irn"]].map(
            lambda v: normalize_identifier(v, width)
        )
        in_scope = raw[self._in_district(district)]

        if in_scope.empty:
            log.warning("No rows for target district", district=self.config.district_irn)
            return empty_normalized_frame(), 0

        raw_values = in_scope[columns["value"]]
        values = self._coerce_values(raw_values)

        name_col = columns.get("school_name")
        names = (
            in_scope[name_col].map(normalize_text)
            if name_col is not None
            else pd.Series([None] * len(in_scope), index=in_scope.index, dtype=object)
        )

        rows = pd.DataFrame(
            {
                "school_id": in_scope[columns["school_id"]]
                .map(lambda v: normalize_identifier(v, width))
                .astype(object),
                "school_name": names.astype(object),
                "district_irn": district.loc[in_scope.index].astype(object),
                "year": year,
                "value": values,
                "category": self.category.value,
            }
        ).reset_index(drop=True)

        return rows, count_unparsed(raw_values, values)

    def _in_district(self, district: pd.Series) -> pd.Series:
        """Mask of rows whose normalized district identifier is the target's."""
        return district == self.config.district_irn

    def _coerce_values(self, raw_values: pd.Series) -> pd.Series:
        """Coerce the category's metric column. Subclasses may tighten this."""
        return coerce_numeric(raw_values)

    def _check_range(self, rows: pd.DataFrame, year: str, path: Path) -> list[Anomaly]:
        """One anomaly per workbook listing the schools whose value is implausible."""
        low, high = self.value_range
        values = rows["value"]
        outside = pd.Series(False, index=rows.index)
        if low is not None:
            outside |= values < low
        if high is not None:
            outside |= values > high
        if not outside.any():
            return []

        offending = rows.loc[outside, ["school_id", "value"]].head(5)
        sample = ", ".join(
            f"{sid}={value:g}" for sid, value in offending.itertuples(index=False)
        )
        bounds = f"[{_bound(low, '-inf')}, {_bound(high, 'inf')}]"
        log.warning(
            "Values outside plausible range", n=int(outside.sum()), range=bounds
        )
        return [
            Anomaly(
                kind=AnomalyKind.VALUE_OUT_OF_RANGE,
                message=(
                    f"{int(outside.sum())} {self.category.value_column} value(s) "
                    f"outside {bounds}, kept as read: {sample}"
                ),
                category=self.category.value,
                year=year,
                path=str(path),
            )
        ]
