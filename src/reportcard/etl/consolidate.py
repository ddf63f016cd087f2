"""
Consolidation of normalized source rows into canonical records.

Full outer join of the three categories on (school_id, year), with a fixed
name precedence and a deterministic output order.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

import pandas as pd

from reportcard.config.settings import (
    CATEGORY_ORDER,
    NAME_PRECEDENCE,
    PipelineConfig,
    SourceCategory,
)
from reportcard.ingestion.base import empty_normalized_frame
from reportcard.schemas.canonical import (
    CANONICAL_COLUMNS,
    JOIN_KEY,
    NUMERIC_FIELDS,
    SCOPE_COLUMN,
)
from reportcard.utils.logging import get_logger
from reportcard.validation.anomalies import Anomaly, AnomalyKind

log = get_logger(__name__)

SORT_ORDER: list[str] = ["school_name", "year", "school_id"]


def _first_present(values: Iterable[object]) -> str | None:
    for value in values:
        if isinstance(value, str) and value:
            return value
    return None


def _has_key(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip())


@dataclass
class ConsolidationResult:
    """
    Result of consolidating the three sources.

    Attributes:
        records: Canonical columns plus the district_irn provenance column,
            sorted by school_name, year, school_id.
        anomalies: Dropped join artifacts and duplicate source keys.
        n_dropped_join_keys: Rows dropped for a missing school_id.
        n_duplicate_keys: Rows dropped as repeated keys within one source.
        name_conflicts: Records whose sources spell the school name differently.
    """

    records: pd.DataFrame
    anomalies: list[Anomaly] = field(default_factory=list)
    n_dropped_join_keys: int = 0
    n_duplicate_keys: int = 0
    name_conflicts: int = 0

    @property
    def canonical(self) -> pd.DataFrame:
        """The six canonical columns only."""
        return self.records[CANONICAL_COLUMNS]


class Consolidator:
    """
    Joins normalized rows of all categories into one record per (school, year).

    A school present in only one category still yields a record; the other
    numeric fields stay null.
    """

    def __init__(self, config: PipelineConfig) -> None:
        """
        Initialize consolidator.

        Args:
            config: Pipeline configuration (target district for scope provenance).
        """
        self.config = config

    def consolidate(
        self, sources: Mapping[SourceCategory, pd.DataFrame]
    ) -> ConsolidationResult:
        """
        Consolidate normalized rows.

        Args:
            sources: Category -> normalized rows (all years). Missing
                categories are treated as empty.

        Returns:
            ConsolidationResult with the canonical records.
        """
        anomalies: list[Anomaly] = []
        n_dropped = 0
        n_duplicates = 0
        frames: dict[SourceCategory, pd.DataFrame] = {}

        for category in CATEGORY_ORDER:
            df = sources.get(category)
            if df is None:
                df = empty_normalized_frame()

            df, dropped = self._drop_missing_keys(df, category)
            df, duplicates = self._drop_duplicate_keys(df, category)
            anomalies.extend(dropped)
            anomalies.extend(duplicates)
            n_dropped += len(dropped)
            n_duplicates += len(duplicates)

            frames[category] = df.rename(
                columns={
                    "value": category.value_column,
                    "school_name": f"school_name__{category.value}",
                    "district_irn": f"district_irn__{category.value}",
                }
            )[
                [
                    *JOIN_KEY,
                    f"school_name__{category.value}",
                    f"district_irn__{category.value}",
                    category.value_column,
                ]
            ]

        first, *rest = CATEGORY_ORDER
        merged = frames[first]
        for category in rest:
            merged = merged.merge(frames[category], on=JOIN_KEY, how="outer")

        records, name_conflicts = self._build_records(merged)

        log.info(
            "Consolidated sources",
            records=len(records),
            schools=records["school_id"].nunique(),
            dropped_join_keys=n_dropped,
            duplicate_keys=n_duplicates,
            name_conflicts=name_conflicts,
        )

        return ConsolidationResult(
            records=records,
            anomalies=anomalies,
            n_dropped_join_keys=n_dropped,
            n_duplicate_keys=n_duplicates,
            name_conflicts=name_conflicts,
        )

    def _drop_missing_keys(
        self, df: pd.DataFrame, category: SourceCategory
    ) -> tuple[pd.DataFrame, list[Anomaly]]:
        """
        Remove rows without a school_id.

        Done before the join so pandas cannot match null keys to each
        other; each removed row is one anomaly.
        """
        has_key = df["school_id"].map(_has_key).astype(bool)
        if has_key.all():
            return df, []

        anomalies = [
            Anomaly(
                kind=AnomalyKind.JOIN_KEY_MISSING,
                message=(
                    f"row without school_id dropped "
                    f"(school_name={row.school_name!r}, value={row.value!r})"
                ),
                category=category.value,
                year=row.year,
            )
            for row in df[~has_key].itertuples(index=False)
        ]
        log.warning(
            "Dropped rows without school_id",
            category=category.value,
            n=len(anomalies),
        )
        return df[has_key].reset_index(drop=True), anomalies

    def _drop_duplicate_keys(
        self, df: pd.DataFrame, category: SourceCategory
    ) -> tuple[pd.DataFrame, list[Anomaly]]:
        """Keep the first row of every repeated (school_id, year) in one source."""
        duplicated = df.duplicated(subset=JOIN_KEY, keep="first")
        if not duplicated.any():
            return df, []

        anomalies = [
            Anomaly(
                kind=AnomalyKind.DUPLICATE_SOURCE_KEY,
                message=f"repeated school_id {row.school_id!r}; first row kept",
                category=category.value,
                year=row.year,
            )
            for row in df[duplicated].itertuples(index=False)
        ]
        log.warning(
            "Dropped duplicate source keys",
            category=category.value,
            n=len(anomalies),
        )
        return df[~duplicated].reset_index(drop=True), anomalies

    def _build_records(self, merged: pd.DataFrame) -> tuple[pd.DataFrame, int]:
        """Collapse per-source columns into canonical columns and sort."""
        name_cols = [f"school_name__{c.value}" for c in NAME_PRECEDENCE]
        scope_cols = [f"district_irn__{c.value}" for c in CATEGORY_ORDER]
        target = self.config.district_irn

        names = []
        name_conflicts = 0
        for row in merged[name_cols].itertuples(index=False, name=None):
            names.append(_first_present(row))
            if len({v for v in row if isinstance(v, str)}) > 1:
                name_conflicts += 1

        scopes = []
        for row in merged[scope_cols].itertuples(index=False, name=None):
            present = [v for v in row if isinstance(v, str)]
            off_scope = [v for v in present if v != target]
            scopes.append(off_scope[0] if off_scope else _first_present(present))

        records = pd.DataFrame(
            {
                "school_name": pd.Series(names, index=merged.index, dtype=object),
                "school_id": merged["school_id"].astype(object),
                "year": merged["year"].astype(object),
                **{col: merged[col].astype("float64") for col in NUMERIC_FIELDS},
                SCOPE_COLUMN: pd.Series(scopes, index=merged.index, dtype=object),
            }
        )

        records = records.sort_values(
            SORT_ORDER, na_position="last", kind="mergesort"
        ).reset_index(drop=True)
        return records, name_conflicts


def consolidate(
    config: PipelineConfig, sources: Mapping[SourceCategory, pd.DataFrame]
) -> ConsolidationResult:
    """
    Convenience function to consolidate normalized rows.

    Args:
        config: Pipeline configuration.
        sources: Category -> normalized rows.

    Returns:
        ConsolidationResult with the canonical records.
    """
    return Consolidator(config).consolidate(sources)
