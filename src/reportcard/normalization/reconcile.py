"""
Schema reconciliation for drifting source layouts.

Resolves, once per workbook, which sheet and which headers carry each
semantic field, using the alias table from the pipeline configuration.
Every fallback and ambiguity becomes an Anomaly; nothing is guessed silently.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from reportcard.config.settings import (
    REQUIRED_FIELDS,
    SEMANTIC_FIELDS,
    AliasSet,
    PipelineConfig,
    SourceCategory,
    split_year_label,
)
from reportcard.normalization.columns import match_aliases
from reportcard.utils.logging import get_logger
from reportcard.validation.anomalies import Anomaly, AnomalyKind

log = get_logger(__name__)


def expand_placeholders(alias: str, year: str) -> str:
    """Fill ``{start_year}``/``{end_year}`` in an alias from a year label."""
    start, end = split_year_label(year)
    return alias.replace("{start_year}", str(start)).replace("{end_year}", str(end))


@dataclass(frozen=True)
class SheetResolution:
    """Selected sheet plus the anomalies raised while selecting it."""

    sheet: str
    anomalies: tuple[Anomaly, ...] = ()


@dataclass(frozen=True)
class ColumnResolution:
    """
    Fixed field -> header mapping for one workbook.

    Attributes:
        columns: Semantic field -> original header (None if unresolved).
        anomalies: Ambiguities recorded during resolution.
    """

    columns: dict[str, str | None] = field(default_factory=dict)
    anomalies: tuple[Anomaly, ...] = ()

    @property
    def missing_required(self) -> list[str]:
        """Required fields without a resolved header."""
        return [f for f in REQUIRED_FIELDS if self.columns.get(f) is None]


class SchemaReconciler:
    """
    Resolves sheet and column names through the configured alias table.

    Resolution is deterministic: aliases are tried in order, exact matches
    before substring matches, and the first candidate in workbook order wins.
    """

    def __init__(self, config: PipelineConfig) -> None:
        """
        Initialize reconciler.

        Args:
            config: Pipeline configuration holding the alias table.
        """
        self.config = config

    def aliases_for(self, category: SourceCategory, year: str) -> AliasSet:
        """Alias set for a category/year with year placeholders expanded."""
        aliases = self.config.aliases_for(category, year)
        return AliasSet(
            sheets=tuple(expand_placeholders(a, year) for a in aliases.sheets),
            columns={
                name: tuple(expand_placeholders(a, year) for a in values)
                for name, values in aliases.columns.items()
            },
        )

    def resolve_sheet(
        self,
        category: SourceCategory,
        year: str,
        sheet_names: Sequence[str],
        path: Path | None = None,
    ) -> SheetResolution:
        """
        Select the sheet to read.

        Args:
            category: Source category.
            year: Year label.
            sheet_names: Sheet names in workbook order (at least one).
            path: Workbook path, for anomaly reporting.

        Returns:
            SheetResolution with the selected sheet.
        """
        if len(sheet_names) == 1:
            return SheetResolution(sheet=sheet_names[0])

        aliases = self.aliases_for(category, year).sheets
        match = match_aliases(aliases, sheet_names)
        where = {"category": category.value, "year": year, "path": str(path) if path else None}

        if not match.found:
            selected = sheet_names[0]
            log.warning(
                "No sheet alias matched, falling back to first sheet",
                aliases=list(aliases),
                sheets=list(sheet_names),
                selected=selected,
            )
            anomaly = Anomaly(
                kind=AnomalyKind.SHEET_FALLBACK,
                message=(
                    f"no sheet matched {list(aliases)}; used first sheet {selected!r} "
                    f"of {list(sheet_names)}"
                ),
                **where,
            )
            return SheetResolution(sheet=selected, anomalies=(anomaly,))

        anomalies: tuple[Anomaly, ...] = ()
        if match.ambiguous:
            log.warning(
                "Ambiguous sheet alias, using first match",
                alias=match.alias,
                candidates=list(match.candidates),
            )
            anomalies = (
                Anomaly(
                    kind=AnomalyKind.SHEET_AMBIGUOUS,
                    message=(
                        f"sheet alias {match.alias!r} matched {list(match.candidates)}; "
                        f"used {match.selected!r}"
                    ),
                    **where,
                ),
            )

        log.debug("Resolved sheet", sheet=match.selected, alias=match.alias)
        return SheetResolution(sheet=match.selected, anomalies=anomalies)

    def resolve_columns(
        self,
        category: SourceCategory,
        year: str,
        headers: Sequence[object],
        path: Path | None = None,
    ) -> ColumnResolution:
        """
        Map each semantic field to one header of the selected sheet.

        Args:
            category: Source category.
            year: Year label.
            headers: Header row of the selected sheet.
            path: Workbook path, for anomaly reporting.

        Returns:
            ColumnResolution; required fields may be unresolved, callers
            decide whether that fails the file.
        """
        aliases = self.aliases_for(category, year)
        columns: dict[str, str | None] = {}
        anomalies: list[Anomaly] = []

        for field_name in SEMANTIC_FIELDS:
            field_aliases = aliases.columns.get(field_name, ())
            match = match_aliases(field_aliases, headers)
            columns[field_name] = match.selected

            if not match.found and field_name not in REQUIRED_FIELDS and field_aliases:
                log.warning(
                    "Optional column not found",
                    field=field_name,
                    aliases=list(field_aliases),
                )
                anomalies.append(
                    Anomaly(
                        kind=AnomalyKind.COLUMN_UNRESOLVED,
                        message=f"{field_name}: no header matched {list(field_aliases)}",
                        category=category.value,
                        year=year,
                        path=str(path) if path else None,
                    )
                )
            elif match.ambiguous:
                log.warning(
                    "Ambiguous column alias, using first match",
                    field=field_name,
                    alias=match.alias,
                    candidates=list(match.candidates),
                )
                anomalies.append(
                    Anomaly(
                        kind=AnomalyKind.COLUMN_AMBIGUOUS,
                        message=(
                            f"{field_name}: alias {match.alias!r} matched "
                            f"{list(match.candidates)}; used {match.selected!r}"
                        ),
                        category=category.value,
                        year=year,
                        path=str(path) if path else None,
                    )
                )

        log.debug("Resolved columns", columns=columns)
        return ColumnResolution(columns=columns, anomalies=tuple(anomalies))
