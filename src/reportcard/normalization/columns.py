"""
Header and sheet name matching.

Provides the clean_names style normalization and the deterministic
alias matching used to resolve drifting sheet and column names.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass

from reportcard.utils.logging import get_logger

log = get_logger(__name__)

_NON_ALNUM = re.compile(r"[^0-9a-z]+")


def normalize_header(name: object) -> str:
    """
    Normalize a sheet or column name.

    Lowercases, collapses runs of non-alphanumeric characters to a single
    underscore and trims leading/trailing underscores, so that
    "Performance Index Score 2022-2023" becomes
    "performance_index_score_2022_2023".
    """
    return _NON_ALNUM.sub("_", str(name).strip().lower()).strip("_")


@dataclass(frozen=True)
class AliasMatch:
    """
    Outcome of matching a list of aliases against candidate names.

    Attributes:
        selected: The chosen candidate (original spelling), or None.
        alias: The alias that produced the match.
        candidates: All candidates matched by that alias, in source order.
        exact: Whether the match was exact rather than substring.
    """

    selected: str | None
    alias: str | None = None
    candidates: tuple[str, ...] = ()
    exact: bool = False

    @property
    def found(self) -> bool:
        """Whether any candidate matched."""
        return self.selected is not None

    @property
    def ambiguous(self) -> bool:
        """Whether the winning alias matched more than one candidate."""
        return len(self.candidates) > 1


def match_aliases(aliases: Sequence[str], names: Sequence[object]) -> AliasMatch:
    """
    Match aliases against names, in alias order.

    For each alias, an exact normalized match wins; otherwise every name
    containing the alias as a substring is a candidate and the first one
    (in source order) is selected. The first alias with any candidate
    decides the result.

    Args:
        aliases: Aliases in priority order.
        names: Sheet or header names as found in the workbook.

    Returns:
        AliasMatch describing the selection.
    """
    normalized = [(str(name), normalize_header(name)) for name in names]

    for alias in aliases:
        key = normalize_header(alias)
        if not key:
            continue

        exact = tuple(orig for orig, norm in normalized if norm == key)
        if exact:
            return AliasMatch(selected=exact[0], alias=alias, candidates=exact, exact=True)

        partial = tuple(orig for orig, norm in normalized if key in norm)
        if partial:
            return AliasMatch(selected=partial[0], alias=alias, candidates=partial)

    return AliasMatch(selected=None)
