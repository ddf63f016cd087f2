"""
Default sheet and column alias table.

Maps source category -> ("default" | year label) -> aliases. Aliases are
compared against normalized sheet names and header names (lowercase, runs of
non-alphanumeric characters collapsed to "_"), exact matches before substring
matches, in the order listed. Column aliases may contain ``{start_year}`` and
``{end_year}`` placeholders, filled from the year label being read.

The table only carries the portal's known header drift; YAML configs can
override any entry under the ``aliases`` key.
"""

from typing import Any

DEFAULT_ALIASES: dict[str, dict[str, dict[str, Any]]] = {
    "enrollment": {
        "default": {
            "sheets": ["building_overview", "overview", "building"],
            "columns": {
                "school_id": ["building_irn"],
                "school_name": ["building_name"],
                "district_irn": ["district_irn"],
                "value": ["enrollment_{start_year}_{end_year}", "enrollment"],
            },
        },
    },
    "value_added": {
        "default": {
            "sheets": ["overall_va_overview", "overview", "overall", "composite", "va"],
            "columns": {
                "school_id": ["building_irn"],
                "school_name": ["building_name"],
                "district_irn": ["district_irn"],
                "value": ["overall_composite", "composite"],
            },
        },
        # 2020-2021 extracts only ship the plain OVERVIEW sheet
        "2020-2021": {
            "sheets": ["overview", "va"],
        },
    },
    "achievement": {
        "default": {
            "sheets": ["performance_index", "performance", "index"],
            "columns": {
                "school_id": ["building_irn"],
                "school_name": ["building_name"],
                "district_irn": ["district_irn"],
                "value": [
                    "performance_index_score_{start_year}_{end_year}",
                    "performance_index_score_{end_year}",
                    "performance_index_score",
                ],
            },
        },
    },
}
