"""
Reportcard: School Report Card Consolidation Pipeline.

This package reads multi-year report card spreadsheet extracts, reconciles
their drifting schemas and consolidates them into one canonical dataset
keyed by school and school year.
"""

from importlib.metadata import version

__version__ = version("reportcard")

__all__ = ["__version__"]
