"""
Consolidation of report card sources.

Joins the normalized sources into canonical records and drives the full
read/consolidate/validate/export pipeline.
"""

from reportcard.etl.consolidate import ConsolidationResult, Consolidator, consolidate
from reportcard.etl.pipeline import (
    ConsolidationPipeline,
    PipelineResult,
    SourceStage,
    run_pipeline,
)

__all__ = [
    "ConsolidationPipeline",
    "ConsolidationResult",
    "Consolidator",
    "PipelineResult",
    "SourceStage",
    "consolidate",
    "run_pipeline",
]
