"""
Configuration management with typed Pydantic models.

Provides explicit district/year parameterization, the sheet/column alias
table and YAML configuration loading.
"""

from reportcard.config.loader import load_config
from reportcard.config.settings import (
    CATEGORY_ORDER,
    NAME_PRECEDENCE,
    AliasSet,
    DataPathsConfig,
    DistrictConfig,
    OutputConfig,
    PipelineConfig,
    SourceCategory,
    ValidationConfig,
    split_year_label,
)

__all__ = [
    "CATEGORY_ORDER",
    "NAME_PRECEDENCE",
    "AliasSet",
    "DataPathsConfig",
    "DistrictConfig",
    "OutputConfig",
    "PipelineConfig",
    "SourceCategory",
    "ValidationConfig",
    "load_config",
    "split_year_label",
]
