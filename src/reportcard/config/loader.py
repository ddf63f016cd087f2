"""
YAML configuration loading.

A district config may sit next to a ``base.yaml`` holding shared settings
(output root, thresholds, alias tweaks); the two are deep-merged with the
district file winning. String values may reference environment variables
as ``${VAR}`` or ``${VAR:default}``, which keeps data roots out of the file.
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml

from reportcard.config.aliases import DEFAULT_ALIASES
from reportcard.config.settings import (
    DataPathsConfig,
    DistrictConfig,
    OutputConfig,
    PipelineConfig,
    ValidationConfig,
    parse_alias_table,
)

_ENV_VAR = re.compile(r"\$\{(?P<name>[^}:]+)(?::(?P<default>[^}]*))?\}")


def _expand_env(text: str) -> str:
    """Replace ``${VAR}``/``${VAR:default}``; unset variables without default become ""."""
    return _ENV_VAR.sub(
        lambda m: os.environ.get(m.group("name"), m.group("default") or ""), text
    )


def _interpolate(node: Any) -> Any:
    if isinstance(node, str):
        return _expand_env(node)
    if isinstance(node, dict):
        return {key: _interpolate(value) for key, value in node.items()}
    if isinstance(node, list):
        return [_interpolate(item) for item in node]
    return node


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``; nested mappings merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def load_yaml(path: Path) -> dict[str, Any]:
    """
    Read one YAML file with environment variables expanded.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not YAML or not a mapping.
    """
    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        msg = f"Config file {path} is not valid YAML: {e}"
        raise ValueError(msg) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"Config file {path} must contain a mapping, got {type(data).__name__}"
        raise ValueError(msg)
    return _interpolate(data)


def _require(merged: dict[str, Any], key: str, hint: str) -> Any:
    value = merged.get(key)
    if not value:
        msg = f"Config must specify '{key}' ({hint})"
        raise ValueError(msg)
    return value


def _build_district(merged: dict[str, Any]) -> DistrictConfig:
    section = merged.get("district") or {}
    raw_irn = section.get("irn")
    if raw_irn is None or str(raw_irn).strip() == "":
        msg = "Config must specify 'district.irn' (district identifier, quote it in YAML)"
        raise ValueError(msg)

    width = int(section.get("id_width", 6))
    irn = str(raw_irn).strip()
    # YAML integers lose leading zeros
    if isinstance(raw_irn, int):
        irn = irn.zfill(width)

    return DistrictConfig(irn=irn, name=section.get("name"), id_width=width)


def _build_data_paths(merged: dict[str, Any]) -> DataPathsConfig:
    section = merged.get("data") or {}
    sources = section.get("sources")
    if not sources:
        msg = "Config must specify 'data.sources' (category -> year -> workbook path)"
        raise ValueError(msg)

    return DataPathsConfig(
        data_root=Path(section.get("root", "./report_card_data")),
        sources={
            category: {str(year): Path(rel) for year, rel in (by_year or {}).items() if rel}
            for category, by_year in sources.items()
        },
    )


def _build_aliases(merged: dict[str, Any], years: list[str]) -> dict:
    """User alias entries merged over the shipped table, keyed by known years only."""
    overrides = merged.get("aliases") or {}
    allowed = {"default", *years}
    for category, entries in overrides.items():
        unknown = sorted(set(map(str, entries or {})) - allowed)
        if unknown:
            msg = f"Aliases for {category} reference unknown years {unknown}"
            raise ValueError(msg)
    return parse_alias_table(_deep_merge(DEFAULT_ALIASES, overrides))


def load_config(
    config_path: Path,
    base_path: Path | None = None,
) -> PipelineConfig:
    """
    Load pipeline configuration from YAML.

    Required keys:
        - project: output directory name
        - district.irn: target district identifier (quoted, leading zeros kept)
        - years: the three "YYYY-YYYY" labels
        - data.sources: category -> year -> workbook path

    Optional: data.root, aliases, validation.completeness_threshold,
    output.root.

    Args:
        config_path: District configuration file.
        base_path: Shared configuration; defaults to ``base.yaml`` beside
            ``config_path`` when that file exists.

    Returns:
        Validated PipelineConfig.

    Raises:
        FileNotFoundError: If a config file does not exist.
        ValueError: If a required key is missing or a value is invalid.
    """
    if base_path is None:
        sibling = config_path.parent / "base.yaml"
        if sibling.exists() and sibling.resolve() != config_path.resolve():
            base_path = sibling
    base = load_yaml(base_path) if base_path is not None else {}
    merged = _deep_merge(base, load_yaml(config_path))

    project = _require(merged, "project", "output directory name")
    years = [str(y) for y in _require(merged, "years", "three school year labels")]

    validation = merged.get("validation") or {}
    output = merged.get("output") or {}

    return PipelineConfig(
        project=project,
        district=_build_district(merged),
        years=tuple(years),
        data_paths=_build_data_paths(merged),
        aliases=_build_aliases(merged, years),
        validation=ValidationConfig(
            completeness_threshold=validation.get("completeness_threshold", 50.0),
        ),
        output=OutputConfig(output_root=Path(output.get("root", "./output"))),
    )
