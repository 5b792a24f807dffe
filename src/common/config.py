"""Configuration helpers for loading YAML files with environment expansion."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml

from .errors import ConfigError


def load_config(path: str | os.PathLike[str]) -> dict[str, Any]:
    """Load a YAML configuration file and expand environment variables.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Parsed configuration dictionary. Returns an empty dict if the file is
        empty.

    Raises:
        ConfigError: If the file is missing or its root is not a mapping.
    """

    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")
    raw_text = config_path.read_text()
    expanded = os.path.expandvars(raw_text)
    data = yaml.safe_load(expanded) or {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config root must be a mapping, got {type(data)!r}")
    return dict(data)


def as_mapping(value: object) -> MutableMapping[str, Any]:
    if isinstance(value, MutableMapping):
        return value
    return {}


def as_float(value: object, default: float) -> float:
    try:
        if value is None:
            return default
        return float(value)
    except (TypeError, ValueError):
        return default


def as_int(value: object, default: int) -> int:
    try:
        if value is None:
            return default
        return int(value)
    except (TypeError, ValueError):
        return default


def as_str(value: object, default: str = "") -> str:
    """Return ``value`` as text, treating unexpanded ``${VAR}`` as missing."""

    if value is None:
        return default
    text = str(value).strip()
    if text.startswith("${") and text.endswith("}"):
        return default
    return text or default


__all__ = ["as_float", "as_int", "as_mapping", "as_str", "load_config"]
