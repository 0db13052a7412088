from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Sequence

import yaml

logger = logging.getLogger(__name__)


def load_yaml_data(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Hierarchy data must be a mapping/dict: {p}")
    return data


def lookup(hierarchy: Sequence[str], key: str, default: Any = None) -> Any:
    """Return `key` from the first data file in `hierarchy` that defines it."""

    for path in hierarchy:
        data = load_yaml_data(path)
        if key in data:
            logger.info("Lookup %s resolved from %s", key, path)
            return data[key]
    return default


def lookup_bool(hierarchy: Sequence[str], key: str, default: bool) -> bool:
    value = lookup(hierarchy, key, default)
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be a boolean, got {value!r}")
    return value
