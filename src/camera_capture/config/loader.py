"""YAML-based configuration loading and saving.

Serializes ``CameraCaptureConfig`` to YAML and back. A loaded file is
layered on top of the defaults, so it only needs the keys it changes.
"""

from __future__ import annotations

import dataclasses
import logging
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from camera_capture.config.schema import CameraCaptureConfig

logger = logging.getLogger(__name__)


def _dataclass_to_dict(obj: Any) -> Any:
    """Recursively convert a dataclass instance to plain YAML types."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: _dataclass_to_dict(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [_dataclass_to_dict(v) for v in obj]
    return obj


def _coerce(current: Any, value: Any) -> Any:
    """Convert a YAML value to the type of the field it replaces."""
    if isinstance(current, Enum) and not isinstance(value, Enum):
        return type(current)(value)
    if isinstance(current, tuple) and isinstance(value, list):
        return tuple(value)
    if isinstance(current, float) and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    return value


def _merge_dataclass(obj: Any, data: dict[str, Any]) -> Any:
    """Return a copy of *obj* with the values in *data* applied.

    Unknown keys are logged and ignored. Nested dataclass fields are
    merged recursively rather than replaced.
    """
    names = {f.name for f in dataclasses.fields(obj)}
    changes = {}
    for key, value in data.items():
        if key not in names:
            logger.warning("Ignoring unknown config key %r", key)
            continue
        current = getattr(obj, key)
        if dataclasses.is_dataclass(current) and isinstance(value, dict):
            changes[key] = _merge_dataclass(current, value)
        else:
            changes[key] = _coerce(current, value)
    return dataclasses.replace(obj, **changes)


def config_from_dict(data: dict[str, Any] | None) -> CameraCaptureConfig:
    """Build a configuration from a nested dict layered over defaults."""
    config = CameraCaptureConfig()
    if data:
        config = _merge_dataclass(config, data)
    return config


def load_config(path: str | Path | None = None) -> CameraCaptureConfig:
    """Load a configuration from a YAML file.

    If *path* is ``None``, returns the default configuration.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file is not a YAML mapping or holds a value
            that cannot be converted, e.g. an unknown acquisition mode.
    """
    if path is None:
        return CameraCaptureConfig()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if data is not None and not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return config_from_dict(data)


def save_config(config: CameraCaptureConfig, path: str | Path) -> None:
    """Save a configuration to a YAML file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = _dataclass_to_dict(config)
    with open(path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)
