"""
Configuration for guardedfs.

Settings are read from a YAML file, either under a top-level ``guardedfs:``
key or at the document root. A missing file means defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .errors import ConfigError

DEFAULT_CONFIG_PATH = "guardedfs.yaml"
CONFIG_ENV_VAR = "GUARDEDFS_CONFIG"
DEFAULT_FILE_MODE = 0o644
DEFAULT_AUDIT_LOG = "data/guardedfs_audit.jsonl"


@dataclass(frozen=True)
class GateConfig:
    """Settings for an AccessGate."""
    file_mode: int = DEFAULT_FILE_MODE
    audit_log: str = DEFAULT_AUDIT_LOG
    audit_operations: bool = False
    fsync: bool = True
    denial_patterns: Tuple[str, ...] = ()


def _parse_mode(value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"Invalid file_mode: {value!r}")
    if isinstance(value, int):
        mode = value
    elif isinstance(value, str):
        text = value.strip().lower()
        if text.startswith("0o"):
            text = text[2:]
        try:
            mode = int(text, 8)
        except ValueError:
            raise ConfigError(f"Invalid file_mode: {value!r}")
    else:
        raise ConfigError(f"Invalid file_mode: {value!r}")

    if not 0 <= mode <= 0o7777:
        raise ConfigError(f"file_mode out of range: {oct(mode)}")
    return mode


def _resolve_path(path: Optional[str]) -> Path:
    if path is not None:
        return Path(path)
    return Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH))


def config_from_dict(data: Dict[str, Any]) -> GateConfig:
    """
    Build a GateConfig from a parsed settings mapping.

    Unknown keys are ignored.

    Raises:
        ConfigError: If a value has the wrong type
    """
    section = data.get("guardedfs", data)
    if not isinstance(section, dict):
        raise ConfigError("guardedfs settings must be a mapping")

    kwargs: Dict[str, Any] = {}

    if "file_mode" in section:
        kwargs["file_mode"] = _parse_mode(section["file_mode"])

    if "audit_log" in section:
        if not isinstance(section["audit_log"], str) or not section["audit_log"]:
            raise ConfigError("audit_log must be a non-empty path")
        kwargs["audit_log"] = section["audit_log"]

    for key in ("audit_operations", "fsync"):
        if key in section:
            if not isinstance(section[key], bool):
                raise ConfigError(f"{key} must be true or false")
            kwargs[key] = section[key]

    if "denial_patterns" in section:
        patterns = section["denial_patterns"] or []
        if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
            raise ConfigError("denial_patterns must be a list of strings")
        kwargs["denial_patterns"] = tuple(p.lower() for p in patterns if p.strip())

    return GateConfig(**kwargs)


def load_config(path: Optional[str] = None) -> GateConfig:
    """
    Load gate settings from YAML.

    Args:
        path: Config file path. Defaults to $GUARDEDFS_CONFIG, then
              guardedfs.yaml in the working directory.

    Returns:
        GateConfig, with defaults for anything the file leaves out

    Raises:
        ConfigError: If the file is not valid YAML or holds invalid values
    """
    config_path = _resolve_path(path)
    if not config_path.exists():
        return GateConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping")

    return config_from_dict(data)
