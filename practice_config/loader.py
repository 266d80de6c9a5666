"""
Configuration Loader (``practice_config.loader``).

Responsibility
--------------
Loads YAML configuration files and parses them into the typed
``practice_config.schema`` dataclasses.  Runtime callers use
``practice_config.get_active_config()``; this module is its internals.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong value types  -> ``ValueError`` with the offending key.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from practice_config.schema import PracticeConfig, PracticeSettings


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Postconditions:
        - Returns a ``dict`` (possibly empty if the YAML is empty).
    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top-level YAML value is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML value must be a mapping")
    return data


def parse_practice_settings(data: dict[str, Any] | None) -> PracticeSettings:
    """
    Parse practice settings.

    ``address_lines`` may be given as a list, or as a newline-separated
    ``address`` string; blank lines are dropped either way.
    """
    if not data:
        return PracticeSettings()

    raw_lines = data.get("address_lines")
    if raw_lines is None:
        raw_lines = str(data.get("address") or "").split("\n")
    if not isinstance(raw_lines, list):
        raise ValueError("practice.address_lines must be a list")
    lines = tuple(str(line).strip() for line in raw_lines if str(line).strip())

    return PracticeSettings(
        name=data.get("name") or "",
        address_lines=lines,
        email=data.get("email") or "",
        phone=data.get("phone") or "",
    )


def parse_config(data: dict[str, Any]) -> PracticeConfig:
    """Parse a full ``PracticeConfig`` from a loaded YAML mapping."""
    modules = data.get("modules") or {}
    if not isinstance(modules, dict):
        raise ValueError("modules must be a mapping of module name to settings")
    for name, settings in modules.items():
        if settings is not None and not isinstance(settings, dict):
            raise ValueError(f"modules.{name} must be a mapping")

    return PracticeConfig(
        config_id=data.get("config_id", "default"),
        version=int(data.get("version", 1)),
        database_url=data.get("database_url", "sqlite:///:memory:"),
        output_root=data.get("output_root", "output/accounts"),
        practice=parse_practice_settings(data.get("practice")),
        modules={name: dict(settings or {}) for name, settings in modules.items()},
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
