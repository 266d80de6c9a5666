"""
practice_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the way to obtain configuration at runtime through
    ``get_active_config()``.  YAML loading is internal.

Architecture position:
    Configuration.  Sits beside ``practice_kernel`` and below
    ``practice_modules``.  The kernel never imports from here.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``PRACTICE_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying generated statements back to the configuration that
    produced them.
"""

from __future__ import annotations

from pathlib import Path

from practice_config.loader import load_yaml_file, parse_config
from practice_config.schema import PracticeConfig, PracticeSettings
from practice_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default configuration file
_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

__all__ = ["get_active_config", "PracticeConfig", "PracticeSettings"]


def get_active_config(config_path: Path | None = None) -> PracticeConfig:
    """The public configuration entrypoint.

    Args:
        config_path: Override path to a YAML configuration file.
            Defaults to practice_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file's structure is invalid.
    """
    path = config_path or _DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(path))

    _logger.info(
        "PRACTICE_CONFIG_TRACE",
        extra={
            "trace_type": "PRACTICE_CONFIG_TRACE",
            "config_path": str(path),
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "modules": sorted(config.modules),
        },
    )
    return config
