"""
Configuration schema (``practice_config.schema``).

Frozen dataclasses produced by the loader.  Nothing here performs I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class PracticeSettings:
    """The accountancy practice's own details, printed on statements."""

    name: str = ""
    address_lines: tuple[str, ...] = ()
    email: str = ""
    phone: str = ""

    def to_context(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "addressLines": list(self.address_lines),
            "email": self.email,
            "phone": self.phone,
        }


@dataclass(frozen=True)
class PracticeConfig:
    """
    The complete runtime configuration.

    ``modules`` holds per-module settings keyed by module name; each module
    parses its own entry (e.g. ``AccountsProductionConfig.from_dict``).
    """

    config_id: str
    version: int
    database_url: str
    output_root: str
    practice: PracticeSettings = field(default_factory=PracticeSettings)
    modules: dict[str, dict[str, Any]] = field(default_factory=dict)
    checksum: str = ""

    def module_settings(self, name: str) -> dict[str, Any]:
        return dict(self.modules.get(name, {}))
