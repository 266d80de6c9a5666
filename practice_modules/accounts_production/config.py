"""
Accounts Production Configuration Schema.

Tolerances, retention and naming conventions for statutory accounts
production.  Loaded from the ``accounts_production`` entry of the practice
configuration, or created with defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, Self

from practice_kernel.logging_config import get_logger

logger = get_logger("modules.accounts_production.config")

_DECIMAL_FIELDS = (
    "balance_tolerance",
    "retained_earnings_tolerance",
    "default_share_capital",
)


@dataclass(frozen=True)
class AccountsProductionConfig:
    """
    Configuration schema for the accounts production module.
    """

    # History snapshots kept per accounts set
    history_retention: int = 10

    # Assets must equal liabilities + equity to within (strictly less than) this
    balance_tolerance: Decimal = Decimal("0.01")

    # First-year retained earnings vs profit after tax
    retained_earnings_tolerance: Decimal = Decimal("1")

    # Periods longer than this draw a LONG_PERIOD warning (18 months of 30 days)
    long_period_days: int = 540

    # Upper bound on a single PDF rendering
    pdf_timeout_seconds: float = 60

    # Output URLs are <prefix>/<id>/outputs/<kind>/<filename>
    output_url_prefix: str = "/api/v1/accounts-sets"
    filename_max_length: int = 80

    default_country: str = "England"
    statutory_template: str = "statutory-accounts"
    sole_trader_template: str = "sole-trader-accounts"

    # Share capital seeded into new balance sheets
    default_share_capital: Decimal = Decimal("1")

    def __post_init__(self):
        if self.history_retention < 1:
            raise ValueError("history_retention must be at least 1")
        if self.balance_tolerance <= 0:
            raise ValueError("balance_tolerance must be positive")
        if self.retained_earnings_tolerance < 0:
            raise ValueError("retained_earnings_tolerance cannot be negative")
        if self.long_period_days < 1:
            raise ValueError("long_period_days must be positive")
        if self.pdf_timeout_seconds <= 0:
            raise ValueError("pdf_timeout_seconds must be positive")
        if self.filename_max_length < 1:
            raise ValueError("filename_max_length must be positive")

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("accounts_production_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from dictionary.  Unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(
                f"Unknown accounts_production settings: {', '.join(unknown)}"
            )
        values = dict(data)
        for name in _DECIMAL_FIELDS:
            if name in values:
                values[name] = Decimal(str(values[name]))
        logger.info(
            "accounts_production_config_loading_from_dict",
            extra={"keys": sorted(values.keys())},
        )
        return cls(**values)
