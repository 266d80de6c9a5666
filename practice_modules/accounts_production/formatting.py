"""
Display formatting for statutory statements.

GBP amounts are shown as whole pounds, unsigned (brackets are the
template's job), with UK digit grouping.  Dates use the long UK form.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]+")
_TRAILING_PENCE = re.compile(r"\.00\b")
_MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def format_currency(amount: Any) -> str:
    """
    ``12345.67`` -> ``£12,346``; ``-500`` -> ``£500``; ``None`` -> ``£0``.

    Non-numeric strings are returned as-is with any ``.00`` removed.
    """
    if amount is None or amount == "":
        return "£0"
    if isinstance(amount, bool):
        return str(amount)
    raw = amount.replace(",", "").strip() if isinstance(amount, str) else amount
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return _TRAILING_PENCE.sub("", str(amount))
    if not value.is_finite():
        return _TRAILING_PENCE.sub("", str(amount))
    pounds = abs(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return f"£{pounds:,.0f}"


def _as_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def format_date(value: Any, fmt: str | None = None) -> str:
    """
    Format a date for statements.

    ``"2025-03-31"`` -> ``31 March 2025``.  ``fmt="YYYY"`` gives the year,
    ``fmt="DD/MM/YYYY"`` gives ``31/03/2025``.  Empty or unparseable input
    gives ``""``.
    """
    parsed = _as_date(value)
    if parsed is None:
        return ""
    if fmt == "YYYY":
        return str(parsed.year)
    if fmt == "DD/MM/YYYY":
        return f"{parsed.day:02d}/{parsed.month:02d}/{parsed.year}"
    return f"{parsed.day} {_MONTHS[parsed.month - 1]} {parsed.year}"


def sanitize_filename_part(value: Any, max_length: int = 80) -> str:
    """Collapse non-alphanumeric runs to ``_``, trim, truncate; ``Client`` if empty."""
    text = _NON_ALNUM.sub("_", str(value or "").strip()).strip("_")
    return text[:max_length] or "Client"
