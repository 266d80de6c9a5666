"""
Accounts Production Domain Models (``practice_modules.accounts_production.models``).

Responsibility
--------------
The statutory accounts set (``AccountsSet``) and the value objects it is
built from: framework and status enums, the accounting period, the
seven-slot section record, output links, and the read-side view that
decorates a stored set with freshly computed figures.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Serialised to and
from camelCase JSON-shaped dicts by ``to_dict`` / ``from_dict``; the store
persists exactly that shape.

Invariants enforced
-------------------
* ``AccountingPeriod.start_date < end_date`` (``InvalidPeriodError``).
* ``AccountsSections`` has one optional slot per recognised section kind;
  any other key raises ``UnknownSectionError``.
* ``OutputLinks.is_complete`` only when both URLs are non-empty.

Audit relevance
---------------
``created_by`` / ``last_edited_by`` and the timestamps travel with every
serialised copy, including history snapshots.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from practice_kernel.domain.dtos import DocumentValidation
from practice_kernel.exceptions import InvalidPeriodError, UnknownSectionError


# =========================================================================
# Enums
# =========================================================================


class Framework(str, Enum):
    """UK statutory accounting basis."""

    MICRO_FRS105 = "MICRO_FRS105"
    SMALL_FRS102_1A = "SMALL_FRS102_1A"
    DORMANT = "DORMANT"
    SOLE_TRADER = "SOLE_TRADER"
    INDIVIDUAL = "INDIVIDUAL"

    @property
    def is_sole_trader(self) -> bool:
        return self in SOLE_TRADER_FRAMEWORKS


SOLE_TRADER_FRAMEWORKS = frozenset({Framework.SOLE_TRADER, Framework.INDIVIDUAL})


def is_sole_trader_type(value: str | None) -> bool:
    """True for client types and framework values presented as sole trader."""
    return value in (Framework.SOLE_TRADER.value, Framework.INDIVIDUAL.value)


class AccountsSetStatus(str, Enum):
    """Accounts set lifecycle status."""

    DRAFT = "DRAFT"
    IN_REVIEW = "IN_REVIEW"
    READY = "READY"
    LOCKED = "LOCKED"


class SectionKey(str, Enum):
    """The seven recognised section kinds, valued by their wire key."""

    COMPANY_PERIOD = "companyPeriod"
    FRAMEWORK_DISCLOSURES = "frameworkDisclosures"
    ACCOUNTING_POLICIES = "accountingPolicies"
    PROFIT_AND_LOSS = "profitAndLoss"
    BALANCE_SHEET = "balanceSheet"
    NOTES = "notes"
    DIRECTORS_APPROVAL = "directorsApproval"

    @classmethod
    def parse(cls, key: str | SectionKey) -> SectionKey:
        """Resolve a wire key, raising ``UnknownSectionError`` if unrecognised."""
        try:
            return cls(key)
        except ValueError:
            raise UnknownSectionError(str(key)) from None


ALL_SECTIONS: tuple[SectionKey, ...] = tuple(SectionKey)


# =========================================================================
# Helpers
# =========================================================================


def parse_date(value: Any) -> date:
    """Parse an ISO date string (a datetime string is truncated to its date)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    raise ValueError(f"Cannot parse date from {value!r}")


def jsonable(value: Any) -> Any:
    """
    Deep-copy ``value`` into plain JSON types.

    Decimals become ints when integral, floats otherwise; dates become ISO
    strings; tuples become lists.
    """
    if isinstance(value, dict):
        return {str(k): jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


# =========================================================================
# Value objects
# =========================================================================


@dataclass(frozen=True)
class AccountingPeriod:
    """The financial period an accounts set reports on."""

    start_date: date
    end_date: date
    is_first_year: bool

    def __post_init__(self) -> None:
        if self.start_date >= self.end_date:
            raise InvalidPeriodError(
                self.start_date.isoformat(), self.end_date.isoformat()
            )

    @property
    def length_days(self) -> int:
        return (self.end_date - self.start_date).days

    def to_dict(self) -> dict[str, Any]:
        return {
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "isFirstYear": self.is_first_year,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccountingPeriod:
        return cls(
            start_date=parse_date(data["startDate"]),
            end_date=parse_date(data["endDate"]),
            is_first_year=bool(data.get("isFirstYear", False)),
        )


_SLOTS: dict[SectionKey, str] = {
    SectionKey.COMPANY_PERIOD: "company_period",
    SectionKey.FRAMEWORK_DISCLOSURES: "framework_disclosures",
    SectionKey.ACCOUNTING_POLICIES: "accounting_policies",
    SectionKey.PROFIT_AND_LOSS: "profit_and_loss",
    SectionKey.BALANCE_SHEET: "balance_sheet",
    SectionKey.NOTES: "notes",
    SectionKey.DIRECTORS_APPROVAL: "directors_approval",
}


@dataclass
class AccountsSections:
    """
    Tagged record with one optional slot per section kind.

    A slot holding ``None`` means the section has not been populated.  Section
    payloads are JSON-shaped dicts validated by the section schemas.
    """

    company_period: dict[str, Any] | None = None
    framework_disclosures: dict[str, Any] | None = None
    accounting_policies: dict[str, Any] | None = None
    profit_and_loss: dict[str, Any] | None = None
    balance_sheet: dict[str, Any] | None = None
    notes: dict[str, Any] | None = None
    directors_approval: dict[str, Any] | None = None

    def get(self, key: SectionKey | str) -> dict[str, Any] | None:
        return getattr(self, _SLOTS[SectionKey.parse(key)])

    def set(self, key: SectionKey | str, data: dict[str, Any] | None) -> None:
        setattr(self, _SLOTS[SectionKey.parse(key)], data)

    def clear(self, key: SectionKey | str) -> None:
        self.set(key, None)

    def populated(self) -> tuple[SectionKey, ...]:
        """Populated section keys, in canonical order."""
        return tuple(k for k in ALL_SECTIONS if self.get(k) is not None)

    def is_complete(self) -> bool:
        return len(self.populated()) == len(ALL_SECTIONS)

    def copy(self) -> AccountsSections:
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {k.value: jsonable(self.get(k)) for k in self.populated()}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> AccountsSections:
        sections = cls()
        for key, payload in (data or {}).items():
            if payload is not None:
                sections.set(key, copy.deepcopy(payload))
        return sections


@dataclass(frozen=True)
class OutputLinks:
    """URLs of the generated statement files."""

    html_url: str | None = None
    pdf_url: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.html_url) and bool(self.pdf_url)

    def to_dict(self) -> dict[str, Any]:
        return {"htmlUrl": self.html_url, "pdfUrl": self.pdf_url}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> OutputLinks | None:
        if not data:
            return None
        return cls(html_url=data.get("htmlUrl"), pdf_url=data.get("pdfUrl"))


# =========================================================================
# Aggregate
# =========================================================================


@dataclass
class AccountsSet:
    """
    A statutory accounts set.

    Mutable: the lifecycle service loads it, changes it, and saves it back
    with the ``version`` it read.  ``validation`` is a cache recomputed on
    every write.
    """

    id: UUID
    client_id: str
    company_number: str
    framework: Framework
    status: AccountsSetStatus
    period: AccountingPeriod
    sections: AccountsSections
    created_at: datetime
    updated_at: datetime
    created_by: str
    last_edited_by: str
    validation: DocumentValidation = field(default_factory=DocumentValidation)
    outputs: OutputLinks | None = None
    version: int = 0

    @property
    def is_locked(self) -> bool:
        return self.status == AccountsSetStatus.LOCKED

    @property
    def is_sole_trader(self) -> bool:
        return self.framework.is_sole_trader

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "clientId": self.client_id,
            "companyNumber": self.company_number,
            "framework": self.framework.value,
            "status": self.status.value,
            "period": self.period.to_dict(),
            "sections": self.sections.to_dict(),
            "validation": self.validation.to_dict(),
            "outputs": self.outputs.to_dict() if self.outputs else None,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "createdBy": self.created_by,
            "lastEditedBy": self.last_edited_by,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccountsSet:
        return cls(
            id=UUID(str(data["id"])),
            client_id=data["clientId"],
            company_number=data.get("companyNumber") or "",
            framework=Framework(data["framework"]),
            status=AccountsSetStatus(data["status"]),
            period=AccountingPeriod.from_dict(data["period"]),
            sections=AccountsSections.from_dict(data.get("sections")),
            validation=DocumentValidation.from_dict(data.get("validation")),
            outputs=OutputLinks.from_dict(data.get("outputs")),
            created_at=datetime.fromisoformat(data["createdAt"]),
            updated_at=datetime.fromisoformat(data["updatedAt"]),
            created_by=data["createdBy"],
            last_edited_by=data.get("lastEditedBy") or data["createdBy"],
            version=int(data.get("version", 0)),
        )


@dataclass(frozen=True)
class AccountsSetView:
    """
    A stored accounts set decorated with freshly computed figures.

    The decorations are view-only and never persisted.
    ``percentage_changes`` is present only when P&L comparatives exist.
    """

    document: AccountsSet
    calculations: dict[str, Any]
    ratios: dict[str, Decimal]
    percentage_changes: dict[str, Decimal] | None = None

    def to_dict(self) -> dict[str, Any]:
        data = self.document.to_dict()
        data["calculations"] = jsonable(self.calculations)
        data["ratios"] = jsonable(self.ratios)
        if self.percentage_changes is not None:
            data["percentageChanges"] = jsonable(self.percentage_changes)
        return data


@dataclass(frozen=True)
class CreateAccountsSetInput:
    """Caller input for creating an accounts set."""

    client_id: str
    period_start: date
    period_end: date
    framework: Framework
    company_number: str | None = None
    is_first_year: bool | None = None


@dataclass(frozen=True)
class HistorySnapshot:
    """An immutable copy of a stored accounts set taken before an overwrite."""

    accounts_set_id: UUID
    sequence: int
    captured_at: datetime
    captured_by: str | None
    payload: dict[str, Any]
