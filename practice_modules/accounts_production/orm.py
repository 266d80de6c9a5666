"""
Accounts Production ORM Models (``practice_modules.accounts_production.orm``).

Responsibility
--------------
SQLAlchemy persistence models for accounts sets and their history
snapshots.  The authoritative record is the camelCase JSON ``payload``;
the scalar columns beside it (client, status, framework, period end,
version) exist for indexing, listing and the optimistic version check.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``practice_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``practice_kernel``.
"""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Date, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from practice_kernel.db.base import Base, TrackedBase, UUIDString

from practice_modules.accounts_production.models import AccountsSet, HistorySnapshot


# ---------------------------------------------------------------------------
# 1. AccountsSetModel
# ---------------------------------------------------------------------------


class AccountsSetModel(TrackedBase):
    """
    ORM model for statutory accounts sets.

    Guarantees:
        - client_id is indexed (list-by-client).
        - version starts at 1 on insert and increases by exactly one per save.
        - payload is the full ``AccountsSet.to_dict()`` serialisation.
    """

    __tablename__ = "accounts_sets"

    __table_args__ = (
        Index("idx_accounts_sets_client_id", "client_id"),
        Index("idx_accounts_sets_status", "status"),
    )

    client_id: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    framework: Mapped[str] = mapped_column(String(32), nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    # The store sets the next version; the UPDATE still carries
    # WHERE version = :loaded, so a concurrent writer raises StaleDataError.
    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    def to_dto(self) -> AccountsSet:
        """Convert ORM model to the domain aggregate."""
        document = AccountsSet.from_dict(self.payload)
        document.version = self.version
        return document

    @classmethod
    def from_dto(cls, document: AccountsSet, payload: dict[str, Any]) -> "AccountsSetModel":
        return cls(
            id=document.id,
            client_id=document.client_id,
            status=document.status.value,
            framework=document.framework.value,
            period_end=document.period.end_date,
            version=1,
            payload=payload,
            created_at=document.created_at,
            updated_at=document.updated_at,
            created_by=document.created_by,
            updated_by=document.last_edited_by,
        )


# ---------------------------------------------------------------------------
# 2. AccountsSetHistoryModel
# ---------------------------------------------------------------------------


class AccountsSetHistoryModel(Base):
    """
    ORM model for accounts set history snapshots.

    Append-only.  Rows are removed only by retention pruning or by deleting
    the accounts set they belong to.

    Guarantees:
        - (accounts_set_id, sequence) is unique; sequence increases per set.
    """

    __tablename__ = "accounts_set_history"

    __table_args__ = (
        UniqueConstraint(
            "accounts_set_id", "sequence", name="uq_accounts_set_history_sequence"
        ),
        Index("idx_accounts_set_history_set_id", "accounts_set_id"),
    )

    accounts_set_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    captured_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    captured_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    def to_dto(self) -> HistorySnapshot:
        return HistorySnapshot(
            accounts_set_id=self.accounts_set_id,
            sequence=self.sequence,
            captured_at=self.captured_at,
            captured_by=self.captured_by,
            payload=dict(self.payload),
        )
