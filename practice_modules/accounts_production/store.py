"""
Accounts Set Store (``practice_modules.accounts_production.store``).

Responsibility
--------------
Persists accounts sets as JSON documents keyed by id, with a client-id
index, an optimistic version check on every overwrite, and an append-only
history of the copies each overwrite replaced.

Architecture position
---------------------
**Modules layer** -- persistence.  A flush-only ``BaseService``: the
caller owns the transaction.

Invariants enforced
-------------------
* ``save`` succeeds only if the stored version equals the version the
  caller read; otherwise ``OptimisticLockError``.  The check is repeated by
  the database (``UPDATE ... WHERE version = :read``) via the mapper's
  ``version_id_col`` so that concurrent writers cannot both succeed.
* Before every overwrite the previous stored copy is appended to
  ``accounts_set_history`` and history is pruned to the newest
  ``retention`` snapshots, oldest first.

Failure modes
-------------
* History snapshot / pruning failure  -> rolled back to a SAVEPOINT,
  logged at WARNING; the primary write continues.
* Any other ``SQLAlchemyError``  -> logged with ``exc_info`` and re-raised
  as ``StorageError`` chained to the cause.

Audit relevance
---------------
History snapshots keep the last ``retention`` versions of every accounts
set, each stamped with the capture time and the editor who replaced it.
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from practice_kernel.domain.clock import Clock
from practice_kernel.exceptions import (
    AccountsSetNotFoundError,
    OptimisticLockError,
    StorageError,
)
from practice_kernel.logging_config import get_logger
from practice_kernel.services.base import BaseService

from practice_modules.accounts_production.models import AccountsSet, HistorySnapshot
from practice_modules.accounts_production.orm import (
    AccountsSetHistoryModel,
    AccountsSetModel,
)

logger = get_logger("modules.accounts_production.store")

ENTITY_TYPE = "AccountsSet"


def _payload(document: AccountsSet) -> dict:
    data = document.to_dict()
    data.pop("version", None)
    return data


class AccountsSetStore(BaseService):
    """
    SQLAlchemy-backed document store for accounts sets.

    Contract:
        Returns fresh ``AccountsSet`` aggregates; callers mutate them and
        hand them back to ``save`` with the version they read.
    """

    def __init__(self, session: Session, clock: Clock, retention: int = 10):
        super().__init__(session)
        self._clock = clock
        self._retention = retention

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_id(accounts_set_id: UUID | str) -> UUID:
        if isinstance(accounts_set_id, UUID):
            return accounts_set_id
        try:
            return UUID(str(accounts_set_id))
        except ValueError as exc:
            raise AccountsSetNotFoundError(str(accounts_set_id)) from exc

    def _load(self, accounts_set_id: UUID | str) -> AccountsSetModel:
        model = self.session.get(AccountsSetModel, self._parse_id(accounts_set_id))
        if model is None:
            raise AccountsSetNotFoundError(str(accounts_set_id))
        return model

    def get(self, accounts_set_id: UUID | str) -> AccountsSet:
        """Load an accounts set.  Raises ``AccountsSetNotFoundError``."""
        try:
            return self._load(accounts_set_id).to_dto()
        except SQLAlchemyError as exc:
            raise self._failure("get", accounts_set_id, exc) from exc

    def list_all(self) -> list[AccountsSet]:
        """All accounts sets, most recently created first."""
        stmt = select(AccountsSetModel).order_by(AccountsSetModel.created_at.desc())
        try:
            return [m.to_dto() for m in self.session.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise self._failure("list_all", None, exc) from exc

    def list_by_client(self, client_ids: Iterable[str]) -> list[AccountsSet]:
        """Accounts sets filed under any of ``client_ids``, most recent first."""
        ids = sorted({str(c) for c in client_ids if c})
        if not ids:
            return []
        stmt = (
            select(AccountsSetModel)
            .where(AccountsSetModel.client_id.in_(ids))
            .order_by(AccountsSetModel.created_at.desc())
        )
        try:
            return [m.to_dto() for m in self.session.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise self._failure("list_by_client", None, exc) from exc

    def history(self, accounts_set_id: UUID | str) -> list[HistorySnapshot]:
        """Retained snapshots, oldest first."""
        stmt = (
            select(AccountsSetHistoryModel)
            .where(AccountsSetHistoryModel.accounts_set_id == self._parse_id(accounts_set_id))
            .order_by(AccountsSetHistoryModel.sequence)
        )
        try:
            return [m.to_dto() for m in self.session.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise self._failure("history", accounts_set_id, exc) from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, document: AccountsSet) -> AccountsSet:
        """Persist a new accounts set.  Sets ``document.version`` to 1."""
        model = AccountsSetModel.from_dto(document, _payload(document))
        try:
            self.session.add(model)
            self.session.flush()
        except SQLAlchemyError as exc:
            raise self._failure("insert", document.id, exc) from exc
        document.version = model.version
        logger.debug(
            "accounts_set_inserted",
            extra={"accounts_set_id": str(document.id), "version": model.version},
        )
        return document

    def save(self, document: AccountsSet, expected_version: int) -> AccountsSet:
        """
        Overwrite a stored accounts set.

        Preconditions:
            ``expected_version`` is the version the caller read.
        Postconditions:
            The previous copy is in history (best-effort), the stored copy
            equals ``document``, and ``document.version`` is the new version.
        Raises:
            AccountsSetNotFoundError, OptimisticLockError, StorageError.
        """
        try:
            model = self._load(document.id)
            if model.version != expected_version:
                raise OptimisticLockError(ENTITY_TYPE, str(document.id), expected_version)

            self._snapshot(model, captured_by=document.last_edited_by)

            model.status = document.status.value
            model.framework = document.framework.value
            model.client_id = document.client_id
            model.period_end = document.period.end_date
            model.payload = _payload(document)
            model.updated_at = document.updated_at
            model.updated_by = document.last_edited_by
            model.version = expected_version + 1
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "accounts_set_version_conflict",
                extra={"accounts_set_id": str(document.id), "expected_version": expected_version},
            )
            raise OptimisticLockError(ENTITY_TYPE, str(document.id), expected_version) from exc
        except SQLAlchemyError as exc:
            raise self._failure("save", document.id, exc) from exc

        document.version = model.version
        return document

    def delete(self, accounts_set_id: UUID | str) -> None:
        """Remove an accounts set and all of its history."""
        set_uuid = self._parse_id(accounts_set_id)
        try:
            model = self._load(set_uuid)
            self.session.execute(
                delete(AccountsSetHistoryModel).where(
                    AccountsSetHistoryModel.accounts_set_id == set_uuid
                )
            )
            self.session.delete(model)
            self.session.flush()
        except SQLAlchemyError as exc:
            raise self._failure("delete", accounts_set_id, exc) from exc

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def _snapshot(self, model: AccountsSetModel, captured_by: str | None) -> None:
        """Append the stored copy to history and prune.  Best-effort."""
        try:
            with self.session.begin_nested():
                last = self.session.scalar(
                    select(func.max(AccountsSetHistoryModel.sequence)).where(
                        AccountsSetHistoryModel.accounts_set_id == model.id
                    )
                )
                payload = dict(model.payload)
                payload["version"] = model.version
                self.session.add(
                    AccountsSetHistoryModel(
                        accounts_set_id=model.id,
                        sequence=(last or 0) + 1,
                        captured_at=self._clock.now(),
                        captured_by=captured_by,
                        payload=payload,
                    )
                )
                self.session.flush()
                self._prune(model.id)
        except SQLAlchemyError:
            logger.warning(
                "accounts_set_history_write_failed",
                extra={"accounts_set_id": str(model.id)},
                exc_info=True,
            )

    def _prune(self, accounts_set_id: UUID) -> None:
        stale = self.session.scalars(
            select(AccountsSetHistoryModel.id)
            .where(AccountsSetHistoryModel.accounts_set_id == accounts_set_id)
            .order_by(AccountsSetHistoryModel.sequence.desc())
            .offset(self._retention)
        ).all()
        if stale:
            self.session.execute(
                delete(AccountsSetHistoryModel).where(AccountsSetHistoryModel.id.in_(stale))
            )
            logger.debug(
                "accounts_set_history_pruned",
                extra={"accounts_set_id": str(accounts_set_id), "removed": len(stale)},
            )

    def _failure(
        self, operation: str, accounts_set_id: UUID | str | None, exc: SQLAlchemyError
    ) -> StorageError:
        logger.error(
            "accounts_set_storage_failed",
            extra={
                "operation": operation,
                "accounts_set_id": str(accounts_set_id) if accounts_set_id else None,
            },
            exc_info=True,
        )
        return StorageError(operation, accounts_set_id, type(exc).__name__)
