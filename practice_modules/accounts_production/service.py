"""
Accounts Production Service (``practice_modules.accounts_production.service``).

Responsibility
--------------
The document lifecycle manager for statutory accounts sets: creation with
seeded sections, section updates with re-validation and automatic status
advance, explicit lock / unlock, output generation, deletion, and read
operations that decorate stored sets with freshly computed figures.

Architecture position
---------------------
**Modules layer** -- stateful orchestration.  Composes the document store,
the validation and calculation engines, the status workflow, the output
coordinator and the external collaborators.  Flush-only: the caller owns
the transaction (``practice_kernel.db.engine.session_scope``).

Invariants enforced
-------------------
* Domain rules are checked before any write is attempted.
* A LOCKED accounts set cannot be edited or deleted.
* Calculated totals can never be supplied as section input.
* Status only moves forward automatically (DRAFT -> IN_REVIEW -> READY);
  LOCKED <-> READY only by explicit lock / unlock.
* Every write carries the version read; a concurrent writer raises
  ``OptimisticLockError`` instead of silently overwriting.

Failure modes
-------------
* ``AccountsSetNotFoundError`` / ``ClientNotFoundError``  -> unknown ids.
* ``DomainRuleViolation`` subclasses  -> rejected operation, nothing written.
* Registry failure during creation  -> logged, creation continues.
* Audit sink failure  -> logged, operation result unaffected.
* ``RenderError`` / ``StorageError``  -> propagate to the caller.

Audit relevance
---------------
Each state-changing operation emits an audit event (``CREATE_ACCOUNTS_SET``,
``UPDATE_SECTION``, ``GENERATE_OUTPUTS``, ``LOCK_ACCOUNTS_SET``,
``UNLOCK_ACCOUNTS_SET``, ``DELETE_ACCOUNTS_SET``) and each overwrite leaves a
history snapshot of the replaced copy.
"""

from __future__ import annotations

import copy
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from practice_kernel.domain.clock import Clock
from practice_kernel.exceptions import (
    AccountsSetLockedError,
    CalculatedFieldEditError,
    ClientNotFoundError,
    FrameworkImmutableError,
    InvalidStatusTransitionError,
    OptimisticLockError,
    OutputFileNotFoundError,
    OutputsNotGeneratedError,
    RegistryLookupError,
    SectionValidationFailedError,
)
from practice_kernel.logging_config import LogContext, get_logger

from practice_modules.accounts_production.calculations import (
    compute_ratios,
    compute_totals,
    find_calculated_fields,
    get_imbalance,
    is_balanced,
    profit_and_loss_changes,
)
from practice_modules.accounts_production.collaborators import (
    AuditSeverity,
    AuditSink,
    ClientDirectory,
    CompanyRegistry,
    OutputKind,
    OutputStorage,
    PdfEngine,
    Renderer,
)
from practice_modules.accounts_production.config import AccountsProductionConfig
from practice_modules.accounts_production.models import (
    AccountingPeriod,
    AccountsSections,
    AccountsSet,
    AccountsSetStatus,
    AccountsSetView,
    CreateAccountsSetInput,
    Framework,
    HistorySnapshot,
    OutputLinks,
    SectionKey,
    is_sole_trader_type,
    jsonable,
)
from practice_modules.accounts_production.outputs import AccountsOutputCoordinator
from practice_modules.accounts_production.schemas import PROFIT_AND_LOSS_LINE_NAMES
from practice_modules.accounts_production.store import ENTITY_TYPE, AccountsSetStore
from practice_modules.accounts_production.validation import (
    validate_document,
    validate_section,
)
from practice_modules.accounts_production.workflows import (
    LOCK,
    UNLOCK,
    advance_towards,
    explicit_transition,
)

logger = get_logger("modules.accounts_production.service")

AUDIT_ENTITY = "ACCOUNTS_SET"


# -----------------------------------------------------------------------------
# Section defaults
# -----------------------------------------------------------------------------


def zero_profit_and_loss_lines() -> dict[str, Any]:
    return {name: 0 for name in PROFIT_AND_LOSS_LINE_NAMES}


def default_balance_sheet(share_capital: Any = 1) -> dict[str, Any]:
    return {
        "assets": {
            "fixedAssets": {"tangibleFixedAssets": 0, "intangibleAssets": 0, "investments": 0},
            "currentAssets": {"stock": 0, "debtors": 0, "cash": 0, "prepayments": 0},
        },
        "liabilities": {
            "creditorsWithinOneYear": {
                "tradeCreditors": 0,
                "taxes": 0,
                "accrualsDeferredIncome": 0,
                "directorsLoan": 0,
                "otherCreditors": 0,
            },
            "creditorsAfterOneYear": {"loans": 0, "other": 0},
        },
        "equity": {
            "shareCapital": jsonable(share_capital),
            "retainedEarnings": 0,
            "otherReserves": 0,
        },
    }


def _without_comparatives(section: dict[str, Any]) -> dict[str, Any]:
    return {k: copy.deepcopy(v) for k, v in section.items() if k != "comparatives"}


# -----------------------------------------------------------------------------
# Service
# -----------------------------------------------------------------------------


class AccountsProductionService:
    """
    Lifecycle operations on statutory accounts sets.

    Contract:
        All collaborators are injected.  ``registry`` is optional; without it
        creation seeds company details from the client record alone.
    Guarantees:
        - Read operations return ``AccountsSetView`` objects whose
          calculations are recomputed from the stored sections.
        - No operation commits; callers own the transaction.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        clients: ClientDirectory,
        audit: AuditSink,
        outputs: AccountsOutputCoordinator,
        registry: CompanyRegistry | None = None,
        config: AccountsProductionConfig | None = None,
    ):
        self._config = config or AccountsProductionConfig()
        self._clock = clock
        self._clients = clients
        self._audit = audit
        self._outputs = outputs
        self._registry = registry
        self._store = AccountsSetStore(session, clock, self._config.history_retention)

    # =========================================================================
    # Reads
    # =========================================================================

    def _view(self, document: AccountsSet) -> AccountsSetView:
        return AccountsSetView(
            document=document,
            calculations=compute_totals(document).to_dict(),
            ratios=compute_ratios(document),
            percentage_changes=profit_and_loss_changes(document),
        )

    def get(self, accounts_set_id: UUID | str) -> AccountsSetView:
        return self._view(self._store.get(accounts_set_id))

    def list_all(self) -> list[AccountsSetView]:
        return [self._view(d) for d in self._store.list_all()]

    def _client_keys(self, client_id: str, client: dict[str, Any] | None) -> set[str]:
        keys = {str(client_id)}
        if client:
            keys.update(str(client[k]) for k in ("id", "ref") if client.get(k))
        return keys

    def list_by_client(self, client_id: str) -> list[AccountsSetView]:
        """Sets filed under the client's id, canonical id or reference; newest first."""
        client = self._clients.find_one(client_id)
        documents = self._store.list_by_client(self._client_keys(client_id, client))
        return [self._view(d) for d in documents]

    def history(self, accounts_set_id: UUID | str) -> list[HistorySnapshot]:
        self._store.get(accounts_set_id)
        return self._store.history(accounts_set_id)

    def get_calculations(self, accounts_set_id: UUID | str) -> dict[str, Any]:
        document = self._store.get(accounts_set_id)
        balance_sheet = document.sections.balance_sheet
        balanced = is_balanced(balance_sheet, self._config.balance_tolerance)
        result: dict[str, Any] = {
            "calculations": compute_totals(document).to_dict(),
            "ratios": compute_ratios(document),
            "isBalanced": balanced,
        }
        changes = profit_and_loss_changes(document)
        if changes is not None:
            result["percentageChanges"] = changes
        if not balanced:
            result["imbalance"] = get_imbalance(balance_sheet)
        return result

    def get_output_file(
        self, accounts_set_id: UUID | str, kind: OutputKind | str, filename: str
    ) -> bytes:
        self._store.get(accounts_set_id)
        try:
            output_kind = OutputKind(kind)
        except ValueError as exc:
            raise OutputFileNotFoundError(str(kind), filename) from exc
        return self._outputs.read_output(output_kind, filename)

    # =========================================================================
    # Creation
    # =========================================================================

    def _registry_lookup(
        self, company_number: str
    ) -> tuple[dict[str, Any] | None, list[dict[str, Any]]]:
        if self._registry is None or not company_number:
            return None, []
        try:
            details = self._registry.get_company_details(company_number)
            officers = self._registry.get_company_officers(company_number)
        except Exception as exc:
            failure = RegistryLookupError(company_number, str(exc))
            logger.warning(
                "registry_lookup_failed",
                extra={"company_number": company_number, "error_code": failure.code},
                exc_info=True,
            )
            return None, []
        if isinstance(officers, dict):
            officers = officers.get("items") or []
        logger.info(
            "registry_lookup_completed",
            extra={"company_number": company_number, "officers": len(officers or [])},
        )
        return details, list(officers or [])

    def _registered_office(
        self, client: dict[str, Any], details: dict[str, Any] | None
    ) -> dict[str, str]:
        country = self._config.default_country
        office = (details or {}).get("registered_office_address")
        if office:
            return {
                "line1": office.get("address_line_1") or "",
                "line2": office.get("address_line_2") or "",
                "town": office.get("locality") or "",
                "county": office.get("region") or "",
                "postcode": office.get("postal_code") or "",
                "country": office.get("country") or country,
            }
        address = client.get("registeredAddress") or client.get("address") or {}
        return {
            "line1": address.get("line1") or "",
            "line2": address.get("line2") or "",
            "town": address.get("city") or address.get("town") or "",
            "county": address.get("county") or "",
            "postcode": address.get("postcode") or "",
            "country": address.get("country") or country,
        }

    @staticmethod
    def _directors(officers: list[dict[str, Any]]) -> list[dict[str, str]]:
        if not officers:
            return [{"name": ""}]
        return [
            {"name": officer.get("name") or ""}
            for officer in officers
            if "director" in str(officer.get("officer_role") or "").lower()
        ]

    def create(self, data: CreateAccountsSetInput, actor_id: str) -> AccountsSet:
        """
        Create a DRAFT accounts set for a client.

        Raises:
            ClientNotFoundError: unknown client.
            InvalidPeriodError: period start not before period end.
        """
        with LogContext.bind(actor_id=actor_id, client_id=data.client_id):
            client = self._clients.find_one(data.client_id)
            if client is None:
                raise ClientNotFoundError(data.client_id)

            client_type = client.get("type")
            framework = (
                Framework(client_type)
                if is_sole_trader_type(client_type)
                else Framework(data.framework)
            )
            sole_trader = framework.is_sole_trader

            priors = self._store.list_by_client(self._client_keys(data.client_id, client))
            prior = priors[0] if priors else None
            is_first_year = (
                data.is_first_year if data.is_first_year is not None else not priors
            )
            period = AccountingPeriod(data.period_start, data.period_end, is_first_year)

            company_number = (
                "" if sole_trader else (data.company_number or client.get("registeredNumber") or "")
            )
            details, officers = (None, []) if sole_trader else self._registry_lookup(company_number)

            sections = AccountsSections(
                company_period={
                    "framework": framework.value,
                    "company": {
                        "name": (details or {}).get("company_name") or client.get("name") or "",
                        "companyNumber": company_number,
                        "registeredOffice": self._registered_office(client, details),
                        "directors": [] if sole_trader else self._directors(officers),
                    },
                    "period": period.to_dict(),
                }
            )
            if prior is not None:
                sections.accounting_policies = copy.deepcopy(prior.sections.accounting_policies)
                sections.notes = copy.deepcopy(prior.sections.notes)
            if not is_first_year:
                self._seed_comparatives(sections, prior)

            now = self._clock.now()
            document = AccountsSet(
                id=uuid4(),
                client_id=data.client_id,
                company_number=company_number,
                framework=framework,
                status=AccountsSetStatus.DRAFT,
                period=period,
                sections=sections,
                created_at=now,
                updated_at=now,
                created_by=actor_id,
                last_edited_by=actor_id,
            )
            document.validation = validate_document(document, self._config)
            self._store.insert(document)

            logger.info(
                "accounts_set_created",
                extra={
                    "accounts_set_id": str(document.id),
                    "framework": framework.value,
                    "is_first_year": is_first_year,
                    "has_prior": prior is not None,
                    "validation_errors": len(document.validation.errors),
                },
            )
            self._audit_event(
                actor=actor_id,
                action="CREATE_ACCOUNTS_SET",
                document=document,
                entity_ref=f"{client.get('name')} ({data.client_id})",
                metadata={
                    "framework": framework.value,
                    "isFirstYear": is_first_year,
                    "companyNumber": company_number,
                },
                severity=AuditSeverity.MEDIUM,
            )
            return document

    def _seed_comparatives(self, sections: AccountsSections, prior: AccountsSet | None) -> None:
        prior_pl = prior.sections.profit_and_loss if prior else None
        prior_bs = prior.sections.balance_sheet if prior else None
        prior_lines = (prior_pl or {}).get("lines")

        sections.profit_and_loss = {
            "lines": zero_profit_and_loss_lines(),
            "comparatives": {
                "priorYearLines": copy.deepcopy(prior_lines)
                if prior_lines
                else zero_profit_and_loss_lines()
            },
        }
        balance_sheet = default_balance_sheet(self._config.default_share_capital)
        balance_sheet["comparatives"] = {
            "prior": _without_comparatives(prior_bs)
            if prior_bs
            else default_balance_sheet(self._config.default_share_capital)
        }
        sections.balance_sheet = balance_sheet

    # =========================================================================
    # Section updates
    # =========================================================================

    def _ensure_comparatives(self, sections: AccountsSections) -> None:
        if sections.profit_and_loss is None:
            sections.profit_and_loss = {
                "lines": zero_profit_and_loss_lines(),
                "comparatives": {"priorYearLines": zero_profit_and_loss_lines()},
            }
        elif not sections.profit_and_loss.get("comparatives"):
            sections.profit_and_loss["comparatives"] = {
                "priorYearLines": zero_profit_and_loss_lines()
            }

        share_capital = self._config.default_share_capital
        if sections.balance_sheet is None:
            balance_sheet = default_balance_sheet(share_capital)
            balance_sheet["comparatives"] = {"prior": default_balance_sheet(share_capital)}
            sections.balance_sheet = balance_sheet
        elif not sections.balance_sheet.get("comparatives"):
            sections.balance_sheet["comparatives"] = {
                "prior": default_balance_sheet(share_capital)
            }

    def _apply_company_period(self, document: AccountsSet, data: dict[str, Any]) -> None:
        period = data.get("period")
        if isinstance(period, dict):
            document.period = AccountingPeriod.from_dict({**document.period.to_dict(), **period})
        if data.get("framework"):
            document.framework = Framework(data["framework"])

        if is_sole_trader_type(data.get("framework")):
            document.company_number = ""
            company = data.get("company")
            if isinstance(company, dict):
                company["companyNumber"] = ""
                company["directors"] = []

        first_year = period.get("isFirstYear") if isinstance(period, dict) else None
        sections = document.sections
        if first_year is False:
            self._ensure_comparatives(sections)
        elif first_year is True:
            for section in (sections.profit_and_loss, sections.balance_sheet):
                if section is not None:
                    section.pop("comparatives", None)

    def update_section(
        self,
        accounts_set_id: UUID | str,
        section_key: SectionKey | str,
        data: Any,
        actor_id: str,
        expected_version: int | None = None,
    ) -> AccountsSetView:
        """
        Replace one section, re-validate, and advance status when complete.

        Preconditions:
            The accounts set is not LOCKED; ``data`` carries no calculated
            fields and passes section validation.
        Raises:
            UnknownSectionError, AccountsSetLockedError,
            CalculatedFieldEditError, SectionValidationFailedError,
            FrameworkImmutableError, OptimisticLockError.
        """
        key = SectionKey.parse(section_key)
        with LogContext.bind(actor_id=actor_id, accounts_set_id=str(accounts_set_id)):
            document = self._store.get(accounts_set_id)
            read_version = document.version
            if expected_version is not None and expected_version != read_version:
                raise OptimisticLockError(ENTITY_TYPE, str(document.id), expected_version)
            if document.is_locked:
                raise AccountsSetLockedError(str(document.id), "update_section")

            calculated = find_calculated_fields(key, data) if isinstance(data, dict) else []
            if calculated:
                raise CalculatedFieldEditError(key.value, calculated)

            result = validate_section(key, data, document, self._config)
            if not result.is_valid:
                logger.warning(
                    "section_validation_rejected",
                    extra={
                        "section": key.value,
                        "error_codes": [e.code for e in result.errors],
                    },
                )
                raise SectionValidationFailedError(key.value, result.errors)

            section = copy.deepcopy(data)
            requested = section.get("framework") if key is SectionKey.COMPANY_PERIOD else None
            has_outputs = document.outputs is not None and bool(
                document.outputs.html_url or document.outputs.pdf_url
            )
            if has_outputs and requested and requested != document.framework.value:
                raise FrameworkImmutableError(
                    str(document.id), document.framework.value, requested
                )

            previous = copy.deepcopy(document.sections.get(key))
            previous_status = document.status
            if key is SectionKey.COMPANY_PERIOD:
                self._apply_company_period(document, section)
            document.sections.set(key, section)
            document.updated_at = self._clock.now()
            document.last_edited_by = actor_id

            validation = validate_document(document, self._config)
            document.validation = validation
            if validation.is_valid and document.sections.is_complete():
                approved = bool((document.sections.directors_approval or {}).get("approved"))
                target = AccountsSetStatus.READY if approved else AccountsSetStatus.IN_REVIEW
                document.status = advance_towards(document.status, target)

            self._store.save(document, read_version)

            logger.info(
                "section_updated",
                extra={
                    "section": key.value,
                    "validation_errors": len(validation.errors),
                    "previous_status": previous_status.value,
                    "status": document.status.value,
                    "version": document.version,
                },
            )
            self._audit_data_change(
                actor=actor_id,
                action="UPDATE_SECTION",
                document=document,
                entity_ref=f"{self._entity_ref(document)} - {key.value}",
                before=jsonable(previous),
                after=jsonable(section),
                metadata={
                    "sectionKey": key.value,
                    "validationErrors": len(validation.errors),
                    "statusChange": document.status.value,
                },
            )
            return self.get(document.id)

    def validate(self, accounts_set_id: UUID | str) -> dict[str, Any]:
        """Recompute and store the document validation."""
        with LogContext.bind(accounts_set_id=str(accounts_set_id)):
            document = self._store.get(accounts_set_id)
            validation = validate_document(document, self._config)
            document.validation = validation
            self._store.save(document, document.version)
            result = validation.to_dict()
            result["isValid"] = validation.is_valid
            return result

    # =========================================================================
    # Outputs and status transitions
    # =========================================================================

    def generate_outputs(self, accounts_set_id: UUID | str, actor_id: str) -> OutputLinks:
        """
        Generate the HTML and PDF statements for a READY accounts set.

        Regeneration replaces the stored URLs; superseded files whose names
        changed are removed afterwards.
        """
        with LogContext.bind(actor_id=actor_id, accounts_set_id=str(accounts_set_id)):
            document = self._store.get(accounts_set_id)
            if document.status is not AccountsSetStatus.READY:
                raise InvalidStatusTransitionError(
                    str(document.id),
                    document.status.value,
                    "generate outputs for",
                    AccountsSetStatus.READY.value,
                )

            previous = document.outputs
            links = self._outputs.generate(document)
            document.outputs = links
            document.updated_at = self._clock.now()
            document.last_edited_by = actor_id
            self._store.save(document, document.version)
            self._outputs.cleanup(previous, keep=links)

            self._audit_event(
                actor=actor_id,
                action="GENERATE_OUTPUTS",
                document=document,
                entity_ref=self._entity_ref(document),
                metadata={
                    "htmlUrl": links.html_url,
                    "pdfUrl": links.pdf_url,
                    "framework": document.framework.value,
                },
                severity=AuditSeverity.HIGH,
            )
            return links

    def lock(self, accounts_set_id: UUID | str, actor_id: str) -> AccountsSet:
        """READY -> LOCKED.  Requires both output URLs."""
        with LogContext.bind(actor_id=actor_id, accounts_set_id=str(accounts_set_id)):
            document = self._store.get(accounts_set_id)
            target = explicit_transition(document.status, LOCK)
            if target is None:
                raise InvalidStatusTransitionError(
                    str(document.id), document.status.value, LOCK, AccountsSetStatus.READY.value
                )
            if document.outputs is None or not document.outputs.is_complete:
                raise OutputsNotGeneratedError(str(document.id))
            return self._transition(document, target, actor_id, "LOCK_ACCOUNTS_SET")

    def unlock(self, accounts_set_id: UUID | str, actor_id: str) -> AccountsSet:
        """LOCKED -> READY."""
        with LogContext.bind(actor_id=actor_id, accounts_set_id=str(accounts_set_id)):
            document = self._store.get(accounts_set_id)
            target = explicit_transition(document.status, UNLOCK)
            if target is None:
                raise InvalidStatusTransitionError(
                    str(document.id),
                    document.status.value,
                    UNLOCK,
                    AccountsSetStatus.LOCKED.value,
                )
            return self._transition(document, target, actor_id, "UNLOCK_ACCOUNTS_SET")

    def _transition(
        self,
        document: AccountsSet,
        target: AccountsSetStatus,
        actor_id: str,
        audit_action: str,
    ) -> AccountsSet:
        previous = document.status
        document.status = target
        document.updated_at = self._clock.now()
        document.last_edited_by = actor_id
        self._store.save(document, document.version)

        logger.info(
            "accounts_set_status_changed",
            extra={"previous_status": previous.value, "status": target.value},
        )
        self._audit_event(
            actor=actor_id,
            action=audit_action,
            document=document,
            entity_ref=self._entity_ref(document),
            metadata={
                "previousStatus": previous.value,
                "newStatus": target.value,
                "hasOutputs": bool(document.outputs and document.outputs.is_complete),
            },
            severity=AuditSeverity.HIGH,
        )
        return document

    def delete(self, accounts_set_id: UUID | str, actor_id: str) -> None:
        """Remove an accounts set, its history and its output files."""
        with LogContext.bind(actor_id=actor_id, accounts_set_id=str(accounts_set_id)):
            document = self._store.get(accounts_set_id)
            if document.is_locked:
                raise AccountsSetLockedError(str(document.id), "delete")

            self._store.delete(document.id)
            if document.outputs is not None:
                self._outputs.cleanup(document.outputs)

            logger.info("accounts_set_deleted", extra={"client_id": document.client_id})
            self._audit_event(
                actor=actor_id,
                action="DELETE_ACCOUNTS_SET",
                document=document,
                entity_ref=self._entity_ref(document),
                metadata={
                    "clientId": document.client_id,
                    "status": document.status.value,
                    "framework": document.framework.value,
                },
                severity=AuditSeverity.HIGH,
            )

    # =========================================================================
    # Audit
    # =========================================================================

    @staticmethod
    def _entity_ref(document: AccountsSet) -> str:
        company = (document.sections.company_period or {}).get("company") or {}
        return company.get("name") or document.client_id

    def _audit_event(
        self,
        *,
        actor: str,
        action: str,
        document: AccountsSet,
        entity_ref: str,
        metadata: dict[str, Any],
        severity: AuditSeverity,
    ) -> None:
        try:
            self._audit.log_event(
                actor=actor,
                action=action,
                entity=AUDIT_ENTITY,
                entity_id=str(document.id),
                entity_ref=entity_ref,
                metadata=metadata,
                severity=severity,
            )
        except Exception:
            logger.warning("audit_event_failed", extra={"audit_action": action}, exc_info=True)

    def _audit_data_change(
        self,
        *,
        actor: str,
        action: str,
        document: AccountsSet,
        entity_ref: str,
        before: Any,
        after: Any,
        metadata: dict[str, Any],
    ) -> None:
        try:
            self._audit.log_data_change(
                actor=actor,
                entity_type=AUDIT_ENTITY,
                action=action,
                entity_id=str(document.id),
                entity_ref=entity_ref,
                before=before,
                after=after,
                metadata=metadata,
            )
        except Exception:
            logger.warning("audit_event_failed", extra={"audit_action": action}, exc_info=True)


def build_accounts_production_service(
    session: Session,
    clients: ClientDirectory,
    audit: AuditSink,
    pdf_engine: PdfEngine,
    registry: CompanyRegistry | None = None,
    renderer: Renderer | None = None,
    storage: OutputStorage | None = None,
    config_path: "Path | None" = None,
    clock: Clock | None = None,
) -> AccountsProductionService:
    """Build the service from the active practice configuration.

    Module settings come from ``modules.accounts_production``; the practice
    details printed on statements come from ``practice``.  Without an
    explicit ``storage`` files go under ``output_root`` on the local
    filesystem; without a ``renderer`` the built-in templates are used.
    """
    from pathlib import Path

    from practice_config import get_active_config
    from practice_kernel.domain.clock import SystemClock
    from practice_modules.accounts_production.collaborators import LocalOutputStorage
    from practice_modules.accounts_production.outputs import StatementMarkupRenderer

    practice_config = get_active_config(Path(config_path) if config_path else None)
    config = AccountsProductionConfig.from_dict(
        practice_config.module_settings("accounts_production")
    )
    outputs = AccountsOutputCoordinator(
        renderer=renderer
        or StatementMarkupRenderer(config.statutory_template, config.sole_trader_template),
        pdf_engine=pdf_engine,
        storage=storage if storage is not None else LocalOutputStorage(practice_config.output_root),
        clients=clients,
        config=config,
        practice_settings=lambda: practice_config.practice,
    )
    return AccountsProductionService(
        session=session,
        clock=clock or SystemClock(),
        clients=clients,
        audit=audit,
        outputs=outputs,
        registry=registry,
        config=config,
    )
