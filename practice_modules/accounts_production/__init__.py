"""
practice_modules.accounts_production
====================================

Responsibility:
    Statutory accounts production.  An accounts set is a seven-section
    document (company and period, framework disclosures, accounting
    policies, profit and loss, balance sheet, notes, directors' approval)
    that moves through DRAFT -> IN_REVIEW -> READY -> LOCKED as it is
    completed, validated, approved and published.

Architecture:
    Module layer (practice_modules).  May import from practice_kernel and
    practice_config.  MUST NOT be imported by practice_kernel.

Invariants enforced:
    - Totals are always derived; callers can never supply them.
    - The balance sheet balances to within the configured tolerance or the
      set cannot leave DRAFT.
    - First-year sets carry no comparatives; later years must.
    - A LOCKED set is immutable until explicitly unlocked.

Failure modes:
    - Domain violations raise ``DomainRuleViolation`` subclasses before any
      write.
    - Collaborator failures raise ``CollaboratorFailure`` subclasses, except
      registry lookups, audit writes and history snapshots, which are
      logged and absorbed.

Audit relevance:
    Every state change is sent to the audit sink, and every overwrite keeps
    a history snapshot of the replaced copy.
"""

from practice_modules.accounts_production.calculations import (
    BalanceSheetTotals,
    FinancialTotals,
    ProfitAndLossTotals,
    compute_percentage_changes,
    compute_ratios,
    compute_totals,
    get_imbalance,
    is_balanced,
    list_calculated_fields,
)
from practice_modules.accounts_production.collaborators import (
    AuditSeverity,
    AuditSink,
    ClientDirectory,
    CompanyRegistry,
    LocalOutputStorage,
    LoggingAuditSink,
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
)
from practice_modules.accounts_production.outputs import (
    AccountsOutputCoordinator,
    StatementMarkupRenderer,
)
from practice_modules.accounts_production.service import (
    AccountsProductionService,
    build_accounts_production_service,
)
from practice_modules.accounts_production.store import AccountsSetStore
from practice_modules.accounts_production.validation import (
    validate_document,
    validate_section,
)
from practice_modules.accounts_production.workflows import ACCOUNTS_SET_WORKFLOW

__all__ = [
    "ACCOUNTS_SET_WORKFLOW",
    "AccountingPeriod",
    "AccountsOutputCoordinator",
    "AccountsProductionConfig",
    "AccountsProductionService",
    "AccountsSections",
    "AccountsSet",
    "AccountsSetStatus",
    "AccountsSetStore",
    "AccountsSetView",
    "AuditSeverity",
    "AuditSink",
    "BalanceSheetTotals",
    "ClientDirectory",
    "CompanyRegistry",
    "CreateAccountsSetInput",
    "FinancialTotals",
    "Framework",
    "HistorySnapshot",
    "LocalOutputStorage",
    "LoggingAuditSink",
    "OutputKind",
    "OutputLinks",
    "OutputStorage",
    "PdfEngine",
    "ProfitAndLossTotals",
    "Renderer",
    "SectionKey",
    "StatementMarkupRenderer",
    "build_accounts_production_service",
    "compute_percentage_changes",
    "compute_ratios",
    "compute_totals",
    "get_imbalance",
    "is_balanced",
    "list_calculated_fields",
    "validate_document",
    "validate_section",
]
