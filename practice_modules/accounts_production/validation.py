"""
Accounts Set Validation Engine (``practice_modules.accounts_production.validation``).

Responsibility
--------------
Validates one section's data (structure, then business rules) and a whole
accounts set's cross-section consistency: framework agreement,
comparative-figure presence, first-year retained earnings against profit,
and the balance check.

Architecture position
---------------------
**Modules layer** -- pure functions.  Depends on the calculation engine and
the kernel schema validator.  ZERO I/O.

Invariants enforced
-------------------
* Never raises for invalid data: every violated rule is returned as a
  ``ValidationError`` (blocking) or ``ValidationWarning``.
* Schema problems carry code ``SCHEMA_VALIDATION``.
* ``DocumentValidation.is_balanced`` is the calculation engine's balance
  check, whether or not an imbalance error was appended.

Failure modes
-------------
* Unknown section keys have no schema and no rules; they validate clean
  here and are rejected by the lifecycle service instead.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable

from practice_kernel.domain.dtos import (
    DocumentValidation,
    SectionValidation,
    ValidationError,
    ValidationWarning,
)
from practice_kernel.domain.schema import validate_against_schema
from practice_kernel.logging_config import get_logger

from practice_modules.accounts_production.calculations import (
    compute_totals,
    get_imbalance,
    is_balanced,
    to_decimal,
)
from practice_modules.accounts_production.config import AccountsProductionConfig
from practice_modules.accounts_production.models import (
    AccountsSet,
    SectionKey,
    is_sole_trader_type,
    parse_date,
)
from practice_modules.accounts_production.schemas import SECTION_SCHEMAS

logger = get_logger("modules.accounts_production.validation")

CROSS_SECTION = "cross-section"

_DEFAULT_CONFIG = AccountsProductionConfig()


class _Findings:
    """Collects errors and warnings for one section."""

    def __init__(self, section: str):
        self.section = section
        self.errors: list[ValidationError] = []
        self.warnings: list[ValidationWarning] = []

    def error(self, field: str, message: str, code: str) -> None:
        self.errors.append(ValidationError(field, message, code, self.section))

    def warning(self, field: str, message: str, code: str) -> None:
        self.warnings.append(ValidationWarning(field, message, code, self.section))


def _safe_date(value: Any) -> date | None:
    try:
        return parse_date(value)
    except (TypeError, ValueError):
        return None


def _is_negative(value: Any) -> bool:
    return value is not None and not isinstance(value, bool) and to_decimal(value) < 0


# =========================================================================
# Section business rules
# =========================================================================


def _company_period_rules(
    data: dict, document: AccountsSet, config: AccountsProductionConfig, out: _Findings
) -> None:
    period = data.get("period")
    if isinstance(period, dict):
        start = _safe_date(period.get("startDate"))
        end = _safe_date(period.get("endDate"))
        if start is not None and end is not None:
            if start >= end:
                out.error(
                    "period.endDate",
                    "Period end date must be after start date",
                    "INVALID_PERIOD",
                )
            if (end - start).days > config.long_period_days:
                out.warning(
                    "period",
                    "Accounting period is longer than 18 months",
                    "LONG_PERIOD",
                )

    company = data.get("company")
    directors = company.get("directors") if isinstance(company, dict) else None
    if (
        not is_sole_trader_type(data.get("framework"))
        and isinstance(directors, list)
        and len(directors) == 0
    ):
        out.error(
            "company.directors",
            "At least one director is required",
            "NO_DIRECTORS",
        )


def _comparatives_rules(
    has_comparatives: bool, missing_field: str, document: AccountsSet, out: _Findings
) -> None:
    if document.period.is_first_year and has_comparatives:
        out.error(
            "comparatives",
            "First year accounts cannot have comparative figures",
            "FIRST_YEAR_COMPARATIVES",
        )
    if not document.period.is_first_year and not has_comparatives:
        out.error(
            missing_field,
            "Subsequent year accounts must have comparative figures",
            "MISSING_COMPARATIVES",
        )


def _profit_and_loss_rules(
    data: dict, document: AccountsSet, config: AccountsProductionConfig, out: _Findings
) -> None:
    comparatives = data.get("comparatives") or {}
    _comparatives_rules(
        bool(comparatives.get("priorYearLines")),
        "comparatives.priorYearLines",
        document,
        out,
    )

    lines = data.get("lines")
    if isinstance(lines, dict) and _is_negative(lines.get("turnover")):
        out.warning(
            "lines.turnover",
            "Turnover is negative - please verify this is correct",
            "NEGATIVE_TURNOVER",
        )


def _balance_sheet_rules(
    data: dict, document: AccountsSet, config: AccountsProductionConfig, out: _Findings
) -> None:
    comparatives = data.get("comparatives") or {}
    _comparatives_rules(
        bool(comparatives.get("prior")),
        "comparatives.prior",
        document,
        out,
    )

    current_assets = (data.get("assets") or {}).get("currentAssets") or {}
    if _is_negative(current_assets.get("cash")):
        out.warning(
            "assets.currentAssets.cash",
            "Cash balance is negative - this may indicate an overdraft",
            "NEGATIVE_CASH",
        )

    equity = data.get("equity") or {}
    if _is_negative(equity.get("shareCapital")):
        out.error(
            "equity.shareCapital",
            "Share capital cannot be negative",
            "NEGATIVE_SHARE_CAPITAL",
        )


def _notes_rules(
    data: dict, document: AccountsSet, config: AccountsProductionConfig, out: _Findings
) -> None:
    share_capital = data.get("shareCapital")
    if not document.is_sole_trader and not share_capital:
        out.error(
            "shareCapital",
            "Share capital is required for company accounts",
            "MISSING_SHARE_CAPITAL",
        )

    employees = data.get("employees") or {}
    if employees.get("include") and not employees.get("averageEmployees"):
        out.error(
            "employees.averageEmployees",
            "Average employees must be provided when employee note is included",
            "MISSING_EMPLOYEE_COUNT",
        )

    loan_note = data.get("directorsLoanNote") or {}
    if loan_note.get("include") and not loan_note.get("text"):
        out.error(
            "directorsLoanNote.text",
            "Directors loan note text must be provided when note is included",
            "MISSING_DIRECTORS_LOAN_TEXT",
        )

    commitments = data.get("commitmentsContingencies") or {}
    if commitments.get("include") and not commitments.get("text"):
        out.error(
            "commitmentsContingencies.text",
            "Commitments and contingencies text must be provided when note is included",
            "MISSING_COMMITMENTS_TEXT",
        )

    if isinstance(share_capital, dict):
        if _is_negative(share_capital.get("numberOfShares")):
            out.error(
                "shareCapital.numberOfShares",
                "Number of shares cannot be negative",
                "NEGATIVE_SHARES",
            )
        if _is_negative(share_capital.get("nominalValue")):
            out.error(
                "shareCapital.nominalValue",
                "Nominal value cannot be negative",
                "NEGATIVE_NOMINAL_VALUE",
            )


def _directors_approval_rules(
    data: dict, document: AccountsSet, config: AccountsProductionConfig, out: _Findings
) -> None:
    if not data.get("approved"):
        return
    if not data.get("directorName"):
        out.error(
            "directorName",
            "Director name is required when accounts are approved",
            "MISSING_DIRECTOR_NAME",
        )
    if not data.get("approvalDate"):
        out.error(
            "approvalDate",
            "Approval date is required when accounts are approved",
            "MISSING_APPROVAL_DATE",
        )


_RuleSet = Callable[[dict, AccountsSet, AccountsProductionConfig, _Findings], None]

_BUSINESS_RULES: dict[SectionKey, _RuleSet] = {
    SectionKey.COMPANY_PERIOD: _company_period_rules,
    SectionKey.PROFIT_AND_LOSS: _profit_and_loss_rules,
    SectionKey.BALANCE_SHEET: _balance_sheet_rules,
    SectionKey.NOTES: _notes_rules,
    SectionKey.DIRECTORS_APPROVAL: _directors_approval_rules,
}


# =========================================================================
# Public API
# =========================================================================


def validate_section(
    section_key: SectionKey | str,
    data: Any,
    document: AccountsSet,
    config: AccountsProductionConfig | None = None,
) -> SectionValidation:
    """
    Validate one section's data in the context of ``document``.

    Schema errors come first, followed by business-rule findings.  Rules
    read ``document.period`` and ``document.framework`` for first-year and
    sole-trader decisions.
    """
    config = config or _DEFAULT_CONFIG
    key = str(section_key.value if isinstance(section_key, SectionKey) else section_key)
    out = _Findings(key)

    try:
        section = SectionKey(key)
    except ValueError:
        return SectionValidation()

    out.errors.extend(validate_against_schema(data, SECTION_SCHEMAS[section], section=key))

    rules = _BUSINESS_RULES.get(section)
    if rules is not None and isinstance(data, dict):
        rules(data, document, config, out)

    if out.errors:
        logger.debug(
            "section_validation_failed",
            extra={
                "section": key,
                "error_count": len(out.errors),
                "error_codes": [e.code for e in out.errors],
            },
        )

    return SectionValidation(errors=tuple(out.errors), warnings=tuple(out.warnings))


def _cross_section_rules(
    document: AccountsSet, config: AccountsProductionConfig, out: _Findings
) -> None:
    sections = document.sections
    company_period = sections.company_period or {}
    disclosures = sections.framework_disclosures or {}
    if company_period.get("framework") and disclosures.get("framework"):
        if company_period["framework"] != disclosures["framework"]:
            out.error(
                "framework",
                "Framework must be consistent across all sections",
                "INCONSISTENT_FRAMEWORK",
            )

    balance_sheet = sections.balance_sheet
    if balance_sheet and sections.profit_and_loss and document.period.is_first_year:
        profit_after_tax = compute_totals(document).profit_and_loss.profit_after_tax
        retained = to_decimal((balance_sheet.get("equity") or {}).get("retainedEarnings"))
        if abs(profit_after_tax - retained) > config.retained_earnings_tolerance:
            out.warning(
                "retainedEarnings",
                "For first year accounts, retained earnings should equal profit after tax",
                "RETAINED_EARNINGS_MISMATCH",
            )


def validate_document(
    document: AccountsSet,
    config: AccountsProductionConfig | None = None,
) -> DocumentValidation:
    """
    Validate every populated section, then the cross-section rules, then
    the balance check.

    ``BALANCE_SHEET_IMBALANCE`` is appended only when a balance sheet exists
    and does not balance; its message names the absolute difference between
    net assets and total equity to the penny.
    """
    config = config or _DEFAULT_CONFIG
    errors: list[ValidationError] = []
    warnings: list[ValidationWarning] = []

    for key in document.sections.populated():
        result = validate_section(key, document.sections.get(key), document, config)
        errors.extend(result.errors)
        warnings.extend(result.warnings)

    cross = _Findings(CROSS_SECTION)
    _cross_section_rules(document, config, cross)
    errors.extend(cross.errors)
    warnings.extend(cross.warnings)

    balance_sheet = document.sections.balance_sheet
    balanced = is_balanced(balance_sheet, config.balance_tolerance)
    if not balanced and balance_sheet:
        difference = abs(get_imbalance(balance_sheet))
        errors.append(
            ValidationError(
                field=SectionKey.BALANCE_SHEET.value,
                message=f"Balance sheet does not balance. Difference: £{difference:.2f}",
                code="BALANCE_SHEET_IMBALANCE",
                section=SectionKey.BALANCE_SHEET.value,
            )
        )

    logger.debug(
        "document_validated",
        extra={
            "accounts_set_id": str(document.id),
            "error_count": len(errors),
            "warning_count": len(warnings),
            "is_balanced": balanced,
        },
    )

    return DocumentValidation(
        errors=tuple(errors), warnings=tuple(warnings), is_balanced=balanced
    )
