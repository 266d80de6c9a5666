"""
Financial Calculation Engine (``practice_modules.accounts_production.calculations``).

Responsibility
--------------
Pure functions computing profit-and-loss and balance-sheet totals, financial
ratios, period-over-period percentage changes, and the balance check
(assets = liabilities + equity).

Architecture position
---------------------
**Modules layer** -- pure functional core.  ZERO I/O, no clock, no
randomness.  Inputs are section payload dicts (or anything carrying
``sections``); outputs are frozen dataclasses and dicts of ``Decimal``.

Invariants enforced
-------------------
* All arithmetic is ``Decimal``; input numbers are converted via ``str``.
* A missing section yields an all-zero totals object -- never ``None``,
  never an exception.  Missing line fields count as zero.
* ``totalAssets = totalFixedAssets + totalCurrentAssets``;
  ``totalLiabilities = totalCurrentLiabilities + totalLongTermLiabilities``;
  ``netAssets = totalAssets - totalLiabilities``.
* A ratio is present only when its denominator is strictly positive.
* ``is_balanced`` is False (not an error) when the balance sheet is absent.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from practice_modules.accounts_production.models import AccountsSections, SectionKey

ZERO = Decimal("0")
HUNDRED = Decimal("100")
DEFAULT_BALANCE_TOLERANCE = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Convert a JSON number to Decimal; ``None`` and non-numbers count as zero."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _as_dict(obj: Any) -> dict[str, Decimal]:
    return {_camel(f.name): getattr(obj, f.name) for f in fields(obj)}


# =========================================================================
# Input value objects
# =========================================================================


@dataclass(frozen=True)
class ProfitAndLossLines:
    """The twelve profit-and-loss line items."""

    turnover: Decimal = ZERO
    cost_of_sales: Decimal = ZERO
    other_income: Decimal = ZERO
    admin_expenses: Decimal = ZERO
    wages: Decimal = ZERO
    rent: Decimal = ZERO
    motor: Decimal = ZERO
    professional_fees: Decimal = ZERO
    other_expenses: Decimal = ZERO
    interest_payable: Decimal = ZERO
    tax_charge: Decimal = ZERO
    dividends_declared: Decimal = ZERO

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ProfitAndLossLines:
        data = data or {}
        return cls(**{f.name: to_decimal(data.get(_camel(f.name))) for f in fields(cls)})

    def to_dict(self) -> dict[str, Decimal]:
        return _as_dict(self)


PROFIT_AND_LOSS_LINE_FIELDS: tuple[str, ...] = tuple(
    _camel(f.name) for f in fields(ProfitAndLossLines)
)


@dataclass(frozen=True)
class BalanceSheetData:
    """The balance-sheet figures, flattened."""

    # Fixed assets
    tangible_fixed_assets: Decimal = ZERO
    intangible_assets: Decimal = ZERO
    investments: Decimal = ZERO
    # Current assets
    stock: Decimal = ZERO
    debtors: Decimal = ZERO
    cash: Decimal = ZERO
    prepayments: Decimal = ZERO
    # Creditors: amounts falling due within one year
    trade_creditors: Decimal = ZERO
    taxes: Decimal = ZERO
    accruals_deferred_income: Decimal = ZERO
    directors_loan: Decimal = ZERO
    other_creditors: Decimal = ZERO
    # Creditors: amounts falling due after more than one year
    loans: Decimal = ZERO
    other_long_term: Decimal = ZERO
    # Capital and reserves
    share_capital: Decimal = ZERO
    retained_earnings: Decimal = ZERO
    other_reserves: Decimal = ZERO

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> BalanceSheetData:
        data = data or {}
        assets = data.get("assets") or {}
        fixed = assets.get("fixedAssets") or {}
        current = assets.get("currentAssets") or {}
        liabilities = data.get("liabilities") or {}
        within = liabilities.get("creditorsWithinOneYear") or {}
        after = liabilities.get("creditorsAfterOneYear") or {}
        equity = data.get("equity") or {}
        return cls(
            tangible_fixed_assets=to_decimal(fixed.get("tangibleFixedAssets")),
            intangible_assets=to_decimal(fixed.get("intangibleAssets")),
            investments=to_decimal(fixed.get("investments")),
            stock=to_decimal(current.get("stock")),
            debtors=to_decimal(current.get("debtors")),
            cash=to_decimal(current.get("cash")),
            prepayments=to_decimal(current.get("prepayments")),
            trade_creditors=to_decimal(within.get("tradeCreditors")),
            taxes=to_decimal(within.get("taxes")),
            accruals_deferred_income=to_decimal(within.get("accrualsDeferredIncome")),
            directors_loan=to_decimal(within.get("directorsLoan")),
            other_creditors=to_decimal(within.get("otherCreditors")),
            loans=to_decimal(after.get("loans")),
            other_long_term=to_decimal(after.get("other")),
            share_capital=to_decimal(equity.get("shareCapital")),
            retained_earnings=to_decimal(equity.get("retainedEarnings")),
            other_reserves=to_decimal(equity.get("otherReserves")),
        )


# =========================================================================
# Totals
# =========================================================================


@dataclass(frozen=True)
class ProfitAndLossTotals:
    gross_profit: Decimal = ZERO
    operating_profit: Decimal = ZERO
    profit_before_tax: Decimal = ZERO
    profit_after_tax: Decimal = ZERO
    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO

    def to_dict(self) -> dict[str, Decimal]:
        return _as_dict(self)


@dataclass(frozen=True)
class BalanceSheetTotals:
    total_fixed_assets: Decimal = ZERO
    total_current_assets: Decimal = ZERO
    total_assets: Decimal = ZERO
    total_current_liabilities: Decimal = ZERO
    total_long_term_liabilities: Decimal = ZERO
    total_liabilities: Decimal = ZERO
    total_equity: Decimal = ZERO
    net_assets: Decimal = ZERO

    def to_dict(self) -> dict[str, Decimal]:
        return _as_dict(self)


@dataclass(frozen=True)
class FinancialTotals:
    profit_and_loss: ProfitAndLossTotals
    balance_sheet: BalanceSheetTotals

    def to_dict(self) -> dict[str, dict[str, Decimal]]:
        return {
            "profitAndLoss": self.profit_and_loss.to_dict(),
            "balanceSheet": self.balance_sheet.to_dict(),
        }


_CALCULATED_FIELDS: dict[SectionKey, frozenset[str]] = {
    SectionKey.PROFIT_AND_LOSS: frozenset(
        _camel(f.name) for f in fields(ProfitAndLossTotals)
    ),
    SectionKey.BALANCE_SHEET: frozenset(
        _camel(f.name) for f in fields(BalanceSheetTotals)
    ),
}


def lines_totals(lines: ProfitAndLossLines) -> ProfitAndLossTotals:
    gross_profit = lines.turnover - lines.cost_of_sales
    total_income = gross_profit + lines.other_income
    total_expenses = (
        lines.admin_expenses
        + lines.wages
        + lines.rent
        + lines.motor
        + lines.professional_fees
        + lines.other_expenses
    )
    operating_profit = total_income - total_expenses
    profit_before_tax = operating_profit - lines.interest_payable
    profit_after_tax = profit_before_tax - lines.tax_charge
    return ProfitAndLossTotals(
        gross_profit=gross_profit,
        operating_profit=operating_profit,
        profit_before_tax=profit_before_tax,
        profit_after_tax=profit_after_tax,
        total_income=total_income,
        total_expenses=total_expenses,
    )


def data_totals(bs: BalanceSheetData) -> BalanceSheetTotals:
    total_fixed_assets = bs.tangible_fixed_assets + bs.intangible_assets + bs.investments
    total_current_assets = bs.stock + bs.debtors + bs.cash + bs.prepayments
    total_assets = total_fixed_assets + total_current_assets
    total_current_liabilities = (
        bs.trade_creditors
        + bs.taxes
        + bs.accruals_deferred_income
        + bs.directors_loan
        + bs.other_creditors
    )
    total_long_term_liabilities = bs.loans + bs.other_long_term
    total_liabilities = total_current_liabilities + total_long_term_liabilities
    total_equity = bs.share_capital + bs.retained_earnings + bs.other_reserves
    return BalanceSheetTotals(
        total_fixed_assets=total_fixed_assets,
        total_current_assets=total_current_assets,
        total_assets=total_assets,
        total_current_liabilities=total_current_liabilities,
        total_long_term_liabilities=total_long_term_liabilities,
        total_liabilities=total_liabilities,
        total_equity=total_equity,
        net_assets=total_assets - total_liabilities,
    )


def profit_and_loss_totals(section: Mapping[str, Any] | None) -> ProfitAndLossTotals:
    """Totals of a profitAndLoss section; zeros when absent or without lines."""
    if not section or not section.get("lines"):
        return ProfitAndLossTotals()
    return lines_totals(ProfitAndLossLines.from_dict(section["lines"]))


def balance_sheet_totals(section: Mapping[str, Any] | None) -> BalanceSheetTotals:
    """Totals of a balanceSheet section (or comparative data); zeros when absent."""
    if not section:
        return BalanceSheetTotals()
    return data_totals(BalanceSheetData.from_dict(section))


def _sections(document: Any) -> AccountsSections:
    return document if isinstance(document, AccountsSections) else document.sections


def compute_totals(document: Any) -> FinancialTotals:
    """Totals for an accounts set (or its ``AccountsSections``)."""
    sections = _sections(document)
    return FinancialTotals(
        profit_and_loss=profit_and_loss_totals(sections.profit_and_loss),
        balance_sheet=balance_sheet_totals(sections.balance_sheet),
    )


def compute_ratios(document: Any) -> dict[str, Decimal]:
    """
    Financial ratios; a key is omitted when its denominator is not positive.

    ROA, ROE and the margins are percentages.
    """
    sections = _sections(document)
    totals = compute_totals(sections)
    pl = totals.profit_and_loss
    bs = totals.balance_sheet
    ratios: dict[str, Decimal] = {}

    if bs.total_current_liabilities > 0:
        ratios["currentRatio"] = bs.total_current_assets / bs.total_current_liabilities
        if sections.balance_sheet is not None:
            stock = BalanceSheetData.from_dict(sections.balance_sheet).stock
            ratios["quickRatio"] = (
                bs.total_current_assets - stock
            ) / bs.total_current_liabilities

    if bs.total_equity > 0:
        ratios["debtToEquityRatio"] = bs.total_liabilities / bs.total_equity

    if bs.total_assets > 0:
        ratios["returnOnAssets"] = pl.profit_after_tax / bs.total_assets * HUNDRED

    if bs.total_equity > 0:
        ratios["returnOnEquity"] = pl.profit_after_tax / bs.total_equity * HUNDRED

    turnover = ZERO
    if sections.profit_and_loss:
        turnover = to_decimal((sections.profit_and_loss.get("lines") or {}).get("turnover"))
    if turnover > 0:
        ratios["grossProfitMargin"] = pl.gross_profit / turnover * HUNDRED
        ratios["netProfitMargin"] = pl.profit_after_tax / turnover * HUNDRED

    return ratios


def compute_percentage_changes(
    current: Mapping[str, Any],
    prior: Mapping[str, Any] | None,
) -> dict[str, Decimal]:
    """
    Percentage change per field of ``current`` against ``prior``.

    A prior of zero gives exactly 100 when the current value is non-zero and
    0 when both are zero.  Fields missing from ``prior`` count as zero.
    """
    prior = prior or {}
    changes: dict[str, Decimal] = {}
    for key, raw in current.items():
        now = to_decimal(raw)
        before = to_decimal(prior.get(key))
        if before != 0:
            changes[key] = (now - before) / abs(before) * HUNDRED
        elif now != 0:
            changes[key] = HUNDRED
        else:
            changes[key] = ZERO
    return changes


def profit_and_loss_changes(document: Any) -> dict[str, Decimal] | None:
    """Year-on-year changes of the P&L lines; ``None`` without comparatives."""
    section = _sections(document).profit_and_loss
    if not section or not section.get("lines"):
        return None
    prior = (section.get("comparatives") or {}).get("priorYearLines")
    if not prior:
        return None
    return compute_percentage_changes(section["lines"], prior)


def get_imbalance(balance_sheet: Mapping[str, Any] | None) -> Decimal:
    """Signed ``totalAssets - (totalLiabilities + totalEquity)``; zero when absent."""
    if not balance_sheet:
        return ZERO
    t = balance_sheet_totals(balance_sheet)
    return t.total_assets - (t.total_liabilities + t.total_equity)


def is_balanced(
    balance_sheet: Mapping[str, Any] | None,
    tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE,
) -> bool:
    """True iff the balance sheet exists and its imbalance is strictly within tolerance."""
    if not balance_sheet:
        return False
    return abs(get_imbalance(balance_sheet)) < tolerance


def list_calculated_fields(section_key: SectionKey | str) -> frozenset[str]:
    """Derived field names that callers may not supply for ``section_key``."""
    try:
        key = SectionKey(section_key)
    except ValueError:
        return frozenset()
    return _CALCULATED_FIELDS.get(key, frozenset())


def find_calculated_fields(
    section_key: SectionKey | str,
    data: Mapping[str, Any],
) -> list[str]:
    """Top-level keys of ``data`` that are calculated fields, sorted."""
    calculated = list_calculated_fields(section_key)
    return sorted(k for k in data if k in calculated)
