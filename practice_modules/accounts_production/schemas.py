"""
Section schemas for statutory accounts sets.

One declarative ``FieldSchema`` per section kind.  No object allows
properties beyond those listed; monetary line items are non-negative
numbers except retained earnings and other reserves, which may be negative.
"""

from __future__ import annotations

from practice_kernel.domain.schema import FieldSchema, FieldType, number, obj

from practice_modules.accounts_production.models import Framework, SectionKey

FRAMEWORKS = tuple(f.value for f in Framework)
EXEMPTION_STATEMENT_KEYS = (
    "CA2006_S477_SMALL",
    "MICRO_ENTITY",
    "DORMANT",
    "NOT_APPLICABLE",
)
DEPRECIATION_METHODS = ("STRAIGHT_LINE", "REDUCING_BALANCE")
SIGNATURE_TYPES = ("TYPED_NAME", "UPLOADED_SIGNATURE")


def _string(name: str, *, required: bool = False, min_length: int | None = None) -> FieldSchema:
    return FieldSchema(name, FieldType.STRING, required=required, min_length=min_length)


def _boolean(name: str, *, required: bool = False) -> FieldSchema:
    return FieldSchema(name, FieldType.BOOLEAN, required=required)


def _date(name: str, *, required: bool = False) -> FieldSchema:
    return FieldSchema(name, FieldType.DATE, required=required)


def _enum(name: str, values: tuple[str, ...], *, required: bool = False) -> FieldSchema:
    return FieldSchema(name, FieldType.STRING, required=required, allowed_values=values)


def _amounts(name: str, *field_names: str, required: tuple[str, ...] = (), section_required: bool = False) -> FieldSchema:
    return obj(
        name,
        *(number(f, required=f in required, minimum=0) for f in field_names),
        required=section_required,
    )


# =========================================================================
# companyPeriod
# =========================================================================

ADDRESS = obj(
    "registeredOffice",
    _string("line1", required=True, min_length=1),
    _string("line2"),
    _string("town"),
    _string("county"),
    _string("postcode", required=True, min_length=1),
    _string("country", required=True, min_length=1),
    required=True,
)

COMPANY_PERIOD_SCHEMA = obj(
    SectionKey.COMPANY_PERIOD.value,
    _enum("framework", FRAMEWORKS, required=True),
    obj(
        "company",
        _string("name", required=True, min_length=1),
        _string("companyNumber"),
        ADDRESS,
        FieldSchema(
            "directors",
            FieldType.ARRAY,
            items=obj("director", _string("name", required=True, min_length=1)),
        ),
        required=True,
    ),
    obj(
        "period",
        _date("startDate", required=True),
        _date("endDate", required=True),
        _boolean("isFirstYear", required=True),
        required=True,
    ),
)

# =========================================================================
# frameworkDisclosures
# =========================================================================

FRAMEWORK_DISCLOSURES_SCHEMA = obj(
    SectionKey.FRAMEWORK_DISCLOSURES.value,
    _enum("framework", FRAMEWORKS, required=True),
    obj(
        "auditExemption",
        _boolean("isAuditExempt", required=True),
        _enum("exemptionStatementKey", EXEMPTION_STATEMENT_KEYS, required=True),
        required=True,
    ),
    _boolean("includePLInClientPack", required=True),
    _boolean("includeDirectorsReport"),
    _boolean("includeAccountantsReport"),
)

# =========================================================================
# accountingPolicies
# =========================================================================

ACCOUNTING_POLICIES_SCHEMA = obj(
    SectionKey.ACCOUNTING_POLICIES.value,
    _string("basisOfPreparation", required=True, min_length=1),
    obj(
        "goingConcern",
        _boolean("isGoingConcern", required=True),
        _string("noteText"),
        required=True,
    ),
    _string("turnoverPolicyText"),
    obj(
        "tangibleFixedAssets",
        _boolean("hasAssets", required=True),
        _enum("depreciationMethod", DEPRECIATION_METHODS),
        FieldSchema(
            "rates",
            FieldType.ARRAY,
            items=obj(
                "rate",
                _string("category", required=True, min_length=1),
                number("ratePercent", required=True, minimum=0, maximum=100),
            ),
        ),
    ),
)

# =========================================================================
# profitAndLoss
# =========================================================================

PROFIT_AND_LOSS_LINE_NAMES = (
    "turnover",
    "costOfSales",
    "otherIncome",
    "adminExpenses",
    "wages",
    "rent",
    "motor",
    "professionalFees",
    "otherExpenses",
    "interestPayable",
    "taxCharge",
    "dividendsDeclared",
)


def _lines(name: str, required: bool) -> FieldSchema:
    return _amounts(
        name,
        *PROFIT_AND_LOSS_LINE_NAMES,
        required=("turnover", "adminExpenses"),
        section_required=required,
    )


PROFIT_AND_LOSS_SCHEMA = obj(
    SectionKey.PROFIT_AND_LOSS.value,
    _lines("lines", required=True),
    obj("comparatives", _lines("priorYearLines", required=False)),
)

# =========================================================================
# balanceSheet
# =========================================================================


def _balance_sheet_fields() -> tuple[FieldSchema, ...]:
    return (
        obj(
            "assets",
            _amounts("fixedAssets", "tangibleFixedAssets", "intangibleAssets", "investments"),
            _amounts(
                "currentAssets",
                "stock",
                "debtors",
                "cash",
                "prepayments",
                required=("cash",),
                section_required=True,
            ),
            required=True,
        ),
        obj(
            "liabilities",
            _amounts(
                "creditorsWithinOneYear",
                "tradeCreditors",
                "taxes",
                "accrualsDeferredIncome",
                "directorsLoan",
                "otherCreditors",
                section_required=True,
            ),
            _amounts("creditorsAfterOneYear", "loans", "other"),
            required=True,
        ),
        obj(
            "equity",
            number("shareCapital", required=True, minimum=0),
            number("retainedEarnings", required=True),
            number("otherReserves"),
            required=True,
        ),
    )


BALANCE_SHEET_SCHEMA = obj(
    SectionKey.BALANCE_SHEET.value,
    *_balance_sheet_fields(),
    obj("comparatives", obj("prior", *_balance_sheet_fields())),
)

# =========================================================================
# notes
# =========================================================================

NOTES_SCHEMA = obj(
    SectionKey.NOTES.value,
    _string("principalActivity"),
    _string("countryOfIncorporation"),
    obj(
        "employees",
        _boolean("include", required=True),
        FieldSchema("averageEmployees", FieldType.INTEGER, minimum=0),
    ),
    obj(
        "tangibleAssets",
        FieldSchema(
            "columns",
            FieldType.ARRAY,
            items=_string("column", min_length=1),
            min_items=1,
        ),
        FieldSchema(
            "rows",
            FieldType.ARRAY,
            items=obj(
                "row",
                _string("label", required=True, min_length=1),
                FieldSchema(
                    "values",
                    FieldType.ARRAY,
                    required=True,
                    items=number("value"),
                ),
            ),
        ),
    ),
    obj(
        "shareCapital",
        _string("shareClass", required=True, min_length=1),
        FieldSchema("numberOfShares", FieldType.INTEGER, required=True, minimum=0),
        number("nominalValue", required=True, minimum=0),
        _string("currency"),
    ),
    obj("directorsLoanNote", _boolean("include", required=True), _string("text")),
    obj("commitmentsContingencies", _boolean("include", required=True), _string("text")),
    FieldSchema(
        "additionalNotes",
        FieldType.ARRAY,
        items=obj(
            "note",
            _string("title", required=True, min_length=1),
            _string("text", required=True, min_length=1),
        ),
    ),
)

# =========================================================================
# directorsApproval
# =========================================================================

DIRECTORS_APPROVAL_SCHEMA = obj(
    SectionKey.DIRECTORS_APPROVAL.value,
    _boolean("approved", required=True),
    _string("directorName"),
    _date("approvalDate"),
    _enum("signatureType", SIGNATURE_TYPES),
)


SECTION_SCHEMAS: dict[SectionKey, FieldSchema] = {
    SectionKey.COMPANY_PERIOD: COMPANY_PERIOD_SCHEMA,
    SectionKey.FRAMEWORK_DISCLOSURES: FRAMEWORK_DISCLOSURES_SCHEMA,
    SectionKey.ACCOUNTING_POLICIES: ACCOUNTING_POLICIES_SCHEMA,
    SectionKey.PROFIT_AND_LOSS: PROFIT_AND_LOSS_SCHEMA,
    SectionKey.BALANCE_SHEET: BALANCE_SHEET_SCHEMA,
    SectionKey.NOTES: NOTES_SCHEMA,
    SectionKey.DIRECTORS_APPROVAL: DIRECTORS_APPROVAL_SCHEMA,
}
