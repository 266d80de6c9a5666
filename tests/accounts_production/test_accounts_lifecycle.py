"""
Accounts production lifecycle tests.

Exercises AccountsProductionService end to end against the real store
(in-memory SQLite) with fake collaborators:

1. Creation seeds sections from the client, the registry and any prior set
2. Section updates are validated, re-validated as a whole, and advance status
3. Lock / unlock and output generation follow the workflow
4. Locked sets reject edits and deletion
5. Audit and registry failures never break an operation
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from practice_kernel.exceptions import (
    AccountsSetLockedError,
    AccountsSetNotFoundError,
    CalculatedFieldEditError,
    ClientNotFoundError,
    FrameworkImmutableError,
    InvalidPeriodError,
    InvalidStatusTransitionError,
    OptimisticLockError,
    OutputFileNotFoundError,
    OutputsNotGeneratedError,
    SectionValidationFailedError,
    UnknownSectionError,
)
from practice_modules.accounts_production.collaborators import AuditSeverity
from practice_modules.accounts_production.models import AccountsSetStatus, Framework, SectionKey

from accounts_support import (
    ACTOR,
    COMPANY_CLIENT_ID,
    SOLE_TRADER_CLIENT_ID,
    accounting_policies,
    balance_sheet,
    balance_sheet_data,
    company_period,
    directors_approval,
    notes,
    pl_lines,
    profit_and_loss,
)


def _ready(complete_first_year):
    view = complete_first_year(approved=True)
    assert view.document.status is AccountsSetStatus.READY
    return view.document.id


# =============================================================================
# Creation
# =============================================================================


class TestCreate:
    """New sets start in DRAFT with a seeded companyPeriod section."""

    def test_company_set_seeded_from_client(self, service, create_input, audit_sink):
        document = service.create(create_input(), ACTOR)

        assert document.status is AccountsSetStatus.DRAFT
        assert document.version == 1
        assert document.company_number == "01234567"
        company = document.sections.company_period["company"]
        assert company["name"] == "Acme Widgets Ltd"
        assert company["registeredOffice"] == {
            "line1": "1 High Street",
            "line2": "",
            "town": "Leeds",
            "county": "",
            "postcode": "LS1 1AA",
            "country": "England",
        }
        assert company["directors"] == [{"name": ""}]
        assert document.sections.populated() == (SectionKey.COMPANY_PERIOD,)

        event = audit_sink.events[-1]
        assert event["action"] == "CREATE_ACCOUNTS_SET"
        assert event["entity_ref"] == "Acme Widgets Ltd (client-acme)"
        assert event["severity"] is AuditSeverity.MEDIUM

    def test_fresh_set_carries_validation_errors(self, service, create_input):
        document = service.create(create_input(), ACTOR)
        assert not document.validation.is_valid
        assert document.status is AccountsSetStatus.DRAFT

    def test_registry_details_and_officers(self, service, create_input, registry):
        registry.details["01234567"] = {
            "company_name": "ACME WIDGETS LIMITED",
            "registered_office_address": {
                "address_line_1": "2 Low Road",
                "locality": "York",
                "postal_code": "YO1 1AA",
            },
        }
        registry.officers["01234567"] = {
            "items": [
                {"name": "SMITH, Jane", "officer_role": "director"},
                {"name": "BLOGGS, Joe", "officer_role": "secretary"},
                {"name": "DOE, John", "officer_role": "corporate-director"},
            ]
        }
        document = service.create(create_input(), ACTOR)
        company = document.sections.company_period["company"]

        assert company["name"] == "ACME WIDGETS LIMITED"
        assert company["registeredOffice"]["line1"] == "2 Low Road"
        assert company["registeredOffice"]["town"] == "York"
        assert company["registeredOffice"]["country"] == "England"
        assert company["directors"] == [{"name": "SMITH, Jane"}, {"name": "DOE, John"}]

    def test_registry_failure_does_not_block_creation(
        self, service, create_input, registry, captured_logs
    ):
        registry.fail_with = ConnectionError("registry down")
        document = service.create(create_input(), ACTOR)

        assert document.sections.company_period["company"]["name"] == "Acme Widgets Ltd"
        failures = [r for r in captured_logs() if r["message"] == "registry_lookup_failed"]
        assert len(failures) == 1
        assert failures[0]["error_code"] == "REGISTRY_LOOKUP_FAILED"

    def test_unknown_client(self, service, create_input):
        with pytest.raises(ClientNotFoundError):
            service.create(create_input(client_id="nobody"), ACTOR)

    def test_invalid_period(self, service, create_input):
        with pytest.raises(InvalidPeriodError):
            service.create(create_input(start=date(2025, 3, 31), end=date(2025, 3, 31)), ACTOR)

    def test_sole_trader_client_forces_framework(self, service, create_input, registry):
        document = service.create(
            create_input(client_id=SOLE_TRADER_CLIENT_ID, framework=Framework.SMALL_FRS102_1A),
            ACTOR,
        )

        assert document.framework is Framework.SOLE_TRADER
        assert document.company_number == ""
        assert document.sections.company_period["company"]["directors"] == []
        assert registry.calls == []

    def test_later_year_seeded_from_prior(
        self, service, create_input, complete_first_year, deterministic_clock
    ):
        prior = complete_first_year(approved=True).document
        deterministic_clock.advance(3600)

        document = service.create(
            create_input(is_first_year=None, start=date(2025, 4, 1), end=date(2026, 3, 31)),
            ACTOR,
        )

        assert document.period.is_first_year is False
        assert document.sections.accounting_policies == accounting_policies()
        assert document.sections.notes == notes()
        pl = document.sections.profit_and_loss
        assert pl["comparatives"]["priorYearLines"] == prior.sections.profit_and_loss["lines"]
        assert all(v == 0 for v in pl["lines"].values())
        assert document.sections.balance_sheet["comparatives"]["prior"] == balance_sheet_data()

    def test_first_set_for_client_is_first_year(self, service, create_input):
        document = service.create(create_input(is_first_year=None), ACTOR)
        assert document.period.is_first_year is True
        assert document.sections.profit_and_loss is None

    def test_explicit_later_year_without_prior_gets_zero_comparatives(self, service, create_input):
        document = service.create(create_input(is_first_year=False), ACTOR)
        prior_lines = document.sections.profit_and_loss["comparatives"]["priorYearLines"]
        assert all(v == 0 for v in prior_lines.values())
        prior_bs = document.sections.balance_sheet["comparatives"]["prior"]
        assert prior_bs["equity"]["shareCapital"] == 1


# =============================================================================
# Section updates
# =============================================================================


class TestUpdateSection:
    """Section replacement, validation and automatic status advance."""

    def test_incomplete_set_stays_draft(self, complete_first_year):
        view = complete_first_year()
        assert view.document.status is AccountsSetStatus.DRAFT
        assert view.document.validation.is_valid

    def test_unapproved_complete_set_goes_to_review(self, complete_first_year):
        view = complete_first_year(approved=False)
        assert view.document.status is AccountsSetStatus.IN_REVIEW

    def test_approval_moves_review_to_ready(self, service, complete_first_year):
        set_id = complete_first_year(approved=False).document.id
        view = service.update_section(set_id, "directorsApproval", directors_approval(), ACTOR)
        assert view.document.status is AccountsSetStatus.READY

    def test_approved_complete_set_is_ready(self, complete_first_year):
        assert _ready(complete_first_year)

    def test_view_carries_calculations(self, complete_first_year):
        view = complete_first_year(approved=True)
        assert view.calculations["profitAndLoss"]["profitAfterTax"] == Decimal("40000")
        assert view.calculations["balanceSheet"]["netAssets"] == Decimal("40001")
        assert view.ratios["grossProfitMargin"] == Decimal("60")
        assert view.percentage_changes is None

    def test_version_increments_per_update(self, service, create_input):
        document = service.create(create_input(), ACTOR)
        view = service.update_section(document.id, "notes", notes(), ACTOR)
        assert view.document.version == 2

    def test_status_never_regresses(self, service, complete_first_year):
        set_id = _ready(complete_first_year)
        view = service.update_section(set_id, "balanceSheet", balance_sheet(cash=99999), ACTOR)

        assert view.document.status is AccountsSetStatus.READY
        assert not view.document.validation.is_balanced
        assert "BALANCE_SHEET_IMBALANCE" in [e.code for e in view.document.validation.errors]

    def test_calculated_fields_rejected(self, service, create_input):
        document = service.create(create_input(), ACTOR)
        data = profit_and_loss()
        data["grossProfit"] = 60000

        with pytest.raises(CalculatedFieldEditError) as exc_info:
            service.update_section(document.id, "profitAndLoss", data, ACTOR)
        assert exc_info.value.fields == ["grossProfit"]
        assert service.get(document.id).document.sections.profit_and_loss is None

    def test_invalid_section_rejected_without_write(self, service, create_input):
        document = service.create(create_input(), ACTOR)
        data = directors_approval()
        del data["approvalDate"]

        with pytest.raises(SectionValidationFailedError) as exc_info:
            service.update_section(document.id, "directorsApproval", data, ACTOR)
        assert [e.code for e in exc_info.value.errors] == ["MISSING_APPROVAL_DATE"]
        assert service.get(document.id).document.version == 1

    def test_non_padded_period_date_rejected_without_write(self, service, create_input):
        document = service.create(create_input(), ACTOR)
        data = company_period(start="2024-4-1")

        with pytest.raises(SectionValidationFailedError) as exc_info:
            service.update_section(document.id, "companyPeriod", data, ACTOR)
        assert [e.field for e in exc_info.value.errors] == ["period.startDate"]
        assert service.get(document.id).document.version == 1

    def test_unknown_section(self, service, create_input):
        document = service.create(create_input(), ACTOR)
        with pytest.raises(UnknownSectionError):
            service.update_section(document.id, "auditorsReport", {}, ACTOR)

    def test_unknown_accounts_set(self, service):
        with pytest.raises(AccountsSetNotFoundError):
            service.update_section(uuid4(), "notes", notes(), ACTOR)

    def test_expected_version_mismatch(self, service, create_input):
        document = service.create(create_input(), ACTOR)
        service.update_section(document.id, "notes", notes(), ACTOR, expected_version=1)

        with pytest.raises(OptimisticLockError):
            service.update_section(document.id, "notes", notes(), ACTOR, expected_version=1)

    def test_switching_to_later_year_creates_comparatives(self, service, create_input):
        document = service.create(create_input(), ACTOR)
        service.update_section(document.id, "profitAndLoss", profit_and_loss(), ACTOR)

        view = service.update_section(
            document.id, "companyPeriod", company_period(is_first_year=False), ACTOR
        )
        sections = view.document.sections
        assert view.document.period.is_first_year is False
        assert sections.profit_and_loss["lines"] == pl_lines()
        assert all(v == 0 for v in sections.profit_and_loss["comparatives"]["priorYearLines"].values())
        assert sections.balance_sheet["comparatives"]["prior"]["equity"]["shareCapital"] == 1
        assert view.percentage_changes["turnover"] == Decimal("100")

    def test_switching_back_to_first_year_drops_comparatives(self, service, create_input):
        document = service.create(create_input(is_first_year=False), ACTOR)
        view = service.update_section(document.id, "companyPeriod", company_period(), ACTOR)

        assert view.document.period.is_first_year is True
        assert "comparatives" not in view.document.sections.profit_and_loss
        assert "comparatives" not in view.document.sections.balance_sheet

    def test_switching_to_sole_trader_clears_company_details(self, service, create_input):
        document = service.create(create_input(), ACTOR)
        view = service.update_section(
            document.id, "companyPeriod", company_period(framework="SOLE_TRADER", directors=[]), ACTOR
        )

        assert view.document.framework is Framework.SOLE_TRADER
        assert view.document.company_number == ""
        company = view.document.sections.company_period["company"]
        assert company["companyNumber"] == ""
        assert company["directors"] == []

    def test_update_is_audited_as_data_change(self, service, create_input, audit_sink):
        document = service.create(create_input(), ACTOR)
        service.update_section(document.id, "notes", notes(), "editor-9")

        change = audit_sink.changes[-1]
        assert change["action"] == "UPDATE_SECTION"
        assert change["actor"] == "editor-9"
        assert change["entity_ref"] == "Acme Widgets Ltd - notes"
        assert change["before"] is None
        assert change["after"] == notes()
        assert service.get(document.id).document.last_edited_by == "editor-9"

    def test_audit_failure_does_not_fail_update(self, service, create_input, audit_sink, captured_logs):
        document = service.create(create_input(), ACTOR)
        audit_sink.fail = True

        view = service.update_section(document.id, "notes", notes(), ACTOR)
        assert view.document.sections.notes == notes()
        assert any(r["message"] == "audit_event_failed" for r in captured_logs())


# =============================================================================
# Outputs, lock and unlock
# =============================================================================


class TestOutputsAndLocking:
    def test_generate_requires_ready(self, service, create_input):
        document = service.create(create_input(), ACTOR)
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            service.generate_outputs(document.id, ACTOR)
        assert exc_info.value.required_status == "READY"

    def test_generate_stores_both_files(self, service, complete_first_year, output_storage, audit_sink):
        set_id = _ready(complete_first_year)
        links = service.generate_outputs(set_id, ACTOR)

        base = f"/api/v1/accounts-sets/{set_id}/outputs"
        assert links.html_url == f"{base}/html/FS_Acme_Widgets_Ltd_2025-03-31.html"
        assert links.pdf_url == f"{base}/pdf/FS_Acme_Widgets_Ltd_2025-03-31.pdf"
        assert ("html", "FS_Acme_Widgets_Ltd_2025-03-31.html") in output_storage.files
        assert ("pdf", "FS_Acme_Widgets_Ltd_2025-03-31.pdf") in output_storage.files
        assert service.get(set_id).document.outputs == links
        assert audit_sink.events[-1]["action"] == "GENERATE_OUTPUTS"
        assert audit_sink.events[-1]["severity"] is AuditSeverity.HIGH

    def test_regeneration_keeps_same_named_files(self, service, complete_first_year, output_storage):
        set_id = _ready(complete_first_year)
        service.generate_outputs(set_id, ACTOR)
        service.generate_outputs(set_id, ACTOR)

        assert output_storage.deleted == []
        assert len(output_storage.files) == 2

    def test_renamed_company_cleans_up_old_files(self, service, complete_first_year, output_storage):
        set_id = _ready(complete_first_year)
        service.generate_outputs(set_id, ACTOR)
        service.update_section(set_id, "companyPeriod", company_period(name="Acme Holdings Ltd"), ACTOR)
        links = service.generate_outputs(set_id, ACTOR)

        assert links.html_url.endswith("FS_Acme_Holdings_Ltd_2025-03-31.html")
        assert ("html", "FS_Acme_Widgets_Ltd_2025-03-31.html") in output_storage.deleted
        assert ("pdf", "FS_Acme_Widgets_Ltd_2025-03-31.pdf") in output_storage.deleted
        assert len(output_storage.files) == 2

    def test_get_output_file(self, service, complete_first_year):
        set_id = _ready(complete_first_year)
        service.generate_outputs(set_id, ACTOR)

        content = service.get_output_file(set_id, "html", "FS_Acme_Widgets_Ltd_2025-03-31.html")
        assert b"Acme Widgets Ltd - Financial Statements" in content

    def test_get_output_file_bad_kind(self, service, complete_first_year):
        set_id = _ready(complete_first_year)
        with pytest.raises(OutputFileNotFoundError):
            service.get_output_file(set_id, "docx", "anything.docx")

    def test_framework_immutable_after_outputs(self, service, complete_first_year):
        set_id = _ready(complete_first_year)
        service.generate_outputs(set_id, ACTOR)

        with pytest.raises(FrameworkImmutableError) as exc_info:
            service.update_section(
                set_id, "companyPeriod", company_period(framework="MICRO_FRS105"), ACTOR
            )
        assert exc_info.value.current == "SMALL_FRS102_1A"
        assert exc_info.value.requested == "MICRO_FRS105"

    def test_lock_requires_outputs(self, service, complete_first_year):
        set_id = _ready(complete_first_year)
        with pytest.raises(OutputsNotGeneratedError):
            service.lock(set_id, ACTOR)

    def test_lock_requires_ready(self, service, create_input):
        document = service.create(create_input(), ACTOR)
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            service.lock(document.id, ACTOR)
        assert exc_info.value.current_status == "DRAFT"

    def test_lock_then_unlock_returns_to_ready(self, service, complete_first_year, audit_sink):
        set_id = _ready(complete_first_year)
        service.generate_outputs(set_id, ACTOR)

        locked = service.lock(set_id, ACTOR)
        assert locked.status is AccountsSetStatus.LOCKED
        assert audit_sink.events[-1]["action"] == "LOCK_ACCOUNTS_SET"

        unlocked = service.unlock(set_id, ACTOR)
        assert unlocked.status is AccountsSetStatus.READY
        assert audit_sink.events[-1]["metadata"]["previousStatus"] == "LOCKED"
        assert service.get(set_id).document.status is AccountsSetStatus.READY

    def test_unlock_requires_locked(self, service, complete_first_year):
        set_id = _ready(complete_first_year)
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            service.unlock(set_id, ACTOR)
        assert exc_info.value.required_status == "LOCKED"

    def test_locked_set_rejects_edits(self, service, complete_first_year):
        set_id = _ready(complete_first_year)
        service.generate_outputs(set_id, ACTOR)
        service.lock(set_id, ACTOR)

        with pytest.raises(AccountsSetLockedError) as exc_info:
            service.update_section(set_id, "notes", notes(), ACTOR)
        assert exc_info.value.operation == "update_section"

    def test_locked_set_cannot_be_deleted(self, service, complete_first_year):
        set_id = _ready(complete_first_year)
        service.generate_outputs(set_id, ACTOR)
        service.lock(set_id, ACTOR)

        with pytest.raises(AccountsSetLockedError):
            service.delete(set_id, ACTOR)
        assert service.get(set_id).document.is_locked


# =============================================================================
# Reads, validation and deletion
# =============================================================================


class TestReadsAndDelete:
    def test_list_by_client_newest_first(self, service, create_input, deterministic_clock):
        first = service.create(create_input(), ACTOR)
        deterministic_clock.advance(60)
        second = service.create(
            create_input(start=date(2025, 4, 1), end=date(2026, 3, 31)), ACTOR
        )

        ids = [v.document.id for v in service.list_by_client(COMPANY_CLIENT_ID)]
        assert ids == [second.id, first.id]
        assert service.list_by_client(SOLE_TRADER_CLIENT_ID) == []
        assert len(service.list_all()) >= 2

    def test_get_calculations_reports_imbalance(self, service, create_input):
        document = service.create(create_input(), ACTOR)
        service.update_section(document.id, "balanceSheet", balance_sheet(cash=40011), ACTOR)

        result = service.get_calculations(document.id)
        assert result["isBalanced"] is False
        assert result["imbalance"] == Decimal("10")
        assert "percentageChanges" not in result

    def test_get_calculations_balanced(self, service, complete_first_year):
        set_id = _ready(complete_first_year)
        result = service.get_calculations(set_id)
        assert result["isBalanced"] is True
        assert "imbalance" not in result

    def test_validate_returns_and_stores_result(self, service, create_input):
        document = service.create(create_input(), ACTOR)
        result = service.validate(document.id)

        assert result["isValid"] is False
        assert result["errors"][0]["code"] == "SCHEMA_VALIDATION"
        assert service.get(document.id).document.version == 2

    def test_history_via_service(self, service, create_input):
        document = service.create(create_input(), ACTOR)
        service.update_section(document.id, "notes", notes(), ACTOR)
        service.update_section(document.id, "accountingPolicies", accounting_policies(), ACTOR)

        history = service.history(document.id)
        assert [h.sequence for h in history] == [1, 2]
        assert "notes" not in history[0].payload["sections"]
        assert "notes" in history[1].payload["sections"]

    @pytest.mark.parametrize(
        "operation",
        [
            lambda s, i: s.get(i),
            lambda s, i: s.history(i),
            lambda s, i: s.validate(i),
            lambda s, i: s.get_calculations(i),
            lambda s, i: s.update_section(i, "notes", notes(), ACTOR),
            lambda s, i: s.lock(i, ACTOR),
            lambda s, i: s.unlock(i, ACTOR),
            lambda s, i: s.delete(i, ACTOR),
        ],
    )
    def test_malformed_id_is_not_found(self, service, operation):
        with pytest.raises(AccountsSetNotFoundError) as exc_info:
            operation(service, "does-not-exist")
        assert exc_info.value.code == "ACCOUNTS_SET_NOT_FOUND"

    def test_history_of_unknown_set(self, service):
        with pytest.raises(AccountsSetNotFoundError):
            service.history(uuid4())

    def test_delete_removes_set_and_outputs(self, service, complete_first_year, output_storage, audit_sink):
        set_id = _ready(complete_first_year)
        service.generate_outputs(set_id, ACTOR)

        service.delete(set_id, ACTOR)

        with pytest.raises(AccountsSetNotFoundError):
            service.get(set_id)
        assert output_storage.files == {}
        assert audit_sink.events[-1]["action"] == "DELETE_ACCOUNTS_SET"
