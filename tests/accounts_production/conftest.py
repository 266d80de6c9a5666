"""
Shared fixtures for accounts production tests.

Wires ``AccountsProductionService`` to the in-memory fakes in
``accounts_support`` and the built-in ``StatementMarkupRenderer``.
"""

from __future__ import annotations

from datetime import date

import pytest

from practice_modules.accounts_production.config import AccountsProductionConfig
from practice_modules.accounts_production.models import (
    CreateAccountsSetInput,
    Framework,
)
from practice_modules.accounts_production.outputs import (
    AccountsOutputCoordinator,
    StatementMarkupRenderer,
)
from practice_modules.accounts_production.service import AccountsProductionService

from accounts_support import (
    ACTOR,
    COMPANY_CLIENT_ID,
    SOLE_TRADER_CLIENT_ID,
    FakeClientDirectory,
    FakeCompanyRegistry,
    FakePdfEngine,
    InMemoryOutputStorage,
    RecordingAuditSink,
    accounting_policies,
    balance_sheet,
    company_period,
    directors_approval,
    framework_disclosures,
    notes,
    profit_and_loss,
)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clients():
    return FakeClientDirectory(
        {
            COMPANY_CLIENT_ID: {
                "id": COMPANY_CLIENT_ID,
                "ref": "ACME001",
                "name": "Acme Widgets Ltd",
                "type": "COMPANY",
                "registeredNumber": "01234567",
                "address": {
                    "line1": "1 High Street",
                    "city": "Leeds",
                    "postcode": "LS1 1AA",
                },
            },
            SOLE_TRADER_CLIENT_ID: {
                "id": SOLE_TRADER_CLIENT_ID,
                "name": "Tom Jones",
                "type": "SOLE_TRADER",
            },
        }
    )


@pytest.fixture
def registry():
    return FakeCompanyRegistry()


@pytest.fixture
def pdf_engine():
    return FakePdfEngine()


@pytest.fixture
def audit_sink():
    return RecordingAuditSink()


@pytest.fixture
def output_storage():
    return InMemoryOutputStorage()


@pytest.fixture
def accounts_config():
    return AccountsProductionConfig(pdf_timeout_seconds=5)


@pytest.fixture
def output_coordinator(clients, pdf_engine, output_storage, accounts_config):
    return AccountsOutputCoordinator(
        renderer=StatementMarkupRenderer(),
        pdf_engine=pdf_engine,
        storage=output_storage,
        clients=clients,
        config=accounts_config,
    )


@pytest.fixture
def service(
    session,
    deterministic_clock,
    clients,
    registry,
    audit_sink,
    output_coordinator,
    accounts_config,
):
    return AccountsProductionService(
        session=session,
        clock=deterministic_clock,
        clients=clients,
        audit=audit_sink,
        outputs=output_coordinator,
        registry=registry,
        config=accounts_config,
    )


@pytest.fixture
def create_input():
    def _make(
        client_id: str = COMPANY_CLIENT_ID,
        framework: Framework = Framework.SMALL_FRS102_1A,
        is_first_year: bool | None = True,
        start: date = date(2024, 4, 1),
        end: date = date(2025, 3, 31),
    ) -> CreateAccountsSetInput:
        return CreateAccountsSetInput(
            client_id=client_id,
            period_start=start,
            period_end=end,
            framework=framework,
            is_first_year=is_first_year,
        )

    return _make


@pytest.fixture
def complete_first_year(service, create_input):
    """Create a first-year company set and fill every section except approval."""

    def _build(approved: bool | None = None):
        document = service.create(create_input(), ACTOR)
        service.update_section(document.id, "companyPeriod", company_period(), ACTOR)
        service.update_section(document.id, "frameworkDisclosures", framework_disclosures(), ACTOR)
        service.update_section(document.id, "accountingPolicies", accounting_policies(), ACTOR)
        service.update_section(document.id, "profitAndLoss", profit_and_loss(), ACTOR)
        service.update_section(document.id, "balanceSheet", balance_sheet(), ACTOR)
        view = service.update_section(document.id, "notes", notes(), ACTOR)
        if approved is not None:
            view = service.update_section(
                document.id, "directorsApproval", directors_approval(approved), ACTOR
            )
        return view

    return _build
