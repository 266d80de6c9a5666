"""
Output coordinator and statement renderer tests.

The coordinator is exercised directly on unsaved accounts sets; storage,
the PDF engine and the client directory are in-memory fakes.
"""

from __future__ import annotations

import time
from datetime import date

import pytest
from jinja2 import DictLoader

from practice_config.schema import PracticeSettings
from practice_kernel.exceptions import (
    RenderError,
    RenderTimeoutError,
    StorageError,
    TemplateNotFoundError,
)
from practice_modules.accounts_production.collaborators import LocalOutputStorage, OutputKind
from practice_modules.accounts_production.config import AccountsProductionConfig
from practice_modules.accounts_production.models import Framework, OutputLinks
from practice_modules.accounts_production.outputs import (
    AccountsOutputCoordinator,
    StatementMarkupRenderer,
    default_framework_disclosures,
    prior_year_end,
)

from accounts_support import (
    SOLE_TRADER_CLIENT_ID,
    FakePdfEngine,
    InMemoryOutputStorage,
    balance_sheet,
    balance_sheet_data,
    complete_sections,
    make_document,
    pl_lines,
    profit_and_loss,
)


class SlowPdfEngine:
    def render_to_pdf(self, markup: str) -> bytes:
        time.sleep(1)
        return b"%PDF"


class FailingStorage(InMemoryOutputStorage):
    def write(self, kind, filename, content):
        raise OSError("disk full")


class FailingDeleteStorage(InMemoryOutputStorage):
    def delete(self, kind, filename):
        raise PermissionError("read-only")


def _coordinator(clients, pdf_engine=None, storage=None, config=None, practice_settings=None):
    return AccountsOutputCoordinator(
        renderer=StatementMarkupRenderer(),
        pdf_engine=pdf_engine or FakePdfEngine(),
        storage=storage if storage is not None else InMemoryOutputStorage(),
        clients=clients,
        config=config,
        practice_settings=practice_settings,
    )


def _later_year_document():
    sections = complete_sections()
    sections["companyPeriod"]["period"]["isFirstYear"] = False
    sections["profitAndLoss"] = profit_and_loss(prior=pl_lines(turnover=80000))
    sections["balanceSheet"] = balance_sheet(prior=balance_sheet_data(cash=20001, retained_earnings=20000))
    return make_document(is_first_year=False, sections=sections)


class TestHelpers:
    def test_prior_year_end(self):
        assert prior_year_end(date(2025, 3, 31)) == date(2024, 3, 31)

    def test_prior_year_end_leap_day(self):
        assert prior_year_end(date(2024, 2, 29)) == date(2023, 3, 1)

    @pytest.mark.parametrize(
        "framework, key",
        [
            (Framework.MICRO_FRS105, "MICRO_ENTITY"),
            (Framework.DORMANT, "DORMANT"),
            (Framework.SOLE_TRADER, "NOT_APPLICABLE"),
            (Framework.SMALL_FRS102_1A, "CA2006_S477_SMALL"),
        ],
    )
    def test_default_disclosures(self, framework, key):
        disclosures = default_framework_disclosures(framework)
        assert disclosures["auditExemption"]["exemptionStatementKey"] == key
        assert disclosures["includeAccountantsReport"] is False


class TestRenderContext:
    def test_first_year_context(self, clients):
        context = _coordinator(clients).build_render_context(make_document(sections=complete_sections()))

        assert context["client"]["name"] == "Acme Widgets Ltd"
        assert context["framework"] == "SMALL_FRS102_1A"
        assert context["company"]["name"] == "Acme Widgets Ltd"
        assert context["comparatives"]["calculations"] is None
        assert context["comparatives"]["priorYear"]["endDate"] == "2024-03-31"
        assert context["practice"] is None
        assert context["helpers"]["format_currency"](1234) == "£1,234"

    def test_later_year_comparative_calculations(self, clients):
        context = _coordinator(clients).build_render_context(_later_year_document())
        prior = context["comparatives"]["calculations"]

        assert prior["profitAndLoss"]["profitAfterTax"] == 20000
        assert prior["balanceSheet"]["netAssets"] == 20001

    def test_missing_disclosures_get_defaults(self, clients):
        sections = complete_sections()
        del sections["frameworkDisclosures"]
        context = _coordinator(clients).build_render_context(make_document(sections=sections))
        assert context["frameworkDisclosures"]["includePLInClientPack"] is True

    def test_unknown_client_falls_back_to_company_name(self, clients):
        document = make_document(sections=complete_sections())
        document.client_id = "gone"
        context = _coordinator(clients).build_render_context(document)
        assert context["client"] == {"name": "Acme Widgets Ltd", "type": "COMPANY"}

    def test_practice_settings_included(self, clients):
        settings = PracticeSettings(name="Ledger & Co", address_lines=("1 Square", "Leeds"))
        coordinator = _coordinator(clients, practice_settings=lambda: settings)
        context = coordinator.build_render_context(make_document())
        assert context["practice"]["name"] == "Ledger & Co"

    def test_practice_settings_failure_is_absorbed(self, clients, captured_logs):
        def broken():
            raise OSError("settings file missing")

        context = _coordinator(clients, practice_settings=broken).build_render_context(make_document())
        assert context["practice"] is None
        assert any(r["message"] == "practice_settings_unavailable" for r in captured_logs())

    def test_template_selection(self, clients):
        coordinator = _coordinator(clients)
        assert coordinator.template_name({"client": {"type": "COMPANY"}, "framework": "DORMANT"}) == "statutory-accounts"
        assert coordinator.template_name({"client": {"type": "INDIVIDUAL"}}) == "sole-trader-accounts"
        assert coordinator.template_name({"client": {}, "framework": "SOLE_TRADER"}) == "sole-trader-accounts"


class TestGenerate:
    def test_generate_writes_html_and_pdf(self, clients):
        storage = InMemoryOutputStorage()
        pdf_engine = FakePdfEngine()
        document = make_document(sections=complete_sections())
        links = _coordinator(clients, pdf_engine=pdf_engine, storage=storage).generate(document)

        assert links.is_complete
        html = storage.files[("html", "FS_Acme_Widgets_Ltd_2025-03-31.html")].decode("utf-8")
        assert html == pdf_engine.rendered[0]
        assert storage.files[("pdf", "FS_Acme_Widgets_Ltd_2025-03-31.pdf")].startswith(b"%PDF")

    def test_custom_url_prefix(self, clients):
        config = AccountsProductionConfig(output_url_prefix="/files/")
        document = make_document(sections=complete_sections())
        links = _coordinator(clients, config=config).generate(document)
        assert links.html_url == f"/files/{document.id}/outputs/html/FS_Acme_Widgets_Ltd_2025-03-31.html"

    def test_pdf_timeout(self, clients):
        config = AccountsProductionConfig(pdf_timeout_seconds=0.05)
        coordinator = _coordinator(clients, pdf_engine=SlowPdfEngine(), config=config)

        with pytest.raises(RenderTimeoutError) as exc_info:
            coordinator.generate(make_document(sections=complete_sections()))
        assert exc_info.value.code == "RENDER_TIMEOUT"

    def test_pdf_engine_failure(self, clients, captured_logs):
        pdf_engine = FakePdfEngine()
        pdf_engine.fail_with = RuntimeError("chromium crashed")

        with pytest.raises(RenderError) as exc_info:
            _coordinator(clients, pdf_engine=pdf_engine).generate(make_document(sections=complete_sections()))
        assert "PDF generation failed: chromium crashed" in str(exc_info.value)
        assert any(r["message"] == "output_generation_failed" for r in captured_logs())

    def test_storage_failure(self, clients):
        with pytest.raises(StorageError) as exc_info:
            _coordinator(clients, storage=FailingStorage()).generate(make_document(sections=complete_sections()))
        assert exc_info.value.operation == "write_output"

    def test_unknown_template(self, clients):
        config = AccountsProductionConfig(statutory_template="glossy-accounts")
        with pytest.raises(TemplateNotFoundError):
            _coordinator(clients, config=config).generate(make_document(sections=complete_sections()))


class TestCleanupAndRead:
    def test_cleanup_failures_are_absorbed(self, clients, captured_logs):
        coordinator = _coordinator(clients, storage=FailingDeleteStorage())
        coordinator.cleanup(OutputLinks("/x/html/a.html", "/x/pdf/a.pdf"))

        failures = [r for r in captured_logs() if r["message"] == "output_cleanup_failed"]
        assert len(failures) == 2

    def test_cleanup_of_nothing(self, clients):
        _coordinator(clients).cleanup(None)

    def test_read_uses_basename(self, clients, tmp_path):
        storage = LocalOutputStorage(tmp_path)
        storage.write(OutputKind.HTML, "a.html", b"<html></html>")
        coordinator = _coordinator(clients, storage=storage)

        assert coordinator.read_output("html", "../../etc/a.html") == b"<html></html>"


class TestStatementMarkupRenderer:
    def _render(self, clients, document, template="statutory-accounts"):
        context = _coordinator(clients).build_render_context(document)
        return StatementMarkupRenderer().render(template, context)

    def test_statutory_sections(self, clients):
        html = self._render(clients, make_document(sections=complete_sections()))

        for section in ("company-information", "directors-report", "profit-and-loss", "balance-sheet", "notes"):
            assert f'id="{section}"' in html
        assert "<title>Acme Widgets Ltd - Financial Statements</title>" in html
        assert "£100,000" in html
        assert "Approved by Jane Smith on 30 June 2025" in html
        assert "1 Ordinary shares of £1 each" in html

    def test_sole_trader_omits_company_content(self, clients):
        document = make_document(framework="SOLE_TRADER", sections=complete_sections())
        document.client_id = SOLE_TRADER_CLIENT_ID
        html = self._render(clients, document, "sole-trader-accounts")

        assert 'id="directors-report"' not in html
        assert "Company number" not in html
        assert "Share capital" not in html

    def test_prior_year_column_only_for_later_years(self, clients):
        first = self._render(clients, make_document(sections=complete_sections()))
        later = self._render(clients, _later_year_document())

        assert "£80,000" not in first
        assert "£80,000" in later

    def test_text_is_escaped(self, clients):
        sections = complete_sections()
        sections["companyPeriod"]["company"]["name"] = "Smith & <Sons>"
        html = self._render(clients, make_document(sections=sections))
        assert "Smith &amp; &lt;Sons&gt;" in html

    def test_unknown_template(self):
        with pytest.raises(TemplateNotFoundError):
            StatementMarkupRenderer().render("glossy", {})

    def test_practice_details_and_negative_rows(self, clients):
        coordinator = _coordinator(
            clients,
            practice_settings=lambda: PracticeSettings(
                name="Ledger & Co", address_lines=("1 Square", "Leeds")
            ),
        )
        context = coordinator.build_render_context(make_document(sections=complete_sections()))
        html = StatementMarkupRenderer().render("statutory-accounts", context)

        assert "Ledger &amp; Co<br>1 Square<br>Leeds" in html
        assert '<td class="num">(£40,000)</td>' in html

    def test_custom_loader(self, clients):
        loader = DictLoader(
            {
                "statutory-accounts.html": "<p>{{ company.name }}: {{ statement.balance_sheet[-2].current|currency }}</p>",
                "sole-trader-accounts.html": "<p>{{ company.name }}</p>",
            }
        )
        context = _coordinator(clients).build_render_context(
            make_document(sections=complete_sections())
        )
        html = StatementMarkupRenderer(loader=loader).render("statutory-accounts", context)
        assert html == "<p>Acme Widgets Ltd: £40,001</p>"

    def test_loader_missing_template(self):
        renderer = StatementMarkupRenderer(loader=DictLoader({}))
        with pytest.raises(TemplateNotFoundError):
            renderer.render("statutory-accounts", {})
