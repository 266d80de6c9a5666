"""
Accounts Output Coordinator (``practice_modules.accounts_production.outputs``).

Responsibility
--------------
Turns a READY accounts set into a rendered HTML statement and a PDF,
stores both, and returns their URLs.  Also provides best-effort cleanup of
superseded files, retrieval of stored files, and ``StatementMarkupRenderer``,
a Jinja2 renderer for both statement templates.

Architecture position
---------------------
**Modules layer** -- orchestration over collaborators.  Depends only on the
``Renderer``, ``PdfEngine``, ``OutputStorage`` and ``ClientDirectory``
protocols; the render context is built once per generation and passed to
the renderer explicitly.

Invariants enforced
-------------------
* File base name is ``FS_<sanitised company name>_<period end>``; the HTML
  and PDF share it.
* URLs are ``<prefix>/<id>/outputs/<kind>/<filename>``.
* A PDF rendering never blocks longer than ``pdf_timeout_seconds``.

Failure modes
-------------
* Unknown template  -> ``TemplateNotFoundError``.
* PDF rendering exceeds the timeout  -> ``RenderTimeoutError``.
* Any other renderer / PDF engine failure  -> ``RenderError`` naming the
  cause.
* Storage write failure  -> ``StorageError``.
* ``cleanup`` never raises; failures are logged at WARNING.
"""

from __future__ import annotations

import copy
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import date
from pathlib import PurePosixPath
from typing import Any, Callable

from jinja2 import BaseLoader, ChainableUndefined, DictLoader, Environment, TemplateNotFound

from practice_config.schema import PracticeSettings
from practice_kernel.exceptions import (
    RenderError,
    RenderTimeoutError,
    StorageError,
    TemplateNotFoundError,
)
from practice_kernel.logging_config import get_logger

from practice_modules.accounts_production.calculations import (
    compute_ratios,
    compute_totals,
)
from practice_modules.accounts_production.collaborators import (
    ClientDirectory,
    OutputKind,
    OutputStorage,
    PdfEngine,
    Renderer,
)
from practice_modules.accounts_production.config import AccountsProductionConfig
from practice_modules.accounts_production.formatting import (
    format_currency,
    format_date,
    sanitize_filename_part,
)
from practice_modules.accounts_production.models import (
    AccountsSections,
    AccountsSet,
    Framework,
    OutputLinks,
    is_sole_trader_type,
)

logger = get_logger("modules.accounts_production.outputs")

_EXEMPTION_KEYS = {
    Framework.MICRO_FRS105: "MICRO_ENTITY",
    Framework.DORMANT: "DORMANT",
    Framework.SOLE_TRADER: "NOT_APPLICABLE",
    Framework.INDIVIDUAL: "NOT_APPLICABLE",
}


def prior_year_end(end_date: date) -> date:
    """The same day one year earlier; 29 February maps to 1 March."""
    try:
        return end_date.replace(year=end_date.year - 1)
    except ValueError:
        return date(end_date.year - 1, 3, 1)


def default_framework_disclosures(framework: Framework) -> dict[str, Any]:
    """Disclosures assumed when the section has not been completed."""
    return {
        "framework": framework.value,
        "auditExemption": {
            "isAuditExempt": True,
            "exemptionStatementKey": _EXEMPTION_KEYS.get(framework, "CA2006_S477_SMALL"),
        },
        "includePLInClientPack": True,
        "includeDirectorsReport": True,
        "includeAccountantsReport": False,
    }


def _comparative_calculations(document: AccountsSet) -> dict[str, Any] | None:
    sections = document.sections
    prior_bs = ((sections.balance_sheet or {}).get("comparatives") or {}).get("prior")
    if document.period.is_first_year or not prior_bs:
        return None
    prior_lines = ((sections.profit_and_loss or {}).get("comparatives") or {}).get(
        "priorYearLines"
    )
    prior = AccountsSections(
        balance_sheet=prior_bs,
        profit_and_loss={"lines": prior_lines} if prior_lines else None,
    )
    return compute_totals(prior).to_dict()


class AccountsOutputCoordinator:
    """
    Generates, stores, cleans up and serves statement files.

    ``practice_settings`` is called once per generation; a failure there is
    logged and the statement is produced without practice details.
    """

    def __init__(
        self,
        renderer: Renderer,
        pdf_engine: PdfEngine,
        storage: OutputStorage,
        clients: ClientDirectory,
        config: AccountsProductionConfig | None = None,
        practice_settings: Callable[[], PracticeSettings | None] | None = None,
    ):
        self._renderer = renderer
        self._pdf_engine = pdf_engine
        self._storage = storage
        self._clients = clients
        self._config = config or AccountsProductionConfig()
        self._practice_settings = practice_settings

    # ------------------------------------------------------------------
    # Render context
    # ------------------------------------------------------------------

    def _practice(self) -> dict[str, Any] | None:
        if self._practice_settings is None:
            return None
        try:
            settings = self._practice_settings()
        except (OSError, ValueError):
            logger.warning("practice_settings_unavailable", exc_info=True)
            return None
        return settings.to_context() if settings else None

    def build_render_context(self, document: AccountsSet) -> dict[str, Any]:
        """Everything a statement template may reference, built once."""
        sections = document.sections
        company_period = sections.company_period or {}
        client = self._clients.find_one(document.client_id)
        if client is None:
            client = {
                "name": (company_period.get("company") or {}).get("name") or "Client",
                "type": "SOLE_TRADER" if document.is_sole_trader else "COMPANY",
            }

        return {
            "client": client,
            "framework": document.framework.value,
            "company": copy.deepcopy(company_period.get("company")),
            "period": document.period.to_dict(),
            "profitAndLoss": copy.deepcopy(sections.profit_and_loss),
            "balanceSheet": copy.deepcopy(sections.balance_sheet),
            "notes": copy.deepcopy(sections.notes),
            "accountingPolicies": copy.deepcopy(sections.accounting_policies),
            "frameworkDisclosures": copy.deepcopy(sections.framework_disclosures)
            or default_framework_disclosures(document.framework),
            "directorsApproval": copy.deepcopy(sections.directors_approval),
            "practice": self._practice(),
            "calculations": compute_totals(document).to_dict(),
            "ratios": compute_ratios(document),
            "comparatives": {
                "calculations": _comparative_calculations(document),
                "priorYear": {"endDate": prior_year_end(document.period.end_date).isoformat()},
            },
            "helpers": {"format_currency": format_currency, "format_date": format_date},
        }

    def template_name(self, context: dict[str, Any]) -> str:
        client_type = (context.get("client") or {}).get("type")
        if is_sole_trader_type(client_type) or is_sole_trader_type(context.get("framework")):
            return self._config.sole_trader_template
        return self._config.statutory_template

    def base_filename(self, document: AccountsSet, context: dict[str, Any]) -> str:
        company_name = (context.get("company") or {}).get("name") or document.client_id
        part = sanitize_filename_part(company_name, self._config.filename_max_length)
        return f"FS_{part}_{document.period.end_date.isoformat()}"

    def output_url(self, document: AccountsSet, kind: OutputKind, filename: str) -> str:
        prefix = self._config.output_url_prefix.rstrip("/")
        return f"{prefix}/{document.id}/outputs/{OutputKind(kind).value}/{filename}"

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def _render_markup(self, template: str, context: dict[str, Any]) -> str:
        try:
            return self._renderer.render(template, context)
        except RenderError:
            raise
        except Exception as exc:
            raise RenderError(template, str(exc)) from exc

    def _render_pdf(self, template: str, markup: str) -> bytes:
        timeout = self._config.pdf_timeout_seconds
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pdf-render")
        try:
            future = executor.submit(self._pdf_engine.render_to_pdf, markup)
            return future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            raise RenderTimeoutError(template, timeout) from exc
        except RenderError:
            raise
        except Exception as exc:
            raise RenderError(template, f"PDF generation failed: {exc}") from exc
        finally:
            # A timed-out render is abandoned, not awaited
            executor.shutdown(wait=False, cancel_futures=True)

    def _write(self, document: AccountsSet, kind: OutputKind, filename: str, content: bytes) -> None:
        try:
            self._storage.write(kind, filename, content)
        except OSError as exc:
            logger.error(
                "output_write_failed",
                extra={"accounts_set_id": str(document.id), "kind": kind.value, "output_file": filename},
                exc_info=True,
            )
            raise StorageError("write_output", str(document.id), str(exc)) from exc

    def generate(self, document: AccountsSet) -> OutputLinks:
        """
        Render and store the HTML and PDF statements for ``document``.

        Raises:
            TemplateNotFoundError, RenderTimeoutError, RenderError, StorageError.
        """
        context = self.build_render_context(document)
        template = self.template_name(context)
        base = self.base_filename(document, context)
        html_name = f"{base}.html"
        pdf_name = f"{base}.pdf"

        logger.info(
            "output_generation_started",
            extra={"accounts_set_id": str(document.id), "template": template, "output_base": base},
        )

        try:
            markup = self._render_markup(template, context)
            self._write(document, OutputKind.HTML, html_name, markup.encode("utf-8"))
            pdf = self._render_pdf(template, markup)
            self._write(document, OutputKind.PDF, pdf_name, pdf)
        except (RenderError, StorageError) as exc:
            logger.error(
                "output_generation_failed",
                extra={
                    "accounts_set_id": str(document.id),
                    "template": template,
                    "error_code": exc.code,
                },
                exc_info=True,
            )
            raise

        links = OutputLinks(
            html_url=self.output_url(document, OutputKind.HTML, html_name),
            pdf_url=self.output_url(document, OutputKind.PDF, pdf_name),
        )
        logger.info(
            "output_generation_completed",
            extra={
                "accounts_set_id": str(document.id),
                "html_url": links.html_url,
                "pdf_url": links.pdf_url,
                "pdf_bytes": len(pdf),
            },
        )
        return links

    # ------------------------------------------------------------------
    # Cleanup and retrieval
    # ------------------------------------------------------------------

    def cleanup(self, outputs: OutputLinks | None, keep: OutputLinks | None = None) -> None:
        """Remove the files behind ``outputs``, except those also named by ``keep``."""
        if outputs is None:
            return
        for kind, url, kept in (
            (OutputKind.HTML, outputs.html_url, keep.html_url if keep else None),
            (OutputKind.PDF, outputs.pdf_url, keep.pdf_url if keep else None),
        ):
            if not url:
                continue
            filename = PurePosixPath(url).name
            if kept and PurePosixPath(kept).name == filename:
                continue
            try:
                self._storage.delete(kind, filename)
            except Exception:
                logger.warning(
                    "output_cleanup_failed",
                    extra={"kind": kind.value, "output_file": filename},
                    exc_info=True,
                )

    def read_output(self, kind: OutputKind | str, filename: str) -> bytes:
        """Stored file content.  Raises ``OutputFileNotFoundError``."""
        return self._storage.read(OutputKind(kind), PurePosixPath(filename).name)


# =========================================================================
# Built-in renderer
# =========================================================================

STATEMENT_HTML = """\
<!DOCTYPE html>
<html lang="en-GB"><head><meta charset="utf-8">
<title>{{ company.name }} - Financial Statements</title>
</head><body>
<section id="company-information"><h1>Financial Statements</h1>
<table>
<tr><th>Name</th><td>{{ company.name }}</td></tr>
<tr><th>Accounting period</th><td>{{ period.startDate|uk_date }} to {{ period.endDate|uk_date }}</td></tr>
{% block company_number %}
<tr><th>Company number</th><td>{{ company.companyNumber }}</td></tr>
{% endblock %}
{% if statement.address %}
<tr><th>Registered office</th><td>{{ statement.address|join(", ") }}</td></tr>
{% endif %}
{% if practice.name %}
<tr><th>Accountants</th><td>{{ practice.name }}{% for line in practice.addressLines or [] %}<br>{{ line }}{% endfor %}</td></tr>
{% endif %}
</table></section>
{% block directors_report %}
<section id="directors-report"><h2>Directors' Report</h2>
<ul>
{% for name in statement.directors %}
<li>{{ name }}</li>
{% endfor %}
</ul>
{% if directorsApproval.approved %}
<p>Approved by {{ directorsApproval.directorName }} on {{ directorsApproval.approvalDate|uk_date }}</p>
{% endif %}
</section>
{% endblock %}
<section id="profit-and-loss"><h2>Profit and Loss Account</h2>
<table>
{% for row in statement.profit_and_loss %}
<tr><th>{{ row.label }}</th><td class="num">{{ row.current|amount(row.negative) }}</td>{% if statement.show_prior %}<td class="num">{{ row.prior|amount(row.negative) }}</td>{% endif %}</tr>
{% endfor %}
</table></section>
<section id="balance-sheet"><h2>Balance Sheet</h2>
<table>
{% for row in statement.balance_sheet %}
<tr><th>{{ row.label }}</th><td class="num">{{ row.current|amount(row.negative) }}</td>{% if statement.show_prior %}<td class="num">{{ row.prior|amount(row.negative) }}</td>{% endif %}</tr>
{% endfor %}
</table></section>
<section id="notes"><h2>Notes to the Financial Statements</h2>
<ol>
{% if accountingPolicies.basisOfPreparation %}
<li><h3>Basis of preparation</h3><p>{{ accountingPolicies.basisOfPreparation }}</p></li>
{% endif %}
{% block share_capital_note %}
{% if notes.shareCapital %}
<li><h3>Share capital</h3><p>{{ notes.shareCapital.numberOfShares }} {{ notes.shareCapital.shareClass }} shares of {{ notes.shareCapital.nominalValue|currency }} each</p></li>
{% endif %}
{% endblock %}
{% for note in statement.notes %}
<li><h3>{{ note.title }}</h3><p>{{ note.text }}</p></li>
{% endfor %}
</ol></section>
</body></html>
"""

# Sole traders have no company number, directors' report or share capital.
SOLE_TRADER_HTML = """\
{% extends "statement.html" %}
{% block company_number %}{% endblock %}
{% block directors_report %}{% endblock %}
{% block share_capital_note %}{% endblock %}
"""

BUILT_IN_TEMPLATES = {
    "statement.html": STATEMENT_HTML,
    "statutory-accounts.html": '{% extends "statement.html" %}',
    "sole-trader-accounts.html": SOLE_TRADER_HTML,
}


def _blank_none(value: Any) -> Any:
    return "" if value is None else value


def _currency(value: Any) -> str:
    return format_currency(value or 0)


def _amount(value: Any, negative: bool = False) -> str:
    text = _currency(value)
    return f"({text})" if negative else text


def _uk_date(value: Any) -> str:
    return format_date(value or None)


def _row(label: str, current: Any, prior: Any, negative: bool = False) -> dict[str, Any]:
    return {"label": label, "current": current, "prior": prior, "negative": negative}


def _statement_view(context: dict[str, Any]) -> dict[str, Any]:
    """Rows and lists the statement templates iterate over."""
    company = context.get("company") or {}
    office = company.get("registeredOffice") or {}
    period = context.get("period") or {}
    comparatives = (context.get("comparatives") or {}).get("calculations")

    profit_and_loss = context.get("profitAndLoss") or {}
    lines = profit_and_loss.get("lines") or {}
    prior_lines = (profit_and_loss.get("comparatives") or {}).get("priorYearLines") or {}
    current_pl = (context.get("calculations") or {}).get("profitAndLoss") or {}
    prior_pl = (comparatives or {}).get("profitAndLoss") or {}
    current_bs = (context.get("calculations") or {}).get("balanceSheet") or {}
    prior_bs = (comparatives or {}).get("balanceSheet") or {}

    def net_current(totals: dict[str, Any]) -> Any:
        return (totals.get("totalCurrentAssets") or 0) - (totals.get("totalCurrentLiabilities") or 0)

    notes = context.get("notes") or {}
    note_items = []
    employees = notes.get("employees") or {}
    if employees.get("include"):
        note_items.append(
            {
                "title": "Employees",
                "text": f"Average number of employees: {_blank_none(employees.get('averageEmployees'))}",
            }
        )
    for key, title in (
        ("directorsLoanNote", "Directors' loans"),
        ("commitmentsContingencies", "Commitments and contingencies"),
    ):
        note = notes.get(key) or {}
        if note.get("include"):
            note_items.append({"title": title, "text": note.get("text") or ""})

    return {
        "show_prior": not period.get("isFirstYear") and comparatives is not None,
        "address": [
            office[k]
            for k in ("line1", "line2", "town", "county", "postcode", "country")
            if office.get(k)
        ],
        "directors": [
            d["name"]
            for d in company.get("directors") or []
            if isinstance(d, dict) and d.get("name")
        ],
        "profit_and_loss": [
            _row("Turnover", lines.get("turnover"), prior_lines.get("turnover")),
            _row("Cost of sales", lines.get("costOfSales"), prior_lines.get("costOfSales"), True),
            _row("Gross profit", current_pl.get("grossProfit"), prior_pl.get("grossProfit")),
            _row("Other operating income", lines.get("otherIncome"), prior_lines.get("otherIncome")),
            _row("Administrative expenses", current_pl.get("totalExpenses"), prior_pl.get("totalExpenses"), True),
            _row("Operating profit", current_pl.get("operatingProfit"), prior_pl.get("operatingProfit")),
            _row("Interest payable", lines.get("interestPayable"), prior_lines.get("interestPayable"), True),
            _row("Profit before tax", current_pl.get("profitBeforeTax"), prior_pl.get("profitBeforeTax")),
            _row("Tax on profit", lines.get("taxCharge"), prior_lines.get("taxCharge"), True),
            _row("Profit for the financial year", current_pl.get("profitAfterTax"), prior_pl.get("profitAfterTax")),
        ],
        "balance_sheet": [
            _row("Fixed assets", current_bs.get("totalFixedAssets"), prior_bs.get("totalFixedAssets")),
            _row("Current assets", current_bs.get("totalCurrentAssets"), prior_bs.get("totalCurrentAssets")),
            _row(
                "Creditors: amounts falling due within one year",
                current_bs.get("totalCurrentLiabilities"),
                prior_bs.get("totalCurrentLiabilities"),
                True,
            ),
            _row("Net current assets", net_current(current_bs), net_current(prior_bs)),
            _row(
                "Creditors: amounts falling due after more than one year",
                current_bs.get("totalLongTermLiabilities"),
                prior_bs.get("totalLongTermLiabilities"),
                True,
            ),
            _row("Net assets", current_bs.get("netAssets"), prior_bs.get("netAssets")),
            _row("Capital and reserves", current_bs.get("totalEquity"), prior_bs.get("totalEquity")),
        ],
        "notes": note_items,
    }


class StatementMarkupRenderer:
    """
    Renders the HTML statement set with Jinja2.

    Covers company information, the directors' report, profit and loss,
    balance sheet and notes.  The sole-trader template extends the
    statutory one and blanks the company-only blocks (company number,
    directors' report, share capital).

    ``loader`` replaces the built-in templates; it must provide
    ``statutory-accounts.html`` and ``sole-trader-accounts.html``.
    """

    def __init__(
        self,
        statutory_template: str = "statutory-accounts",
        sole_trader_template: str = "sole-trader-accounts",
        loader: BaseLoader | None = None,
    ):
        self._templates = {
            statutory_template: "statutory-accounts.html",
            sole_trader_template: "sole-trader-accounts.html",
        }
        self._env = Environment(
            loader=loader or DictLoader(BUILT_IN_TEMPLATES),
            autoescape=True,
            undefined=ChainableUndefined,
            finalize=_blank_none,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._env.filters.update(currency=_currency, amount=_amount, uk_date=_uk_date)

    def render(self, template_name: str, context: dict[str, Any]) -> str:
        if template_name not in self._templates:
            raise TemplateNotFoundError(template_name)
        try:
            template = self._env.get_template(self._templates[template_name])
        except TemplateNotFound as exc:
            raise TemplateNotFoundError(template_name) from exc
        return template.render(**context, statement=_statement_view(context))
