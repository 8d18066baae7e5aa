from types import SimpleNamespace
from typing import Optional

import pytest

from sped_profiler.cascade import Estimate
from sped_profiler.config import Assumptions, EngineConfig
from sped_profiler.inference import (
    FinancialCycleEstimate,
    classify_document,
    document_month_span,
    estimate_activity_type,
    estimate_financial_cycle,
    estimate_monthly_revenue,
    estimate_operating_margin,
    estimate_operation_type,
    estimate_pis_cofins_regime,
    estimate_sector,
    estimate_tax_regime,
    sales_documents,
    sector_info,
    simples_rate,
    working_capital_need,
)
from sped_profiler.records import (
    AnalyticLineItem,
    Credit,
    Document,
    ExtractionResult,
    IncomeStatementLine,
    InventoryLine,
    LineItem,
    Participant,
    RegimeDeclaration,
    TaxLedger,
    WorkingCapital,
)
from sped_profiler.sectors import SectorInfo


def _doc(
    total: float,
    model: str = "55",
    date: Optional[str] = "2023-01-15",
    status: str = "00",
    operation: str = "1",
    payment: str = "1",
    participant: Optional[Participant] = None,
) -> Document:
    return Document(
        operation=operation,
        issuer="0",
        participant_code="",
        model=model,
        status=status,
        series="1",
        number="1",
        issue_date=date,
        movement_date=None,
        total=total,
        payment_indicator=payment,
        participant=participant,
    )


def _item(cfop: str, description: str = "Mercadoria", cst: str = "000") -> LineItem:
    return LineItem(
        number="1",
        item_code="P1",
        description=description,
        quantity=1.0,
        unit="UN",
        value=100.0,
        discount=0.0,
        cst_icms=cst,
        cfop=cfop,
    )


def _income(code: str, description: str, value: float, nature: str = "C"):
    return IncomeStatementLine(
        code=code, description=description, value=value, nature=nature
    )


# ---------------------------------------------------------------------------
# Monthly revenue
# ---------------------------------------------------------------------------


def test_sales_documents_exclude_void_and_inbound() -> None:
    """Cancelled and inbound documents are not sales."""
    result = ExtractionResult(
        documents=[
            _doc(100.0),
            _doc(200.0, status="02"),
            _doc(300.0, operation="0"),
        ]
    )

    assert [d.total for d in sales_documents(result)] == [100.0]


def test_document_month_span_is_inclusive() -> None:
    """January to March counts as three months."""
    docs = [_doc(1.0, date="2023-01-31"), _doc(1.0, date="2023-03-01")]

    assert document_month_span(docs) == 3
    assert document_month_span([_doc(1.0)]) is None
    assert document_month_span([_doc(1.0, date=None), _doc(1.0, date=None)]) is None


def test_annual_gross_revenue_beats_documents() -> None:
    """The ECF annual revenue has priority over document totals."""
    result = ExtractionResult(documents=[_doc(10000.0)])
    result.corporate_tax.annual_gross_revenue = 1_200_000.0

    estimate = estimate_monthly_revenue(result)

    assert estimate.value == pytest.approx(100_000.0)
    assert estimate.source == "annual_gross_revenue"


def test_income_statement_revenue() -> None:
    """Net revenue of the accounting ledger is divided over twelve months."""
    result = ExtractionResult(working_capital=WorkingCapital(revenue=600_000.0))

    estimate = estimate_monthly_revenue(result)

    assert estimate.value == pytest.approx(50_000.0)
    assert estimate.source == "income_statement"


def test_document_span_revenue() -> None:
    """Sales are averaged over the months they span."""
    result = ExtractionResult(
        documents=[
            _doc(1000.0, date="2023-01-15"),
            _doc(2000.0, date="2023-03-10"),
            _doc(5000.0, date="2023-02-01", status="02"),
        ]
    )

    estimate = estimate_monthly_revenue(result)

    assert estimate.value == pytest.approx(1000.0)
    assert estimate.source == "document_span"


def test_document_density_revenue() -> None:
    """Without a usable date span, thirty documents count as one month."""
    result = ExtractionResult(documents=[_doc(10000.0)])

    estimate = estimate_monthly_revenue(result)

    assert estimate.value == pytest.approx(10000.0)
    assert estimate.source == "document_density"

    many = ExtractionResult(documents=[_doc(100.0, date=None) for _ in range(31)])
    assert estimate_monthly_revenue(many).value == pytest.approx(3100.0 / 2)


def test_monthly_revenue_default() -> None:
    """No signal at all gives zero revenue."""
    estimate = estimate_monthly_revenue(ExtractionResult())

    assert estimate.value == 0.0
    assert estimate.is_default


# ---------------------------------------------------------------------------
# Operating margin
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "operating, nature, expected",
    [
        (200.0, "C", 0.2),
        (200.0, "D", -0.2),
        (5000.0, "C", 1.0),
        (5000.0, "D", -1.0),
    ],
)
def test_operating_margin_from_income_statement(operating, nature, expected) -> None:
    """Operating result over net revenue, clamped to [-1, 1]."""
    result = ExtractionResult(
        income_statement_lines=[
            _income("3.01", "Receita Líquida", 1000.0),
            _income("3.05", "Resultado Operacional", operating, nature),
        ]
    )

    estimate = estimate_operating_margin(result)

    assert estimate.value == pytest.approx(expected)
    assert estimate.source == "income_statement"


def test_operating_margin_from_working_capital() -> None:
    """Linked aggregates are used when the statement lines are not conclusive."""
    result = ExtractionResult(
        working_capital=WorkingCapital(revenue=1000.0, operating_result=300.0)
    )

    estimate = estimate_operating_margin(result)

    assert estimate.value == pytest.approx(0.3)
    assert estimate.source == "working_capital"


def test_operating_margin_default_is_configurable() -> None:
    """The default margin comes from the assumptions."""
    config = EngineConfig(assumptions=Assumptions(default_margin=0.1))

    assert estimate_operating_margin(ExtractionResult()).value == pytest.approx(0.15)
    assert estimate_operating_margin(ExtractionResult(), config).value == 0.1


# ---------------------------------------------------------------------------
# Activity type
# ---------------------------------------------------------------------------


def test_ipi_ledger_means_industry() -> None:
    """An IPI assessment wins over a commerce CNAE and resale CFOPs."""
    result = ExtractionResult(
        company={"cnae": "4711302"},
        taxes={"ipi": [TaxLedger(category="ipi", debits=400.0)]},
        line_items=[_item("5102"), _item("5102")],
    )

    estimate = estimate_activity_type(result)

    assert estimate.value == "industry"
    assert estimate.source == "ipi_ledger"


@pytest.mark.parametrize(
    "cnae, expected",
    [("1091101", "industry"), ("4711302", "commerce"), ("6201501", "services")],
)
def test_activity_from_cnae(cnae, expected) -> None:
    """The CNAE division decides when there is no IPI ledger."""
    estimate = estimate_activity_type(ExtractionResult(company={"cnae": cnae}))

    assert estimate.value == expected
    assert estimate.source == "cnae"


@pytest.mark.parametrize(
    "items, expected",
    [
        ([("5101", "Mercadoria")], "industry"),
        ([("5933", "Servico"), ("5933", "Servico"), ("5102", "Revenda")], "services"),
        ([("5933", "Servico"), ("5102", "Revenda")], "commerce"),
        ([("5102", "Produção própria")], "industry"),
        ([("5102", "Revenda"), ("5102", "Revenda")], "commerce"),
    ],
)
def test_activity_from_cfop_vote(items, expected) -> None:
    """Weighted CFOP and keyword votes decide without CNAE."""
    result = ExtractionResult(line_items=[_item(c, d) for c, d in items])

    estimate = estimate_activity_type(result)

    assert estimate.value == expected
    assert estimate.source == "cfop_vote"


def test_activity_default() -> None:
    """No signal at all defaults to commerce."""
    estimate = estimate_activity_type(ExtractionResult())

    assert estimate.value == "commerce"
    assert estimate.is_default


# ---------------------------------------------------------------------------
# Tax regime
# ---------------------------------------------------------------------------


def _declaration(category: str, code: str) -> dict[str, list[RegimeDeclaration]]:
    return {category: [RegimeDeclaration(category=category, code=code)]}


def _credits(rate: float) -> dict[str, list[Credit]]:
    return {
        "pis": [Credit("pis", "101", 1000.0, rate, 10.0)],
        "cofins": [Credit("cofins", "101", 1000.0, rate * 4.6, 46.0)],
    }


@pytest.mark.parametrize(
    "result, expected, source",
    [
        (
            ExtractionResult(regime_declarations=_declaration("corporateTax", "1")),
            "real",
            "corporate_tax_method",
        ),
        (
            ExtractionResult(regime_declarations=_declaration("corporateTax", "5")),
            "presumido",
            "corporate_tax_method",
        ),
        (
            ExtractionResult(regime_declarations=_declaration("pisCofins", "2")),
            "presumido",
            "pis_cofins_incidence",
        ),
        (
            ExtractionResult(regime_declarations=_declaration("pisCofins", "3")),
            "real",
            "pis_cofins_incidence",
        ),
        (
            ExtractionResult(company={"regime_code": "1"}),
            "simples",
            "company_regime_flag",
        ),
        (
            ExtractionResult(taxes={"simples": [TaxLedger(category="simples")]}),
            "simples",
            "simples_ledger",
        ),
        (ExtractionResult(credits=_credits(1.65)), "real", "credit_rate"),
        (ExtractionResult(credits=_credits(0.65)), "presumido", "credit_rate"),
        (
            ExtractionResult(
                analytic_line_items=[
                    AnalyticLineItem("102", "5102", 0.0, 100.0, 0.0, 0.0)
                ]
            ),
            "simples",
            "simples_csosn",
        ),
        (ExtractionResult(), "presumido", "default"),
    ],
)
def test_tax_regime_tiers(result, expected, source) -> None:
    """Each regime signal is read by its own tier."""
    estimate = estimate_tax_regime(result)

    assert estimate.value == expected
    assert estimate.source == source


def test_taxation_method_beats_incidence() -> None:
    """The ECF taxation method has priority over the 0110 incidence."""
    declarations = _declaration("corporateTax", "1")
    declarations.update(_declaration("pisCofins", "2"))

    estimate = estimate_tax_regime(ExtractionResult(regime_declarations=declarations))

    assert estimate.value == "real"


def test_credit_rate_needs_both_contributions() -> None:
    """PIS credits alone are not conclusive."""
    credits = _credits(1.65)
    del credits["cofins"]

    estimate = estimate_tax_regime(ExtractionResult(credits=credits))

    assert estimate.is_default


# ---------------------------------------------------------------------------
# Sector
# ---------------------------------------------------------------------------


def test_sector_from_cnae_then_activity() -> None:
    """The CNAE gives the sector; otherwise the activity type does."""
    school = ExtractionResult(company={"cnae": "8513900"})
    with_cnae = estimate_sector(school, "services")
    without = estimate_sector(ExtractionResult(), "industry")
    unknown = estimate_sector(ExtractionResult(company={"cnae": "00"}), "unknown")

    assert (with_cnae.value, with_cnae.source) == ("education", "cnae")
    assert (without.value, without.source) == ("industry", "activity_type")
    assert (unknown.value, unknown.source) == ("commerce", "default")


class _Repository:
    def __init__(self, info=None, error=None):
        self.info = info
        self.error = error

    def find(self, sector):
        if self.error is not None:
            raise self.error
        return self.info


def test_sector_info_prefers_repository() -> None:
    """Repository entries override the built-in reduction table."""
    repo = _Repository(SectorInfo(sector="health", reduction=0.3, source="db"))

    info = sector_info("health", repo)

    assert info.reduction == pytest.approx(0.3)
    assert info.source == "repository"


@pytest.mark.parametrize(
    "repo",
    [
        None,
        _Repository(),
        _Repository(error=RuntimeError("offline")),
        _Repository(SimpleNamespace(sector="health", reduction=None)),
        _Repository(object()),
    ],
)
def test_sector_info_falls_back_to_table(repo) -> None:
    """Missing entries, failures and unusable replies use the built-in table."""
    info = sector_info("health", repo)

    assert info.reduction == pytest.approx(0.6)
    assert info.source == "table"


# ---------------------------------------------------------------------------
# Operation type
# ---------------------------------------------------------------------------


def test_classify_document() -> None:
    """CNPJ or NF-e means B2B; NFC-e or CPF means B2C."""
    company = Participant(code="C", name="C", cnpj="11222333000144")
    person = Participant(code="P", name="P", cpf="12345678901")

    assert classify_document(_doc(1.0, model="65", participant=company)) == "b2b"
    assert classify_document(_doc(1.0, model="55", participant=person)) == "b2b"
    assert classify_document(_doc(1.0, model="01", participant=person)) == "b2c"
    assert classify_document(_doc(1.0, model="65")) == "b2c"
    assert classify_document(_doc(1.0, model="01")) is None


@pytest.mark.parametrize(
    "models, expected, source",
    [
        (["55"] * 5, "b2b", "document_mix"),
        (["65"] * 5, "b2c", "document_mix"),
        (["55"] * 3 + ["65"] * 2, "mixed", "document_mix"),
        (["65"] * 4, "b2b", "default"),
        (["01"] * 5, "b2b", "default"),
    ],
)
def test_operation_type(models, expected, source) -> None:
    """At least five sales documents are needed to leave the default."""
    result = ExtractionResult(documents=[_doc(100.0, model=m) for m in models])

    estimate = estimate_operation_type(result)

    assert estimate.value == expected
    assert estimate.source == source


# ---------------------------------------------------------------------------
# Financial cycle
# ---------------------------------------------------------------------------


def test_financial_cycle_from_balances() -> None:
    """Balances over monthly flows give the cycle days."""
    result = ExtractionResult(
        working_capital=WorkingCapital(
            receivables=50_000.0, payables=30_000.0, inventory=70_000.0
        )
    )

    cycle = estimate_financial_cycle(result, 100_000.0)

    assert cycle.pmr.value == 15
    assert cycle.pmp.value == 15
    assert cycle.pme.value == 30
    assert cycle.pmr.source == "balance_sheet"


def test_financial_cycle_days_are_clamped() -> None:
    """Days stay within [1, 180]."""
    result = ExtractionResult(
        working_capital=WorkingCapital(receivables=1_000_000.0, payables=1.0)
    )

    cycle = estimate_financial_cycle(result, 100_000.0)

    assert cycle.pmr.value == 180
    assert cycle.pmp.value == 1


def test_inventory_days_from_inventory_ledger() -> None:
    """H010 positions are used when no inventory balance exists."""
    result = ExtractionResult(
        inventory_lines=[InventoryLine("P1", "UN", 10.0, 3500.0, 35_000.0)]
    )

    cycle = estimate_financial_cycle(result, 100_000.0)

    assert cycle.pme.value == 15
    assert cycle.pme.source == "inventory_ledger"


def test_financial_cycle_defaults_without_revenue() -> None:
    """Zero revenue leaves every day count at its default."""
    result = ExtractionResult(working_capital=WorkingCapital(receivables=1000.0))

    cycle = estimate_financial_cycle(result, 0.0)

    assert (cycle.pmr.value, cycle.pmp.value, cycle.pme.value) == (30, 30, 30)
    assert cycle.pmr.is_default
    assert cycle.cash_sale_pct.value == pytest.approx(0.3)
    assert cycle.term_sale_pct == pytest.approx(0.7)


def test_cash_sale_share() -> None:
    """NFC-e and cash-paid documents count as cash sales."""
    result = ExtractionResult(
        documents=[
            _doc(1000.0, model="65"),
            _doc(1000.0, payment="0"),
            _doc(8000.0),
        ]
    )

    cycle = estimate_financial_cycle(result, 10_000.0)

    assert cycle.cash_sale_pct.value == pytest.approx(0.2)
    assert cycle.cash_sale_pct.source == "documents"
    assert cycle.term_sale_pct == pytest.approx(0.8)


def test_cash_sale_share_is_clamped() -> None:
    """All-cash sales are reported as 95 %."""
    result = ExtractionResult(documents=[_doc(1000.0, model="65")])

    cycle = estimate_financial_cycle(result, 1000.0)

    assert cycle.cash_sale_pct.value == pytest.approx(0.95)
    assert cycle.term_sale_pct == pytest.approx(0.05)


def _cycle(pmr: int, pmp: int, pme: int) -> FinancialCycleEstimate:
    return FinancialCycleEstimate(
        pmr=Estimate(pmr, "test"),
        pmp=Estimate(pmp, "test"),
        pme=Estimate(pme, "test"),
        cash_sale_pct=Estimate(0.3, "test"),
    )


def test_working_capital_need() -> None:
    """Daily revenue times cycle days times the safety multiplier."""
    assert working_capital_need(90_000.0, _cycle(30, 30, 30)) == pytest.approx(
        108_000.0
    )
    assert working_capital_need(90_000.0, _cycle(10, 60, 20)) == 0.0
    assert working_capital_need(0.0, _cycle(30, 30, 30)) == 0.0


# ---------------------------------------------------------------------------
# PIS/COFINS regime and Simples rate
# ---------------------------------------------------------------------------


def test_pis_cofins_regime() -> None:
    """The 0110 incidence wins; otherwise Lucro Real means non-cumulative."""
    declared = ExtractionResult(regime_declarations=_declaration("pisCofins", "1"))

    assert estimate_pis_cofins_regime(declared, "presumido").value == "non-cumulative"
    assert estimate_pis_cofins_regime(ExtractionResult(), "real").value == (
        "non-cumulative"
    )
    fallback = estimate_pis_cofins_regime(ExtractionResult(), "simples")
    assert fallback.value == "cumulative"
    assert fallback.source == "tax_regime"


def test_simples_rate() -> None:
    """Only Simples Nacional companies have a unified rate."""
    assert simples_rate("simples") == pytest.approx(0.06)
    assert simples_rate("real") == 0.0
