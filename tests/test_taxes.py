import pytest

from sped_profiler.config import Assumptions, EngineConfig
from sped_profiler.records import (
    Credit,
    Debit,
    Document,
    ExtractionResult,
    TaxLedger,
)
from sped_profiler.taxes import TAXES, aggregate_taxes, estimated_debit


def _service_document(iss: float) -> Document:
    return Document(
        operation="1",
        issuer="0",
        participant_code="",
        model="SE",
        status="00",
        series="1",
        number="1",
        issue_date="2023-01-10",
        movement_date=None,
        total=10_000.0,
        iss=iss,
    )


def test_every_tax_is_reported() -> None:
    """Debits, credits and provenance cover the five taxes."""
    composition = aggregate_taxes(ExtractionResult(), 0.0, "commerce", "presumido")

    assert set(composition.debits) == set(TAXES)
    assert set(composition.credits) == set(TAXES)
    assert set(composition.provenance) == set(TAXES)
    assert composition.total_debits == 0.0


def test_estimates_for_commerce_under_presumido() -> None:
    """Revenue-based estimates apply when no ledger figure exists."""
    result = ExtractionResult()

    composition = aggregate_taxes(result, 100_000.0, "commerce", "presumido")

    assert composition.debits["icms"] == pytest.approx(10_800.0)
    assert composition.credits["icms"] == pytest.approx(7_200.0)
    assert composition.debits["pis"] == pytest.approx(650.0)
    assert composition.debits["cofins"] == pytest.approx(3_000.0)
    assert composition.credits["pis"] == 0.0
    assert composition.credits["cofins"] == 0.0
    assert composition.debits["ipi"] == 0.0
    assert composition.debits["iss"] == 0.0
    assert composition.provenance["icms"] == {
        "debit": "estimated",
        "credit": "estimated",
    }
    assert composition.total_debits == pytest.approx(14_450.0)


def test_estimates_for_industry_under_real() -> None:
    """Lucro Real uses non-cumulative rates and takes PIS/COFINS credits."""
    composition = aggregate_taxes(ExtractionResult(), 100_000.0, "industry", "real")

    assert composition.debits["pis"] == pytest.approx(1_650.0)
    assert composition.debits["cofins"] == pytest.approx(7_600.0)
    assert composition.credits["pis"] == pytest.approx(660.0)
    assert composition.credits["cofins"] == pytest.approx(3_040.0)
    assert composition.debits["ipi"] == pytest.approx(4_000.0)
    assert composition.credits["ipi"] == pytest.approx(3_000.0)


def test_estimates_for_services() -> None:
    """Service companies owe ISS and no ICMS."""
    result = ExtractionResult()

    composition = aggregate_taxes(result, 100_000.0, "services", "presumido")

    assert composition.debits["iss"] == pytest.approx(5_000.0)
    assert composition.debits["icms"] == 0.0
    assert composition.credits["icms"] == 0.0


def test_simples_zeroes_pis_cofins_debits() -> None:
    """Under Simples, PIS/COFINS are embedded in the unified rate."""
    composition = aggregate_taxes(ExtractionResult(), 100_000.0, "commerce", "simples")

    assert composition.debits["pis"] == 0.0
    assert composition.debits["cofins"] == 0.0
    assert composition.provenance["pis"]["debit"] == "simples"
    assert composition.credits["icms"] == 0.0
    assert composition.debits["icms"] == pytest.approx(10_800.0)


def test_ledger_figures_win() -> None:
    """Explicit assessment records are used as is."""
    result = ExtractionResult(
        taxes={
            "icms": [TaxLedger(category="icms", debits=18_000.0, credits=7_000.0)],
            "ipi": [TaxLedger(category="ipi", debits=400.0, credits=0.0)],
        },
        debits={
            "pis": [Debit("pis", non_cumulative=100.0, cumulative=50.0, total=0.0)],
            "cofins": [Debit("cofins", 0.0, 0.0, total=700.0)],
        },
        credits={"pis": [Credit("pis", "101", 1000.0, 1.65, 16.5)]},
        documents=[_service_document(iss=500.0)],
    )

    composition = aggregate_taxes(result, 100_000.0, "industry", "real")

    assert composition.debits["icms"] == pytest.approx(18_000.0)
    assert composition.credits["icms"] == pytest.approx(7_000.0)
    assert composition.debits["ipi"] == pytest.approx(400.0)
    assert composition.debits["pis"] == pytest.approx(150.0)
    assert composition.debits["cofins"] == pytest.approx(700.0)
    assert composition.credits["pis"] == pytest.approx(16.5)
    assert composition.debits["iss"] == pytest.approx(500.0)
    assert composition.provenance["ipi"] == {"debit": "ledger", "credit": "estimated"}
    assert composition.provenance["iss"]["debit"] == "ledger"


def test_zero_ledger_falls_through_to_estimate() -> None:
    """A ledger sum of zero means no explicit figure."""
    result = ExtractionResult(
        taxes={"icms": [TaxLedger(category="icms", debits=0.0, credits=0.0)]}
    )

    composition = aggregate_taxes(result, 100_000.0, "commerce", "presumido")

    assert composition.debits["icms"] == pytest.approx(10_800.0)
    assert composition.provenance["icms"]["debit"] == "estimated"


def test_estimates_use_configured_assumptions() -> None:
    """Rates and base shares are read from the configuration."""
    config = EngineConfig(assumptions=Assumptions(icms_rate=0.12))

    composition = aggregate_taxes(
        ExtractionResult(), 100_000.0, "commerce", "presumido", config
    )

    assert composition.debits["icms"] == pytest.approx(7_200.0)
    assert estimated_debit(
        "icms", 1000.0, "commerce", "presumido", Assumptions()
    ) == pytest.approx(108.0)
