# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Per-tax debit and credit aggregators.

For each of the five taxes on revenue (PIS, COFINS, ICMS, IPI, ISS) the
monthly debit and credit are resolved by a two-tier cascade:

1. 'ledger': sum of the explicit assessment records
   - ICMS: E110 debits/credits,
   - IPI: E520 debits/credits,
   - PIS/COFINS: M200/M600 contribution due, M100/M500 credits,
   - ISS: ISS amount of the outbound service documents.
   A sum of exactly zero means "no explicit records" and falls through.

2. 'estimated': revenue × base share × default rate, conditioned on the
   activity type and tax regime:

   ======  ===================================  ===============================
   tax     debit                                credit
   ======  ===================================  ===============================
   ICMS    18 % over 60 % (not services)        18 % over 40 % (not services,
                                                not Simples)
   IPI     10 % over 40 % (industry)            10 % over 30 % (industry)
   ISS     5 % over 100 % (services)            0
   PIS     1.65 % (real) or 0.65 %              1.65 % over 40 % (real)
   COFINS  7.6 % (real) or 3 %                  7.6 % over 40 % (real)
   ======  ===================================  ===============================

Under Simples Nacional the PIS/COFINS debits are reported as 0 because they
are embedded in the unified rate.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Optional

from .cascade import Estimate, Tier, run_cascade
from .config import Assumptions, EngineConfig, default_engine_config
from .inference import REAL, SIMPLES, sales_documents
from .records import ExtractionResult
from .sectors import INDUSTRY, SERVICES

logger = logging.getLogger(__name__)

PIS = "pis"
COFINS = "cofins"
ICMS = "icms"
IPI = "ipi"
ISS = "iss"

TAXES: tuple[str, ...] = (PIS, COFINS, ICMS, IPI, ISS)

LEDGER_SOURCE = "ledger"
ESTIMATED_SOURCE = "estimated"
SIMPLES_SOURCE = "simples"


@dataclass
class TaxComposition:
    """Monthly debits and credits per tax, with the source of each figure."""

    debits: dict[str, float] = field(default_factory=dict)
    credits: dict[str, float] = field(default_factory=dict)
    provenance: dict[str, dict[str, str]] = field(default_factory=dict)

    @property
    def total_debits(self) -> float:
        return float(sum(self.debits.values()))


# ---------------------------------------------------------------------------
# Ledger sums
# ---------------------------------------------------------------------------


def _ledger_debit(result: ExtractionResult, tax: str) -> float:
    if tax in (ICMS, IPI):
        return float(sum(t.debits for t in result.taxes.get(tax, [])))
    if tax in (PIS, COFINS):
        return float(
            sum(
                d.total or (d.non_cumulative + d.cumulative)
                for d in result.debits.get(tax, [])
            )
        )
    if tax == ISS:
        return float(sum(d.iss for d in sales_documents(result)))
    return 0.0


def _ledger_credit(result: ExtractionResult, tax: str) -> float:
    if tax in (ICMS, IPI):
        return float(sum(t.credits for t in result.taxes.get(tax, [])))
    if tax in (PIS, COFINS):
        return float(sum(c.amount for c in result.credits.get(tax, [])))
    return 0.0


def _non_zero(value: float) -> Optional[float]:
    return value if value != 0 else None


# ---------------------------------------------------------------------------
# Fallback estimates
# ---------------------------------------------------------------------------


def estimated_debit(
    tax: str, revenue: float, activity_type: str, tax_regime: str, a: Assumptions
) -> float:
    """Monthly debit estimated from revenue when no ledger figure exists."""
    if tax == ICMS:
        if activity_type == SERVICES:
            return 0.0
        return revenue * a.icms_base_pct * a.icms_rate
    if tax == IPI:
        if activity_type != INDUSTRY:
            return 0.0
        return revenue * a.ipi_base_pct * a.ipi_rate
    if tax == ISS:
        if activity_type != SERVICES:
            return 0.0
        return revenue * a.iss_base_pct * a.iss_rate
    if tax == PIS:
        rate = (
            a.pis_non_cumulative_rate if tax_regime == REAL else a.pis_cumulative_rate
        )
        return revenue * rate
    if tax == COFINS:
        rate = (
            a.cofins_non_cumulative_rate
            if tax_regime == REAL
            else a.cofins_cumulative_rate
        )
        return revenue * rate
    return 0.0


def estimated_credit(
    tax: str, revenue: float, activity_type: str, tax_regime: str, a: Assumptions
) -> float:
    """Monthly credit estimated from revenue when no ledger figure exists."""
    if tax == ICMS:
        if activity_type == SERVICES or tax_regime == SIMPLES:
            return 0.0
        return revenue * a.icms_credit_base_pct * a.icms_rate
    if tax == IPI:
        if activity_type != INDUSTRY:
            return 0.0
        return revenue * a.ipi_credit_base_pct * a.ipi_rate
    if tax == PIS and tax_regime == REAL:
        return revenue * a.pis_cofins_credit_base_pct * a.pis_non_cumulative_rate
    if tax == COFINS and tax_regime == REAL:
        return revenue * a.pis_cofins_credit_base_pct * a.cofins_non_cumulative_rate
    return 0.0


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def _resolve(
    name: str,
    result: ExtractionResult,
    ledger: Callable[[ExtractionResult], float],
    estimate: Callable[[], float],
) -> Estimate[float]:
    tiers = [
        Tier(LEDGER_SOURCE, lambda r: _non_zero(ledger(r))),
        Tier(ESTIMATED_SOURCE, lambda r: estimate()),
    ]
    return run_cascade(name, tiers, result, default=0.0)


def aggregate_taxes(
    result: ExtractionResult,
    monthly_revenue: float,
    activity_type: str,
    tax_regime: str,
    config: Optional[EngineConfig] = None,
) -> TaxComposition:
    """Resolve the monthly debit and credit of every tax.

    Args:
        result: Linked extraction result.
        monthly_revenue: Output of ``estimate_monthly_revenue``.
        activity_type: Output of ``estimate_activity_type``.
        tax_regime: Output of ``estimate_tax_regime``.
        config: Engine configuration (rates and base shares).

    Returns:
        TaxComposition with one entry per tax in ``TAXES``.
    """
    a = (config or default_engine_config()).assumptions
    composition = TaxComposition()

    for tax in TAXES:
        debit = _resolve(
            f"{tax}_debit",
            result,
            lambda r, tax=tax: _ledger_debit(r, tax),
            lambda tax=tax: estimated_debit(
                tax, monthly_revenue, activity_type, tax_regime, a
            ),
        )
        credit = _resolve(
            f"{tax}_credit",
            result,
            lambda r, tax=tax: _ledger_credit(r, tax),
            lambda tax=tax: estimated_credit(
                tax, monthly_revenue, activity_type, tax_regime, a
            ),
        )

        debit_value, debit_source = debit.value, debit.source
        if tax_regime == SIMPLES and tax in (PIS, COFINS):
            debit_value, debit_source = 0.0, SIMPLES_SOURCE

        composition.debits[tax] = debit_value
        composition.credits[tax] = credit.value
        composition.provenance[tax] = {"debit": debit_source, "credit": credit.source}

    logger.debug("Tax composition: %s", composition)
    return composition
