# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Canonical fiscal profile.

The profile is the single output of the engine and the input of the tax
impact simulation. It is made of frozen dataclasses whose ``to_dict()``
method produces the canonical nested structure handed to the downstream
normalization layer:

    {
      "company": {
        "name", "taxId", "monthlyRevenue", "operatingMargin",
        "activityType", "taxRegime", "ivaSector", "periodStart", "periodEnd"
      },
      "fiscalParameters": {
        "operationType", "pisCofinsRegime", "simplesRate",
        "taxComposition": {
          "debits", "credits", "effectiveRates",
          "totalMonthlyBurden", "blendedEffectiveRate", "provenance"
        },
        "ivaSector": {"sector", "reduction", "source"},
        "corporateTax": {
          "irpjEffectiveRate", "csllEffectiveRate",
          "exportRevenuePct", "incentiveCount"
        }
      },
      "financialCycle": {
        "pmr", "pmp", "pme", "cashSalePct", "termSalePct",
        "cycleDays", "workingCapitalNeed"
      },
      "metadata": {"ledgerFamily", "sources", "parseStats"}
    }

Every leaf is always present. Amounts are monthly figures in the currency of
the ledger; rates and percentages are fractions.
"""

from dataclasses import dataclass, field
from typing import Any

TAX_KEYS: tuple[str, ...] = ("pis", "cofins", "icms", "ipi", "iss")


def _per_tax(values: dict[str, float]) -> dict[str, float]:
    return {tax: float(values.get(tax, 0.0)) for tax in TAX_KEYS}


@dataclass(frozen=True)
class CompanyProfile:
    name: str = ""
    tax_id: str = ""
    monthly_revenue: float = 0.0
    operating_margin: float = 0.15
    activity_type: str = "commerce"
    tax_regime: str = "presumido"
    iva_sector: str = "commerce"
    period_start: str = ""
    period_end: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "taxId": self.tax_id,
            "monthlyRevenue": self.monthly_revenue,
            "operatingMargin": self.operating_margin,
            "activityType": self.activity_type,
            "taxRegime": self.tax_regime,
            "ivaSector": self.iva_sector,
            "periodStart": self.period_start,
            "periodEnd": self.period_end,
        }


@dataclass(frozen=True)
class TaxCompositionProfile:
    """Monthly debits/credits per tax and the rates derived from them."""

    debits: dict[str, float] = field(default_factory=dict)
    credits: dict[str, float] = field(default_factory=dict)
    effective_rates: dict[str, float] = field(default_factory=dict)
    total_monthly_burden: float = 0.0
    blended_effective_rate: float = 0.0
    provenance: dict[str, dict[str, str]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "debits": _per_tax(self.debits),
            "credits": _per_tax(self.credits),
            "effectiveRates": _per_tax(self.effective_rates),
            "totalMonthlyBurden": self.total_monthly_burden,
            "blendedEffectiveRate": self.blended_effective_rate,
            "provenance": {
                tax: {
                    "debit": self.provenance.get(tax, {}).get("debit", "default"),
                    "credit": self.provenance.get(tax, {}).get("credit", "default"),
                }
                for tax in TAX_KEYS
            },
        }


@dataclass(frozen=True)
class IvaSectorProfile:
    sector: str = "commerce"
    reduction: float = 0.0
    source: str = "table"

    def to_dict(self) -> dict[str, Any]:
        return {
            "sector": self.sector,
            "reduction": self.reduction,
            "source": self.source,
        }


@dataclass(frozen=True)
class CorporateTaxProfile:
    irpj_effective_rate: float = 0.0
    csll_effective_rate: float = 0.0
    export_revenue_pct: float = 0.0
    incentive_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "irpjEffectiveRate": self.irpj_effective_rate,
            "csllEffectiveRate": self.csll_effective_rate,
            "exportRevenuePct": self.export_revenue_pct,
            "incentiveCount": self.incentive_count,
        }


@dataclass(frozen=True)
class FiscalParameters:
    operation_type: str = "b2b"
    pis_cofins_regime: str = "cumulative"
    simples_rate: float = 0.0
    tax_composition: TaxCompositionProfile = field(
        default_factory=TaxCompositionProfile
    )
    iva_sector: IvaSectorProfile = field(default_factory=IvaSectorProfile)
    corporate_tax: CorporateTaxProfile = field(default_factory=CorporateTaxProfile)

    def to_dict(self) -> dict[str, Any]:
        return {
            "operationType": self.operation_type,
            "pisCofinsRegime": self.pis_cofins_regime,
            "simplesRate": self.simples_rate,
            "taxComposition": self.tax_composition.to_dict(),
            "ivaSector": self.iva_sector.to_dict(),
            "corporateTax": self.corporate_tax.to_dict(),
        }


@dataclass(frozen=True)
class FinancialCycle:
    """Average receivable (pmr), payable (pmp) and inventory (pme) days."""

    pmr: int = 30
    pmp: int = 30
    pme: int = 30
    cash_sale_pct: float = 0.3
    term_sale_pct: float = 0.7
    working_capital_need: float = 0.0

    @property
    def cycle_days(self) -> int:
        """Cash conversion cycle: pmr + pme - pmp."""
        return self.pmr + self.pme - self.pmp

    def to_dict(self) -> dict[str, Any]:
        return {
            "pmr": self.pmr,
            "pmp": self.pmp,
            "pme": self.pme,
            "cashSalePct": self.cash_sale_pct,
            "termSalePct": self.term_sale_pct,
            "cycleDays": self.cycle_days,
            "workingCapitalNeed": self.working_capital_need,
        }


@dataclass(frozen=True)
class FiscalProfile:
    """Engine output.

    Attributes:
        company: Company identification and headline figures.
        fiscal_parameters: Operation type, regimes and tax composition.
        financial_cycle: Cycle days and sales split.
        sources: Estimator name → tier that produced the value.
        ledger_family: Family of the (first) parsed ledger.
        parse_stats: Line counters of the parse.
    """

    company: CompanyProfile = field(default_factory=CompanyProfile)
    fiscal_parameters: FiscalParameters = field(default_factory=FiscalParameters)
    financial_cycle: FinancialCycle = field(default_factory=FinancialCycle)
    sources: dict[str, str] = field(default_factory=dict)
    ledger_family: str = ""
    parse_stats: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Canonical nested structure with camelCase keys."""
        return {
            "company": self.company.to_dict(),
            "fiscalParameters": self.fiscal_parameters.to_dict(),
            "financialCycle": self.financial_cycle.to_dict(),
            "metadata": {
                "ledgerFamily": self.ledger_family,
                "sources": dict(self.sources),
                "parseStats": dict(self.parse_stats),
            },
        }
