# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Inference engine: business facts estimated from a linked ExtractionResult.

Each estimator is a cascade of tiers (see ``cascade.py``) evaluated in a
fixed priority order, the first applicable tier winning:

- ``estimate_monthly_revenue``: annual gross revenue → income statement →
  outbound documents over their date span → outbound documents over a
  document-density estimate,
- ``estimate_operating_margin``: income statement → working capital,
- ``estimate_activity_type``: IPI ledger → CNAE → CFOP vote,
- ``estimate_tax_regime``: ECF taxation method → PIS/COFINS incidence →
  company regime flag → Simples ledger → PIS credit rate → Simples CSOSN,
- ``estimate_sector``: CNAE division → activity type,
- ``estimate_operation_type``: mix of corporate/personal counterparties,
- ``estimate_financial_cycle``: working-capital balances over revenue flows,
  cash share of outbound documents,
- ``estimate_pis_cofins_regime``: 0110 incidence → tax regime.

Estimators never raise and always return a value: when no tier applies the
default documented on each function is used. Business constants come from
``config.Assumptions``.
"""

import logging
import math
import unicodedata
from dataclasses import dataclass
from typing import Optional

import pandas as pd

from .accounts import NET_REVENUE, OPERATING_RESULT, REVENUE
from .cascade import Estimate, Tier, run_cascade
from .config import Assumptions, EngineConfig, default_engine_config
from .linking import income_statement_total
from .records import Document, ExtractionResult
from .sectors import (
    ACTIVITY_SECTORS,
    COMMERCE,
    INDUSTRY,
    SERVICES,
    SectorInfo,
    SectorRepository,
    activity_for_cnae,
    builtin_sector_info,
    sector_for_cnae,
)

logger = logging.getLogger(__name__)

# Tax regimes
SIMPLES = "simples"
PRESUMIDO = "presumido"
REAL = "real"

# Operation types
B2B = "b2b"
B2C = "b2c"
MIXED = "mixed"

# PIS/COFINS regimes
NON_CUMULATIVE = "non-cumulative"
CUMULATIVE = "cumulative"

# Document models
INVOICE_MODEL = "55"  # NF-e
RECEIPT_MODEL = "65"  # NFC-e

# Payment indicator for cash sales (C100 field 13).
CASH_PAYMENT = "0"

# Document status codes that do not represent a sale (cancelled, denied,
# number voided).
VOID_STATUSES = frozenset({"02", "03", "04", "05"})

CORPORATE_ID_LENGTH = 14  # CNPJ
PERSONAL_ID_LENGTH = 11  # CPF

# CFOPs voted for each activity type. Anything else counts as commerce.
INDUSTRY_CFOPS = frozenset(
    {"5101", "6101", "7101", "5401", "6401", "5124", "6124", "5125", "6125"}
)
SERVICES_CFOPS = frozenset({"5933", "6933", "5932", "6932"})
INDUSTRY_CFOP_WEIGHT = 2
SERVICES_CFOP_WEIGHT = 1
COMMERCE_CFOP_WEIGHT = 1
MANUFACTURING_KEYWORD_WEIGHT = 2
MANUFACTURING_KEYWORDS: tuple[str, ...] = (
    "industrializ",
    "fabrica",
    "producao",
    "manufatura",
    "materia prima",
)

# CSOSN codes used only by Simples Nacional taxpayers.
SIMPLES_CSOSN = frozenset({"101", "102", "103", "201", "202", "203"})

# ECF taxation method (0010 field 5).
REAL_METHODS = frozenset({"1", "2", "3", "4"})
PRESUMIDO_METHODS = frozenset({"5", "6", "7"})

# 0110 incidence code.
INCIDENCE_NON_CUMULATIVE = frozenset({"1", "3"})
INCIDENCE_CUMULATIVE = frozenset({"2"})

# Company regime flag (contributions 0000 field 16).
COMPANY_REGIME_CODES: dict[str, str] = {"1": SIMPLES, "2": PRESUMIDO, "3": REAL}


def _assumptions(config: Optional[EngineConfig]) -> Assumptions:
    return (config or default_engine_config()).assumptions


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text or "")
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower()


def sales_documents(result: ExtractionResult) -> list[Document]:
    """Outbound documents that represent a sale (void documents excluded)."""
    return [d for d in result.outbound_documents() if d.status not in VOID_STATUSES]


# ---------------------------------------------------------------------------
# Monthly revenue
# ---------------------------------------------------------------------------


def document_month_span(docs: list[Document]) -> Optional[int]:
    """Inclusive number of calendar months covered by the dated documents.

    Returns None when fewer than two documents carry a usable date.
    """
    dates = pd.to_datetime(
        pd.Series([d.date for d in docs], dtype="object"),
        errors="coerce",
        format="%Y-%m-%d",
    ).dropna()
    if len(dates) < 2:
        return None
    first, last = dates.min(), dates.max()
    months = (last.year - first.year) * 12 + (last.month - first.month) + 1
    return max(1, months)


def estimate_monthly_revenue(
    result: ExtractionResult, config: Optional[EngineConfig] = None
) -> Estimate[float]:
    """Monthly gross revenue. Default 0.0."""
    a = _assumptions(config)

    def annual_gross_revenue(r: ExtractionResult) -> Optional[float]:
        annual = r.corporate_tax.annual_gross_revenue
        return annual / 12 if annual is not None and annual > 0 else None

    def income_statement(r: ExtractionResult) -> Optional[float]:
        revenue = r.working_capital.revenue
        return revenue / 12 if revenue is not None and revenue > 0 else None

    def document_span(r: ExtractionResult) -> Optional[float]:
        docs = sales_documents(r)
        months = document_month_span(docs)
        if months is None:
            return None
        return sum(d.total for d in docs) / months

    def document_density(r: ExtractionResult) -> Optional[float]:
        docs = sales_documents(r)
        if not docs:
            return None
        months = math.ceil(len(docs) / a.documents_per_month)
        return sum(d.total for d in docs) / months

    tiers = [
        Tier("annual_gross_revenue", annual_gross_revenue),
        Tier("income_statement", income_statement),
        Tier("document_span", document_span),
        Tier("document_density", document_density),
    ]
    return run_cascade("monthly_revenue", tiers, result, default=0.0)


# ---------------------------------------------------------------------------
# Operating margin
# ---------------------------------------------------------------------------


def estimate_operating_margin(
    result: ExtractionResult, config: Optional[EngineConfig] = None
) -> Estimate[float]:
    """Operating result over net revenue, clamped to [-1, 1]. Default 0.15."""
    cfg = config or default_engine_config()
    groups = cfg.account_groups

    def income_statement(r: ExtractionResult) -> Optional[float]:
        lines = r.income_statement_lines
        operating = income_statement_total(lines, groups[OPERATING_RESULT])
        revenue = income_statement_total(lines, groups[NET_REVENUE])
        if revenue is None:
            revenue = income_statement_total(lines, groups[REVENUE])
        if operating is None or not revenue or revenue <= 0:
            return None
        return _clamp(operating / revenue, -1.0, 1.0)

    def working_capital(r: ExtractionResult) -> Optional[float]:
        wc = r.working_capital
        if wc.operating_result is None or not wc.revenue or wc.revenue <= 0:
            return None
        return _clamp(wc.operating_result / wc.revenue, -1.0, 1.0)

    tiers = [
        Tier("income_statement", income_statement),
        Tier("working_capital", working_capital),
    ]
    return run_cascade(
        "operating_margin", tiers, result, default=cfg.assumptions.default_margin
    )


# ---------------------------------------------------------------------------
# Activity type
# ---------------------------------------------------------------------------


def cfop_vote(result: ExtractionResult) -> Optional[str]:
    """Weighted vote over line-item CFOPs and descriptions.

    Industry wins when it has votes and at least as many as the other two;
    services wins over commerce only when strictly ahead. Returns None when
    there are no line items.
    """
    if not result.line_items:
        return None

    votes = {INDUSTRY: 0, SERVICES: 0, COMMERCE: 0}
    for item in result.line_items:
        if item.cfop in INDUSTRY_CFOPS:
            votes[INDUSTRY] += INDUSTRY_CFOP_WEIGHT
        elif item.cfop in SERVICES_CFOPS:
            votes[SERVICES] += SERVICES_CFOP_WEIGHT
        elif item.cfop:
            votes[COMMERCE] += COMMERCE_CFOP_WEIGHT

        description = _fold(item.description)
        if any(k in description for k in MANUFACTURING_KEYWORDS):
            votes[INDUSTRY] += MANUFACTURING_KEYWORD_WEIGHT

    logger.debug("CFOP votes: %s", votes)

    if votes[INDUSTRY] > 0 and votes[INDUSTRY] >= max(votes[COMMERCE], votes[SERVICES]):
        return INDUSTRY
    if votes[SERVICES] > votes[COMMERCE]:
        return SERVICES
    return COMMERCE


_ACTIVITY_TIERS: list[Tier[str]] = [
    Tier("ipi_ledger", lambda r: INDUSTRY, when=lambda r: bool(r.taxes.get("ipi"))),
    Tier("cnae", lambda r: activity_for_cnae(r.company.get("cnae"))),
    Tier("cfop_vote", cfop_vote),
]


def estimate_activity_type(result: ExtractionResult) -> Estimate[str]:
    """'industry', 'commerce' or 'services'. Default 'commerce'."""
    return run_cascade("activity_type", _ACTIVITY_TIERS, result, default=COMMERCE)


# ---------------------------------------------------------------------------
# Tax regime
# ---------------------------------------------------------------------------


def _declared_code(result: ExtractionResult, category: str) -> str:
    declarations = result.regime_declarations.get(category) or []
    return declarations[0].code if declarations else ""


def _regime_from_taxation_method(r: ExtractionResult) -> Optional[str]:
    code = _declared_code(r, "corporateTax")
    if code in REAL_METHODS:
        return REAL
    if code in PRESUMIDO_METHODS:
        return PRESUMIDO
    return None


def _regime_from_incidence(r: ExtractionResult) -> Optional[str]:
    code = _declared_code(r, "pisCofins")
    if code in INCIDENCE_NON_CUMULATIVE:
        return REAL
    if code in INCIDENCE_CUMULATIVE:
        return PRESUMIDO
    return None


def _regime_from_credit_rate(
    r: ExtractionResult, threshold: float
) -> Optional[str]:
    pis = r.credits.get("pis") or []
    cofins = r.credits.get("cofins") or []
    if not pis or not cofins:
        return None
    return REAL if pis[0].rate > threshold else PRESUMIDO


def _regime_from_csosn(r: ExtractionResult) -> Optional[str]:
    codes = {a.cst_icms for a in r.analytic_line_items}
    codes.update(i.cst_icms for i in r.line_items)
    return SIMPLES if codes & SIMPLES_CSOSN else None


def estimate_tax_regime(
    result: ExtractionResult, config: Optional[EngineConfig] = None
) -> Estimate[str]:
    """'simples', 'presumido' or 'real'. Default 'presumido'."""
    threshold = _assumptions(config).real_regime_credit_rate_threshold

    tiers = [
        Tier("corporate_tax_method", _regime_from_taxation_method),
        Tier("pis_cofins_incidence", _regime_from_incidence),
        Tier(
            "company_regime_flag",
            lambda r: COMPANY_REGIME_CODES.get(r.company.get("regime_code", "")),
        ),
        # No SPED ledger carries a Simples assessment; hosts that import the
        # PGDAS-D declaration add it to result.taxes["simples"].
        Tier(
            "simples_ledger",
            lambda r: SIMPLES,
            when=lambda r: bool(r.taxes.get("simples")),
        ),
        Tier("credit_rate", lambda r: _regime_from_credit_rate(r, threshold)),
        Tier("simples_csosn", _regime_from_csosn),
    ]
    return run_cascade("tax_regime", tiers, result, default=PRESUMIDO)


# ---------------------------------------------------------------------------
# Dual-VAT sector
# ---------------------------------------------------------------------------


def estimate_sector(result: ExtractionResult, activity_type: str) -> Estimate[str]:
    """Dual-VAT sector tag. Default 'commerce'."""
    tiers = [
        Tier("cnae", lambda r: sector_for_cnae(r.company.get("cnae"))),
        Tier("activity_type", lambda r: ACTIVITY_SECTORS.get(activity_type)),
    ]
    return run_cascade("sector", tiers, result, default=COMMERCE)


def sector_info(
    sector: str, repository: Optional[SectorRepository] = None
) -> SectorInfo:
    """Metadata for ``sector``, from the repository when it has an entry."""
    if repository is not None:
        try:
            info = repository.find(sector)
            if info is not None:
                return SectorInfo(
                    sector=info.sector or sector,
                    reduction=float(info.reduction),
                    source="repository",
                )
        except Exception as exc:  # noqa: BLE001
            logger.debug("Sector repository lookup failed for %r: %s", sector, exc)
    return builtin_sector_info(sector)


# ---------------------------------------------------------------------------
# Operation type
# ---------------------------------------------------------------------------


def classify_document(doc: Document) -> Optional[str]:
    """'b2b', 'b2c' or None when the document carries no signal."""
    tax_id = doc.participant.tax_id if doc.participant is not None else ""
    if len(tax_id) == CORPORATE_ID_LENGTH or doc.model == INVOICE_MODEL:
        return B2B
    if doc.model == RECEIPT_MODEL or len(tax_id) == PERSONAL_ID_LENGTH:
        return B2C
    return None


def estimate_operation_type(
    result: ExtractionResult, config: Optional[EngineConfig] = None
) -> Estimate[str]:
    """'b2b', 'b2c' or 'mixed'. Default 'b2b'."""
    a = _assumptions(config)

    def document_mix(r: ExtractionResult) -> Optional[str]:
        labels = [classify_document(d) for d in sales_documents(r)]
        classified = [label for label in labels if label is not None]
        if not classified:
            return None
        b2b_share = classified.count(B2B) / len(classified)
        if b2b_share > a.b2b_threshold:
            return B2B
        if b2b_share < a.b2c_threshold:
            return B2C
        return MIXED

    tiers = [
        Tier(
            "document_mix",
            document_mix,
            when=lambda r: (
                len(sales_documents(r)) >= a.min_documents_for_operation_type
            ),
        )
    ]
    return run_cascade("operation_type", tiers, result, default=B2B)


# ---------------------------------------------------------------------------
# Financial cycle
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FinancialCycleEstimate:
    """Average days and sales split, each with its provenance."""

    pmr: Estimate[int]
    pmp: Estimate[int]
    pme: Estimate[int]
    cash_sale_pct: Estimate[float]

    @property
    def term_sale_pct(self) -> float:
        return round(1.0 - self.cash_sale_pct.value, 6)


def _cycle_days(
    balance: Optional[float], flow: float, a: Assumptions
) -> Optional[int]:
    if balance is None or flow <= 0:
        return None
    days = balance / flow * 30
    return int(round(_clamp(days, a.cycle_days_min, a.cycle_days_max)))


def _cash_sale_pct(r: ExtractionResult, a: Assumptions) -> Optional[float]:
    docs = sales_documents(r)
    total = sum(d.total for d in docs)
    if total <= 0:
        return None
    cash = sum(
        d.total
        for d in docs
        if d.model == RECEIPT_MODEL or d.payment_indicator == CASH_PAYMENT
    )
    return _clamp(cash / total, a.cash_sale_min, a.cash_sale_max)


def _inventory_ledger(r: ExtractionResult) -> Optional[float]:
    if not r.inventory_lines:
        return None
    return float(sum(line.value for line in r.inventory_lines))


def estimate_financial_cycle(
    result: ExtractionResult,
    monthly_revenue: float,
    config: Optional[EngineConfig] = None,
) -> FinancialCycleEstimate:
    """Receivable/payable/inventory days and cash-sale share.

    Days are balance ÷ monthly flow × 30, clamped to the configured range
    (default [1, 180]) and rounded; the monthly flows are revenue (receivables),
    60 % of revenue (payables) and 70 % of revenue (inventory). Defaults: 30
    days each, 30 % cash sales.
    """
    a = _assumptions(config)
    default_days = int(round(a.default_cycle_days))
    wc = result.working_capital

    pmr = run_cascade(
        "pmr",
        [
            Tier(
                "balance_sheet",
                lambda r: _cycle_days(wc.receivables, monthly_revenue, a),
            )
        ],
        result,
        default=default_days,
    )
    pmp = run_cascade(
        "pmp",
        [
            Tier(
                "balance_sheet",
                lambda r: _cycle_days(
                    wc.payables, monthly_revenue * a.payables_flow_pct, a
                ),
            )
        ],
        result,
        default=default_days,
    )
    inventory_flow = monthly_revenue * a.inventory_flow_pct
    pme = run_cascade(
        "pme",
        [
            Tier(
                "balance_sheet",
                lambda r: _cycle_days(wc.inventory, inventory_flow, a),
            ),
            Tier(
                "inventory_ledger",
                lambda r: _cycle_days(_inventory_ledger(r), inventory_flow, a),
            ),
        ],
        result,
        default=default_days,
    )
    cash = run_cascade(
        "cash_sale_pct",
        [Tier("documents", lambda r: _cash_sale_pct(r, a))],
        result,
        default=a.default_cash_sale_pct,
    )
    return FinancialCycleEstimate(pmr=pmr, pmp=pmp, pme=pme, cash_sale_pct=cash)


def working_capital_need(
    monthly_revenue: float,
    cycle: FinancialCycleEstimate,
    config: Optional[EngineConfig] = None,
) -> float:
    """Working capital needed to fund the cash conversion cycle.

    Daily revenue × (pmr + pme - pmp) days × safety multiplier; 0 when the
    cycle is negative or revenue is 0.
    """
    a = _assumptions(config)
    cycle_days = cycle.pmr.value + cycle.pme.value - cycle.pmp.value
    if monthly_revenue <= 0 or cycle_days <= 0:
        return 0.0
    return monthly_revenue / 30 * cycle_days * a.working_capital_safety_multiplier


# ---------------------------------------------------------------------------
# PIS/COFINS regime and Simples rate
# ---------------------------------------------------------------------------


def estimate_pis_cofins_regime(
    result: ExtractionResult, tax_regime: str
) -> Estimate[str]:
    """'non-cumulative' or 'cumulative'. Default 'cumulative'."""

    def incidence(r: ExtractionResult) -> Optional[str]:
        code = _declared_code(r, "pisCofins")
        if code in INCIDENCE_NON_CUMULATIVE:
            return NON_CUMULATIVE
        if code in INCIDENCE_CUMULATIVE:
            return CUMULATIVE
        return None

    tiers = [
        Tier("pis_cofins_incidence", incidence),
        Tier(
            "tax_regime",
            lambda r: NON_CUMULATIVE if tax_regime == REAL else CUMULATIVE,
        ),
    ]
    return run_cascade("pis_cofins_regime", tiers, result, default=CUMULATIVE)


def simples_rate(tax_regime: str, config: Optional[EngineConfig] = None) -> float:
    """Unified Simples Nacional rate, 0 for other regimes."""
    return _assumptions(config).simples_rate if tax_regime == SIMPLES else 0.0
