# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Profile assembler and engine entry points.

- ``assemble(result)`` composes the estimator outputs for a linked
  ExtractionResult into a ``FiscalProfile`` and derives the aggregate tax
  figures (effective rate per tax, total monthly burden, blended effective
  rate). Every effective rate is 0 when monthly revenue is 0.
- ``extract(lines, family)`` is the single entry point used by hosts:
  parse → link → assemble.
- ``extract_many(sources)`` parses several ledgers independently, merges the
  results and assembles one profile.

The estimators run in dependency order: revenue, activity type and tax
regime first, since the sector, tax and cycle estimators consume them.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import asdict
from typing import Optional, Union

from .config import EngineConfig, default_engine_config
from .inference import (
    estimate_activity_type,
    estimate_financial_cycle,
    estimate_monthly_revenue,
    estimate_operating_margin,
    estimate_operation_type,
    estimate_pis_cofins_regime,
    estimate_sector,
    estimate_tax_regime,
    sector_info,
    simples_rate,
    working_capital_need,
)
from .linking import link
from .parser import merge_results, parse_lines
from .profile import (
    CompanyProfile,
    CorporateTaxProfile,
    FinancialCycle,
    FiscalParameters,
    FiscalProfile,
    IvaSectorProfile,
    TaxCompositionProfile,
)
from .records import ExtractionResult
from .sectors import SectorRepository
from .taxes import TaxComposition, aggregate_taxes

logger = logging.getLogger(__name__)

# A source is either plain lines (family detected) or (lines, family).
Source = Union[Iterable[str], tuple[Iterable[str], Optional[str]]]


def _rates(
    composition: TaxComposition, monthly_revenue: float
) -> TaxCompositionProfile:
    if monthly_revenue > 0:
        effective = {t: v / monthly_revenue for t, v in composition.debits.items()}
        blended = composition.total_debits / monthly_revenue
    else:
        effective = {t: 0.0 for t in composition.debits}
        blended = 0.0

    return TaxCompositionProfile(
        debits=dict(composition.debits),
        credits=dict(composition.credits),
        effective_rates=effective,
        total_monthly_burden=composition.total_debits,
        blended_effective_rate=blended,
        provenance={t: dict(p) for t, p in composition.provenance.items()},
    )


def _or_zero(value: Optional[float]) -> float:
    return float(value) if value is not None else 0.0


def assemble(
    result: ExtractionResult,
    config: Optional[EngineConfig] = None,
    sector_repository: Optional[SectorRepository] = None,
) -> FiscalProfile:
    """Compose the fiscal profile of a linked ExtractionResult.

    Args:
        result: Result already processed by ``linking.link()``.
        config: Engine configuration (assumptions, account groups).
        sector_repository: Optional host lookup for dual-VAT sector metadata.

    Returns:
        A FiscalProfile where every field holds a value.
    """
    cfg = config or default_engine_config()

    revenue = estimate_monthly_revenue(result, cfg)
    margin = estimate_operating_margin(result, cfg)
    activity = estimate_activity_type(result)
    regime = estimate_tax_regime(result, cfg)
    sector = estimate_sector(result, activity.value)
    operation = estimate_operation_type(result, cfg)
    pis_cofins = estimate_pis_cofins_regime(result, regime.value)
    cycle = estimate_financial_cycle(result, revenue.value, cfg)

    composition = aggregate_taxes(
        result, revenue.value, activity.value, regime.value, cfg
    )
    info = sector_info(sector.value, sector_repository)
    ct = result.corporate_tax

    company = CompanyProfile(
        name=result.company.get("name", ""),
        tax_id=result.company.get("tax_id", ""),
        monthly_revenue=revenue.value,
        operating_margin=margin.value,
        activity_type=activity.value,
        tax_regime=regime.value,
        iva_sector=sector.value,
        period_start=result.company.get("period_start", ""),
        period_end=result.company.get("period_end", ""),
    )

    fiscal = FiscalParameters(
        operation_type=operation.value,
        pis_cofins_regime=pis_cofins.value,
        simples_rate=simples_rate(regime.value, cfg),
        tax_composition=_rates(composition, revenue.value),
        iva_sector=IvaSectorProfile(
            sector=info.sector, reduction=info.reduction, source=info.source
        ),
        corporate_tax=CorporateTaxProfile(
            irpj_effective_rate=_or_zero(ct.irpj_effective_rate),
            csll_effective_rate=_or_zero(ct.csll_effective_rate),
            export_revenue_pct=_or_zero(ct.export_revenue_pct),
            incentive_count=ct.incentive_count,
        ),
    )

    financial_cycle = FinancialCycle(
        pmr=cycle.pmr.value,
        pmp=cycle.pmp.value,
        pme=cycle.pme.value,
        cash_sale_pct=cycle.cash_sale_pct.value,
        term_sale_pct=cycle.term_sale_pct,
        working_capital_need=working_capital_need(revenue.value, cycle, cfg),
    )

    sources = {
        "monthlyRevenue": revenue.source,
        "operatingMargin": margin.source,
        "activityType": activity.source,
        "taxRegime": regime.source,
        "ivaSector": sector.source,
        "operationType": operation.source,
        "pisCofinsRegime": pis_cofins.source,
        "pmr": cycle.pmr.source,
        "pmp": cycle.pmp.source,
        "pme": cycle.pme.source,
        "cashSalePct": cycle.cash_sale_pct.source,
    }

    logger.info(
        "Assembled profile: revenue=%.2f activity=%s regime=%s",
        revenue.value,
        activity.value,
        regime.value,
    )

    return FiscalProfile(
        company=company,
        fiscal_parameters=fiscal,
        financial_cycle=financial_cycle,
        sources=sources,
        ledger_family=result.family,
        parse_stats=asdict(result.stats),
    )


def extract(
    lines: Iterable[str],
    family: Optional[str] = None,
    config: Optional[EngineConfig] = None,
    sector_repository: Optional[SectorRepository] = None,
) -> FiscalProfile:
    """Parse, link and assemble one ledger file.

    Args:
        lines: Lines of the ledger file.
        family: Ledger family; auto-detected when omitted.
        config: Engine configuration.
        sector_repository: Optional dual-VAT sector lookup.

    Returns:
        The fiscal profile. Empty input yields a fully-defaulted profile.
    """
    cfg = config or default_engine_config()
    result = parse_lines(lines, family=family, config=cfg)
    link(result, config=cfg)
    return assemble(result, cfg, sector_repository)


def _split_source(source: Source) -> tuple[Iterable[str], Optional[str]]:
    if (
        isinstance(source, tuple)
        and len(source) == 2
        and (source[1] is None or isinstance(source[1], str))
        and not isinstance(source[0], str)
    ):
        return source[0], source[1]
    return source, None


def extract_many(
    sources: Sequence[Source],
    config: Optional[EngineConfig] = None,
    sector_repository: Optional[SectorRepository] = None,
) -> FiscalProfile:
    """Build one profile from several ledger files.

    Each source is parsed independently, then results are merged (see
    ``parser.merge_results``), linked and assembled.

    Args:
        sources: Either lists of lines (family detected per file) or
            ``(lines, family)`` tuples.
        config: Engine configuration.
        sector_repository: Optional dual-VAT sector lookup.
    """
    cfg = config or default_engine_config()
    results = []
    for source in sources:
        lines, family = _split_source(source)
        results.append(parse_lines(lines, family=family, config=cfg))

    merged = merge_results(*results)
    link(merged, config=cfg)
    return assemble(merged, cfg, sector_repository)
