# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Relationship builder.

``link()`` runs once after parsing and mutates the ExtractionResult in place:

1. Generic joins
   - line items are grouped by their owning document key and attached to
     ``Document.items``,
   - participants are indexed by code and attached to ``Document.participant``
     (lookup only, the participant list stays the owner).

2. Family-specific aggregates
   - accounting statements (ECD balances and income statement, or the
     referential statements of the ECF) → ``WorkingCapital``,
   - corporate-tax computation lines and discriminated revenue (ECF) →
     ``CorporateTaxSummary``.

Aggregates run for the family of the result and for any other family whose
collections are populated, so a result merged from several files is fully
aggregated.

Aggregations are done with pandas DataFrames built from the record lists,
the same way financial statements are summed elsewhere in the project.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import asdict
from typing import Optional

import pandas as pd

from .accounts import (
    INVENTORY,
    NET_REVENUE,
    OPERATING_RESULT,
    PAYABLES,
    RECEIVABLES,
    REVENUE,
    AccountGroup,
    normalize_text,
)
from .config import EngineConfig, default_engine_config
from .records import (
    ACCOUNTING,
    CORPORATE_TAX,
    CREDIT,
    BalanceSheetLine,
    CorporateTaxSummary,
    ExtractionResult,
    IncomeStatementLine,
    LineItem,
    TaxLedger,
    WorkingCapital,
)

logger = logging.getLogger(__name__)

# Description keywords of the ECF computation lines (N630/N670/P300/P400).
TAX_BASE_KEYWORDS: tuple[str, ...] = ("BASE DE CALCULO",)
TAX_PAYABLE_KEYWORDS: tuple[str, ...] = ("A PAGAR",)


# ---------------------------------------------------------------------------
# Generic joins
# ---------------------------------------------------------------------------


def _attach_items(result: ExtractionResult) -> None:
    by_document: dict[int, list[LineItem]] = defaultdict(list)
    for item in result.line_items:
        if item.document_key is not None:
            by_document[item.document_key].append(item)

    for doc in result.documents:
        doc.items = list(by_document.get(doc.key, [])) if doc.key is not None else []


def _attach_participants(result: ExtractionResult) -> None:
    index = {}
    for p in result.participants:
        # First registration wins when a code is repeated across files.
        index.setdefault(p.code, p)

    for doc in result.documents:
        doc.participant = index.get(doc.participant_code)


# ---------------------------------------------------------------------------
# Statement helpers
# ---------------------------------------------------------------------------


def _drop_descendants(df: pd.DataFrame) -> pd.DataFrame:
    """Keep only the top-most matched lines so that a synthetic line and its
    sub-accounts are not counted twice."""
    if df.empty:
        return df
    codes = [c for c in df["code"] if c]
    keep = [
        not any(c != other and c and c.startswith(other) for other in codes)
        for c in df["code"]
    ]
    return df[keep]


def _signed(amount: pd.Series, nature: pd.Series, expected: str) -> pd.Series:
    """Positive when the nature matches the group's expected nature."""
    return amount.where(nature.isin([expected, ""]), -amount)


def _match(df: pd.DataFrame, group: AccountGroup) -> pd.DataFrame:
    if df.empty:
        return df
    mask = [
        group.matches(code, desc) for code, desc in zip(df["code"], df["description"])
    ]
    return _drop_descendants(df[mask])


def _balance_frame(result: ExtractionResult) -> tuple[pd.DataFrame, str]:
    """Balance lines as a DataFrame, preferring statement lines over account
    balances.

    Statement lines (J100, L100) carry descriptions. Account balances (I155)
    get their description from the chart of accounts (I050) and only the
    last balance of each account is kept, since the ECD repeats balances per
    period.
    """
    lines: list[BalanceSheetLine] = result.balance_sheet_lines
    if not lines:
        empty = pd.DataFrame(columns=["code", "description", "final_balance", "nature"])
        return empty, ""

    df = pd.DataFrame([asdict(b) for b in lines])
    statements = df[(df["description"] != "") | (df["group"] != "")]
    if not statements.empty:
        return statements.drop_duplicates("code", keep="last"), "statements"

    names = {a.code: a.name for a in result.accounts}
    df = df.drop_duplicates("code", keep="last").copy()
    df["description"] = df["code"].map(names).fillna("")
    return df, "balances"


def _income_frame(lines: Iterable[IncomeStatementLine]) -> pd.DataFrame:
    rows = [asdict(line) for line in lines]
    if not rows:
        return pd.DataFrame(columns=["code", "description", "value", "nature"])
    return pd.DataFrame(rows).drop_duplicates("code", keep="last")


def balance_total(df: pd.DataFrame, group: AccountGroup) -> Optional[float]:
    """Signed total of the balance lines matching ``group``, None if none match."""
    matched = _match(df, group)
    if matched.empty:
        return None
    return float(
        _signed(matched["final_balance"], matched["nature"], group.nature).sum()
    )


def income_statement_total(
    lines: Iterable[IncomeStatementLine], group: AccountGroup
) -> Optional[float]:
    """Credit-positive total of the income statement lines matching ``group``.

    Returns None when no line matches.
    """
    df = _income_frame(lines)
    matched = _match(df, group)
    if matched.empty:
        return None
    return float(_signed(matched["value"], matched["nature"], CREDIT).sum())


def _posted_revenue(result: ExtractionResult, group: AccountGroup) -> Optional[float]:
    """Sum of credit postings on revenue accounts (I250)."""
    if not result.posting_entries:
        return None

    names = {a.code: a.name for a in result.accounts}
    df = pd.DataFrame([asdict(e) for e in result.posting_entries])
    mask = [
        nature == CREDIT and group.matches(acc, names.get(acc, ""))
        for acc, nature in zip(df["account"], df["nature"])
    ]
    credits = df[mask]
    if credits.empty:
        return None
    return float(credits["amount"].sum())


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


def build_working_capital(
    result: ExtractionResult, config: Optional[EngineConfig] = None
) -> WorkingCapital:
    """Derive working-capital figures from accounting collections."""
    groups = (config or default_engine_config()).account_groups
    balances, source = _balance_frame(result)

    wc = WorkingCapital(source=source)
    wc.receivables = balance_total(balances, groups[RECEIVABLES])
    wc.payables = balance_total(balances, groups[PAYABLES])
    wc.inventory = balance_total(balances, groups[INVENTORY])

    income = result.income_statement_lines
    wc.revenue = income_statement_total(income, groups[NET_REVENUE])
    if wc.revenue is None:
        wc.revenue = income_statement_total(income, groups[REVENUE])
    wc.operating_result = income_statement_total(income, groups[OPERATING_RESULT])

    if wc.revenue is None:
        wc.revenue = _posted_revenue(result, groups[REVENUE])
        if wc.revenue is not None:
            wc.source = f"{source}+postings" if source else "postings"

    return wc


def _keyword_sum(df: pd.DataFrame, keywords: tuple[str, ...]) -> float:
    mask = [any(k in normalize_text(d) for k in keywords) for d in df["description"]]
    return float(df.loc[mask, "value"].sum())


def _effective_rate(lines: list[TaxLedger]) -> Optional[float]:
    """Amount payable ÷ calculation base over all computation periods."""
    if not lines:
        return None
    df = pd.DataFrame([asdict(t) for t in lines])
    base = _keyword_sum(df, TAX_BASE_KEYWORDS)
    payable = _keyword_sum(df, TAX_PAYABLE_KEYWORDS)
    if base <= 0:
        return None
    return payable / base


def build_corporate_tax_summary(result: ExtractionResult) -> CorporateTaxSummary:
    """Derive effective rates and revenue figures from the ECF collections."""
    summary = CorporateTaxSummary(incentive_count=len(result.incentives))
    summary.irpj_effective_rate = _effective_rate(result.taxes.get("irpj", []))
    summary.csll_effective_rate = _effective_rate(result.taxes.get("csll", []))

    domestic = result.discriminated_revenue.get("domestic", [])
    export = result.discriminated_revenue.get("export", [])
    if domestic or export:
        # Y550 sales to trading companies are already part of the Y540 revenue.
        export_total = float(sum(r.revenue for r in export))
        total = float(sum(r.revenue for r in domestic)) if domestic else export_total
        summary.annual_gross_revenue = total
        summary.export_revenue_pct = (
            min(export_total / total, 1.0) if total > 0 else None
        )

    return summary


def _has_accounting_data(result: ExtractionResult) -> bool:
    return bool(
        result.balance_sheet_lines
        or result.income_statement_lines
        or result.posting_entries
    )


def _has_corporate_tax_data(result: ExtractionResult) -> bool:
    return bool(
        result.taxes.get("irpj")
        or result.taxes.get("csll")
        or result.discriminated_revenue
        or result.incentives
    )


def link(
    result: ExtractionResult,
    family: Optional[str] = None,
    config: Optional[EngineConfig] = None,
) -> ExtractionResult:
    """Join collections and compute family-specific aggregates in place.

    Args:
        result: Parsed result (mutated).
        family: Ledger family; defaults to ``result.family``.
        config: Engine configuration (account groups).

    Returns:
        The same ``result`` object, for chaining.
    """
    family = family or result.family

    _attach_items(result)
    _attach_participants(result)

    if family == ACCOUNTING or _has_accounting_data(result):
        result.working_capital = build_working_capital(result, config)
        logger.debug("Working capital: %s", result.working_capital)

    if family == CORPORATE_TAX or _has_corporate_tax_data(result):
        result.corporate_tax = build_corporate_tax_summary(result)
        logger.debug("Corporate tax summary: %s", result.corporate_tax)

    return result
