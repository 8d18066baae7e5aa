# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Record extraction functions, one per SPED record layout.

Each extractor takes the ordered field list of one line (as produced by
``fields.split_line``, so index 1 is the record code) and returns either a
typed record from ``records.py`` or None when the line is structurally
incomplete (too few fields for the layout).

Extractors are pure: they do not log, keep no state and never look at other
lines. Parent/child relationships (C100 → C170, I200 → I250) are resolved by
the parser, which stamps the owning key on child records after extraction.

The layouts are listed in the registry (``registry.py``), which maps a
ledger family and a record code to the function that reads it.
"""

from collections.abc import Callable, Sequence
from typing import Optional

from .fields import digits_only, field, parse_date, parse_decimal
from .records import (
    Account,
    AccountingPosting,
    Adjustment,
    AnalyticLineItem,
    BalanceSheetLine,
    CompanyRecord,
    Credit,
    CreditDetail,
    Debit,
    DiscriminatedRevenue,
    Document,
    IncomeStatementLine,
    InventoryLine,
    LineItem,
    Participant,
    PostingEntry,
    RegimeDeclaration,
    TaxIncentive,
    TaxLedger,
    UntaxedRevenue,
)

Fields = Sequence[str]


def _too_short(fields: Fields, min_len: int) -> bool:
    return len(fields) < min_len


def _company(values: dict[str, str]) -> CompanyRecord:
    # Empty values must not erase what an earlier record already provided.
    return CompanyRecord(values={k: v for k, v in values.items() if v})


# ---------------------------------------------------------------------------
# Header and registration records
# ---------------------------------------------------------------------------


def company_fiscal(fields: Fields) -> Optional[CompanyRecord]:
    """0000 header of the goods-tax ledger."""
    if _too_short(fields, 15):
        return None
    return _company(
        {
            "tax_id": digits_only(field(fields, 7)),
            "name": field(fields, 8),
            "state_registration": field(fields, 10),
            "municipality": field(fields, 11),
            "state": field(fields, 12),
            "municipality_code": field(fields, 14),
            "period_start": parse_date(field(fields, 4)) or "",
            "period_end": parse_date(field(fields, 5)) or "",
        }
    )


def company_contributions(fields: Fields) -> Optional[CompanyRecord]:
    """0000 header of the PIS/COFINS ledger, which also carries the regime flag."""
    if _too_short(fields, 17):
        return None
    return _company(
        {
            "tax_id": digits_only(field(fields, 7)),
            "name": field(fields, 8),
            "state_registration": field(fields, 10),
            "municipality": field(fields, 11),
            "state": field(fields, 12),
            "period_start": parse_date(field(fields, 4)) or "",
            "period_end": parse_date(field(fields, 5)) or "",
            "regime_code": field(fields, 16),
        }
    )


def company_corporate_tax(fields: Fields) -> Optional[CompanyRecord]:
    """0000 header of the corporate income tax ledger (ECF)."""
    if _too_short(fields, 12):
        return None
    return _company(
        {
            "tax_id": digits_only(field(fields, 4)),
            "name": field(fields, 5),
            "period_start": parse_date(field(fields, 10)) or "",
            "period_end": parse_date(field(fields, 11)) or "",
        }
    )


def company_registration(fields: Fields) -> Optional[CompanyRecord]:
    """0030 registration data of the ECF: legal nature and CNAE."""
    if _too_short(fields, 10):
        return None
    return _company(
        {
            "legal_nature": field(fields, 2),
            "cnae": digits_only(field(fields, 3)),
            "state": field(fields, 8),
            "municipality_code": field(fields, 9),
        }
    )


def company_accounting(fields: Fields) -> Optional[CompanyRecord]:
    """0000 header of the accounting ledger (ECD)."""
    if _too_short(fields, 10):
        return None
    return _company(
        {
            "period_start": parse_date(field(fields, 3)) or "",
            "period_end": parse_date(field(fields, 4)) or "",
            "name": field(fields, 5),
            "tax_id": digits_only(field(fields, 6)),
            "state": field(fields, 7),
            "state_registration": field(fields, 8),
            "municipality_code": field(fields, 9),
        }
    )


def participant(fields: Fields) -> Optional[Participant]:
    """0150 participant (customer/supplier) registration."""
    if _too_short(fields, 9):
        return None
    return Participant(
        code=field(fields, 2),
        name=field(fields, 3),
        country=field(fields, 4),
        cnpj=digits_only(field(fields, 5)),
        cpf=digits_only(field(fields, 6)),
        state_registration=field(fields, 7),
        municipality_code=field(fields, 8),
    )


def pis_cofins_incidence(fields: Fields) -> Optional[RegimeDeclaration]:
    """0110 PIS/COFINS incidence regime."""
    if _too_short(fields, 3):
        return None
    return RegimeDeclaration(
        category="pisCofins",
        code=field(fields, 2),
        details={
            "apportionment": field(fields, 3),
            "contribution_type": field(fields, 4),
        },
    )


def corporate_taxation_method(fields: Fields) -> Optional[RegimeDeclaration]:
    """ECF 0010: taxation method (Lucro Real, Presumido, Arbitrado, ...)."""
    if _too_short(fields, 6):
        return None
    return RegimeDeclaration(
        category="corporateTax",
        code=field(fields, 5),
        details={
            "computation_period": field(fields, 6),
            "qualification": field(fields, 7),
            "entity_type": field(fields, 11),
        },
    )


# ---------------------------------------------------------------------------
# Documents and items
# ---------------------------------------------------------------------------


def goods_document(fields: Fields) -> Optional[Document]:
    """C100 goods invoice (NF-e model 55, NFC-e model 65, ...)."""
    if _too_short(fields, 28):
        return None
    return Document(
        operation=field(fields, 2),
        issuer=field(fields, 3),
        participant_code=field(fields, 4),
        model=field(fields, 5),
        status=field(fields, 6),
        series=field(fields, 7),
        number=field(fields, 8),
        access_key=field(fields, 9),
        issue_date=parse_date(field(fields, 10)),
        movement_date=parse_date(field(fields, 11)),
        total=parse_decimal(field(fields, 12)),
        payment_indicator=field(fields, 13),
        discount=parse_decimal(field(fields, 14)),
        goods_value=parse_decimal(field(fields, 16)),
        icms=parse_decimal(field(fields, 22)),
        ipi=parse_decimal(field(fields, 25)),
        pis=parse_decimal(field(fields, 26)),
        cofins=parse_decimal(field(fields, 27)),
    )


# Model code used for service invoices, which have no model field of their own.
SERVICE_DOCUMENT_MODEL = "SE"


def service_document(fields: Fields) -> Optional[Document]:
    """A100 service invoice (NFS-e) from the PIS/COFINS ledger."""
    if _too_short(fields, 22):
        return None
    return Document(
        operation=field(fields, 2),
        issuer=field(fields, 3),
        participant_code=field(fields, 4),
        model=SERVICE_DOCUMENT_MODEL,
        status=field(fields, 5),
        series=field(fields, 6),
        number=field(fields, 8),
        issue_date=parse_date(field(fields, 10)),
        movement_date=parse_date(field(fields, 11)),
        total=parse_decimal(field(fields, 12)),
        payment_indicator=field(fields, 13),
        discount=parse_decimal(field(fields, 14)),
        pis=parse_decimal(field(fields, 16)),
        cofins=parse_decimal(field(fields, 18)),
        iss=parse_decimal(field(fields, 21)),
    )


def line_item(fields: Fields) -> Optional[LineItem]:
    """C170 document item."""
    if _too_short(fields, 16):
        return None
    return LineItem(
        number=field(fields, 2),
        item_code=field(fields, 3),
        description=field(fields, 4),
        quantity=parse_decimal(field(fields, 5)),
        unit=field(fields, 6),
        value=parse_decimal(field(fields, 7)),
        discount=parse_decimal(field(fields, 8)),
        cst_icms=field(fields, 10),
        cfop=field(fields, 11),
        icms_base=parse_decimal(field(fields, 13)),
        icms_rate=parse_decimal(field(fields, 14)),
        icms=parse_decimal(field(fields, 15)),
    )


def analytic_line_item(fields: Fields) -> Optional[AnalyticLineItem]:
    """C190 analytic record of a document."""
    if _too_short(fields, 8):
        return None
    return AnalyticLineItem(
        cst_icms=field(fields, 2),
        cfop=field(fields, 3),
        icms_rate=parse_decimal(field(fields, 4)),
        operation_value=parse_decimal(field(fields, 5)),
        icms_base=parse_decimal(field(fields, 6)),
        icms=parse_decimal(field(fields, 7)),
        ipi=parse_decimal(field(fields, 11)),
    )


def inventory_line(fields: Fields) -> Optional[InventoryLine]:
    """H010 inventory position."""
    if _too_short(fields, 7):
        return None
    return InventoryLine(
        item_code=field(fields, 2),
        unit=field(fields, 3),
        quantity=parse_decimal(field(fields, 4)),
        unit_value=parse_decimal(field(fields, 5)),
        value=parse_decimal(field(fields, 6)),
        ownership=field(fields, 7),
    )


# ---------------------------------------------------------------------------
# Tax assessments
# ---------------------------------------------------------------------------


def icms_assessment(fields: Fields) -> Optional[TaxLedger]:
    """E110 ICMS assessment for the period."""
    if _too_short(fields, 14):
        return None
    return TaxLedger(
        category="icms",
        debits=parse_decimal(field(fields, 2)),
        credits=parse_decimal(field(fields, 6)),
        balance=parse_decimal(field(fields, 11)),
        payable=parse_decimal(field(fields, 13)),
    )


def ipi_assessment(fields: Fields) -> Optional[TaxLedger]:
    """E520 IPI assessment for the period."""
    if _too_short(fields, 9):
        return None
    return TaxLedger(
        category="ipi",
        debits=parse_decimal(field(fields, 3)),
        credits=parse_decimal(field(fields, 4)),
        balance=parse_decimal(field(fields, 8)),
    )


def icms_adjustment(fields: Fields) -> Optional[Adjustment]:
    """E111 ICMS assessment adjustment."""
    if _too_short(fields, 5):
        return None
    return Adjustment(
        category="icms",
        code=field(fields, 2),
        description=field(fields, 3),
        amount=parse_decimal(field(fields, 4)),
    )


def contribution_credit(category: str) -> Callable[[Fields], Optional[Credit]]:
    """Build the extractor for M100 (pis) / M500 (cofins) credits."""

    def extract(fields: Fields) -> Optional[Credit]:
        if _too_short(fields, 9):
            return None
        return Credit(
            category=category,
            credit_type=field(fields, 2),
            base=parse_decimal(field(fields, 4)),
            rate=parse_decimal(field(fields, 5)),
            amount=parse_decimal(field(fields, 8)),
        )

    return extract


def contribution_credit_detail(
    category: str,
) -> Callable[[Fields], Optional[CreditDetail]]:
    """Build the extractor for M105 (pis) / M505 (cofins) credit details."""

    def extract(fields: Fields) -> Optional[CreditDetail]:
        if _too_short(fields, 5):
            return None
        return CreditDetail(
            category=category,
            base_nature=field(fields, 2),
            cst=field(fields, 3),
            base=parse_decimal(field(fields, 4)),
        )

    return extract


def contribution_adjustment(category: str) -> Callable[[Fields], Optional[Adjustment]]:
    """Build the extractor for M110 (pis) / M510 (cofins) adjustments."""

    def extract(fields: Fields) -> Optional[Adjustment]:
        if _too_short(fields, 5):
            return None
        return Adjustment(
            category=category,
            code=field(fields, 4),
            description=field(fields, 6),
            amount=parse_decimal(field(fields, 3)),
            indicator=field(fields, 2),
        )

    return extract


def contribution_debit(category: str) -> Callable[[Fields], Optional[Debit]]:
    """Build the extractor for M200 (pis) / M600 (cofins) contributions due."""

    def extract(fields: Fields) -> Optional[Debit]:
        if _too_short(fields, 14):
            return None
        return Debit(
            category=category,
            non_cumulative=parse_decimal(field(fields, 2)),
            cumulative=parse_decimal(field(fields, 9)),
            total=parse_decimal(field(fields, 13)),
        )

    return extract


def untaxed_revenue(category: str) -> Callable[[Fields], Optional[UntaxedRevenue]]:
    """Build the extractor for M400 (pis) / M800 (cofins) untaxed revenue."""

    def extract(fields: Fields) -> Optional[UntaxedRevenue]:
        if _too_short(fields, 4):
            return None
        return UntaxedRevenue(
            category=category,
            cst=field(fields, 2),
            revenue=parse_decimal(field(fields, 3)),
            account=field(fields, 4),
        )

    return extract


def corporate_tax_line(category: str) -> Callable[[Fields], Optional[TaxLedger]]:
    """Build the extractor for IRPJ (N630, P300) / CSLL (N670, P400) lines."""

    def extract(fields: Fields) -> Optional[TaxLedger]:
        if _too_short(fields, 5):
            return None
        return TaxLedger(
            category=category,
            line_code=field(fields, 2),
            description=field(fields, 3),
            value=parse_decimal(field(fields, 4)),
        )

    return extract


def tax_incentive(fields: Fields) -> Optional[TaxIncentive]:
    """X280 incentivized activity."""
    if _too_short(fields, 5):
        return None
    return TaxIncentive(
        activity=field(fields, 2),
        project=field(fields, 3),
        act=field(fields, 4),
        valid_from=parse_date(field(fields, 5)),
        valid_to=parse_date(field(fields, 6)),
    )


def domestic_revenue(fields: Fields) -> Optional[DiscriminatedRevenue]:
    """Y540 revenue per establishment and economic activity."""
    if _too_short(fields, 5):
        return None
    return DiscriminatedRevenue(
        category="domestic",
        tax_id=digits_only(field(fields, 2)),
        revenue=parse_decimal(field(fields, 3)),
        activity_code=digits_only(field(fields, 4)),
    )


def export_revenue(fields: Fields) -> Optional[DiscriminatedRevenue]:
    """Y550 sales to trading companies with an export purpose."""
    if _too_short(fields, 5):
        return None
    return DiscriminatedRevenue(
        category="export",
        tax_id=digits_only(field(fields, 2)),
        revenue=parse_decimal(field(fields, 4)),
    )


# ---------------------------------------------------------------------------
# Accounting statements
# ---------------------------------------------------------------------------


def ecf_balance_line(fields: Fields) -> Optional[BalanceSheetLine]:
    """L100 referential balance sheet line."""
    if _too_short(fields, 12):
        return None
    return BalanceSheetLine(
        code=field(fields, 2),
        description=field(fields, 3),
        final_balance=parse_decimal(field(fields, 10)),
        nature=field(fields, 11).upper(),
        opening_balance=parse_decimal(field(fields, 8)),
        level=field(fields, 5),
    )


def ecf_income_line(fields: Fields) -> Optional[IncomeStatementLine]:
    """L300 referential income statement line."""
    if _too_short(fields, 10):
        return None
    return IncomeStatementLine(
        code=field(fields, 2),
        description=field(fields, 3),
        value=parse_decimal(field(fields, 8)),
        nature=field(fields, 9).upper(),
        level=field(fields, 5),
        line_type=field(fields, 4),
    )


def chart_account(fields: Fields) -> Optional[Account]:
    """I050 chart of accounts entry."""
    if _too_short(fields, 9):
        return None
    return Account(
        code=field(fields, 6),
        parent=field(fields, 7),
        name=field(fields, 8),
        nature=field(fields, 3),
        account_type=field(fields, 4),
        level=field(fields, 5),
    )


def period_balance(fields: Fields) -> Optional[BalanceSheetLine]:
    """I155 account balance for the period."""
    if _too_short(fields, 10):
        return None
    return BalanceSheetLine(
        code=field(fields, 2),
        description="",
        final_balance=parse_decimal(field(fields, 8)),
        nature=field(fields, 9).upper(),
        opening_balance=parse_decimal(field(fields, 4)),
        debits=parse_decimal(field(fields, 6)),
        credits=parse_decimal(field(fields, 7)),
    )


def posting(fields: Fields) -> Optional[AccountingPosting]:
    """I200 journal entry header."""
    if _too_short(fields, 6):
        return None
    return AccountingPosting(
        number=field(fields, 2),
        date=parse_date(field(fields, 3)),
        amount=parse_decimal(field(fields, 4)),
        posting_type=field(fields, 5),
    )


def posting_entry(fields: Fields) -> Optional[PostingEntry]:
    """I250 journal entry leg."""
    if _too_short(fields, 6):
        return None
    return PostingEntry(
        account=field(fields, 2),
        amount=parse_decimal(field(fields, 4)),
        nature=field(fields, 5).upper(),
        history=field(fields, 8),
        participant_code=field(fields, 9),
    )


def ecd_balance_line(fields: Fields) -> Optional[BalanceSheetLine]:
    """J100 balance sheet line."""
    if _too_short(fields, 12):
        return None
    return BalanceSheetLine(
        code=field(fields, 2),
        description=field(fields, 7),
        final_balance=parse_decimal(field(fields, 10)),
        nature=field(fields, 11).upper(),
        group=field(fields, 6).upper(),
        opening_balance=parse_decimal(field(fields, 8)),
        level=field(fields, 4),
    )


def ecd_income_line(fields: Fields) -> Optional[IncomeStatementLine]:
    """J150 income statement line."""
    if _too_short(fields, 12):
        return None
    return IncomeStatementLine(
        code=field(fields, 3),
        description=field(fields, 7),
        value=parse_decimal(field(fields, 10)),
        nature=field(fields, 11).upper(),
        level=field(fields, 5),
    )
