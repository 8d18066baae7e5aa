# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Typed records and the extraction accumulator.

Every extractor (see ``extractors.py``) turns the fields of one ledger line
into exactly one of the record types defined here. Each record class carries
a ``kind`` tag which the parser uses to decide where the record is stored in
the ``ExtractionResult``:

- company records are merged into the running ``company`` map,
- collection records (documents, line items, postings, ...) are appended to
  an ordered list,
- category records (tax ledgers, credits, debits, ...) are appended under a
  category key such as 'icms', 'pis' or 'cofins'.

``ExtractionResult`` is owned by a single parse invocation. After the
relationship builder (``linking.py``) has run, documents carry their line
items and participant, and the derived ``working_capital`` and
``corporate_tax`` summaries are filled in.
"""

from dataclasses import dataclass, field
from typing import ClassVar, Optional

# Ledger families supported by the registry.
FISCAL = "fiscal"
CONTRIBUTIONS = "contributions"
CORPORATE_TAX = "corporateTax"
ACCOUNTING = "accounting"

LEDGER_FAMILIES: tuple[str, ...] = (FISCAL, CONTRIBUTIONS, CORPORATE_TAX, ACCOUNTING)

# Document operation indicator (C100/A100 field 2).
OPERATION_INBOUND = "0"
OPERATION_OUTBOUND = "1"

# Balance nature markers.
DEBIT = "D"
CREDIT = "C"


@dataclass
class CompanyRecord:
    """Company identification fields coming from a header-like record."""

    kind: ClassVar[str] = "company"

    values: dict[str, str]


@dataclass
class Participant:
    """Counterparty registered in a 0150 record."""

    kind: ClassVar[str] = "participant"

    code: str
    name: str
    country: str = ""
    cnpj: str = ""
    cpf: str = ""
    state_registration: str = ""
    municipality_code: str = ""

    @property
    def tax_id(self) -> str:
        """CNPJ when present, otherwise CPF."""
        return self.cnpj or self.cpf


@dataclass
class LineItem:
    """Goods line of a fiscal document (C170)."""

    kind: ClassVar[str] = "lineItem"

    number: str
    item_code: str
    description: str
    quantity: float
    unit: str
    value: float
    discount: float
    cst_icms: str
    cfop: str
    icms_base: float = 0.0
    icms_rate: float = 0.0
    icms: float = 0.0
    document_key: Optional[int] = None


@dataclass
class AnalyticLineItem:
    """Analytic (per CST/CFOP/rate) summary of a fiscal document (C190)."""

    kind: ClassVar[str] = "analyticLineItem"

    cst_icms: str
    cfop: str
    icms_rate: float
    operation_value: float
    icms_base: float
    icms: float
    ipi: float = 0.0
    document_key: Optional[int] = None


@dataclass
class Document:
    """Fiscal document header (C100 goods invoice, A100 service invoice)."""

    kind: ClassVar[str] = "document"

    operation: str
    issuer: str
    participant_code: str
    model: str
    status: str
    series: str
    number: str
    issue_date: Optional[str]
    movement_date: Optional[str]
    total: float
    payment_indicator: str = ""
    access_key: str = ""
    discount: float = 0.0
    goods_value: float = 0.0
    icms: float = 0.0
    ipi: float = 0.0
    pis: float = 0.0
    cofins: float = 0.0
    iss: float = 0.0
    key: Optional[int] = None
    items: list[LineItem] = field(default_factory=list)
    participant: Optional[Participant] = None

    @property
    def is_outbound(self) -> bool:
        return self.operation == OPERATION_OUTBOUND

    @property
    def date(self) -> Optional[str]:
        """Issue date, falling back to the movement date."""
        return self.issue_date or self.movement_date


@dataclass
class TaxLedger:
    """Tax assessment record (E110, E520) or corporate-tax computation line
    (N630, N670, P300, P400)."""

    kind: ClassVar[str] = "taxLedger"

    category: str
    debits: float = 0.0
    credits: float = 0.0
    balance: float = 0.0
    payable: float = 0.0
    line_code: str = ""
    description: str = ""
    value: float = 0.0


@dataclass
class Credit:
    """PIS/COFINS credit (M100, M500)."""

    kind: ClassVar[str] = "credit"

    category: str
    credit_type: str
    base: float
    rate: float
    amount: float


@dataclass
class CreditDetail:
    """Base detail of a PIS/COFINS credit (M105, M505)."""

    kind: ClassVar[str] = "creditDetail"

    category: str
    base_nature: str
    cst: str
    base: float


@dataclass
class Debit:
    """PIS/COFINS contribution due for the period (M200, M600)."""

    kind: ClassVar[str] = "debit"

    category: str
    non_cumulative: float
    cumulative: float
    total: float


@dataclass
class Adjustment:
    """Assessment adjustment (E111, M110, M510)."""

    kind: ClassVar[str] = "adjustment"

    category: str
    code: str
    description: str
    amount: float
    indicator: str = ""


@dataclass
class UntaxedRevenue:
    """Revenue not subject to PIS/COFINS (M400, M800)."""

    kind: ClassVar[str] = "untaxedRevenue"

    category: str
    cst: str
    revenue: float
    account: str = ""


@dataclass
class RegimeDeclaration:
    """Explicit regime declaration (0110 incidence, ECF 0010 taxation method)."""

    kind: ClassVar[str] = "regimeDeclaration"

    category: str
    code: str
    details: dict[str, str] = field(default_factory=dict)


@dataclass
class TaxIncentive:
    """Incentivized activity declared in the corporate-tax ledger (X280)."""

    kind: ClassVar[str] = "taxIncentive"

    activity: str
    project: str
    act: str
    valid_from: Optional[str] = None
    valid_to: Optional[str] = None


@dataclass
class IncomeStatementLine:
    """Income statement line (ECD J150, ECF L300)."""

    kind: ClassVar[str] = "incomeStatementLine"

    code: str
    description: str
    value: float
    nature: str
    level: str = ""
    line_type: str = ""


@dataclass
class Account:
    """Chart of accounts entry (I050)."""

    kind: ClassVar[str] = "account"

    code: str
    parent: str
    name: str
    nature: str
    account_type: str
    level: str = ""


@dataclass
class AccountingPosting:
    """Journal entry header (I200)."""

    kind: ClassVar[str] = "accountingPosting"

    number: str
    date: Optional[str]
    amount: float
    posting_type: str
    key: Optional[int] = None


@dataclass
class PostingEntry:
    """Debit or credit leg of a journal entry (I250)."""

    kind: ClassVar[str] = "postingEntry"

    account: str
    amount: float
    nature: str
    history: str = ""
    participant_code: str = ""
    posting_key: Optional[int] = None


@dataclass
class BalanceSheetLine:
    """Account or aggregation balance (ECD I155/J100, ECF L100)."""

    kind: ClassVar[str] = "balanceSheetLine"

    code: str
    description: str
    final_balance: float
    nature: str
    group: str = ""
    opening_balance: float = 0.0
    debits: float = 0.0
    credits: float = 0.0
    level: str = ""


@dataclass
class InventoryLine:
    """Inventory position (H010)."""

    kind: ClassVar[str] = "inventoryLine"

    item_code: str
    unit: str
    quantity: float
    unit_value: float
    value: float
    ownership: str = ""


@dataclass
class DiscriminatedRevenue:
    """Revenue broken down by establishment or export channel (Y540, Y550)."""

    kind: ClassVar[str] = "discriminatedRevenue"

    category: str
    tax_id: str
    revenue: float
    activity_code: str = ""


# All record variants an extractor may return.
TYPED_RECORDS: tuple[type, ...] = (
    CompanyRecord,
    Participant,
    Document,
    LineItem,
    AnalyticLineItem,
    TaxLedger,
    Credit,
    CreditDetail,
    Debit,
    Adjustment,
    UntaxedRevenue,
    RegimeDeclaration,
    TaxIncentive,
    IncomeStatementLine,
    Account,
    AccountingPosting,
    PostingEntry,
    BalanceSheetLine,
    InventoryLine,
    DiscriminatedRevenue,
)


@dataclass
class WorkingCapital:
    """Working-capital aggregates derived from accounting collections.

    Attributes:
        receivables: Clients balance (debit nature).
        payables: Suppliers balance (credit nature).
        inventory: Inventory balance (debit nature).
        revenue: Net revenue for the ledger period.
        operating_result: Operating result for the ledger period.
        source: Which collection fed the figures ('balances', 'postings', ...).
    """

    receivables: Optional[float] = None
    payables: Optional[float] = None
    inventory: Optional[float] = None
    revenue: Optional[float] = None
    operating_result: Optional[float] = None
    source: str = ""


@dataclass
class CorporateTaxSummary:
    """Ratios derived from the corporate-tax ledger.

    Rates are fractions (0.15 means 15 %). None means no usable records.
    """

    irpj_effective_rate: Optional[float] = None
    csll_effective_rate: Optional[float] = None
    annual_gross_revenue: Optional[float] = None
    export_revenue_pct: Optional[float] = None
    incentive_count: int = 0


@dataclass
class ParseStats:
    """Counters collected while parsing one file."""

    lines_read: int = 0
    records_parsed: int = 0
    malformed_lines: int = 0
    ignored_lines: int = 0


@dataclass
class ExtractionResult:
    """Mutable accumulator filled by one parse pass."""

    family: str = FISCAL
    company: dict[str, str] = field(default_factory=dict)
    documents: list[Document] = field(default_factory=list)
    line_items: list[LineItem] = field(default_factory=list)
    analytic_line_items: list[AnalyticLineItem] = field(default_factory=list)
    participants: list[Participant] = field(default_factory=list)
    taxes: dict[str, list[TaxLedger]] = field(default_factory=dict)
    credits: dict[str, list[Credit]] = field(default_factory=dict)
    credit_details: dict[str, list[CreditDetail]] = field(default_factory=dict)
    debits: dict[str, list[Debit]] = field(default_factory=dict)
    adjustments: dict[str, list[Adjustment]] = field(default_factory=dict)
    untaxed_revenue: dict[str, list[UntaxedRevenue]] = field(default_factory=dict)
    regime_declarations: dict[str, list[RegimeDeclaration]] = field(
        default_factory=dict
    )
    discriminated_revenue: dict[str, list[DiscriminatedRevenue]] = field(
        default_factory=dict
    )
    balance_sheet_lines: list[BalanceSheetLine] = field(default_factory=list)
    income_statement_lines: list[IncomeStatementLine] = field(default_factory=list)
    postings: list[AccountingPosting] = field(default_factory=list)
    posting_entries: list[PostingEntry] = field(default_factory=list)
    incentives: list[TaxIncentive] = field(default_factory=list)
    inventory_lines: list[InventoryLine] = field(default_factory=list)
    accounts: list[Account] = field(default_factory=list)

    # Derived by linking.link()
    working_capital: WorkingCapital = field(default_factory=WorkingCapital)
    corporate_tax: CorporateTaxSummary = field(default_factory=CorporateTaxSummary)

    stats: ParseStats = field(default_factory=ParseStats)

    def outbound_documents(self) -> list[Document]:
        """Documents issued for outbound operations (sales)."""
        return [d for d in self.documents if d.is_outbound]
