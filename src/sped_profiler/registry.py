# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Record schema registry.

Static two-level mapping ``family → record code → extractor``. The mapping is
built once at import time and exposed read-only; nothing mutates it at
runtime.

Codes that are not listed for a family are simply not extracted: SPED files
contain dozens of record types that are irrelevant for the financial profile
(block openers/closers, item registrations, ...), and they must not abort
extraction.
"""

from collections.abc import Callable, Mapping, Sequence
from types import MappingProxyType
from typing import Any, Optional

from . import extractors as ex
from .records import ACCOUNTING, CONTRIBUTIONS, CORPORATE_TAX, FISCAL

Extractor = Callable[[Sequence[str]], Optional[Any]]

# Record code of the file header, shared by every family.
HEADER_CODE = "0000"

# Closing record: nothing after it belongs to the ledger (digital signature).
TRAILER_CODE = "9999"

_FISCAL: dict[str, Extractor] = {
    HEADER_CODE: ex.company_fiscal,
    "0150": ex.participant,
    "C100": ex.goods_document,
    "C170": ex.line_item,
    "C190": ex.analytic_line_item,
    "E110": ex.icms_assessment,
    "E111": ex.icms_adjustment,
    "E520": ex.ipi_assessment,
    "H010": ex.inventory_line,
}

_CONTRIBUTIONS: dict[str, Extractor] = {
    HEADER_CODE: ex.company_contributions,
    "0110": ex.pis_cofins_incidence,
    "0150": ex.participant,
    "A100": ex.service_document,
    "C100": ex.goods_document,
    "C170": ex.line_item,
    "M100": ex.contribution_credit("pis"),
    "M105": ex.contribution_credit_detail("pis"),
    "M110": ex.contribution_adjustment("pis"),
    "M200": ex.contribution_debit("pis"),
    "M400": ex.untaxed_revenue("pis"),
    "M500": ex.contribution_credit("cofins"),
    "M505": ex.contribution_credit_detail("cofins"),
    "M510": ex.contribution_adjustment("cofins"),
    "M600": ex.contribution_debit("cofins"),
    "M800": ex.untaxed_revenue("cofins"),
}

_CORPORATE_TAX: dict[str, Extractor] = {
    HEADER_CODE: ex.company_corporate_tax,
    "0010": ex.corporate_taxation_method,
    "0030": ex.company_registration,
    "L100": ex.ecf_balance_line,
    "L300": ex.ecf_income_line,
    "N630": ex.corporate_tax_line("irpj"),
    "N670": ex.corporate_tax_line("csll"),
    "P300": ex.corporate_tax_line("irpj"),
    "P400": ex.corporate_tax_line("csll"),
    "X280": ex.tax_incentive,
    "Y540": ex.domestic_revenue,
    "Y550": ex.export_revenue,
}

_ACCOUNTING: dict[str, Extractor] = {
    HEADER_CODE: ex.company_accounting,
    "I050": ex.chart_account,
    "I155": ex.period_balance,
    "I200": ex.posting,
    "I250": ex.posting_entry,
    "J100": ex.ecd_balance_line,
    "J150": ex.ecd_income_line,
}

REGISTRY: Mapping[str, Mapping[str, Extractor]] = MappingProxyType(
    {
        FISCAL: MappingProxyType(_FISCAL),
        CONTRIBUTIONS: MappingProxyType(_CONTRIBUTIONS),
        CORPORATE_TAX: MappingProxyType(_CORPORATE_TAX),
        ACCOUNTING: MappingProxyType(_ACCOUNTING),
    }
)


def lookup(family: str, code: str) -> Optional[Extractor]:
    """Return the extractor registered for ``code`` in ``family``, if any."""
    by_code = REGISTRY.get(family)
    if by_code is None:
        return None
    return by_code.get(code)


def supported_codes(family: str) -> tuple[str, ...]:
    """Record codes extracted for a family, in registry order."""
    return tuple(REGISTRY.get(family, {}))
