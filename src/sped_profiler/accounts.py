# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Account groups used to read working-capital figures from accounting ledgers.

Charts of accounts are company-specific, so an account group is described
by two complementary signals:

- include/exclude code patterns, semicolon-separated ('1.1.2*;112*'), where a
  trailing '*' means "starts with" and anything else is an exact match,
- description keywords ('CLIENTES', 'DUPLICATAS A RECEBER'), compared
  without accents and case-insensitively, for aggregated statement lines
  whose codes are free-form.

Each group also states the balance nature it expects: receivables and
inventory are debit balances, payables and revenue are credit balances.
"""

import unicodedata
from dataclasses import dataclass
from typing import Optional

from .records import CREDIT, DEBIT


@dataclass(frozen=True)
class AccountGroup:
    """Definition of a working-capital account group.

    Attributes:
        name: Group identifier ('receivables', 'payables', ...).
        include: Semicolon-separated patterns of account codes to include.
        exclude: Semicolon-separated patterns of account codes to exclude.
        keywords: Semicolon-separated description keywords.
        nature: Expected balance nature ('D' or 'C').
    """

    name: str
    include: str
    exclude: str
    keywords: str
    nature: str

    def matches(self, code: str, description: str = "") -> bool:
        """Return True if an account code or description belongs to the group."""
        code = str(code).strip()
        inc = to_patterns(self.include)
        exc = to_patterns(self.exclude)
        if code and exc and match_code(code, exc):
            return False
        if code and inc and match_code(code, inc):
            return True
        return match_keywords(description, to_patterns(self.keywords))


def to_patterns(s: Optional[str]) -> list[str]:
    """Convert a semicolon-separated pattern string into a list.

    Examples:
        "112*;1.1.2*" → ["112*", "1.1.2*"]
        None or ""    → []
    """
    if s is None or str(s).strip() == "":
        return []
    return [p.strip() for p in str(s).split(";") if p.strip()]


def match_code(code: str, patterns: list[str]) -> bool:
    """Return True if an account code matches at least one pattern.

    Rules:
        - '112*' matches any account starting with '112' (e.g. '11201').
        - '1.1.2.01' matches only the exact code '1.1.2.01'.
    """
    for p in patterns:
        if p.endswith("*"):
            if code.startswith(p[:-1]):
                return True
        else:
            if code == p:
                return True
    return False


def normalize_text(text: Optional[str]) -> str:
    """Uppercase ``text`` and strip accents ('Líquida' → 'LIQUIDA')."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", str(text))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.upper().split())


def match_keywords(description: str, keywords: list[str]) -> bool:
    """Return True if the normalized description contains one of the keywords."""
    text = normalize_text(description)
    if not text:
        return False
    return any(normalize_text(k) in text for k in keywords)


RECEIVABLES = "receivables"
PAYABLES = "payables"
INVENTORY = "inventory"
REVENUE = "revenue"
NET_REVENUE = "net_revenue"
OPERATING_RESULT = "operating_result"

DEFAULT_ACCOUNT_GROUPS: dict[str, AccountGroup] = {
    RECEIVABLES: AccountGroup(
        name=RECEIVABLES,
        include="1.1.2*;1.01.02*;112*",
        exclude="",
        keywords="CLIENTES;DUPLICATAS A RECEBER;CONTAS A RECEBER",
        nature=DEBIT,
    ),
    PAYABLES: AccountGroup(
        name=PAYABLES,
        include="2.1.1*;2.01.01*;211*",
        exclude="",
        keywords="FORNECEDORES;DUPLICATAS A PAGAR",
        nature=CREDIT,
    ),
    INVENTORY: AccountGroup(
        name=INVENTORY,
        include="1.1.3*;1.01.03*;113*",
        exclude="",
        keywords="ESTOQUE;MERCADORIAS PARA REVENDA",
        nature=DEBIT,
    ),
    REVENUE: AccountGroup(
        name=REVENUE,
        include="3.1.1*;3.01.01*;311*",
        exclude="",
        keywords="RECEITA BRUTA;RECEITA DE VENDAS;VENDAS DE MERCADORIAS",
        nature=CREDIT,
    ),
    NET_REVENUE: AccountGroup(
        name=NET_REVENUE,
        include="",
        exclude="",
        keywords="RECEITA LIQUIDA;RECEITA OPERACIONAL LIQUIDA",
        nature=CREDIT,
    ),
    OPERATING_RESULT: AccountGroup(
        name=OPERATING_RESULT,
        include="",
        exclude="",
        keywords="RESULTADO OPERACIONAL;LUCRO OPERACIONAL;PREJUIZO OPERACIONAL",
        nature=CREDIT,
    ),
}
