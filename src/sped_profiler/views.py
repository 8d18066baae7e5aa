# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
View utilities for SPED Profiler.

This module turns engine objects into pandas DataFrames ready for display
(``DataFrame.to_string``) or CSV export:

- ``profile_to_dataframe``: the fiscal profile in long format, one row per
  leaf value, with the tier that produced it when known,
- ``records_summary``: record counts per collection of an ExtractionResult,
  useful to check what a ledger file actually contained.
"""

from typing import Any

import pandas as pd

from .profile import FiscalProfile
from .records import ExtractionResult

PROFILE_COLUMNS = ["section", "key", "value", "source"]
SUMMARY_COLUMNS = ["collection", "category", "records"]

# Profile leaves whose provenance is tracked in metadata.sources.
_SOURCE_KEYS: dict[tuple[str, str], str] = {
    ("company", "monthlyRevenue"): "monthlyRevenue",
    ("company", "operatingMargin"): "operatingMargin",
    ("company", "activityType"): "activityType",
    ("company", "taxRegime"): "taxRegime",
    ("company", "ivaSector"): "ivaSector",
    ("fiscalParameters", "operationType"): "operationType",
    ("fiscalParameters", "pisCofinsRegime"): "pisCofinsRegime",
    ("financialCycle", "pmr"): "pmr",
    ("financialCycle", "pmp"): "pmp",
    ("financialCycle", "pme"): "pme",
    ("financialCycle", "cashSalePct"): "cashSalePct",
}


def _flatten(prefix: str, data: dict[str, Any]) -> list[tuple[str, Any]]:
    rows: list[tuple[str, Any]] = []
    for key, value in data.items():
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict):
            rows.extend(_flatten(path, value))
        else:
            rows.append((path, value))
    return rows


def profile_to_dataframe(profile: FiscalProfile) -> pd.DataFrame:
    """
    Convert a FiscalProfile into a long-format DataFrame.

    The resulting DataFrame has the following columns:
        - section: top-level block ('company', 'fiscalParameters',
                   'financialCycle').
        - key:     dotted path of the leaf inside its section
                   (e.g. 'taxComposition.debits.icms').
        - value:   leaf value.
        - source:  tier that produced the value ('document_density',
                   'ledger', 'default', ...) or '' when not tracked.

    The metadata block is not included; sources are attached to the rows
    they describe instead.
    """
    data = profile.to_dict()
    provenance = data["fiscalParameters"]["taxComposition"]["provenance"]

    rows: list[dict[str, Any]] = []
    for section in ("company", "fiscalParameters", "financialCycle"):
        for key, value in _flatten("", data[section]):
            if key.startswith("taxComposition.provenance."):
                continue

            source = ""
            source_key = _SOURCE_KEYS.get((section, key))
            if source_key is not None:
                source = profile.sources.get(source_key, "")
            elif key.startswith(("taxComposition.debits.", "taxComposition.credits.")):
                _, side, tax = key.split(".")
                source = provenance[tax]["debit" if side == "debits" else "credit"]
            elif key.startswith("ivaSector."):
                source = profile.fiscal_parameters.iva_sector.source

            rows.append(
                {"section": section, "key": key, "value": value, "source": source}
            )

    return pd.DataFrame(rows, columns=PROFILE_COLUMNS)


def records_summary(result: ExtractionResult) -> pd.DataFrame:
    """
    Count the records of each collection of an ExtractionResult.

    Category-keyed collections (taxes, credits, ...) get one row per
    category. Empty collections are omitted.

    Returns:
        A DataFrame with columns collection, category, records, sorted by
        collection then category.
    """
    rows: list[dict[str, Any]] = []

    for name in (
        "documents",
        "line_items",
        "analytic_line_items",
        "participants",
        "balance_sheet_lines",
        "income_statement_lines",
        "postings",
        "posting_entries",
        "incentives",
        "inventory_lines",
        "accounts",
    ):
        count = len(getattr(result, name))
        if count:
            rows.append({"collection": name, "category": "", "records": count})

    for name in (
        "taxes",
        "credits",
        "credit_details",
        "debits",
        "adjustments",
        "untaxed_revenue",
        "regime_declarations",
        "discriminated_revenue",
    ):
        for category, records in getattr(result, name).items():
            if records:
                rows.append(
                    {"collection": name, "category": category, "records": len(records)}
                )

    if not rows:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)

    df = pd.DataFrame(rows, columns=SUMMARY_COLUMNS)
    return df.sort_values(["collection", "category"], kind="stable").reset_index(
        drop=True
    )
