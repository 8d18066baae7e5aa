# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
SPED Profiler
-------------

Extraction and inference engine that reads Brazilian SPED bookkeeping
exports and builds the fiscal profile of a company, used to pre-populate a
tax reform impact simulation.

Main capabilities:
- record-level parsing of four ledger families (EFD ICMS/IPI, EFD
  Contribuições, ECF, ECD) with automatic family detection,
- reconstruction of document/item/participant relationships and of
  working-capital and corporate-tax aggregates,
- estimators with explicit fallback cascades for revenue, margin, activity
  type, tax regime, dual-VAT sector, operation type, tax debits/credits and
  the financial cycle,
- a canonical nested profile where every field has a value,
- TOML configuration of every business assumption,
- a command-line interface with table, JSON and CSV output.

Version: 0.1.0

Usage:
    python -m sped_profiler.cli --help
"""

__all__ = ["assembler", "config", "io", "parser", "views"]

__version__ = "0.1.0"
