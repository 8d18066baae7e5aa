# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Line parser for SPED ledger files.

``parse_lines()`` performs one linear pass over the lines of a file:

1. The ledger family is taken from the caller or detected from the header
   (``detect.py``); when detection fails the configured default family is
   used.
2. Each non-blank line is split on the delimiter and its record code (field
   1) is looked up in the registry for that family. Unknown codes are
   counted and skipped.
3. The extractor output is routed into the ``ExtractionResult`` according to
   its record type:
      - company records are merged field by field (later non-empty values
        win),
      - collection records are appended,
      - category records are appended under their category key, the bucket
        being created on first use.
4. Child records are stamped with the key of their most recent parent
   (C170/C190 → C100/A100, I250 → I200) so that the relationship builder can
   join them afterwards.

A malformed line never aborts the parse: it is logged and skipped.

``merge_results()`` combines results parsed from several files.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from itertools import chain
from typing import Any, Optional

from .config import EngineConfig, default_engine_config
from .detect import detect_family
from .fields import field, split_line
from .records import (
    LEDGER_FAMILIES,
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
    ExtractionResult,
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
from .registry import TRAILER_CODE, lookup

logger = logging.getLogger(__name__)

# Parent records whose children are stamped with their key.
DOCUMENT_CODES = frozenset({"C100", "A100"})
POSTING_CODES = frozenset({"I200"})


class _ParseState:
    """Parent keys seen so far in the current file."""

    def __init__(self) -> None:
        self.document_key: Optional[int] = None
        self.posting_key: Optional[int] = None

    def forget(self, code: str) -> None:
        """Detach the children of a parent record that was dropped."""
        if code in DOCUMENT_CODES:
            self.document_key = None
        elif code in POSTING_CODES:
            self.posting_key = None


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------


def _merge_company(
    result: ExtractionResult, rec: CompanyRecord, _: _ParseState
) -> None:
    result.company.update(rec.values)


def _add_document(result: ExtractionResult, rec: Document, state: _ParseState) -> None:
    rec.key = len(result.documents)
    state.document_key = rec.key
    result.documents.append(rec)


def _add_line_item(
    result: ExtractionResult, rec: LineItem, state: _ParseState
) -> None:
    rec.document_key = state.document_key
    result.line_items.append(rec)


def _add_analytic_item(
    result: ExtractionResult, rec: AnalyticLineItem, state: _ParseState
) -> None:
    rec.document_key = state.document_key
    result.analytic_line_items.append(rec)


def _add_posting(
    result: ExtractionResult, rec: AccountingPosting, state: _ParseState
) -> None:
    rec.key = len(result.postings)
    state.posting_key = rec.key
    result.postings.append(rec)


def _add_posting_entry(
    result: ExtractionResult, rec: PostingEntry, state: _ParseState
) -> None:
    rec.posting_key = state.posting_key
    result.posting_entries.append(rec)


def _append_to(attr: str) -> Callable[[ExtractionResult, Any, _ParseState], None]:
    def route(result: ExtractionResult, rec: Any, _: _ParseState) -> None:
        getattr(result, attr).append(rec)

    return route


def _bucket_into(attr: str) -> Callable[[ExtractionResult, Any, _ParseState], None]:
    def route(result: ExtractionResult, rec: Any, _: _ParseState) -> None:
        getattr(result, attr).setdefault(rec.category, []).append(rec)

    return route


# One route per record type; every type in records.TYPED_RECORDS is covered.
_ROUTES: dict[type, Callable[[ExtractionResult, Any, _ParseState], None]] = {
    CompanyRecord: _merge_company,
    Document: _add_document,
    LineItem: _add_line_item,
    AnalyticLineItem: _add_analytic_item,
    AccountingPosting: _add_posting,
    PostingEntry: _add_posting_entry,
    Participant: _append_to("participants"),
    BalanceSheetLine: _append_to("balance_sheet_lines"),
    IncomeStatementLine: _append_to("income_statement_lines"),
    TaxIncentive: _append_to("incentives"),
    InventoryLine: _append_to("inventory_lines"),
    Account: _append_to("accounts"),
    TaxLedger: _bucket_into("taxes"),
    Credit: _bucket_into("credits"),
    CreditDetail: _bucket_into("credit_details"),
    Debit: _bucket_into("debits"),
    Adjustment: _bucket_into("adjustments"),
    UntaxedRevenue: _bucket_into("untaxed_revenue"),
    RegimeDeclaration: _bucket_into("regime_declarations"),
    DiscriminatedRevenue: _bucket_into("discriminated_revenue"),
}


def route_record(result: ExtractionResult, record: Any, state: _ParseState) -> None:
    """Store ``record`` in ``result`` according to its type."""
    route = _ROUTES.get(type(record))
    if route is None:
        raise TypeError(f"No route for record type {type(record).__name__}")
    route(result, record, state)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _resolve_family(
    lines: Iterable[str], family: Optional[str], config: EngineConfig
) -> tuple[str, Iterable[str]]:
    """Return the family to use and the (possibly re-chained) lines."""
    if family is not None and family not in LEDGER_FAMILIES:
        logger.warning("Unknown ledger family %r, falling back to detection", family)
        family = None

    if family is not None:
        return family, lines

    # Buffer only the detection window so that iterators are consumed once.
    iterator = iter(lines)
    head: list[str] = []
    non_blank = 0
    for line in iterator:
        head.append(line)
        if line.strip():
            non_blank += 1
            if non_blank >= config.detection_window:
                break

    detected = detect_family(head, window=config.detection_window)
    if detected is None:
        logger.info(
            "Could not detect ledger family, using default %r", config.default_family
        )
        detected = config.default_family
    else:
        logger.info("Detected ledger family %r", detected)

    return detected, chain(head, iterator)


def parse_lines(
    lines: Iterable[str],
    family: Optional[str] = None,
    config: Optional[EngineConfig] = None,
) -> ExtractionResult:
    """Parse the lines of one ledger file into an ExtractionResult.

    Args:
        lines: Lines of the file (strings, with or without terminators).
        family: Ledger family ('fiscal', 'contributions', 'corporateTax',
            'accounting'). Detected from the header when omitted.
        config: Engine configuration (default family, detection window).

    Returns:
        A new ExtractionResult. Empty input yields an empty result.
    """
    cfg = config or default_engine_config()
    resolved, stream = _resolve_family(lines, family, cfg)

    result = ExtractionResult(family=resolved)
    state = _ParseState()
    stats = result.stats

    for line_number, line in enumerate(stream, start=1):
        if not line.strip():
            continue
        stats.lines_read += 1

        fields = split_line(line)
        code = field(fields, 1)
        if code == TRAILER_CODE:
            break

        extractor = lookup(resolved, code)
        if extractor is None:
            stats.ignored_lines += 1
            continue

        try:
            record = extractor(fields)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Line %d: failed to extract record %s (%s), line skipped",
                line_number,
                code,
                exc,
            )
            stats.malformed_lines += 1
            state.forget(code)
            continue

        if record is None:
            logger.warning(
                "Line %d: malformed record %s (%d fields), line skipped",
                line_number,
                code,
                len(fields),
            )
            stats.malformed_lines += 1
            state.forget(code)
            continue

        route_record(result, record, state)
        stats.records_parsed += 1

    logger.info(
        "Parsed %d records from %d lines (%d malformed, %d ignored) as %r",
        stats.records_parsed,
        stats.lines_read,
        stats.malformed_lines,
        stats.ignored_lines,
        resolved,
    )
    return result


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def _offset(key: Optional[int], offset: int) -> Optional[int]:
    return None if key is None else key + offset


def merge_results(*results: ExtractionResult) -> ExtractionResult:
    """Merge results parsed independently from several files.

    Sequences and category buckets are concatenated in argument order. For
    the company map the first non-empty value of each field wins. Parent keys
    are renumbered so that children still point at their own parent; the
    input results are left untouched.

    The family of the merged result is the family of the first input.
    """
    if not results:
        return ExtractionResult()

    merged = ExtractionResult(family=results[0].family)

    for res in results:
        for key, value in res.company.items():
            if value and not merged.company.get(key):
                merged.company[key] = value

        doc_offset = len(merged.documents)
        post_offset = len(merged.postings)

        for doc in res.documents:
            merged.documents.append(
                replace(
                    doc,
                    key=_offset(doc.key, doc_offset),
                    items=[],
                    participant=None,
                )
            )
        for item in res.line_items:
            merged.line_items.append(
                replace(item, document_key=_offset(item.document_key, doc_offset))
            )
        for analytic in res.analytic_line_items:
            merged.analytic_line_items.append(
                replace(
                    analytic, document_key=_offset(analytic.document_key, doc_offset)
                )
            )
        for post in res.postings:
            merged.postings.append(replace(post, key=_offset(post.key, post_offset)))
        for entry in res.posting_entries:
            merged.posting_entries.append(
                replace(entry, posting_key=_offset(entry.posting_key, post_offset))
            )

        for attr in (
            "participants",
            "balance_sheet_lines",
            "income_statement_lines",
            "incentives",
            "inventory_lines",
            "accounts",
        ):
            getattr(merged, attr).extend(getattr(res, attr))

        for attr in (
            "taxes",
            "credits",
            "credit_details",
            "debits",
            "adjustments",
            "untaxed_revenue",
            "regime_declarations",
            "discriminated_revenue",
        ):
            target = getattr(merged, attr)
            for category, records in getattr(res, attr).items():
                target.setdefault(category, []).extend(records)

        merged.stats.lines_read += res.stats.lines_read
        merged.stats.records_parsed += res.stats.records_parsed
        merged.stats.malformed_lines += res.stats.malformed_lines
        merged.stats.ignored_lines += res.stats.ignored_lines

    return merged
