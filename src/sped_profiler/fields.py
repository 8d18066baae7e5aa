# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Field-level helpers for SPED ledger lines.

SPED exports are pipe-delimited text files where every line starts and ends
with the delimiter:

    |C100|1|0|CLI001|55|00|1|123|...|10000,00|...|

Splitting such a line on ``|`` yields an empty first field, the record code
at index 1, and usually an empty trailing field. This module contains the
small, pure helpers used by the extractors to read those fields:

- ``split_line``:    split a raw line into its fields,
- ``field``:         safe positional access with trimming,
- ``parse_decimal``: Brazilian decimal-comma numbers ("1234,56"),
- ``parse_date``:    SPED dates (DDMMYYYY) normalized to ISO strings.

Numeric parsing never raises: empty or unparsable values default to 0.0 so
that a single bad amount does not poison a whole record.
"""

import logging
from datetime import date
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

DELIMITER = "|"


def split_line(line: str) -> list[str]:
    """Split a raw ledger line into fields.

    Line terminators are removed before splitting. The returned list keeps
    the SPED convention that index 1 holds the record code.
    """
    return line.rstrip("\r\n").split(DELIMITER)


def field(fields: Sequence[str], index: int) -> str:
    """Return the trimmed field at ``index``, or an empty string if absent."""
    if index < 0 or index >= len(fields):
        return ""
    return fields[index].strip()


def parse_decimal(raw: Optional[str]) -> float:
    """Parse a SPED decimal-comma number.

    Examples:
        "1234,56"   → 1234.56
        "1.234,56"  → 1234.56 (thousands separator tolerated)
        "10"        → 10.0
        "" or None  → 0.0
        "abc"       → 0.0

    Args:
        raw: Raw field content.

    Returns:
        The parsed value, or 0.0 when the field is empty or not a number.
    """
    if raw is None:
        return 0.0
    s = str(raw).strip()
    if not s:
        return 0.0
    if "," in s:
        s = s.replace(".", "").replace(",", ".")
    try:
        value = float(s)
    except ValueError:
        logger.debug("Unparsable numeric field %r, defaulting to 0", raw)
        return 0.0
    # NaN and infinities are not legitimate ledger amounts.
    if value != value or value in (float("inf"), float("-inf")):
        return 0.0
    return value


def parse_date(raw: Optional[str]) -> Optional[str]:
    """Normalize a SPED date (DDMMYYYY) to an ISO string (YYYY-MM-DD).

    ISO input is accepted unchanged. Returns None for empty or invalid dates.
    """
    if raw is None:
        return None
    s = str(raw).strip()
    if not s:
        return None

    try:
        if len(s) == 8 and s.isdigit():
            parsed = date(int(s[4:8]), int(s[2:4]), int(s[0:2]))
        else:
            parsed = date.fromisoformat(s)
    except ValueError:
        logger.debug("Invalid date field %r", raw)
        return None

    return parsed.isoformat()


def digits_only(raw: Optional[str]) -> str:
    """Strip every non-digit character (CNPJ/CPF/CNAE normalization)."""
    if not raw:
        return ""
    return "".join(ch for ch in str(raw) if ch.isdigit())
