# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Ledger-family detection.

When the caller does not say which ledger a file belongs to, the family is
read from the header record (0000) found among the first non-blank lines:

- the accounting and corporate-tax ledgers carry a book marker in field 2
  ('LECD' and 'LECF'),
- the goods-tax and PIS/COFINS ledgers are told apart by the purpose field
  (field 9): '0' for the goods-tax ledger, '1' for PIS/COFINS.

Markers are checked before the purpose field because they are unambiguous,
whereas field 9 holds unrelated data in the ECD/ECF headers.
"""

import logging
from collections.abc import Iterable
from typing import Optional

from .fields import field, split_line
from .records import ACCOUNTING, CONTRIBUTIONS, CORPORATE_TAX, FISCAL
from .registry import HEADER_CODE

logger = logging.getLogger(__name__)

DEFAULT_DETECTION_WINDOW = 20

MARKER_INDEX = 2
MARKER_FAMILIES: dict[str, str] = {
    "LECD": ACCOUNTING,
    "LECF": CORPORATE_TAX,
}

PURPOSE_INDEX = 9
PURPOSE_FAMILIES: dict[str, str] = {
    "0": FISCAL,
    "1": CONTRIBUTIONS,
}


def detect_family(
    lines: Iterable[str], window: int = DEFAULT_DETECTION_WINDOW
) -> Optional[str]:
    """Detect the ledger family of a file from its header record.

    Args:
        lines: Raw lines of the file (only the beginning is consumed).
        window: Maximum number of non-blank lines to scan.

    Returns:
        One of the family names from ``records.LEDGER_FAMILIES``, or None when
        no header is found within the window or none of its markers match.
    """
    scanned = 0
    for line in lines:
        if scanned >= window:
            break
        if not line.strip():
            continue
        scanned += 1

        fields = split_line(line)
        if field(fields, 1) != HEADER_CODE:
            continue

        marker = field(fields, MARKER_INDEX).upper()
        if marker in MARKER_FAMILIES:
            return MARKER_FAMILIES[marker]

        purpose = field(fields, PURPOSE_INDEX)
        if purpose in PURPOSE_FAMILIES:
            return PURPOSE_FAMILIES[purpose]

        logger.debug("Header record found but no family marker matched: %r", line)

    return None
