# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
I/O module for SPED Profiler.

The engine itself consumes already-materialized lines (see
``assembler.extract``). This module is the host-side helper that reads a
ledger export from disk.

Expected input format
---------------------
SPED exports are pipe-delimited text files, one record per line:

    |0000|017|0|01012023|31012023|ACME LTDA|...|
    |C100|1|0|CLI01|55|00|1|123|...|

Files produced by the government validation programs are usually encoded in
ISO-8859-1 (latin-1), while files generated by ERPs are often UTF-8. When no
encoding is given, UTF-8 is tried first and latin-1 is used as fallback
(latin-1 can decode any byte sequence, so reading never fails on encoding).

Output
------
A list of strings, one per line, without line terminators. Blank lines are
kept; the parser skips them.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


def read_ledger_lines(
    path: Union[str, "os.PathLike[str]"], encoding: Optional[str] = None
) -> list[str]:
    """
    Read a SPED ledger file and return its lines.

    Parameters
    ----------
    path:
        Path to the ledger export.
    encoding:
        Explicit encoding. If omitted, UTF-8 then latin-1 are tried.

    Returns
    -------
    list[str]
        Lines of the file without terminators.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    UnicodeDecodeError
        If an explicit encoding is given and the file cannot be decoded
        with it.
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Ledger file not found: {p}")

    raw = p.read_bytes()

    if encoding is not None:
        return raw.decode(encoding).splitlines()

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("%s is not valid UTF-8, reading it as latin-1", p)
        text = raw.decode("latin-1")

    return text.splitlines()
