# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for SPED Profiler.

This module wires together the main building blocks of SPED Profiler:

- engine configuration (TOML, optional),
- ledger file reading (``io.py``),
- parsing, merging and linking of the ledgers,
- profile assembly (inference engine),
- view helpers (tabular rendering).

The CLI is intentionally thin: it does not implement any extraction or
inference logic itself.


High-level pipeline
-------------------

1) Load the engine configuration with ``load_engine_config()``
   ('sped_profiler_config.toml' in the current directory if present,
   built-in defaults otherwise, or the file given with ``--config``).

2) Read each ledger file given on the command line.

3) Parse each file independently. The ledger family is auto-detected from
   the header record unless ``--family`` is given, in which case it applies
   to every file.

4) Merge the parsed results, link them and assemble the fiscal profile.

5) Render the profile according to the display mode.


Display modes and output
------------------------

    --display-mode table|json|both

- ``table`` (default):
    Print the record counts and the profile as text tables.

- ``json``:
    Print the canonical profile as JSON.

- ``both``:
    Print both, and write into the output directory:
    - ``profile_YYYY-MM-DD-HH-MM-SS.json`` (canonical profile),
    - ``profile_YYYY-MM-DD-HH-MM-SS.csv`` (long-format profile table).

The output directory is ``data/output`` unless ``--output DIR`` is given.


Logging
-------

``--log-level`` (default WARNING) configures the standard logging module.
Malformed lines are reported at WARNING level; detection and parse totals at
INFO; the decisions of every estimator at DEBUG.


Examples
--------

    python -m sped_profiler.cli data/efd_icms_ipi.txt
    python -m sped_profiler.cli efd.txt contrib.txt ecf.txt --display-mode both
    python -m sped_profiler.cli ecd.txt --family accounting --log-level DEBUG
"""

import argparse
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from . import __version__
from .assembler import assemble
from .config import ConfigError, load_engine_config
from .io import read_ledger_lines
from .linking import link
from .parser import merge_results, parse_lines
from .records import LEDGER_FAMILIES
from .views import profile_to_dataframe, records_summary

DEFAULT_OUTPUT_DIR = "data/output"


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="python -m sped_profiler.cli",
        description=(
            "SPED Profiler - reads SPED ledger exports (EFD ICMS/IPI, EFD "
            "Contribuições, ECF, ECD) and builds the fiscal profile used by "
            "the tax reform impact simulator."
        ),
    )

    ap.add_argument(
        "files",
        nargs="*",
        metavar="FILE",
        help="SPED ledger files to read (one or more).",
    )

    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of sped_profiler and exit.",
    )

    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the TOML configuration file. "
            "If omitted, 'sped_profiler_config.toml' in the current directory is "
            "used when present."
        ),
    )

    ap.add_argument(
        "--family",
        choices=list(LEDGER_FAMILIES),
        help=(
            "Ledger family of every file. If omitted, the family of each file is "
            "detected from its header record."
        ),
    )

    ap.add_argument(
        "--display-mode",
        dest="display_mode",
        choices=["table", "json", "both"],
        default="table",
        help=(
            "'table' prints text tables, 'json' prints the canonical profile, "
            "'both' prints both and writes JSON/CSV files."
        ),
    )

    ap.add_argument(
        "--output",
        dest="output_dir",
        help=(
            "Output directory for files written in 'both' mode. "
            f"If omitted, '{DEFAULT_OUTPUT_DIR}' is used."
        ),
    )

    ap.add_argument(
        "--log-level",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING).",
    )

    return ap


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for the SPED Profiler CLI.

    This function parses command-line arguments, loads the configuration,
    reads and parses every ledger file, merges and links the results,
    assembles the fiscal profile and renders it as tables, JSON and/or
    files depending on the display mode.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    # --version: short-circuit and exit early.
    if args.version:
        print(f"sped_profiler version {__version__}")
        return

    if not args.files:
        parser.error("at least one ledger FILE is required")

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )

    # 1) Configuration
    try:
        config = load_engine_config(args.config_path)
    except (FileNotFoundError, ConfigError) as exc:
        parser.error(str(exc))

    # 2) + 3) Read and parse every file independently
    results = []
    for file_name in args.files:
        try:
            lines = read_ledger_lines(file_name)
        except FileNotFoundError as exc:
            parser.error(str(exc))
        results.append(parse_lines(lines, family=args.family, config=config))

    # 4) Merge, link, assemble
    merged = merge_results(*results)
    link(merged, config=config)
    profile = assemble(merged, config)

    # 5) Render
    if args.display_mode in {"table", "both"}:
        summary = records_summary(merged)
        print()
        print("=== Records ===")
        print(summary.to_string(index=False) if not summary.empty else "(none)")

        print()
        print("=== Fiscal profile ===")
        print(profile_to_dataframe(profile).to_string(index=False))

    if args.display_mode in {"json", "both"}:
        print(json.dumps(profile.to_dict(), indent=2, ensure_ascii=False))

    if args.display_mode == "both":
        output_dir = Path(args.output_dir or DEFAULT_OUTPUT_DIR)
        output_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")

        json_path = output_dir / f"profile_{timestamp}.json"
        json_path.write_text(
            json.dumps(profile.to_dict(), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        print(f"Wrote {json_path}")

        csv_path = output_dir / f"profile_{timestamp}.csv"
        profile_df = profile_to_dataframe(profile)
        profile_df.to_csv(csv_path, index=False)
        print(f"Wrote {csv_path} ({len(profile_df)} rows)")


if __name__ == "__main__":
    main()
