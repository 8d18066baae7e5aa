# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for SPED Profiler.

This module is responsible for:
- loading the engine configuration from a TOML file,
- exposing the business assumptions used by the estimators as named,
  overridable values,
- exposing typed dataclasses used by the rest of the application.

Every value has a built-in default, so the engine runs without any
configuration file. A TOML file only needs the values it overrides:

    [engine]
    default_family = "fiscal"
    detection_window = 20

    [assumptions]
    icms_rate = 0.18
    icms_base_pct = 0.60

    [accounts.receivables]
    include = "1.1.2*;112*"
    keywords = "CLIENTES"
"""

import logging
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Optional

from .accounts import DEFAULT_ACCOUNT_GROUPS, AccountGroup
from .records import FISCAL, LEDGER_FAMILIES

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "sped_profiler_config.toml"


class SpedProfilerError(Exception):
    """Base class for errors raised to callers of SPED Profiler."""


class ConfigError(SpedProfilerError, ValueError):
    """Raised when a configuration file or value is invalid."""


@dataclass(frozen=True)
class Assumptions:
    """
    Business constants used when authoritative figures are missing.

    Rates and percentages are fractions (0.18 means 18 %). The values come
    from the simulation defaults this engine feeds and have no statutory
    source; they are meant to be overridden per client when better figures
    are known.
    """

    # Goods tax (ICMS): rate applied over a share of revenue.
    icms_rate: float = 0.18
    icms_base_pct: float = 0.60
    icms_credit_base_pct: float = 0.40

    # Excise tax (IPI), industry only.
    ipi_rate: float = 0.10
    ipi_base_pct: float = 0.40
    ipi_credit_base_pct: float = 0.30

    # Municipal service tax (ISS), services only.
    iss_rate: float = 0.05
    iss_base_pct: float = 1.0

    # PIS/COFINS, non-cumulative (Lucro Real) and cumulative rates.
    pis_non_cumulative_rate: float = 0.0165
    pis_cumulative_rate: float = 0.0065
    cofins_non_cumulative_rate: float = 0.076
    cofins_cumulative_rate: float = 0.03
    pis_cofins_credit_base_pct: float = 0.40

    # PIS credit rate (in percent) above which credits indicate Lucro Real.
    real_regime_credit_rate_threshold: float = 1.0

    # Simples Nacional unified rate.
    simples_rate: float = 0.06

    # Operating margin.
    default_margin: float = 0.15

    # Financial cycle.
    default_cycle_days: float = 30.0
    payables_flow_pct: float = 0.60
    inventory_flow_pct: float = 0.70
    cycle_days_min: float = 1.0
    cycle_days_max: float = 180.0
    default_cash_sale_pct: float = 0.30
    cash_sale_min: float = 0.05
    cash_sale_max: float = 0.95
    working_capital_safety_multiplier: float = 1.2

    # Operation type (B2B/B2C).
    min_documents_for_operation_type: int = 5
    b2b_threshold: float = 0.80
    b2c_threshold: float = 0.20

    # Crude document density used when no date span is available.
    documents_per_month: int = 30


# Assumptions that count documents; parsed as integers of at least 1.
COUNT_ASSUMPTIONS = frozenset(
    {"min_documents_for_operation_type", "documents_per_month"}
)


@dataclass(frozen=True)
class EngineConfig:
    """
    Engine-wide configuration.

    This aggregates:
    - the ledger family used when detection fails,
    - the number of non-blank lines scanned for detection,
    - the business assumptions used by the estimators,
    - the account groups used to read accounting ledgers.
    """

    default_family: str = FISCAL
    detection_window: int = 20
    assumptions: Assumptions = field(default_factory=Assumptions)
    account_groups: dict[str, AccountGroup] = field(
        default_factory=lambda: dict(DEFAULT_ACCOUNT_GROUPS)
    )


def default_engine_config() -> EngineConfig:
    """Return the built-in configuration."""
    return EngineConfig()


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ConfigError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise ConfigError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, Mapping):
        raise ConfigError(f"Config section [{name}] must be a table.")
    return section


def _parse_assumptions(section: Mapping[str, Any]) -> Assumptions:
    """
    Build Assumptions from the [assumptions] table.

    Unknown keys are ignored with a warning; values that are not numbers
    raise ConfigError, as do document counts that are not integers >= 1.
    """
    known = {f.name for f in fields(Assumptions)}
    overrides: dict[str, Any] = {}

    for key, value in section.items():
        if key not in known:
            logger.warning("Unknown assumption %r in configuration, ignored", key)
            continue
        if isinstance(value, bool):
            raise ConfigError(f"Invalid value for assumptions.{key}: {value!r}")
        if key in COUNT_ASSUMPTIONS:
            if not isinstance(value, int) or value < 1:
                raise ConfigError(
                    f"Invalid value for assumptions.{key}: expected an integer "
                    f">= 1, got {value!r}."
                )
            overrides[key] = value
            continue
        try:
            overrides[key] = float(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(
                f"Invalid value for assumptions.{key}: expected a number, "
                f"got {value!r}."
            ) from exc

    return replace(Assumptions(), **overrides)


def _parse_account_groups(section: Mapping[str, Any]) -> dict[str, AccountGroup]:
    """Apply [accounts.<group>] overrides on top of the default groups."""
    groups = dict(DEFAULT_ACCOUNT_GROUPS)

    for name, cfg in section.items():
        if not isinstance(cfg, Mapping):
            raise ConfigError(f"Config section [accounts.{name}] must be a table.")

        base = groups.get(name)
        if base is None:
            logger.warning("Unknown account group %r in configuration, ignored", name)
            continue

        groups[name] = replace(
            base,
            include=str(cfg.get("include", base.include)),
            exclude=str(cfg.get("exclude", base.exclude)),
            keywords=str(cfg.get("keywords", base.keywords)),
        )

    return groups


def load_engine_config(config_path: Optional[str] = None) -> EngineConfig:
    """
    Load the engine configuration from a TOML file.

    Expected top-level sections in the TOML file (all optional)
    ------------------------------------------------------------
    [engine]
        default_family: family used when detection fails.
        detection_window: number of non-blank lines scanned for the header.

    [assumptions]
        Overrides for any field of ``Assumptions``.

    [accounts.<group>]
        include / exclude / keywords overrides for working-capital groups
        (receivables, payables, inventory, revenue, net_revenue,
        operating_result).

    Parameters
    ----------
    config_path:
        Path to the TOML file. If omitted, 'sped_profiler_config.toml' in
        the current directory is used when it exists; otherwise the built-in
        defaults are returned.

    Returns
    -------
    EngineConfig
        Parsed and validated configuration.

    Raises
    ------
    FileNotFoundError
        If an explicit ``config_path`` does not exist.
    ConfigError
        If the file cannot be parsed or contains invalid values.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILENAME).resolve()
        if not config_file.is_file():
            return default_engine_config()
    else:
        config_file = Path(config_path).resolve()

    raw = _load_toml(config_file)

    # 1) Engine section
    engine_section = _section(raw, "engine")

    default_family = str(engine_section.get("default_family") or FISCAL)
    if default_family not in LEDGER_FAMILIES:
        raise ConfigError(
            f"Invalid engine.default_family {default_family!r}. "
            f"Expected one of: {', '.join(LEDGER_FAMILIES)}."
        )

    try:
        detection_window = int(engine_section.get("detection_window", 20))
    except (TypeError, ValueError) as exc:
        raise ConfigError(
            "Invalid value for 'engine.detection_window'. Expected an integer."
        ) from exc
    if detection_window < 1:
        raise ConfigError("'engine.detection_window' must be at least 1.")

    # 2) Assumptions
    assumptions = _parse_assumptions(_section(raw, "assumptions"))

    # 3) Account groups
    account_groups = _parse_account_groups(_section(raw, "accounts"))

    return EngineConfig(
        default_family=default_family,
        detection_window=detection_window,
        assumptions=assumptions,
        account_groups=account_groups,
    )
