# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Economic sector classification.

Two static tables keyed by the CNAE division (first two digits of the
sector-classification code):

- ``activity_for_cnae()`` buckets a division into the coarse activity types
  used by the simulator ('industry', 'commerce', 'services'),
- ``DUAL_VAT_SECTORS`` maps a division to the sector tag used to configure
  the dual VAT (IBS/CBS), and ``SECTOR_REDUCTIONS`` gives the rate reduction
  attached to each tag.

A ``SectorRepository`` may be supplied by the host to enrich or override the
sector metadata. The built-in tables are always used as fallback, so the
repository is never required.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

from .fields import digits_only

# Activity types
COMMERCE = "commerce"
INDUSTRY = "industry"
SERVICES = "services"

# Dual-VAT sector tags
AGRIBUSINESS = "agribusiness"
CONSTRUCTION = "construction"
TRANSPORT = "transport"
TECHNOLOGY = "technology"
FINANCIAL = "financial"
REAL_ESTATE = "real_estate"
EDUCATION = "education"
HEALTH = "health"

# CNAE division ranges (inclusive) per activity type. Divisions outside these
# ranges are services.
_INDUSTRY_DIVISIONS = range(1, 34)
_COMMERCE_DIVISIONS = range(45, 48)


def _division_ranges(*spans: tuple[int, int]) -> list[int]:
    divisions: list[int] = []
    for start, end in spans:
        divisions.extend(range(start, end + 1))
    return divisions


def _build_sector_table() -> dict[str, str]:
    table: dict[str, str] = {}
    spans: list[tuple[str, list[int]]] = [
        (AGRIBUSINESS, _division_ranges((1, 3))),
        (INDUSTRY, _division_ranges((5, 33))),
        (SERVICES, _division_ranges((35, 39))),
        (CONSTRUCTION, _division_ranges((41, 43))),
        (COMMERCE, _division_ranges((45, 47))),
        (TRANSPORT, _division_ranges((49, 53))),
        (SERVICES, _division_ranges((55, 56))),
        (TECHNOLOGY, _division_ranges((58, 63))),
        (FINANCIAL, _division_ranges((64, 66))),
        (REAL_ESTATE, [68]),
        (SERVICES, _division_ranges((69, 84))),
        (EDUCATION, [85]),
        (HEALTH, _division_ranges((86, 88))),
        (SERVICES, _division_ranges((90, 99))),
    ]
    for tag, divisions in spans:
        for division in divisions:
            table[f"{division:02d}"] = tag
    return table


# CNAE division (two digits) → dual-VAT sector tag.
DUAL_VAT_SECTORS: dict[str, str] = _build_sector_table()

# Rate reduction applied to the reference dual-VAT rate, per sector tag.
SECTOR_REDUCTIONS: dict[str, float] = {
    AGRIBUSINESS: 0.60,
    INDUSTRY: 0.0,
    CONSTRUCTION: 0.0,
    COMMERCE: 0.0,
    TRANSPORT: 0.0,
    TECHNOLOGY: 0.0,
    FINANCIAL: 0.0,
    REAL_ESTATE: 0.50,
    EDUCATION: 0.60,
    HEALTH: 0.60,
    SERVICES: 0.0,
}

# Coarse fallback when no CNAE is available.
ACTIVITY_SECTORS: dict[str, str] = {
    INDUSTRY: INDUSTRY,
    COMMERCE: COMMERCE,
    SERVICES: SERVICES,
}


def cnae_division(cnae: Optional[str]) -> Optional[str]:
    """Return the two-digit division of a CNAE code ('4711-3/01' → '47').

    Returns None when the code has fewer than two digits or starts with '00'.
    """
    digits = digits_only(cnae or "")
    if len(digits) < 2 or digits[:2] == "00":
        return None
    return digits[:2]


def activity_for_cnae(cnae: Optional[str]) -> Optional[str]:
    """Bucket a CNAE code into an activity type, None if it is not usable."""
    division = cnae_division(cnae)
    if division is None:
        return None
    number = int(division)
    if number in _INDUSTRY_DIVISIONS:
        return INDUSTRY
    if number in _COMMERCE_DIVISIONS:
        return COMMERCE
    return SERVICES


def sector_for_cnae(cnae: Optional[str]) -> Optional[str]:
    """Dual-VAT sector tag for a CNAE code, None if unknown."""
    division = cnae_division(cnae)
    if division is None:
        return None
    return DUAL_VAT_SECTORS.get(division)


@dataclass(frozen=True)
class SectorInfo:
    """Dual-VAT metadata of a sector.

    Attributes:
        sector: Sector tag.
        reduction: Rate reduction as a fraction (0.6 means 60 % off).
        source: 'repository' or 'table'.
    """

    sector: str
    reduction: float
    source: str


class SectorRepository(Protocol):
    """Host-provided lookup of dual-VAT sector metadata."""

    def find(self, sector: str) -> Optional[SectorInfo]:
        """Return metadata for ``sector``, or None if the repository has none."""
        ...


def builtin_sector_info(sector: str) -> SectorInfo:
    """Metadata of ``sector`` from the built-in reduction table."""
    return SectorInfo(
        sector=sector,
        reduction=SECTOR_REDUCTIONS.get(sector, 0.0),
        source="table",
    )
