# SPED Profiler - Fiscal ledger extraction & inference engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Fallback cascades.

An estimator is an ordered list of tiers. Each tier has a name, an optional
predicate (``when``) and a computation (``then``). Tiers are tried in order
and the first one that applies wins; results of different tiers are never
combined.

A tier is skipped when:
- its predicate returns False,
- its computation returns None ("no signal"),
- its predicate or computation raises (logged at DEBUG level).

When no tier applies the documented default is returned, so running a
cascade never raises. Each result records the name of the tier that produced
it, which the profile exposes as provenance metadata.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SOURCE = "default"


def _always(_: Any) -> bool:
    return True


@dataclass(frozen=True)
class Tier(Generic[T]):
    """One fallback tier of an estimator."""

    name: str
    then: Callable[[Any], Optional[T]]
    when: Callable[[Any], bool] = _always


@dataclass(frozen=True)
class Estimate(Generic[T]):
    """Value produced by a cascade, with the name of the tier that produced it."""

    value: T
    source: str

    @property
    def is_default(self) -> bool:
        return self.source == DEFAULT_SOURCE


def run_cascade(
    name: str, tiers: Sequence[Tier[T]], subject: Any, default: T
) -> Estimate[T]:
    """Evaluate ``tiers`` in order against ``subject``.

    Args:
        name: Estimator name, used in log messages.
        tiers: Tiers in priority order.
        subject: Object passed to every predicate and computation.
        default: Value returned when no tier applies.

    Returns:
        Estimate of the first applicable tier, or ``default`` with source
        'default'.
    """
    for tier in tiers:
        try:
            if not tier.when(subject):
                continue
            value = tier.then(subject)
        except Exception as exc:  # noqa: BLE001
            logger.debug("%s: tier %r failed (%s), trying next", name, tier.name, exc)
            continue

        if value is None:
            continue

        logger.debug("%s resolved by tier %r: %r", name, tier.name, value)
        return Estimate(value=value, source=tier.name)

    logger.debug("%s: no tier applied, using default %r", name, default)
    return Estimate(value=default, source=DEFAULT_SOURCE)
