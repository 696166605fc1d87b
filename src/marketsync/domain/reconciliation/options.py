"""Immutable option values passed through the reconciliation stages."""

from __future__ import annotations

import math
from dataclasses import dataclass

from marketsync.domain.errors import InvalidOptionsError


@dataclass(slots=True, frozen=True, kw_only=True)
class MatchingOptions:
    """Knobs of the pair matcher.

    ``strict_matching`` disables fuzzy name matching, ``ignore_brand`` disables the
    brand+name rule and the brand penalty of fuzzy matches.
    """

    strict_matching: bool = False
    similarity_threshold: float = 0.85
    ignore_brand: bool = False

    def __post_init__(self) -> None:
        threshold = self.similarity_threshold
        if math.isnan(threshold) or not 0.0 < threshold <= 1.0:
            raise InvalidOptionsError(
                f"similarity_threshold must be in (0, 1], got {self.similarity_threshold}"
            )


@dataclass(slots=True, frozen=True, kw_only=True)
class RecommendationOptions:
    """Participating marketplaces and the time estimates of follow-up work.

    When ``marketplaces`` is empty the participating set is derived from the
    marketplaces present in the grouping result.
    """

    marketplaces: tuple[str, ...] = ()
    minutes_per_product: int = 2
    minutes_per_conflict: int = 5
    monitoring_minutes: int = 1

    def __post_init__(self) -> None:
        if min(self.minutes_per_product, self.minutes_per_conflict, self.monitoring_minutes) < 0:
            raise InvalidOptionsError("time estimates must not be negative")


@dataclass(slots=True, frozen=True, kw_only=True)
class PersistOptions:
    overwrite_existing: bool = False
