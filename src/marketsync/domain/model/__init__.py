"""Domain model for cross-marketplace reconciliation."""

from __future__ import annotations

from .catalog import CanonicalProduct, MarketplaceListing
from .enums import (
    GroupingPolicy,
    Marketplace,
    MatchCriterion,
    Priority,
    ProductStatus,
    RecommendationType,
    Severity,
)
from .product import ImageRef, NormalizedProduct, ProductKey

__all__ = [
    "CanonicalProduct",
    "GroupingPolicy",
    "ImageRef",
    "Marketplace",
    "MarketplaceListing",
    "MatchCriterion",
    "NormalizedProduct",
    "Priority",
    "ProductKey",
    "ProductStatus",
    "RecommendationType",
    "Severity",
]
