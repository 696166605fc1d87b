"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Marketplace(StrEnum):
    """Marketplaces with a registered field mapping.

    Marketplace identifiers are plain strings throughout the domain; this enum only
    names the ones shipped with a dedicated mapping.
    """

    TRENDYOL = "trendyol"
    HEPSIBURADA = "hepsiburada"
    AMAZON = "amazon"
    N11 = "n11"
    SHOPIFY = "shopify"
    CICEKSEPETI = "ciceksepeti"
    PAZARAMA = "pazarama"
    PTTAVM = "pttavm"


class ProductStatus(StrEnum):
    ACTIVE = "active"
    PENDING = "pending"
    INACTIVE = "inactive"


class MatchCriterion(StrEnum):
    EXACT_SKU = "exact_sku"
    BARCODE = "barcode"
    BRAND_NAME = "brand_name"
    NAME_SIMILARITY = "name_similarity"
    NONE = "none"

    @property
    def strength(self) -> int:
        """Rank of the criterion; earlier rules in the matching order rank higher."""

        return _CRITERION_STRENGTH[self]


_CRITERION_STRENGTH = {
    MatchCriterion.EXACT_SKU: 4,
    MatchCriterion.BARCODE: 3,
    MatchCriterion.BRAND_NAME: 2,
    MatchCriterion.NAME_SIMILARITY: 1,
    MatchCriterion.NONE: 0,
}


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def score(self) -> int:
        return _SEVERITY_SCORE[self]


_SEVERITY_SCORE = {Severity.LOW: 1, Severity.MEDIUM: 2, Severity.HIGH: 3}


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_severity(cls, severity: Severity) -> Priority:
        return cls(severity.value)


class RecommendationType(StrEnum):
    SYNC_MISSING = "sync_missing"
    IMPORT_MISSING = "import_missing"
    RESOLVE_CONFLICT = "resolve_conflict"
    HANDLE_DUPLICATES = "handle_duplicates"
    MONITORING = "monitoring"


class GroupingPolicy(StrEnum):
    """How matches chain into groups.

    ``SEED`` only joins products that match the group's first member. ``TRANSITIVE``
    joins connected components: A~B and B~C share a group even when A and C differ.
    """

    SEED = "seed"
    TRANSITIVE = "transitive"
