"""Reconciliation stages: normalize, match, group, compare, recommend, persist."""

from __future__ import annotations

from .compare import ComparisonSummary, DuplicateMatch, MatchedPair, PairComparison, compare_sources
from .conflicts import DEFAULT_RULES, detect_conflicts, price_conflict, stock_conflict
from .contracts import (
    NO_MATCH,
    Conflict,
    ConflictReport,
    ConflictSuggestion,
    DuplicateCandidate,
    GroupingResult,
    GroupLink,
    MatchResult,
    NextStep,
    ProductGroup,
    SyncPlan,
    SyncRecommendation,
)
from .engine import ComparisonOutcome, ReconciliationEngine, ReconciliationOutcome
from .grouping import group_products
from .mappings import DEFAULT_REGISTRY, MappingRegistry, MarketplaceMapping, build_default_registry
from .match import PairMatcher, match_products, name_similarity
from .normalize import (
    NormalizationBatch,
    NormalizationWarning,
    normalize,
    normalize_barcode,
    normalize_batch,
    normalize_brand,
    normalize_name,
    normalize_sku,
)
from .options import MatchingOptions, PersistOptions, RecommendationOptions
from .persist import PersistedProduct, PersistError, PersistOutcome, PersistResult
from .persist import ReconciliationWriter
from .recommend import build_next_steps, recommend, recommend_comparison, suggest_resolution

__all__ = [
    "DEFAULT_REGISTRY",
    "DEFAULT_RULES",
    "NO_MATCH",
    "ComparisonOutcome",
    "ComparisonSummary",
    "Conflict",
    "ConflictReport",
    "ConflictSuggestion",
    "DuplicateCandidate",
    "DuplicateMatch",
    "GroupLink",
    "GroupingResult",
    "MappingRegistry",
    "MarketplaceMapping",
    "MatchResult",
    "MatchedPair",
    "MatchingOptions",
    "NextStep",
    "NormalizationBatch",
    "NormalizationWarning",
    "PairComparison",
    "PairMatcher",
    "PersistError",
    "PersistOptions",
    "PersistOutcome",
    "PersistResult",
    "PersistedProduct",
    "ProductGroup",
    "ReconciliationEngine",
    "ReconciliationOutcome",
    "ReconciliationWriter",
    "RecommendationOptions",
    "SyncPlan",
    "SyncRecommendation",
    "build_default_registry",
    "build_next_steps",
    "compare_sources",
    "detect_conflicts",
    "group_products",
    "match_products",
    "name_similarity",
    "normalize",
    "normalize_barcode",
    "normalize_batch",
    "normalize_brand",
    "normalize_name",
    "normalize_sku",
    "price_conflict",
    "recommend",
    "recommend_comparison",
    "stock_conflict",
    "suggest_resolution",
]
