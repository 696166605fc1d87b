"""Orchestrator for the pure reconciliation stages.

The engine runs normalization, grouping and recommendation in memory. Fetching and
persistence stay outside: callers hand in raw records per marketplace and decide
separately whether to execute the resulting plan.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from marketsync.domain.errors import ContractViolationError
from marketsync.domain.model import GroupingPolicy

from .compare import compare_sources
from .grouping import group_products
from .mappings import DEFAULT_REGISTRY
from .normalize import normalize_batch
from .options import MatchingOptions, RecommendationOptions
from .recommend import recommend, recommend_comparison

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from marketsync.domain.model import NormalizedProduct

    from .compare import PairComparison
    from .contracts import GroupingResult, SyncPlan
    from .mappings import MappingRegistry, RawRecord
    from .normalize import NormalizationBatch, NormalizationWarning


class NormalizeRecords(Protocol):
    def __call__(
        self,
        records: Iterable[RawRecord],
        marketplace: str,
        *,
        registry: MappingRegistry = ...,
    ) -> NormalizationBatch: ...


class GroupProducts(Protocol):
    def __call__(
        self,
        products_by_source: Mapping[str, Sequence[NormalizedProduct]],
        options: MatchingOptions = ...,
        *,
        policy: GroupingPolicy = ...,
    ) -> GroupingResult: ...


@dataclass(slots=True, kw_only=True)
class ReconciliationOutcome:
    grouping: GroupingResult
    plan: SyncPlan
    warnings: list[NormalizationWarning] = field(default_factory=list["NormalizationWarning"])


@dataclass(slots=True, kw_only=True)
class ComparisonOutcome:
    comparison: PairComparison
    plan: SyncPlan
    warnings: list[NormalizationWarning] = field(default_factory=list["NormalizationWarning"])


@dataclass(slots=True, kw_only=True)
class ReconciliationEngine:
    """Run normalization, grouping and recommendation for one set of options."""

    matching: MatchingOptions = field(default_factory=MatchingOptions)
    policy: GroupingPolicy = GroupingPolicy.TRANSITIVE
    recommendation: RecommendationOptions = field(default_factory=RecommendationOptions)
    registry: MappingRegistry = DEFAULT_REGISTRY
    normalize: NormalizeRecords = normalize_batch
    group: GroupProducts = group_products

    def canonical_marketplaces(self, marketplaces: Iterable[str]) -> tuple[str, ...]:
        """Map caller-supplied marketplace names onto the registry's identifiers.

        Raises ``ContractViolationError`` when two names denote the same marketplace.
        """

        canonical: list[str] = []
        for marketplace in marketplaces:
            identifier = self.registry.canonical_id(marketplace)
            if identifier in canonical:
                raise ContractViolationError(
                    f"Marketplace {marketplace!r} is given more than once"
                )
            canonical.append(identifier)
        return tuple(canonical)

    def normalize_all(
        self,
        records_by_marketplace: Mapping[str, Iterable[RawRecord]],
    ) -> tuple[dict[str, list[NormalizedProduct]], list[NormalizationWarning]]:
        """Normalize every catalog, keyed by canonical marketplace identifier."""

        self.canonical_marketplaces(records_by_marketplace)
        products: dict[str, list[NormalizedProduct]] = {}
        warnings: list[NormalizationWarning] = []
        for marketplace, records in records_by_marketplace.items():
            batch = self.normalize(records, marketplace, registry=self.registry)
            products[batch.marketplace] = batch.products
            warnings.extend(batch.warnings)
        return products, warnings

    def reconcile(
        self,
        records_by_marketplace: Mapping[str, Iterable[RawRecord]],
    ) -> ReconciliationOutcome:
        """Group every marketplace's catalog and plan the actions to align them."""

        products, warnings = self.normalize_all(records_by_marketplace)
        grouping = self.group(products, self.matching, policy=self.policy)
        configured = self.recommendation
        recommendation = RecommendationOptions(
            marketplaces=(
                self.canonical_marketplaces(configured.marketplaces)
                if configured.marketplaces
                else tuple(products)
            ),
            minutes_per_product=configured.minutes_per_product,
            minutes_per_conflict=configured.minutes_per_conflict,
            monitoring_minutes=configured.monitoring_minutes,
        )
        plan = recommend(
            grouping.groups,
            grouping.singles,
            recommendation,
            duplicates=grouping.duplicates,
        )
        return ReconciliationOutcome(grouping=grouping, plan=plan, warnings=warnings)

    def compare(
        self,
        source: str,
        source_records: Iterable[RawRecord],
        target: str,
        target_records: Iterable[RawRecord],
    ) -> ComparisonOutcome:
        """Compare two marketplaces and plan the actions to align them."""

        source, target = self.canonical_marketplaces((source, target))
        products, warnings = self.normalize_all({source: source_records, target: target_records})
        comparison = compare_sources(
            source,
            products[source],
            target,
            products[target],
            self.matching,
        )
        plan = recommend_comparison(comparison, self.recommendation)
        return ComparisonOutcome(comparison=comparison, plan=plan, warnings=warnings)
