"""Value types exchanged between the reconciliation stages.

Everything here is immutable and free of marketplace-specific shapes: products are
referenced either as ``NormalizedProduct`` snapshots or by their ``ProductKey``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from marketsync.domain.errors import ContractViolationError
from marketsync.domain.model import MatchCriterion, Priority, RecommendationType, Severity

if TYPE_CHECKING:
    from marketsync.domain.model import NormalizedProduct, ProductKey


# Matching --------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class MatchResult:
    criterion: MatchCriterion
    confidence: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ContractViolationError(f"confidence out of range: {self.confidence}")
        if (self.criterion is MatchCriterion.NONE) != (self.confidence == 0.0):
            raise ContractViolationError(
                f"criterion {self.criterion} inconsistent with confidence {self.confidence}"
            )

    @property
    def is_match(self) -> bool:
        return self.criterion is not MatchCriterion.NONE


NO_MATCH = MatchResult(MatchCriterion.NONE, 0.0)


# Conflicts -------------------------------------------------------------------

type ConflictValue = Decimal | int | str | None


@dataclass(slots=True, frozen=True, kw_only=True)
class Conflict:
    field: str
    source_value: ConflictValue
    target_value: ConflictValue
    difference: Decimal | int | None
    severity: Severity


@dataclass(slots=True, frozen=True)
class ConflictReport:
    conflicts: tuple[Conflict, ...] = ()

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def severity_score(self) -> int:
        return sum(conflict.severity.score for conflict in self.conflicts)

    @property
    def max_severity(self) -> Severity | None:
        if not self.conflicts:
            return None
        return max((conflict.severity for conflict in self.conflicts), key=lambda s: s.score)


# Grouping --------------------------------------------------------------------


@dataclass(slots=True, frozen=True, kw_only=True)
class GroupLink:
    """A matched pair that joined two products into one group."""

    left: ProductKey
    right: ProductKey
    match: MatchResult
    conflicts: ConflictReport = field(default_factory=ConflictReport)


@dataclass(slots=True, frozen=True, kw_only=True)
class ProductGroup:
    members: tuple[NormalizedProduct, ...]
    confidence: float
    match_criteria: tuple[MatchCriterion, ...]
    links: tuple[GroupLink, ...] = ()

    def __post_init__(self) -> None:
        if len(self.members) < 2:  # noqa: PLR2004
            raise ContractViolationError("a product group needs at least two members")
        marketplaces = [member.marketplace for member in self.members]
        if len(set(marketplaces)) != len(marketplaces):
            raise ContractViolationError(
                f"group holds several members of one marketplace: {marketplaces}"
            )

    @property
    def master(self) -> NormalizedProduct:
        return self.members[0]

    @property
    def marketplaces(self) -> tuple[str, ...]:
        return tuple(member.marketplace for member in self.members)

    @property
    def conflicts(self) -> tuple[Conflict, ...]:
        return tuple(conflict for link in self.links for conflict in link.conflicts.conflicts)

    @property
    def has_conflicts(self) -> bool:
        return any(link.conflicts.has_conflicts for link in self.links)

    @property
    def total_stock(self) -> int:
        return sum(member.stock for member in self.members)


@dataclass(slots=True, frozen=True, kw_only=True)
class DuplicateCandidate:
    """A product that matched a group but was kept out to preserve one member per marketplace."""

    product: ProductKey
    matched: ProductKey
    match: MatchResult


@dataclass(slots=True, frozen=True, kw_only=True)
class GroupingResult:
    groups: tuple[ProductGroup, ...] = ()
    singles: dict[str, tuple[NormalizedProduct, ...]] = field(
        default_factory=dict[str, tuple["NormalizedProduct", ...]]
    )
    duplicates: tuple[DuplicateCandidate, ...] = ()

    @property
    def matched_products(self) -> int:
        return sum(len(group.members) for group in self.groups)

    @property
    def single_products(self) -> int:
        return sum(len(products) for products in self.singles.values())

    @property
    def total_products(self) -> int:
        return self.matched_products + self.single_products

    @property
    def marketplaces(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for group in self.groups:
            for marketplace in group.marketplaces:
                seen.setdefault(marketplace)
        for marketplace in self.singles:
            seen.setdefault(marketplace)
        return tuple(seen)


# Recommendations -------------------------------------------------------------


@dataclass(slots=True, frozen=True, kw_only=True)
class ConflictSuggestion:
    field: str
    suggestion: str
    value: ConflictValue
    rationale: str


@dataclass(slots=True, frozen=True, kw_only=True)
class SyncRecommendation:
    type: RecommendationType
    priority: Priority
    description: str
    source_marketplace: str | None = None
    target_marketplaces: tuple[str, ...] = ()
    products: tuple[ProductKey, ...] = ()
    count: int = 0
    estimated_minutes: int = 0
    suggestions: tuple[ConflictSuggestion, ...] = ()


@dataclass(slots=True, frozen=True, kw_only=True)
class NextStep:
    step: int
    action: str
    operation: str
    description: str
    estimated_minutes: int


@dataclass(slots=True, frozen=True, kw_only=True)
class SyncPlan:
    recommendations: tuple[SyncRecommendation, ...] = ()
    next_steps: tuple[NextStep, ...] = ()

    def of_type(self, kind: RecommendationType) -> tuple[SyncRecommendation, ...]:
        return tuple(rec for rec in self.recommendations if rec.type is kind)
