"""Grouping of products from N marketplaces into cross-marketplace groups.

Responsibilities of this stage:
- compare products of different marketplaces with the pair matcher
- chain matches into groups according to the ``GroupingPolicy``
- keep at most one member per marketplace in every group
- detect conflicts on every link that formed a group
- return a partition: each input product ends up in exactly one group or single bucket

All bookkeeping (claimed products, union-find parents) lives inside one call, so
concurrent runs never share state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from marketsync.domain.errors import ContractViolationError
from marketsync.domain.model import GroupingPolicy

from .conflicts import detect_conflicts
from .contracts import DuplicateCandidate, GroupingResult, GroupLink, MatchResult, ProductGroup
from .match import DEFAULT_OPTIONS, PairMatcher

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from marketsync.domain.model import NormalizedProduct, ProductKey

    from .contracts import ConflictReport
    from .options import MatchingOptions

    type MatchFn = Callable[[NormalizedProduct, NormalizedProduct], MatchResult]
    type DetectFn = Callable[[NormalizedProduct, NormalizedProduct], ConflictReport]

log = getLogger(__name__)


@dataclass(slots=True, frozen=True)
class _Edge:
    left: int
    right: int
    match: MatchResult


@dataclass(slots=True)
class _Components:
    """Union-find over pool indices that tracks the marketplaces of each component."""

    parent: list[int]
    marketplaces: dict[int, set[str]]
    edges: dict[int, list[_Edge]] = field(default_factory=dict[int, list[_Edge]])

    @classmethod
    def of(cls, pool: Sequence[NormalizedProduct]) -> _Components:
        return cls(
            parent=list(range(len(pool))),
            marketplaces={index: {product.marketplace} for index, product in enumerate(pool)},
        )

    def find(self, index: int) -> int:
        root = index
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[index] != root:
            self.parent[index], index = root, self.parent[index]
        return root

    def union(self, edge: _Edge) -> bool:
        """Merge the components of ``edge``; refuse when a marketplace would repeat."""

        left = self.find(edge.left)
        right = self.find(edge.right)
        if left == right:
            return True
        if self.marketplaces[left] & self.marketplaces[right]:
            return False
        keep, drop = (left, right) if left < right else (right, left)
        self.parent[drop] = keep
        self.marketplaces[keep] |= self.marketplaces.pop(drop)
        merged = self.edges.pop(keep, []) + self.edges.pop(drop, [])
        merged.append(edge)
        self.edges[keep] = merged
        return True


def group_products(
    products_by_source: Mapping[str, Sequence[NormalizedProduct]],
    options: MatchingOptions = DEFAULT_OPTIONS,
    *,
    policy: GroupingPolicy = GroupingPolicy.TRANSITIVE,
    matcher: MatchFn | None = None,
    detect: DetectFn = detect_conflicts,
) -> GroupingResult:
    pool = _build_pool(products_by_source)
    match = matcher or PairMatcher(options)

    if policy is GroupingPolicy.SEED:
        member_sets, duplicates = _group_by_seed(pool, match)
    else:
        member_sets, duplicates = _group_transitively(pool, match)

    groups = tuple(_build_group(pool, edges, detect) for edges in member_sets)
    grouped = {
        index for edges in member_sets for edge in edges for index in (edge.left, edge.right)
    }

    singles: dict[str, list[NormalizedProduct]] = {source: [] for source in products_by_source}
    for index, product in enumerate(pool):
        if index not in grouped:
            singles.setdefault(product.marketplace, []).append(product)

    result = GroupingResult(
        groups=groups,
        singles={marketplace: tuple(items) for marketplace, items in singles.items()},
        duplicates=tuple(duplicates),
    )
    log.info(
        "Grouped %d products (%s): groups=%d, singles=%d, duplicates=%d",
        len(pool),
        policy.value,
        len(result.groups),
        result.single_products,
        len(result.duplicates),
    )
    return result


def _build_pool(
    products_by_source: Mapping[str, Sequence[NormalizedProduct]],
) -> list[NormalizedProduct]:
    pool: list[NormalizedProduct] = []
    seen: set[ProductKey] = set()
    for products in products_by_source.values():
        for product in products:
            if product.key in seen:
                raise ContractViolationError(f"Product {product.key} appears more than once")
            seen.add(product.key)
            pool.append(product)
    return pool


def _group_by_seed(
    pool: Sequence[NormalizedProduct],
    match: MatchFn,
) -> tuple[list[list[_Edge]], list[DuplicateCandidate]]:
    """Each unclaimed product seeds a group of its best match per other marketplace."""

    claimed: set[int] = set()
    groups: list[list[_Edge]] = []
    duplicates: list[DuplicateCandidate] = []

    for seed_index, seed in enumerate(pool):
        if seed_index in claimed:
            continue
        claimed.add(seed_index)

        best: dict[str, _Edge] = {}
        rejected: list[_Edge] = []
        for index in range(seed_index + 1, len(pool)):
            candidate = pool[index]
            if index in claimed or candidate.marketplace == seed.marketplace:
                continue
            result = match(seed, candidate)
            if not result.is_match:
                continue
            edge = _Edge(seed_index, index, result)
            current = best.get(candidate.marketplace)
            if current is None or result.confidence > current.match.confidence:
                if current is not None:
                    rejected.append(current)
                best[candidate.marketplace] = edge
            else:
                rejected.append(edge)

        if not best:
            continue
        edges = sorted(best.values(), key=lambda edge: edge.right)
        claimed.update(edge.right for edge in edges)
        groups.append(edges)
        duplicates.extend(
            DuplicateCandidate(product=pool[edge.right].key, matched=seed.key, match=edge.match)
            for edge in rejected
        )

    return groups, duplicates


def _group_transitively(
    pool: Sequence[NormalizedProduct],
    match: MatchFn,
) -> tuple[list[list[_Edge]], list[DuplicateCandidate]]:
    """Union matched pairs, strongest first, into connected components."""

    edges: list[_Edge] = []
    for left, product in enumerate(pool):
        for right in range(left + 1, len(pool)):
            candidate = pool[right]
            if candidate.marketplace == product.marketplace:
                continue
            result = match(product, candidate)
            if result.is_match:
                edges.append(_Edge(left, right, result))

    edges.sort(
        key=lambda edge: (
            -edge.match.confidence,
            -edge.match.criterion.strength,
            edge.left,
            edge.right,
        )
    )

    components = _Components.of(pool)
    duplicates: list[DuplicateCandidate] = []
    for edge in edges:
        if not components.union(edge):
            duplicates.append(
                DuplicateCandidate(
                    product=pool[edge.right].key,
                    matched=pool[edge.left].key,
                    match=edge.match,
                )
            )

    member_sets = [components.edges[root] for root in sorted(components.edges)]
    return member_sets, duplicates


def _build_group(
    pool: Sequence[NormalizedProduct],
    edges: Sequence[_Edge],
    detect: DetectFn,
) -> ProductGroup:
    indices = sorted({index for edge in edges for index in (edge.left, edge.right)})
    links = tuple(
        GroupLink(
            left=pool[edge.left].key,
            right=pool[edge.right].key,
            match=edge.match,
            conflicts=detect(pool[edge.left], pool[edge.right]),
        )
        for edge in edges
    )
    return ProductGroup(
        members=tuple(pool[index] for index in indices),
        confidence=min(edge.match.confidence for edge in edges),
        match_criteria=tuple(edge.match.criterion for edge in edges),
        links=links,
    )
