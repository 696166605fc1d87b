"""Two-marketplace comparison backing the ``analyze`` operation.

Unlike N-way grouping this keeps every candidate visible: a source product with
several equally strong target matches is reported as a duplicate instead of being
forced into a single pair.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from .conflicts import detect_conflicts
from .contracts import ConflictReport
from .match import DEFAULT_OPTIONS, PairMatcher

if TYPE_CHECKING:
    from collections.abc import Sequence

    from marketsync.domain.model import NormalizedProduct

    from .contracts import MatchResult
    from .grouping import DetectFn, MatchFn
    from .options import MatchingOptions

log = getLogger(__name__)


@dataclass(slots=True, frozen=True, kw_only=True)
class MatchedPair:
    source: NormalizedProduct
    target: NormalizedProduct
    match: MatchResult
    conflicts: ConflictReport = ConflictReport()


@dataclass(slots=True, frozen=True, kw_only=True)
class DuplicateMatch:
    source: NormalizedProduct
    candidates: tuple[NormalizedProduct, ...]
    match: MatchResult


@dataclass(slots=True, frozen=True, kw_only=True)
class ComparisonSummary:
    total_source: int
    total_target: int
    matched: int
    conflicts: int
    source_only: int
    target_only: int
    duplicates: int

    @property
    def match_rate(self) -> float:
        """Share of report entries that are clean or conflicting matches, in percent."""

        entries = self.matched + self.conflicts + self.source_only + self.target_only
        entries += self.duplicates
        if entries == 0:
            return 0.0
        return round((self.matched + self.conflicts) / entries * 100, 1)


@dataclass(slots=True, frozen=True, kw_only=True)
class PairComparison:
    source_marketplace: str
    target_marketplace: str
    total_source: int = 0
    total_target: int = 0
    matches: tuple[MatchedPair, ...] = ()
    conflicts: tuple[MatchedPair, ...] = ()
    source_only: tuple[NormalizedProduct, ...] = ()
    target_only: tuple[NormalizedProduct, ...] = ()
    duplicates: tuple[DuplicateMatch, ...] = ()

    @property
    def summary(self) -> ComparisonSummary:
        return ComparisonSummary(
            total_source=self.total_source,
            total_target=self.total_target,
            matched=len(self.matches),
            conflicts=len(self.conflicts),
            source_only=len(self.source_only),
            target_only=len(self.target_only),
            duplicates=len(self.duplicates),
        )


def compare_sources(
    source_marketplace: str,
    source: Sequence[NormalizedProduct],
    target_marketplace: str,
    target: Sequence[NormalizedProduct],
    options: MatchingOptions = DEFAULT_OPTIONS,
    *,
    matcher: MatchFn | None = None,
    detect: DetectFn = detect_conflicts,
) -> PairComparison:
    match = matcher or PairMatcher(options)

    matches: list[MatchedPair] = []
    conflicts: list[MatchedPair] = []
    source_only: list[NormalizedProduct] = []
    duplicates: list[DuplicateMatch] = []
    matched_targets: set[int] = set()

    for product in source:
        candidates = _strongest_candidates(product, target, match)
        if not candidates:
            source_only.append(product)
            continue

        best_index, best_result = max(candidates, key=lambda item: item[1].confidence)
        matched_targets.add(best_index)
        if len(candidates) > 1:
            duplicates.append(
                DuplicateMatch(
                    source=product,
                    candidates=tuple(target[index] for index, _ in candidates),
                    match=best_result,
                )
            )
            continue

        pair = MatchedPair(
            source=product,
            target=target[best_index],
            match=best_result,
            conflicts=detect(product, target[best_index]),
        )
        if pair.conflicts.has_conflicts:
            conflicts.append(pair)
        else:
            matches.append(pair)

    comparison = PairComparison(
        source_marketplace=source_marketplace,
        target_marketplace=target_marketplace,
        total_source=len(source),
        total_target=len(target),
        matches=tuple(matches),
        conflicts=tuple(conflicts),
        source_only=tuple(source_only),
        target_only=tuple(
            product for index, product in enumerate(target) if index not in matched_targets
        ),
        duplicates=tuple(duplicates),
    )
    summary = comparison.summary
    log.info(
        "Compared %s with %s: matched=%d, conflicts=%d, source_only=%d, target_only=%d, "
        "duplicates=%d",
        source_marketplace,
        target_marketplace,
        summary.matched,
        summary.conflicts,
        summary.source_only,
        summary.target_only,
        summary.duplicates,
    )
    return comparison


def _strongest_candidates(
    product: NormalizedProduct,
    target: Sequence[NormalizedProduct],
    match: MatchFn,
) -> list[tuple[int, MatchResult]]:
    """Return the target matches of the strongest criterion that fired at all."""

    found: list[tuple[int, MatchResult]] = []
    for index, candidate in enumerate(target):
        result = match(product, candidate)
        if result.is_match:
            found.append((index, result))
    if not found:
        return []
    strongest = max(result.criterion.strength for _, result in found)
    return [item for item in found if item[1].criterion.strength == strongest]
