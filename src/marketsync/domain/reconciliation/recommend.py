"""Turn grouping or comparison results into a plan of sync actions."""

from __future__ import annotations

from collections import Counter
from decimal import Decimal
from typing import TYPE_CHECKING, Final

from marketsync.domain.model import Priority, RecommendationType

from .contracts import ConflictSuggestion, NextStep, SyncPlan, SyncRecommendation
from .options import RecommendationOptions

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from marketsync.domain.model import NormalizedProduct, ProductKey

    from .compare import PairComparison
    from .contracts import Conflict, DuplicateCandidate, ProductGroup

DEFAULT_RECOMMENDATION_OPTIONS: Final[RecommendationOptions] = RecommendationOptions()

_STEP_ORDER: Final[tuple[RecommendationType, ...]] = (
    RecommendationType.SYNC_MISSING,
    RecommendationType.RESOLVE_CONFLICT,
    RecommendationType.IMPORT_MISSING,
    RecommendationType.HANDLE_DUPLICATES,
    RecommendationType.MONITORING,
)

# action name, follow-up operation
_STEP_ACTIONS: Final[dict[RecommendationType, tuple[str, str]]] = {
    RecommendationType.SYNC_MISSING: ("sync_missing_products", "execute"),
    RecommendationType.RESOLVE_CONFLICT: ("review_conflicts", "review_conflicts"),
    RecommendationType.IMPORT_MISSING: ("import_products", "import"),
    RecommendationType.HANDLE_DUPLICATES: ("review_duplicates", "review_duplicates"),
    RecommendationType.MONITORING: ("monitoring", "analyze"),
}


def recommend(
    groups: Sequence[ProductGroup],
    singles: Mapping[str, Sequence[NormalizedProduct]],
    options: RecommendationOptions = DEFAULT_RECOMMENDATION_OPTIONS,
    *,
    duplicates: Sequence[DuplicateCandidate] = (),
) -> SyncPlan:
    """Plan actions for an N-marketplace grouping result."""

    participating = options.marketplaces or _participating(groups, singles)
    recommendations: list[SyncRecommendation] = []

    for marketplace, products in singles.items():
        targets = tuple(other for other in participating if other != marketplace)
        if not products or not targets:
            continue
        recommendations.append(
            _sync_missing(marketplace, targets, [product.key for product in products], options)
        )

    for group in groups:
        if group.has_conflicts:
            recommendations.append(
                _resolve_conflict(
                    source=group.master.marketplace,
                    targets=group.marketplaces[1:],
                    products=[member.key for member in group.members],
                    conflicts=group.conflicts,
                    options=options,
                    label=group.master.name,
                )
            )

    if duplicates:
        recommendations.append(
            _handle_duplicates(None, [duplicate.product for duplicate in duplicates], options)
        )

    return _finalize(recommendations, options)


def recommend_comparison(
    comparison: PairComparison,
    options: RecommendationOptions = DEFAULT_RECOMMENDATION_OPTIONS,
) -> SyncPlan:
    """Plan actions for a two-marketplace comparison."""

    source = comparison.source_marketplace
    target = comparison.target_marketplace
    recommendations: list[SyncRecommendation] = []

    if comparison.source_only:
        recommendations.append(
            _sync_missing(
                source,
                (target,),
                [product.key for product in comparison.source_only],
                options,
            )
        )
    if comparison.target_only:
        keys = [product.key for product in comparison.target_only]
        recommendations.append(
            SyncRecommendation(
                type=RecommendationType.IMPORT_MISSING,
                priority=Priority.MEDIUM,
                description=f"Import {len(keys)} products from {target} to {source}",
                source_marketplace=target,
                target_marketplaces=(source,),
                products=tuple(keys),
                count=len(keys),
                estimated_minutes=len(keys) * options.minutes_per_product,
            )
        )
    for pair in comparison.conflicts:
        recommendations.append(
            _resolve_conflict(
                source=source,
                targets=(target,),
                products=[pair.source.key, pair.target.key],
                conflicts=pair.conflicts.conflicts,
                options=options,
                label=pair.source.name,
            )
        )
    if comparison.duplicates:
        recommendations.append(
            _handle_duplicates(
                source,
                [duplicate.source.key for duplicate in comparison.duplicates],
                options,
            )
        )

    return _finalize(recommendations, options)


def suggest_resolution(conflict: Conflict) -> ConflictSuggestion:
    if conflict.field == "price":
        source = Decimal(str(conflict.source_value or 0))
        target = Decimal(str(conflict.target_value or 0))
        if source > target:
            return ConflictSuggestion(
                field="price",
                suggestion="use_lower_price",
                value=min(source, target),
                rationale="The lower price is more competitive",
            )
        return ConflictSuggestion(
            field="price",
            suggestion="use_higher_price",
            value=max(source, target),
            rationale="The higher price is more profitable",
        )
    if conflict.field == "stock":
        return ConflictSuggestion(
            field="stock",
            suggestion="use_max_stock",
            value=max(int(conflict.source_value or 0), int(conflict.target_value or 0)),
            rationale="Keep the largest reported quantity available for sale",
        )
    return ConflictSuggestion(
        field=conflict.field,
        suggestion="manual_review",
        value=None,
        rationale="No automatic rule for this field",
    )


def build_next_steps(recommendations: Iterable[SyncRecommendation]) -> tuple[NextStep, ...]:
    by_type: dict[RecommendationType, list[SyncRecommendation]] = {}
    for recommendation in recommendations:
        by_type.setdefault(recommendation.type, []).append(recommendation)

    steps: list[NextStep] = []
    for kind in _STEP_ORDER:
        items = by_type.get(kind)
        if not items:
            continue
        action, operation = _STEP_ACTIONS[kind]
        count = sum(item.count for item in items)
        steps.append(
            NextStep(
                step=len(steps) + 1,
                action=action,
                operation=operation,
                description=_step_description(kind, count),
                estimated_minutes=sum(item.estimated_minutes for item in items),
            )
        )
    return tuple(steps)


def _finalize(
    recommendations: list[SyncRecommendation],
    options: RecommendationOptions,
) -> SyncPlan:
    if not recommendations:
        recommendations.append(
            SyncRecommendation(
                type=RecommendationType.MONITORING,
                priority=Priority.LOW,
                description="Marketplaces are in sync; keep monitoring for changes",
                estimated_minutes=options.monitoring_minutes,
            )
        )
    return SyncPlan(
        recommendations=tuple(recommendations),
        next_steps=build_next_steps(recommendations),
    )


def _participating(
    groups: Sequence[ProductGroup],
    singles: Mapping[str, Sequence[NormalizedProduct]],
) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for group in groups:
        for marketplace in group.marketplaces:
            seen.setdefault(marketplace)
    for marketplace in singles:
        seen.setdefault(marketplace)
    return tuple(seen)


def _sync_missing(
    source: str,
    targets: tuple[str, ...],
    products: list[ProductKey],
    options: RecommendationOptions,
) -> SyncRecommendation:
    return SyncRecommendation(
        type=RecommendationType.SYNC_MISSING,
        priority=Priority.HIGH,
        description=f"Sync {len(products)} products from {source} to {', '.join(targets)}",
        source_marketplace=source,
        target_marketplaces=targets,
        products=tuple(products),
        count=len(products),
        estimated_minutes=len(products) * options.minutes_per_product,
    )


def _resolve_conflict(
    *,
    source: str,
    targets: tuple[str, ...],
    products: list[ProductKey],
    conflicts: Sequence[Conflict],
    options: RecommendationOptions,
    label: str,
) -> SyncRecommendation:
    worst = max((conflict.severity for conflict in conflicts), key=lambda s: s.score)
    fields = Counter(conflict.field for conflict in conflicts)
    summary = ", ".join(f"{name} x{count}" for name, count in sorted(fields.items()))
    return SyncRecommendation(
        type=RecommendationType.RESOLVE_CONFLICT,
        priority=Priority.from_severity(worst),
        description=f"Resolve {len(conflicts)} data conflicts for {label!r} ({summary})",
        source_marketplace=source,
        target_marketplaces=targets,
        products=tuple(products),
        count=len(conflicts),
        estimated_minutes=len(conflicts) * options.minutes_per_conflict,
        suggestions=tuple(suggest_resolution(conflict) for conflict in conflicts),
    )


def _handle_duplicates(
    source: str | None,
    products: list[ProductKey],
    options: RecommendationOptions,
) -> SyncRecommendation:
    return SyncRecommendation(
        type=RecommendationType.HANDLE_DUPLICATES,
        priority=Priority.MEDIUM,
        description=f"Review {len(products)} products matching more than one listing",
        source_marketplace=source,
        products=tuple(products),
        count=len(products),
        estimated_minutes=len(products) * options.minutes_per_conflict,
    )


def _step_description(kind: RecommendationType, count: int) -> str:
    match kind:
        case RecommendationType.SYNC_MISSING:
            return f"Create {count} missing products on the marketplaces lacking them"
        case RecommendationType.RESOLVE_CONFLICT:
            return f"Review and resolve {count} data conflicts"
        case RecommendationType.IMPORT_MISSING:
            return f"Import {count} products into the source marketplace"
        case RecommendationType.HANDLE_DUPLICATES:
            return f"Review {count} ambiguous product matches"
        case RecommendationType.MONITORING:
            return "Re-run the analysis periodically to catch drift"
