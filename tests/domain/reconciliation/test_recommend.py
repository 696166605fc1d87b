from __future__ import annotations

from decimal import Decimal

from marketsync.domain.model import Priority, RecommendationType, Severity
from marketsync.domain.reconciliation import (
    Conflict,
    RecommendationOptions,
    build_next_steps,
    compare_sources,
    group_products,
    recommend,
    recommend_comparison,
    suggest_resolution,
)
from tests.helpers.products import make_product


def test_single_product_yields_exactly_one_sync_action() -> None:
    mug = make_product("trendyol", "t1", name="Ceramic Mug")

    plan = recommend((), {"trendyol": (mug,), "hepsiburada": ()})

    assert len(plan.recommendations) == 1
    recommendation = plan.recommendations[0]
    assert recommendation.type is RecommendationType.SYNC_MISSING
    assert recommendation.priority is Priority.HIGH
    assert recommendation.source_marketplace == "trendyol"
    assert recommendation.target_marketplaces == ("hepsiburada",)
    assert recommendation.products == (("trendyol", "t1"),)
    assert recommendation.count == 1
    assert recommendation.estimated_minutes == 2


def test_explicit_marketplaces_widen_sync_targets() -> None:
    mug = make_product("trendyol", "t1", name="Ceramic Mug")
    options = RecommendationOptions(marketplaces=("trendyol", "amazon", "n11"))

    plan = recommend((), {"trendyol": (mug,)}, options)

    assert plan.recommendations[0].target_marketplaces == ("amazon", "n11")


def test_conflicting_group_yields_resolve_action_with_suggestions() -> None:
    grouping = group_products(
        {
            "trendyol": [make_product("trendyol", "t1", name="Mug", sku="MUG-01", price="150")],
            "amazon": [make_product("amazon", "a1", name="Mug", sku="MUG-01", price="100")],
        }
    )

    plan = recommend(grouping.groups, grouping.singles)

    conflicts = plan.of_type(RecommendationType.RESOLVE_CONFLICT)
    assert len(conflicts) == 1
    action = conflicts[0]
    assert action.priority is Priority.MEDIUM
    assert action.source_marketplace == "trendyol"
    assert action.target_marketplaces == ("amazon",)
    assert action.estimated_minutes == 5
    assert [(s.field, s.suggestion, s.value) for s in action.suggestions] == [
        ("price", "use_lower_price", Decimal(100)),
    ]
    assert plan.of_type(RecommendationType.SYNC_MISSING) == ()


def test_duplicates_yield_review_action() -> None:
    grouping = group_products(
        {
            "trendyol": [make_product("trendyol", "t1", name="Mug", sku="MUG-01")],
            "amazon": [
                make_product("amazon", "a1", name="Kupa", sku="MUG-01"),
                make_product("amazon", "a2", name="Tasse", sku="MUG-01"),
            ],
        }
    )

    plan = recommend(grouping.groups, grouping.singles, duplicates=grouping.duplicates)

    kinds = [recommendation.type for recommendation in plan.recommendations]
    assert kinds == [RecommendationType.SYNC_MISSING, RecommendationType.HANDLE_DUPLICATES]
    assert plan.of_type(RecommendationType.HANDLE_DUPLICATES)[0].products == (("amazon", "a2"),)


def test_nothing_to_do_yields_monitoring_only() -> None:
    grouping = group_products(
        {
            "trendyol": [make_product("trendyol", "t1", name="Mug", sku="MUG-01")],
            "amazon": [make_product("amazon", "a1", name="Mug", sku="MUG-01")],
        }
    )

    plan = recommend(grouping.groups, grouping.singles)

    assert [rec.type for rec in plan.recommendations] == [RecommendationType.MONITORING]
    assert plan.recommendations[0].priority is Priority.LOW
    assert [step.action for step in plan.next_steps] == ["monitoring"]


def test_comparison_plan_covers_every_bucket() -> None:
    comparison = compare_sources(
        "trendyol",
        [
            make_product("trendyol", "s1", name="Ceramic Mug", sku="MUG-01", price="100"),
            make_product("trendyol", "s2", name="Garden Hose"),
            make_product("trendyol", "s3", name="Desk Lamp", sku="LAMP-01"),
        ],
        "amazon",
        [
            make_product("amazon", "a1", name="Mug", sku="MUG-01", price="200"),
            make_product("amazon", "a2", name="Bicycle Bell"),
            make_product("amazon", "a3", name="Lamp", sku="LAMP-01"),
            make_product("amazon", "a4", name="Lamp Copy", sku="lamp01"),
        ],
    )

    plan = recommend_comparison(comparison)

    assert [rec.type for rec in plan.recommendations] == [
        RecommendationType.SYNC_MISSING,
        RecommendationType.IMPORT_MISSING,
        RecommendationType.RESOLVE_CONFLICT,
        RecommendationType.HANDLE_DUPLICATES,
    ]
    sync = plan.recommendations[0]
    assert sync.products == (("trendyol", "s2"),)
    assert sync.target_marketplaces == ("amazon",)
    imported = plan.recommendations[1]
    assert imported.source_marketplace == "amazon"
    assert imported.target_marketplaces == ("trendyol",)
    assert set(imported.products) == {("amazon", "a2"), ("amazon", "a4")}


def test_next_steps_follow_a_fixed_order() -> None:
    comparison = compare_sources(
        "trendyol",
        [
            make_product("trendyol", "s1", name="Ceramic Mug", sku="MUG-01", price="100"),
            make_product("trendyol", "s2", name="Garden Hose"),
        ],
        "amazon",
        [make_product("amazon", "a1", name="Mug", sku="MUG-01", price="200", stock=30)],
    )

    steps = recommend_comparison(comparison).next_steps

    assert [(step.step, step.action, step.operation) for step in steps] == [
        (1, "sync_missing_products", "execute"),
        (2, "review_conflicts", "review_conflicts"),
    ]
    assert steps[1].estimated_minutes == 10


def test_build_next_steps_of_nothing_is_empty() -> None:
    assert build_next_steps([]) == ()


def test_suggestions_per_field() -> None:
    cheaper_source = Conflict(
        field="price",
        source_value=Decimal(90),
        target_value=Decimal(120),
        difference=Decimal(30),
        severity=Severity.MEDIUM,
    )
    stock = Conflict(
        field="stock",
        source_value=3,
        target_value=12,
        difference=9,
        severity=Severity.LOW,
    )
    other = Conflict(
        field="title",
        source_value="Mug",
        target_value="Cup",
        difference=None,
        severity=Severity.LOW,
    )

    assert suggest_resolution(cheaper_source).suggestion == "use_higher_price"
    assert suggest_resolution(cheaper_source).value == Decimal(120)
    assert suggest_resolution(stock).value == 12
    assert suggest_resolution(other).suggestion == "manual_review"
