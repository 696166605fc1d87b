from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from marketsync.domain.errors import ContractViolationError
from marketsync.domain.model import GroupingPolicy, MatchCriterion
from marketsync.domain.reconciliation import MatchingOptions, ProductGroup, group_products
from tests.helpers.products import make_product

if TYPE_CHECKING:
    from marketsync.domain.model import NormalizedProduct
    from marketsync.domain.reconciliation import GroupingResult


def _keys(result: GroupingResult) -> list[tuple[str, str]]:
    keys = [member.key for group in result.groups for member in group.members]
    keys.extend(product.key for products in result.singles.values() for product in products)
    return keys


def _chain() -> dict[str, list[NormalizedProduct]]:
    # trendyol~hepsiburada by SKU, hepsiburada~amazon by barcode, trendyol and amazon unrelated
    return {
        "trendyol": [make_product("trendyol", "t1", name="Alpha", sku="SKU-100")],
        "hepsiburada": [
            make_product(
                "hepsiburada", "h1", name="Beta", sku="SKU-100", barcode="8690000000001"
            )
        ],
        "amazon": [make_product("amazon", "a1", name="Gamma", barcode="8690000000001")],
    }


def test_shared_barcode_groups_three_marketplaces() -> None:
    products = {
        "trendyol": [make_product("trendyol", "t1", name="Mug", barcode="1234567890")],
        "hepsiburada": [make_product("hepsiburada", "h1", name="Kupa", barcode="1234567890")],
        "amazon": [make_product("amazon", "a1", name="Tasse", barcode="1234567890")],
    }

    result = group_products(products)

    assert len(result.groups) == 1
    group = result.groups[0]
    assert group.marketplaces == ("trendyol", "hepsiburada", "amazon")
    assert group.confidence == pytest.approx(0.95)
    assert set(group.match_criteria) == {MatchCriterion.BARCODE}
    assert result.single_products == 0
    assert result.singles == {"trendyol": (), "hepsiburada": (), "amazon": ()}


def test_grouping_is_a_partition_of_the_input() -> None:
    products = {
        "trendyol": [
            make_product("trendyol", "t1", name="Mug", sku="MUG-01"),
            make_product("trendyol", "t2", name="Garden Hose"),
            make_product("trendyol", "t3", name="Desk Lamp", barcode="4006381333931"),
        ],
        "n11": [
            make_product("n11", "n1", name="Kupa", sku="mug01"),
            make_product("n11", "n2", name="Desk Lamp LED", barcode="4006381333931"),
            make_product("n11", "n3", name="Bicycle Bell"),
        ],
    }

    result = group_products(products)
    keys = _keys(result)

    expected = {product.key for items in products.values() for product in items}
    assert len(keys) == len(expected)
    assert set(keys) == expected
    assert result.total_products == 6
    assert len(result.groups) == 2


def test_transitive_policy_chains_matches() -> None:
    result = group_products(_chain(), policy=GroupingPolicy.TRANSITIVE)

    assert len(result.groups) == 1
    group = result.groups[0]
    assert {member.external_id for member in group.members} == {"t1", "h1", "a1"}
    assert group.confidence == pytest.approx(0.95)
    assert group.master.external_id == "t1"


def test_seed_policy_only_joins_matches_of_the_seed() -> None:
    result = group_products(_chain(), policy=GroupingPolicy.SEED)

    assert len(result.groups) == 1
    assert [member.external_id for member in result.groups[0].members] == ["t1", "h1"]
    assert [product.external_id for product in result.singles["amazon"]] == ["a1"]


@pytest.mark.parametrize("policy", list(GroupingPolicy))
def test_group_keeps_one_member_per_marketplace(policy: GroupingPolicy) -> None:
    products = {
        "trendyol": [make_product("trendyol", "t1", name="Mug", sku="MUG-01")],
        "hepsiburada": [
            make_product("hepsiburada", "h1", name="Kupa", sku="MUG-01"),
            make_product("hepsiburada", "h2", name="Kupa Copy", sku="mug-01"),
        ],
    }

    result = group_products(products, policy=policy)

    assert len(result.groups) == 1
    assert [member.key for member in result.groups[0].members] == [
        ("trendyol", "t1"),
        ("hepsiburada", "h1"),
    ]
    assert [product.key for product in result.singles["hepsiburada"]] == [("hepsiburada", "h2")]
    assert len(result.duplicates) == 1
    duplicate = result.duplicates[0]
    assert duplicate.product == ("hepsiburada", "h2")
    assert duplicate.matched == ("trendyol", "t1")


def test_links_carry_conflicts() -> None:
    products = {
        "trendyol": [make_product("trendyol", "t1", name="Mug", sku="MUG-01", price="100")],
        "amazon": [make_product("amazon", "a1", name="Mug", sku="MUG-01", price="150")],
    }

    group = group_products(products).groups[0]

    assert group.has_conflicts
    assert [conflict.field for conflict in group.conflicts] == ["price"]
    assert group.links[0].left == ("trendyol", "t1")
    assert group.links[0].right == ("amazon", "a1")


def test_strict_options_reach_the_matcher() -> None:
    products = {
        "trendyol": [make_product("trendyol", "t1", name="Cotton T-Shirt Blue")],
        "amazon": [make_product("amazon", "a1", name="Cotton T-Shirt Blu")],
    }

    assert len(group_products(products).groups) == 1
    assert group_products(products, MatchingOptions(strict_matching=True)).groups == ()


def test_products_of_one_marketplace_never_group() -> None:
    products = {
        "trendyol": [
            make_product("trendyol", "t1", name="Mug", sku="MUG-01"),
            make_product("trendyol", "t2", name="Mug", sku="MUG-01"),
        ],
    }

    result = group_products(products)

    assert result.groups == ()
    assert result.single_products == 2


def test_repeated_product_key_is_a_contract_violation() -> None:
    product = make_product("trendyol", "t1", name="Mug")

    with pytest.raises(ContractViolationError):
        group_products({"trendyol": [product, product]})


def test_group_requires_distinct_marketplaces() -> None:
    with pytest.raises(ContractViolationError):
        ProductGroup(
            members=(make_product("trendyol", "t1"), make_product("trendyol", "t2")),
            confidence=1.0,
            match_criteria=(MatchCriterion.EXACT_SKU,),
        )


def test_empty_input_gives_empty_result() -> None:
    result = group_products({"trendyol": [], "amazon": []})

    assert result.groups == ()
    assert result.total_products == 0
    assert result.marketplaces == ("trendyol", "amazon")
