from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from marketsync.domain.model import MatchCriterion
from marketsync.domain.reconciliation import (
    GroupingResult,
    PersistOptions,
    PersistOutcome,
    ReconciliationWriter,
    group_products,
)
from tests.helpers.products import (
    FakeCatalogUnitOfWork,
    InMemoryProductRepository,
    make_product,
)


def _grouping() -> GroupingResult:
    return group_products(
        {
            "trendyol": [
                make_product("trendyol", "t1", name="Ceramic Mug", sku="MUG-01", stock=3),
                make_product("trendyol", "t2", name="Garden Hose", sku="HOSE-01"),
            ],
            "amazon": [make_product("amazon", "a1", name="Mug", sku="MUG-01", stock=4)],
        }
    )


def _writer(
    repository: InMemoryProductRepository,
    *,
    fail_on: set[str] | None = None,
    overwrite: bool = False,
) -> ReconciliationWriter:
    return ReconciliationWriter(
        lambda: FakeCatalogUnitOfWork(repository, fail_on=fail_on),
        PersistOptions(overwrite_existing=overwrite),
        clock=lambda: datetime(2026, 1, 1, tzinfo=UTC),
    )


def test_persist_creates_products_for_groups_and_singles() -> None:
    repository = InMemoryProductRepository()
    grouping = _grouping()

    result = _writer(repository).persist(grouping.groups, grouping.singles, seller_id="seller-1")

    assert result.saved == 2
    assert result.skipped == 0
    assert result.errors == []
    assert not result.cancelled

    mug = repository.find_by_name("seller-1", "Ceramic Mug")
    assert mug is not None
    assert mug.marketplaces == ("trendyol", "amazon")
    assert mug.total_stock == 7
    assert mug.created_at == datetime(2026, 1, 1, tzinfo=UTC)
    listing = mug.listing_for("amazon")
    assert listing is not None
    assert listing.external_id == "a1"
    assert listing.sku == "MUG-01"

    grouped = result.products[0]
    assert grouped.outcome is PersistOutcome.CREATED
    assert grouped.confidence == 1.0
    assert grouped.match_criteria == (MatchCriterion.EXACT_SKU,)
    assert result.products[1].confidence is None


def test_failed_group_is_recorded_and_others_are_saved() -> None:
    repository = InMemoryProductRepository()
    grouping = _grouping()

    result = _writer(repository, fail_on={"Ceramic Mug"}).persist(
        grouping.groups, grouping.singles, seller_id="seller-1"
    )

    assert result.saved == 1
    assert len(result.errors) == 1
    error = result.errors[0]
    assert error.product == "Ceramic Mug"
    assert error.marketplaces == ("trendyol", "amazon")
    assert "constraint failed" in error.message
    assert [product.name for product in repository.items] == ["Garden Hose"]


def test_rerunning_the_same_plan_creates_nothing_new() -> None:
    repository = InMemoryProductRepository()
    grouping = _grouping()
    writer = _writer(repository)

    writer.persist(grouping.groups, grouping.singles, seller_id="seller-1")
    second = writer.persist(grouping.groups, grouping.singles, seller_id="seller-1")

    assert second.saved == 0
    assert second.skipped == 2
    assert {product.outcome for product in second.products} == {PersistOutcome.REUSED}
    assert len(repository.items) == 2
    mug = repository.find_by_name("seller-1", "Ceramic Mug")
    assert mug is not None
    assert len(mug.listings) == 2


def test_existing_product_is_found_by_listing_sku() -> None:
    repository = InMemoryProductRepository()
    first = group_products({"trendyol": [make_product("trendyol", "t1", name="Mug", sku="MUG-01")]})
    _writer(repository).persist(first.groups, first.singles, seller_id="seller-1")

    renamed = group_products(
        {
            "trendyol": [make_product("trendyol", "t9", name="Mug v2", sku="MUG-01")],
            "amazon": [make_product("amazon", "a1", name="Kupa", sku="MUG-01")],
        }
    )
    result = _writer(repository).persist(renamed.groups, renamed.singles, seller_id="seller-1")

    assert (result.saved, result.skipped) == (1, 0)
    assert result.products[0].outcome is PersistOutcome.LINKED
    assert len(repository.items) == 1
    assert repository.items[0].marketplaces == ("trendyol", "amazon")


def test_regrouped_singles_move_their_listings_onto_one_product() -> None:
    repository = InMemoryProductRepository()
    writer = _writer(repository)
    for marketplace, external_id, name in (("trendyol", "t1", "Mug"), ("amazon", "a1", "Blue Mug")):
        alone = group_products({marketplace: [make_product(marketplace, external_id, name=name)]})
        writer.persist(alone.groups, alone.singles, seller_id="seller-1")
    assert len(repository.items) == 2

    regrouped = group_products(
        {
            "trendyol": [make_product("trendyol", "t1", name="Mug", sku="MUG-01")],
            "amazon": [make_product("amazon", "a1", name="Blue Mug", sku="MUG-01")],
        }
    )
    result = writer.persist(regrouped.groups, regrouped.singles, seller_id="seller-1")

    assert result.errors == []
    assert (result.saved, result.skipped) == (1, 0)
    assert result.products[0].outcome is PersistOutcome.LINKED
    assert [product.name for product in repository.items] == ["Mug"]
    mug = repository.items[0]
    assert mug.marketplaces == ("trendyol", "amazon")
    amazon = mug.listing_for("amazon")
    assert amazon is not None
    assert amazon.external_id == "a1"


def test_single_is_found_by_listing_external_id() -> None:
    repository = InMemoryProductRepository()
    first = group_products({"amazon": [make_product("amazon", "a1", name="Mug")]})
    _writer(repository).persist(first.groups, first.singles, seller_id="seller-1")

    renamed = group_products({"amazon": [make_product("amazon", "a1", name="Stoneware Mug")]})
    result = _writer(repository).persist(renamed.groups, renamed.singles, seller_id="seller-1")

    assert result.errors == []
    assert result.products[0].outcome is PersistOutcome.REUSED
    assert [product.name for product in repository.items] == ["Mug"]


def test_overwrite_refreshes_product_and_listings() -> None:
    repository = InMemoryProductRepository()
    grouping = _grouping()
    _writer(repository).persist(grouping.groups, grouping.singles, seller_id="seller-1")

    repriced = group_products(
        {
            "trendyol": [
                make_product("trendyol", "t1", name="Ceramic Mug", sku="MUG-01", price="120")
            ],
            "amazon": [make_product("amazon", "a1", name="Mug", sku="MUG-01", price="125")],
        }
    )
    result = _writer(repository, overwrite=True).persist(
        repriced.groups, repriced.singles, seller_id="seller-1"
    )

    assert result.saved == 1
    assert result.products[0].outcome is PersistOutcome.UPDATED
    mug = repository.find_by_name("seller-1", "Ceramic Mug")
    assert mug is not None
    assert mug.base_price == Decimal(120)
    amazon = mug.listing_for("amazon")
    assert amazon is not None
    assert amazon.price == Decimal(125)


def test_products_of_other_sellers_are_not_reused() -> None:
    repository = InMemoryProductRepository()
    grouping = _grouping()

    _writer(repository).persist(grouping.groups, grouping.singles, seller_id="seller-1")
    result = _writer(repository).persist(grouping.groups, grouping.singles, seller_id="seller-2")

    assert result.saved == 2
    assert len(repository.list_for_seller("seller-2")) == 2


def test_cancellation_stops_between_products() -> None:
    repository = InMemoryProductRepository()
    grouping = _grouping()
    checks: list[int] = []

    def should_continue() -> bool:
        checks.append(1)
        return len(checks) <= 1

    result = _writer(repository).persist(
        grouping.groups,
        grouping.singles,
        seller_id="seller-1",
        should_continue=should_continue,
    )

    assert result.cancelled
    assert result.saved == 1
    assert len(repository.items) == 1


def test_progress_is_reported_per_product() -> None:
    repository = InMemoryProductRepository()
    grouping = _grouping()
    progress: list[tuple[int, int]] = []

    _writer(repository).persist(
        grouping.groups,
        grouping.singles,
        seller_id="seller-1",
        on_progress=lambda done, total: progress.append((done, total)),
    )

    assert progress == [(1, 2), (2, 2)]
