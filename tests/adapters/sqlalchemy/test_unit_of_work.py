from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine

from marketsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyCatalogUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from marketsync.domain.errors import PersistenceError
from marketsync.domain.model import CanonicalProduct, MarketplaceListing, ProductStatus
from marketsync.domain.reconciliation import (
    PersistOptions,
    PersistOutcome,
    ReconciliationWriter,
    group_products,
)
from tests.helpers.products import make_product

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from sqlalchemy.engine import Engine

NOW = datetime(2026, 1, 1, tzinfo=UTC)


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def _product(name: str, external_id: str, *, sku: str | None = None) -> CanonicalProduct:
    product = CanonicalProduct(
        seller_id="seller-1",
        name=name,
        base_price=Decimal("10.00"),
        total_stock=1,
        created_at=NOW,
        updated_at=NOW,
    )
    product.add_listing(
        MarketplaceListing(
            seller_id="seller-1",
            marketplace="amazon",
            external_id=external_id,
            sku=sku,
            title=name,
            price=Decimal("10.00"),
            stock=1,
            status=ProductStatus.ACTIVE,
            last_reconciled_at=NOW,
        )
    )
    return product


def test_catalog_unit_of_work_requires_startup() -> None:
    with pytest.raises(StartupError):
        SqlAlchemyCatalogUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b
    assert is_started()

    shutdown()
    assert not is_started()


def test_repositories_need_an_open_session(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    uow = SqlAlchemyCatalogUnitOfWork()

    with pytest.raises(StartupError):
        _ = uow.repositories


def test_unit_of_work_persists_products(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with SqlAlchemyCatalogUnitOfWork() as uow:
        product = _product("Ceramic Mug", "A-1", sku="MUG-01")
        uow.repositories.products.add(product)
        uow.commit()

    with SqlAlchemyCatalogUnitOfWork() as uow:
        loaded = uow.repositories.products.find_by_listing_sku("seller-1", "amazon", "MUG-01")
        assert loaded is not None
        assert loaded.id == product.id
        assert loaded.marketplaces == ("amazon",)


def test_uncommitted_work_is_rolled_back(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with SqlAlchemyCatalogUnitOfWork() as uow:
        uow.repositories.products.add(_product("Ceramic Mug", "A-1"))
        uow.rollback()

    with SqlAlchemyCatalogUnitOfWork() as uow:
        assert uow.repositories.products.find_by_name("seller-1", "Ceramic Mug") is None


def test_commit_failure_becomes_persistence_error(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with (
        pytest.raises(PersistenceError, match="Commit failed"),
        SqlAlchemyCatalogUnitOfWork() as uow,
    ):
        uow.repositories.products.add(_product("Ceramic Mug", "A-1"))
        uow.repositories.products.add(_product("Coffee Mug", "A-1"))
        uow.commit()

    with SqlAlchemyCatalogUnitOfWork() as uow:
        assert uow.repositories.products.list_for_seller("seller-1") == []


def _writer(factory: Callable[[], SqlAlchemyCatalogUnitOfWork]) -> ReconciliationWriter:
    return ReconciliationWriter(factory, clock=lambda: NOW)


def test_writer_rerun_reuses_stored_products(
    sqlite_unit_of_work: Callable[[], SqlAlchemyCatalogUnitOfWork],
) -> None:
    grouping = group_products(
        {
            "trendyol": [
                make_product("trendyol", "t1", name="Ceramic Mug", sku="MUG-01"),
                make_product("trendyol", "t2", name="Garden Hose", sku="HOSE-01"),
            ],
            "amazon": [make_product("amazon", "a1", name="Mug", sku="MUG-01")],
        }
    )
    writer = _writer(sqlite_unit_of_work)

    first = writer.persist(grouping.groups, grouping.singles, seller_id="seller-1")
    second = writer.persist(grouping.groups, grouping.singles, seller_id="seller-1")

    assert (first.saved, first.skipped) == (2, 0)
    assert (second.saved, second.skipped) == (0, 2)
    assert [product.outcome for product in second.products] == [
        PersistOutcome.REUSED,
        PersistOutcome.REUSED,
    ]
    assert [product.product_id for product in second.products] == [
        product.product_id for product in first.products
    ]

    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.products.list_for_seller("seller-1")
    assert [product.name for product in stored] == ["Ceramic Mug", "Garden Hose"]
    assert stored[0].marketplaces == ("amazon", "trendyol")


def test_writer_records_constraint_failures(
    sqlite_unit_of_work: Callable[[], SqlAlchemyCatalogUnitOfWork],
) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.products.add(_product("Ceramic Mug", "a-old"))
        uow.repositories.products.add(_product("Legacy Item", "a1"))
        uow.commit()

    grouping = group_products(
        {
            "trendyol": [
                make_product("trendyol", "t1", name="Ceramic Mug", sku="MUG-01"),
                make_product("trendyol", "t2", name="Garden Hose", sku="HOSE-01"),
            ],
            "amazon": [make_product("amazon", "a1", name="Mug", sku="MUG-01")],
        }
    )
    writer = ReconciliationWriter(
        sqlite_unit_of_work, PersistOptions(overwrite_existing=True), clock=lambda: NOW
    )

    # refreshing the stored amazon listing to "a1" collides with "Legacy Item"
    result = writer.persist(grouping.groups, grouping.singles, seller_id="seller-1")

    assert result.saved == 1
    assert len(result.errors) == 1
    assert result.errors[0].product == "Ceramic Mug"
    assert result.errors[0].marketplaces == ("trendyol", "amazon")
    assert [product.name for product in result.products] == ["Garden Hose"]


def test_writer_moves_listings_of_regrouped_singles(
    sqlite_unit_of_work: Callable[[], SqlAlchemyCatalogUnitOfWork],
) -> None:
    writer = _writer(sqlite_unit_of_work)
    for marketplace, external_id, name in (("trendyol", "t1", "Mug"), ("amazon", "a1", "Blue Mug")):
        alone = group_products({marketplace: [make_product(marketplace, external_id, name=name)]})
        writer.persist(alone.groups, alone.singles, seller_id="seller-1")

    regrouped = group_products(
        {
            "trendyol": [make_product("trendyol", "t1", name="Mug", sku="MUG-01")],
            "amazon": [make_product("amazon", "a1", name="Blue Mug", sku="MUG-01")],
        }
    )
    result = writer.persist(regrouped.groups, regrouped.singles, seller_id="seller-1")

    assert result.errors == []
    assert [product.outcome for product in result.products] == [PersistOutcome.LINKED]

    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.products.list_for_seller("seller-1")
        holder = uow.repositories.products.find_by_listing_external_id("seller-1", "amazon", "a1")
    assert [product.name for product in stored] == ["Mug"]
    assert stored[0].marketplaces == ("amazon", "trendyol")
    assert holder is not None
    assert holder.id == stored[0].id
