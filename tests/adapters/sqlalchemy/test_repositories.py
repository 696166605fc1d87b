from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from marketsync.adapters.sqlalchemy.repositories import SqlAlchemyCanonicalProductRepository
from marketsync.domain.model import CanonicalProduct, MarketplaceListing, ProductStatus

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def _product(
    name: str,
    *,
    seller_id: str = "seller-1",
    created_at: datetime | None = None,
) -> CanonicalProduct:
    when = created_at or datetime(2026, 1, 1, tzinfo=UTC)
    return CanonicalProduct(
        seller_id=seller_id,
        name=name,
        brand="Acme",
        base_price=Decimal("19.90"),
        total_stock=5,
        created_at=when,
        updated_at=when,
    )


def _listing(marketplace: str, external_id: str, sku: str | None) -> MarketplaceListing:
    return MarketplaceListing(
        seller_id="seller-1",
        marketplace=marketplace,
        external_id=external_id,
        sku=sku,
        title="Ceramic Mug",
        price=Decimal("19.90"),
        stock=5,
        status=ProductStatus.PENDING,
    )


def test_add_and_get_round_trip(sqlite_session: Session) -> None:
    repository = SqlAlchemyCanonicalProductRepository(sqlite_session)
    product = _product("Ceramic Mug")
    product.add_listing(_listing("trendyol", "T-1", "MUG-01"))
    product.add_listing(_listing("amazon", "A-1", "MUG-01"))
    repository.add(product)
    sqlite_session.commit()
    sqlite_session.expunge_all()

    loaded = repository.get(product.id)

    assert loaded is not None
    assert loaded.name == "Ceramic Mug"
    assert loaded.base_price == Decimal("19.90")
    assert loaded.created_at == datetime(2026, 1, 1, tzinfo=UTC)
    assert loaded.marketplaces == ("amazon", "trendyol")
    listing = loaded.listing_for("trendyol")
    assert listing is not None
    assert listing.status is ProductStatus.PENDING
    assert listing.price == Decimal("19.90")


def test_find_by_name_is_scoped_to_seller(sqlite_session: Session) -> None:
    repository = SqlAlchemyCanonicalProductRepository(sqlite_session)
    older = _product("Ceramic Mug", created_at=datetime(2025, 1, 1, tzinfo=UTC))
    newer = _product("Ceramic Mug", created_at=older.created_at + timedelta(days=1))
    other = _product("Garden Hose", seller_id="seller-2")
    for product in (newer, older, other):
        repository.add(product)
    sqlite_session.commit()

    assert repository.find_by_name("seller-1", "Ceramic Mug") is older
    assert repository.find_by_name("seller-1", "Garden Hose") is None
    assert repository.find_by_name("seller-2", "Garden Hose") is other


def test_find_by_listing_sku(sqlite_session: Session) -> None:
    repository = SqlAlchemyCanonicalProductRepository(sqlite_session)
    product = _product("Ceramic Mug")
    product.add_listing(_listing("trendyol", "T-1", "MUG-01"))
    repository.add(product)
    sqlite_session.commit()

    assert repository.find_by_listing_sku("seller-1", "trendyol", "MUG-01") is product
    assert repository.find_by_listing_sku("seller-1", "amazon", "MUG-01") is None
    assert repository.find_by_listing_sku("seller-2", "trendyol", "MUG-01") is None


def test_list_for_seller(sqlite_session: Session) -> None:
    repository = SqlAlchemyCanonicalProductRepository(sqlite_session)
    repository.add(_product("Garden Hose"))
    repository.add(_product("Ceramic Mug"))
    repository.add(_product("Desk Lamp", seller_id="seller-2"))
    sqlite_session.commit()

    names = [product.name for product in repository.list_for_seller("seller-1")]

    assert names == ["Ceramic Mug", "Garden Hose"]


def test_find_by_listing_external_id(sqlite_session: Session) -> None:
    repository = SqlAlchemyCanonicalProductRepository(sqlite_session)
    product = _product("Ceramic Mug")
    product.add_listing(_listing("amazon", "A-1", None))
    repository.add(product)
    sqlite_session.commit()

    assert repository.find_by_listing_external_id("seller-1", "amazon", "A-1") is product
    assert repository.find_by_listing_external_id("seller-1", "trendyol", "A-1") is None
    assert repository.find_by_listing_external_id("seller-2", "amazon", "A-1") is None


def test_remove_keeps_listings_moved_to_another_product(sqlite_session: Session) -> None:
    repository = SqlAlchemyCanonicalProductRepository(sqlite_session)
    old = _product("Blue Mug")
    old.add_listing(_listing("amazon", "A-1", None))
    new = _product("Ceramic Mug")
    for product in (old, new):
        repository.add(product)
    sqlite_session.commit()

    listing = old.listings[0]
    old.remove_listing(listing)
    new.add_listing(listing)
    repository.remove(old)
    sqlite_session.commit()
    sqlite_session.expunge_all()

    assert repository.list_for_seller("seller-1")[0].name == "Ceramic Mug"
    assert len(repository.list_for_seller("seller-1")) == 1
    holder = repository.find_by_listing_external_id("seller-1", "amazon", "A-1")
    assert holder is not None
    assert holder.id == new.id
