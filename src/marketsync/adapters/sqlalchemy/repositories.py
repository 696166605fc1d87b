"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from sqlalchemy import select

from marketsync.adapters.sqlalchemy.mappings import (
    canonical_product_table,
    marketplace_listing_table,
)
from marketsync.domain.model import CanonicalProduct

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.orm import Session


class SqlAlchemyCanonicalProductRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: CanonicalProduct) -> None:
        self.session.add(entity)

    def remove(self, entity: CanonicalProduct) -> None:
        # listings moved off ``entity`` must be flushed before the delete cascades
        self.session.flush()
        self.session.delete(entity)

    def get(self, product_id: UUID) -> CanonicalProduct | None:
        return self.session.get(CanonicalProduct, product_id)

    def find_by_name(self, seller_id: str, name: str) -> CanonicalProduct | None:
        stmt = (
            select(CanonicalProduct)
            .where(canonical_product_table.c.seller_id == seller_id)
            .where(canonical_product_table.c.name == name)
            .order_by(canonical_product_table.c.created_at)
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def find_by_listing_sku(
        self,
        seller_id: str,
        marketplace: str,
        sku: str,
    ) -> CanonicalProduct | None:
        stmt = (
            select(CanonicalProduct)
            .join(
                marketplace_listing_table,
                marketplace_listing_table.c.product_id == canonical_product_table.c.id,
            )
            .where(marketplace_listing_table.c.seller_id == seller_id)
            .where(marketplace_listing_table.c.marketplace == marketplace)
            .where(marketplace_listing_table.c.sku == sku)
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def find_by_listing_external_id(
        self,
        seller_id: str,
        marketplace: str,
        external_id: str,
    ) -> CanonicalProduct | None:
        stmt = (
            select(CanonicalProduct)
            .join(
                marketplace_listing_table,
                marketplace_listing_table.c.product_id == canonical_product_table.c.id,
            )
            .where(marketplace_listing_table.c.seller_id == seller_id)
            .where(marketplace_listing_table.c.marketplace == marketplace)
            .where(marketplace_listing_table.c.external_id == external_id)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_for_seller(self, seller_id: str) -> list[CanonicalProduct]:
        stmt = (
            select(CanonicalProduct)
            .where(canonical_product_table.c.seller_id == seller_id)
            .order_by(canonical_product_table.c.created_at, canonical_product_table.c.name)
        )
        return list(self.session.execute(stmt).scalars())


if TYPE_CHECKING:
    from marketsync.domain.ports.persistence import CanonicalProductRepository

    _session_stub = cast("Session", object())
    _repo_check: CanonicalProductRepository = SqlAlchemyCanonicalProductRepository(_session_stub)
