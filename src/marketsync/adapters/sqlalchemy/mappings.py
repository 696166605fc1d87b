"""SQLAlchemy mapping metadata for the canonical catalog."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers, relationship

from marketsync.domain.model import CanonicalProduct, MarketplaceListing, ProductStatus

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]
MoneyColumnType = Numeric(12, 2, asdecimal=True)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Catalog tables --------------------------------------------------------------

canonical_product_table = Table(
    "canonical_product",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("seller_id", String, nullable=False),
    Column("name", String, nullable=False),
    Column("brand", String, nullable=True),
    Column("description", Text, nullable=True),
    Column("base_price", MoneyColumnType, nullable=False),
    Column("total_stock", Integer, nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=False),
    Index("ix_canonical_product_seller_name", "seller_id", "name"),
)

marketplace_listing_table = Table(
    "marketplace_listing",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column(
        "product_id",
        UUIDColumnType,
        ForeignKey("canonical_product.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("seller_id", String, nullable=False),
    Column("marketplace", String, nullable=False),
    Column("external_id", String, nullable=False),
    Column("sku", String, nullable=True),
    Column("barcode", String, nullable=True),
    Column("title", String, nullable=False),
    Column("price", MoneyColumnType, nullable=False),
    Column("stock", Integer, nullable=False),
    Column("status", Enum(ProductStatus, native_enum=False), nullable=False),
    Column("last_reconciled_at", UTCDateTime(), nullable=False),
    UniqueConstraint("product_id", "marketplace", name="uq_marketplace_listing_product"),
    UniqueConstraint(
        "seller_id",
        "marketplace",
        "external_id",
        name="uq_marketplace_listing_external",
    ),
    Index("ix_marketplace_listing_sku", "seller_id", "marketplace", "sku"),
)

# Coordination tables ---------------------------------------------------------

seller_lease_table = Table(
    "seller_lease",
    mapper_registry.metadata,
    Column("seller_id", String, primary_key=True),
    Column("holder", String, nullable=False),
    Column("acquired_at", UTCDateTime(), nullable=False),
    Column("expires_at", UTCDateTime(), nullable=False),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the catalog aggregate."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(MarketplaceListing, marketplace_listing_table)
    mapper_registry.map_imperatively(
        CanonicalProduct,
        canonical_product_table,
        properties={
            "_listings": relationship(
                MarketplaceListing,
                cascade="all, delete-orphan",
                lazy="selectin",
                order_by=marketplace_listing_table.c.marketplace,
            ),
        },
    )

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
