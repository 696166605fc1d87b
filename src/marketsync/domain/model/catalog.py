"""Persisted catalog aggregate: one canonical product with its marketplace listings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from .enums import ProductStatus


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(eq=False, kw_only=True)
class MarketplaceListing:
    """The marketplace-specific side of a canonical product."""

    id: UUID = field(default_factory=uuid4)
    seller_id: str
    marketplace: str
    external_id: str
    sku: str | None = None
    barcode: str | None = None
    title: str
    price: Decimal = Decimal(0)
    stock: int = 0
    status: ProductStatus = ProductStatus.ACTIVE
    last_reconciled_at: datetime = field(default_factory=_utcnow)


@dataclass(eq=False, kw_only=True)
class CanonicalProduct:
    """Aggregate root owning at most one listing per marketplace."""

    id: UUID = field(default_factory=uuid4)
    seller_id: str
    name: str
    brand: str | None = None
    description: str | None = None
    base_price: Decimal = Decimal(0)
    total_stock: int = 0
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    _listings: list[MarketplaceListing] = field(
        default_factory=list["MarketplaceListing"], repr=False
    )

    @property
    def listings(self) -> tuple[MarketplaceListing, ...]:
        return tuple(self._listings)

    @property
    def marketplaces(self) -> tuple[str, ...]:
        return tuple(listing.marketplace for listing in self._listings)

    def listing_for(self, marketplace: str) -> MarketplaceListing | None:
        for listing in self._listings:
            if listing.marketplace == marketplace:
                return listing
        return None

    def add_listing(self, listing: MarketplaceListing) -> None:
        if listing.seller_id != self.seller_id:
            raise ValueError("listing belongs to a different seller")
        if self.listing_for(listing.marketplace) is not None:
            raise ValueError(f"{self.name!r} already has a {listing.marketplace} listing")
        self._listings.append(listing)

    def remove_listing(self, listing: MarketplaceListing) -> None:
        self._listings.remove(listing)

    def touch(self, when: datetime | None = None) -> None:
        self.updated_at = when or _utcnow()
