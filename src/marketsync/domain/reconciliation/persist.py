"""Persistence stage: write reconciled groups as canonical products.

Responsibilities of this stage:
- one unit-of-work transaction per group (and per single product)
- reuse an existing canonical product found by name, listing external id or listing SKU
- upsert one listing per member marketplace, only overwriting with ``overwrite_existing``
- move a member's listing over when an earlier run filed it under another product
- record a failed transaction as an error entry and carry on with the next one
- stop between transactions once the caller asks to cancel

Running the same plan twice creates nothing new: the second run finds every
canonical product and listing from the first one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from marketsync.domain.errors import PersistenceError
from marketsync.domain.model import CanonicalProduct, MarketplaceListing

from .options import PersistOptions

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from uuid import UUID

    from marketsync.domain.model import MatchCriterion, NormalizedProduct
    from marketsync.domain.ports.persistence import CanonicalProductRepository
    from marketsync.domain.ports.unit_of_work import CatalogUnitOfWork

    from .contracts import ProductGroup

    type UnitOfWorkFactory = Callable[[], CatalogUnitOfWork]
    type ProgressCallback = Callable[[int, int], None]

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PersistOutcome(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    LINKED = "linked"
    REUSED = "reused"


@dataclass(slots=True, frozen=True, kw_only=True)
class PersistError:
    product: str
    marketplaces: tuple[str, ...]
    message: str


@dataclass(slots=True, frozen=True, kw_only=True)
class PersistedProduct:
    product_id: UUID
    name: str
    marketplaces: tuple[str, ...]
    outcome: PersistOutcome
    confidence: float | None = None
    match_criteria: tuple[MatchCriterion, ...] = ()


@dataclass(slots=True, kw_only=True)
class PersistResult:
    saved: int = 0
    skipped: int = 0
    errors: list[PersistError] = field(default_factory=list[PersistError])
    products: list[PersistedProduct] = field(default_factory=list[PersistedProduct])
    cancelled: bool = False


@dataclass(slots=True, frozen=True)
class _WriteUnit:
    members: tuple[NormalizedProduct, ...]
    confidence: float | None = None
    match_criteria: tuple[MatchCriterion, ...] = ()

    @property
    def master(self) -> NormalizedProduct:
        return self.members[0]

    @property
    def marketplaces(self) -> tuple[str, ...]:
        return tuple(member.marketplace for member in self.members)


@dataclass(slots=True)
class ReconciliationWriter:
    """Persist groups and singles through a unit-of-work factory."""

    unit_of_work_factory: UnitOfWorkFactory
    options: PersistOptions = field(default_factory=PersistOptions)
    clock: Callable[[], datetime] = _utcnow

    def persist(
        self,
        groups: Sequence[ProductGroup],
        singles: Mapping[str, Sequence[NormalizedProduct]],
        *,
        seller_id: str,
        should_continue: Callable[[], bool] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> PersistResult:
        units = [
            _WriteUnit(group.members, group.confidence, group.match_criteria) for group in groups
        ]
        units.extend(
            _WriteUnit((product,)) for products in singles.values() for product in products
        )

        result = PersistResult()
        total = len(units)
        for position, unit in enumerate(units, start=1):
            if should_continue is not None and not should_continue():
                log.info("Persistence cancelled after %d of %d products", position - 1, total)
                result.cancelled = True
                break

            try:
                persisted = self._write_unit(unit, seller_id=seller_id)
            except PersistenceError as exc:
                log.warning(
                    "Failed to persist %r (%s): %s", unit.master.name, unit.marketplaces, exc
                )
                result.errors.append(
                    PersistError(
                        product=unit.master.name,
                        marketplaces=unit.marketplaces,
                        message=str(exc),
                    )
                )
            else:
                if persisted.outcome is PersistOutcome.REUSED:
                    result.skipped += 1
                else:
                    result.saved += 1
                result.products.append(persisted)

            if on_progress is not None:
                on_progress(position, total)

        log.info(
            "Persisted reconciliation for seller %s: saved=%d, skipped=%d, errors=%d",
            seller_id,
            result.saved,
            result.skipped,
            len(result.errors),
        )
        return result

    def _write_unit(self, unit: _WriteUnit, *, seller_id: str) -> PersistedProduct:
        now = self.clock()
        master = unit.master
        overwrite = self.options.overwrite_existing

        with self.unit_of_work_factory() as uow:
            repository = uow.repositories.products
            product = _find_existing(repository, seller_id, unit)

            if product is None:
                product = CanonicalProduct(
                    seller_id=seller_id,
                    name=master.name,
                    brand=master.brand,
                    description=master.description,
                    base_price=master.price,
                    total_stock=sum(member.stock for member in unit.members),
                    created_at=now,
                    updated_at=now,
                )
                repository.add(product)
                outcome = PersistOutcome.CREATED
            elif overwrite:
                product.name = master.name
                product.brand = master.brand
                product.description = master.description
                product.base_price = master.price
                product.total_stock = sum(member.stock for member in unit.members)
                product.touch(now)
                outcome = PersistOutcome.UPDATED
            else:
                outcome = PersistOutcome.REUSED

            for member in unit.members:
                listing = product.listing_for(member.marketplace)
                if listing is not None:
                    if overwrite:
                        _refresh_listing(listing, member, now)
                    continue
                listing = _take_listing(repository, product, member)
                if listing is None:
                    product.add_listing(_new_listing(seller_id, member, now))
                elif overwrite:
                    _refresh_listing(listing, member, now)
                if outcome is PersistOutcome.REUSED:
                    outcome = PersistOutcome.LINKED

            uow.commit()
            return PersistedProduct(
                product_id=product.id,
                name=product.name,
                marketplaces=product.marketplaces,
                outcome=outcome,
                confidence=unit.confidence,
                match_criteria=unit.match_criteria,
            )


def _find_existing(
    repository: CanonicalProductRepository,
    seller_id: str,
    unit: _WriteUnit,
) -> CanonicalProduct | None:
    existing = repository.find_by_name(seller_id, unit.master.name)
    if existing is not None:
        return existing
    for member in unit.members:
        existing = repository.find_by_listing_external_id(
            seller_id, member.marketplace, member.external_id
        )
        if existing is not None:
            return existing
    for member in unit.members:
        if member.sku is None:
            continue
        existing = repository.find_by_listing_sku(seller_id, member.marketplace, member.sku)
        if existing is not None:
            return existing
    return None


def _take_listing(
    repository: CanonicalProductRepository,
    product: CanonicalProduct,
    member: NormalizedProduct,
) -> MarketplaceListing | None:
    """Move ``member``'s stored listing onto ``product``; drop its old owner once empty."""

    holder = repository.find_by_listing_external_id(
        product.seller_id, member.marketplace, member.external_id
    )
    if holder is None:
        return None
    listing = holder.listing_for(member.marketplace)
    if listing is None:
        return None
    log.info(
        "Moving %s listing %s from %r to %r",
        member.marketplace,
        member.external_id,
        holder.name,
        product.name,
    )
    holder.remove_listing(listing)
    product.add_listing(listing)
    if not holder.listings:
        repository.remove(holder)
    return listing


def _new_listing(seller_id: str, member: NormalizedProduct, now: datetime) -> MarketplaceListing:
    return MarketplaceListing(
        seller_id=seller_id,
        marketplace=member.marketplace,
        external_id=member.external_id,
        sku=member.sku,
        barcode=member.barcode,
        title=member.name,
        price=member.price,
        stock=member.stock,
        status=member.status,
        last_reconciled_at=now,
    )


def _refresh_listing(listing: MarketplaceListing, member: NormalizedProduct, now: datetime) -> None:
    listing.external_id = member.external_id
    listing.sku = member.sku
    listing.barcode = member.barcode
    listing.title = member.name
    listing.price = member.price
    listing.stock = member.stock
    listing.status = member.status
    listing.last_reconciled_at = now
