"""Ports for persisting the canonical catalog."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from marketsync.domain.model import CanonicalProduct

if TYPE_CHECKING:
    from uuid import UUID


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class CanonicalProductRepository(Repository[CanonicalProduct], Protocol):
    """Persistence contract for canonical products and their listings."""

    def remove(self, entity: CanonicalProduct) -> None: ...

    def get(self, product_id: UUID) -> CanonicalProduct | None: ...

    def find_by_name(self, seller_id: str, name: str) -> CanonicalProduct | None: ...

    def find_by_listing_sku(
        self,
        seller_id: str,
        marketplace: str,
        sku: str,
    ) -> CanonicalProduct | None: ...

    def find_by_listing_external_id(
        self,
        seller_id: str,
        marketplace: str,
        external_id: str,
    ) -> CanonicalProduct | None: ...

    def list_for_seller(self, seller_id: str) -> list[CanonicalProduct]: ...
