"""Ports for fetching raw product catalogs from marketplaces."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

type RawProductRecord = Mapping[str, object]


@dataclass(slots=True)
class ProductPage:
    """One page of raw product records as returned by a marketplace."""

    records: Sequence[RawProductRecord] = field(default_factory=tuple)
    has_more: bool = False


@runtime_checkable
class ProductCatalogFetcher(Protocol):
    """Async port returning one page of a seller's catalog on one marketplace."""

    async def __call__(
        self,
        *,
        seller_id: str,
        marketplace: str,
        page: int,
        page_size: int,
    ) -> ProductPage: ...


__all__ = ["ProductCatalogFetcher", "ProductPage", "RawProductRecord"]
