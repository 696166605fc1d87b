"""Domain ports (interfaces implemented by adapters)."""

from __future__ import annotations

from .fetching import ProductCatalogFetcher, ProductPage, RawProductRecord
from .jobs import JobCheckpointStore, JobHandle
from .locking import SellerLock
from .persistence import CanonicalProductRepository, Repository
from .publishing import ListingPublisher
from .unit_of_work import (
    CatalogRepositories,
    CatalogUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "CanonicalProductRepository",
    "CatalogRepositories",
    "CatalogUnitOfWork",
    "JobCheckpointStore",
    "JobHandle",
    "ListingPublisher",
    "ProductCatalogFetcher",
    "ProductPage",
    "RawProductRecord",
    "Repository",
    "RepositoryCollection",
    "SellerLock",
    "UnitOfWork",
]
