"""Public interface for the marketplace gateway adapter."""

from __future__ import annotations

from .client import HttpListingPublisher, HttpMarketplaceClient, MarketplaceAPIError
from .schema import CreatedProductResponse, ErrorResponse, ProductPageResponse

__all__ = [
    "CreatedProductResponse",
    "ErrorResponse",
    "HttpListingPublisher",
    "HttpMarketplaceClient",
    "MarketplaceAPIError",
    "ProductPageResponse",
]
