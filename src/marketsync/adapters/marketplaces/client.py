"""HTTP gateway client fetching and creating products on any marketplace."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from marketsync.adapters.http_resilience import ResilientClient
from marketsync.config import get_marketplace_config
from marketsync.domain.errors import MarketplaceUnavailableError
from marketsync.domain.ports.fetching import ProductPage

from .schema import CreatedProductResponse, ErrorResponse, ProductPageResponse

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from types import TracebackType

    from marketsync.config import MarketplaceConfig, ResilienceConfig

log = getLogger(__name__)

PRODUCTS_PATH = "/products"


class MarketplaceAPIError(MarketplaceUnavailableError):
    """Raised when a marketplace gateway fails or answers with an error payload."""

    def __init__(
        self,
        message: str,
        *,
        marketplace: str,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message, marketplace=marketplace)
        self.status_code = status_code
        self.code = code


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class HttpMarketplaceClient:
    """One resilient HTTP client per marketplace, created on first use.

    Use as an async context manager inside the event loop that makes the requests.
    """

    config_loader: Callable[[str], MarketplaceConfig] = get_marketplace_config
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _clients: dict[str, ResilientClient] = field(
        default_factory=dict[str, ResilientClient], init=False, repr=False
    )

    async def __aenter__(self) -> HttpMarketplaceClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        clients, self._clients = self._clients, {}
        for client in clients.values():
            await client.aclose()

    def client_for(self, marketplace: str) -> ResilientClient:
        client = self._clients.get(marketplace)
        if client is None:
            config = self.config_loader(marketplace)
            client = self.client_factory(config.resilience)
            self._clients[marketplace] = client
        return client

    async def __call__(
        self,
        *,
        seller_id: str,
        marketplace: str,
        page: int,
        page_size: int,
    ) -> ProductPage:
        params = {"sellerId": seller_id, "page": page, "size": page_size}
        payload = await self._request(marketplace, "GET", PRODUCTS_PATH, params=params)
        if isinstance(payload, list):
            payload = {"products": payload, "hasMore": len(payload) >= page_size}
        try:
            response = ProductPageResponse.model_validate(payload)
        except ValidationError as exc:
            raise MarketplaceAPIError(
                f"Unexpected {marketplace} product page payload", marketplace=marketplace
            ) from exc
        log.debug("Fetched %s page %d: %d products", marketplace, page, len(response.products))
        return ProductPage(
            records=response.products,
            has_more=response.more_after(page, page_size),
        )

    async def create_product(
        self,
        *,
        seller_id: str,
        marketplace: str,
        payload: Mapping[str, object],
    ) -> str | None:
        body = await self._request(
            marketplace,
            "POST",
            PRODUCTS_PATH,
            params={"sellerId": seller_id},
            json=dict(payload),
        )
        if not isinstance(body, dict):
            return None
        return CreatedProductResponse.model_validate(body).id

    async def _request(
        self,
        marketplace: str,
        method: str,
        path: str,
        *,
        params: Mapping[str, str | int],
        json: object = None,
    ) -> object:
        client = self.client_for(marketplace)
        try:
            response = await client.request(method, path, params=dict(params), json=json)
        except httpx.HTTPError as exc:
            raise MarketplaceAPIError(
                f"{marketplace} request failed: {exc}", marketplace=marketplace
            ) from exc

        if response.is_error:
            error = _parse_error(response)
            log.error(
                "%s API error %s (%s): %s",
                marketplace,
                response.status_code,
                error.code,
                error.message,
            )
            raise MarketplaceAPIError(
                error.message,
                marketplace=marketplace,
                status_code=response.status_code,
                code=error.code,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise MarketplaceAPIError(
                f"{marketplace} returned a non-JSON response",
                marketplace=marketplace,
                status_code=response.status_code,
            ) from exc


def _parse_error(response: httpx.Response) -> ErrorResponse:
    try:
        payload = response.json()
    except ValueError:
        return ErrorResponse(message=response.reason_phrase or "Unknown marketplace error")
    if not isinstance(payload, dict):
        return ErrorResponse()
    try:
        return ErrorResponse.model_validate(payload)
    except ValidationError:
        return ErrorResponse()


@dataclass(slots=True)
class HttpListingPublisher:
    client: HttpMarketplaceClient

    async def __call__(
        self,
        *,
        seller_id: str,
        marketplace: str,
        payload: Mapping[str, object],
    ) -> str | None:
        return await self.client.create_product(
            seller_id=seller_id,
            marketplace=marketplace,
            payload=payload,
        )


if TYPE_CHECKING:
    from marketsync.domain.ports import ListingPublisher, ProductCatalogFetcher

    _fetcher_check: ProductCatalogFetcher = HttpMarketplaceClient()
    _publisher_check: ListingPublisher = HttpListingPublisher(HttpMarketplaceClient())
