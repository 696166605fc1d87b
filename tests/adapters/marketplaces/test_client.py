from __future__ import annotations

import asyncio
import json
from collections.abc import Callable  # noqa: TC003

import httpx
import pytest

from marketsync.adapters.http_resilience import ResilientClient
from marketsync.adapters.marketplaces import (
    HttpListingPublisher,
    HttpMarketplaceClient,
    MarketplaceAPIError,
)
from marketsync.config import MarketplaceConfig, ResilienceConfig
from marketsync.domain.data_integration import CatalogFetchResult, fetch_catalogs
from marketsync.domain.errors import MarketplaceUnavailableError
from marketsync.domain.ports.fetching import ProductPage

BASE_URL = "https://gateway.example"


def _config(marketplace: str) -> MarketplaceConfig:
    return MarketplaceConfig(
        name=marketplace,
        base_url=BASE_URL,
        api_key=None,
        resilience=ResilienceConfig(name=marketplace, base_url=BASE_URL, cache=None),
    )


def _make_client_factory(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            base_url=BASE_URL,
            transport=httpx.MockTransport(async_handler),
        )
        return client

    return factory


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> HttpMarketplaceClient:
    return HttpMarketplaceClient(
        config_loader=_config,
        client_factory=_make_client_factory(handler),
    )


def test_fetch_page_sends_paging_parameters() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        products = [{"id": "1", "title": "Mug"}, {"id": "2", "title": "Cup"}]
        return httpx.Response(200, json={"content": products, "totalPages": 3})

    async def run() -> ProductPage:
        async with _client(handler) as client:
            return await client(seller_id="seller-1", marketplace="trendyol", page=0, page_size=2)

    page = asyncio.run(run())

    assert seen[0].method == "GET"
    assert seen[0].url.path == "/products"
    assert dict(seen[0].url.params) == {"sellerId": "seller-1", "page": "0", "size": "2"}
    assert [record["id"] for record in page.records] == ["1", "2"]
    assert page.has_more


def test_last_page_reports_no_more() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"products": [{"id": "9"}], "page": 2, "totalPages": 3})

    async def run() -> ProductPage:
        async with _client(handler) as client:
            return await client(seller_id="seller-1", marketplace="n11", page=2, page_size=50)

    page = asyncio.run(run())

    assert not page.has_more


def test_bare_list_payload_pages_by_size() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"id": "1"}, {"id": "2"}])

    async def run() -> tuple[ProductPage, ProductPage]:
        async with _client(handler) as client:
            full = await client(seller_id="s", marketplace="amazon", page=0, page_size=2)
            partial = await client(seller_id="s", marketplace="amazon", page=1, page_size=5)
            return full, partial

    full, partial = asyncio.run(run())

    assert full.has_more
    assert not partial.has_more


def test_error_payload_raises_marketplace_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"errorMessage": "maintenance", "errorCode": 42})

    async def run() -> None:
        async with _client(handler) as client:
            await client(seller_id="seller-1", marketplace="trendyol", page=0, page_size=10)

    with pytest.raises(MarketplaceAPIError) as excinfo:
        asyncio.run(run())

    error = excinfo.value
    assert str(error) == "maintenance"
    assert error.status_code == 503
    assert error.code == "42"
    assert error.marketplace == "trendyol"
    assert isinstance(error, MarketplaceUnavailableError)


def test_non_json_response_raises_marketplace_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>login</html>")

    async def run() -> None:
        async with _client(handler) as client:
            await client(seller_id="seller-1", marketplace="trendyol", page=0, page_size=10)

    with pytest.raises(MarketplaceAPIError, match="non-JSON"):
        asyncio.run(run())


def test_transport_error_raises_marketplace_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def run() -> None:
        async with _client(handler) as client:
            await client(seller_id="seller-1", marketplace="trendyol", page=0, page_size=10)

    with pytest.raises(MarketplaceAPIError, match="request failed"):
        asyncio.run(run())


def test_failing_gateway_becomes_fetch_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "boom"})

    async def run() -> CatalogFetchResult:
        async with _client(handler) as client:
            return await fetch_catalogs(client, "seller-1", ["trendyol"])

    result = asyncio.run(run())

    assert result.records["trendyol"] == []
    assert result.failures[0].message == "boom"


def test_one_client_per_marketplace() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[])

    async def run() -> tuple[bool, bool]:
        async with _client(handler) as client:
            same = client.client_for("trendyol") is client.client_for("trendyol")
            different = client.client_for("trendyol") is not client.client_for("amazon")
            return same, different

    assert asyncio.run(run()) == (True, True)


def test_publisher_posts_payload_and_returns_id() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"productId": 123})

    async def run() -> str | None:
        async with _client(handler) as client:
            publisher = HttpListingPublisher(client)
            return await publisher(
                seller_id="seller-1",
                marketplace="hepsiburada",
                payload={"merchantSku": "MUG-01", "productName": "Mug"},
            )

    created = asyncio.run(run())

    assert created == "123"
    assert seen[0].method == "POST"
    assert seen[0].url.params["sellerId"] == "seller-1"
    assert json.loads(seen[0].content) == {"merchantSku": "MUG-01", "productName": "Mug"}


def test_publisher_error_is_not_swallowed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": "invalid category"})

    async def run() -> str | None:
        async with _client(handler) as client:
            return await client.create_product(
                seller_id="seller-1", marketplace="n11", payload={"title": "Mug"}
            )

    with pytest.raises(MarketplaceAPIError, match="invalid category"):
        asyncio.run(run())
