"""Catalog fetcher reading exported marketplace catalogs from JSON files.

Each marketplace's catalog lives in ``<directory>/<marketplace>.json`` either as a
list of raw product records or as a gateway page payload such as
``{"products": [...]}``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from marketsync.adapters.marketplaces.schema import ProductPageResponse
from marketsync.domain.errors import MarketplaceUnavailableError
from marketsync.domain.ports.fetching import ProductPage

if TYPE_CHECKING:
    from marketsync.domain.ports.fetching import RawProductRecord

log = getLogger(__name__)


@dataclass(slots=True)
class JsonFileProductFetcher:
    directory: Path
    _catalogs: dict[str, list[RawProductRecord]] = field(
        default_factory=dict[str, list["RawProductRecord"]], init=False, repr=False
    )

    async def __call__(
        self,
        *,
        seller_id: str,
        marketplace: str,
        page: int,
        page_size: int,
    ) -> ProductPage:
        _ = seller_id
        records = self._load(marketplace)
        start = page * page_size
        end = start + page_size
        return ProductPage(records=records[start:end], has_more=end < len(records))

    def _load(self, marketplace: str) -> list[RawProductRecord]:
        cached = self._catalogs.get(marketplace)
        if cached is not None:
            return cached

        path = Path(self.directory) / f"{marketplace}.json"
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise MarketplaceUnavailableError(
                f"No catalog file at {path}", marketplace=marketplace
            ) from exc
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MarketplaceUnavailableError(
                f"Cannot read catalog file {path}: {exc}", marketplace=marketplace
            ) from exc

        if isinstance(document, list):
            document = {"products": document}
        try:
            records: list[RawProductRecord] = list(
                ProductPageResponse.model_validate(document).products
            )
        except ValidationError as exc:
            raise MarketplaceUnavailableError(
                f"Catalog file {path} does not hold product records", marketplace=marketplace
            ) from exc

        log.info("Loaded %d %s records from %s", len(records), marketplace, path)
        self._catalogs[marketplace] = records
        return records


if TYPE_CHECKING:
    from marketsync.domain.ports import ProductCatalogFetcher

    _fetcher_check: ProductCatalogFetcher = JsonFileProductFetcher(Path())
