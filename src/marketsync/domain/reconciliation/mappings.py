"""Per-marketplace mapping strategies between raw records and canonical products.

Every marketplace is described by one ``MarketplaceMapping``: ``to_canonical`` turns a
raw record into a ``NormalizedProduct`` and ``from_canonical`` produces the payload
that marketplace expects when a product is created there. Most marketplaces only
differ in field names, so they are declared as ``FieldMapping`` tables; the few
with structural quirks override a hook of ``TableMapping``.

Adding a marketplace means registering one more mapping in a ``MappingRegistry``.
"""

from __future__ import annotations

import html
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from logging import getLogger
from types import MappingProxyType
from typing import TYPE_CHECKING, Protocol, cast, runtime_checkable

from marketsync.domain.errors import UnnormalizableRecordError
from marketsync.domain.model import ImageRef, Marketplace, NormalizedProduct, ProductStatus

if TYPE_CHECKING:
    from collections.abc import Iterable

log = getLogger(__name__)

type RawRecord = Mapping[str, object]

_TAG_RE = re.compile(r"<[^>]+>")
_CENT = Decimal("0.01")
_TRENDYOL_LIST_PRICE_MARKUP = Decimal("1.2")
_PAZARAMA_VAT_RATE = 18
_PAZARAMA_DESI = 1

_ACTIVE_VALUES = frozenset(
    {"active", "approved", "onsale", "on_sale", "enabled", "published", "live", "true", "1"}
)
_PENDING_VALUES = frozenset(
    {"pending", "draft", "waiting", "waiting_approval", "in_review", "review", "processing"}
)


@runtime_checkable
class MarketplaceMapping(Protocol):
    """Bidirectional translation between one marketplace's records and canonical products."""

    @property
    def marketplace(self) -> str: ...

    def to_canonical(self, raw: RawRecord) -> NormalizedProduct: ...

    def from_canonical(self, product: NormalizedProduct) -> dict[str, object]: ...


# Coercion helpers --------------------------------------------------------------


def first_present(source: RawRecord, keys: Sequence[str]) -> object | None:
    """Return the first value under ``keys`` that is neither missing nor blank."""

    for key in keys:
        value = source.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def coerce_text(value: object) -> str | None:
    if value is None or isinstance(value, (Mapping, list, tuple)):
        return None
    text = str(value).strip()
    return text or None


def coerce_price(value: object) -> Decimal:
    """Parse a price; unparseable or non-finite values become 0."""

    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        return Decimal(0)
    if not amount.is_finite():
        return Decimal(0)
    return amount


def coerce_stock(value: object) -> int:
    """Parse a stock count; fractions are truncated and garbage becomes 0."""

    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError, OverflowError):
        return 0


def coerce_flag(value: object) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().casefold()
    if text in {"true", "1", "yes"}:
        return True
    if text in {"false", "0", "no"}:
        return False
    return None


def parse_status(value: object) -> ProductStatus:
    if isinstance(value, bool):
        return ProductStatus.ACTIVE if value else ProductStatus.INACTIVE
    text = coerce_text(value)
    if text is None:
        return ProductStatus.ACTIVE
    text = text.casefold()
    if text in _ACTIVE_VALUES:
        return ProductStatus.ACTIVE
    if text in _PENDING_VALUES:
        return ProductStatus.PENDING
    return ProductStatus.INACTIVE


def resolve_images(value: object, url_keys: Sequence[str]) -> tuple[ImageRef, ...]:
    """Resolve strings, ``{url}``-style objects or lists of either into ordered refs."""

    if value is None:
        return ()
    if isinstance(value, (str, Mapping)):
        items: Sequence[object] = [value]
    elif isinstance(value, (list, tuple)):
        items = cast(Sequence[object], value)
    else:
        return ()

    urls: list[str] = []
    for item in items:
        url: str | None = None
        if isinstance(item, str):
            url = coerce_text(item)
        elif isinstance(item, Mapping):
            url = coerce_text(first_present(cast(RawRecord, item), url_keys))
        if url is not None and url not in urls:
            urls.append(url)
    return tuple(
        ImageRef(url=url, order=index, is_main=index == 1)
        for index, url in enumerate(urls, start=1)
    )


def strip_html(value: str | None) -> str | None:
    if value is None:
        return None
    text = html.unescape(_TAG_RE.sub(" ", value))
    return coerce_text(" ".join(text.split()))


def _money(amount: Decimal) -> float:
    return float(amount.quantize(_CENT, rounding=ROUND_HALF_UP))


# Table-driven mappings ---------------------------------------------------------


@dataclass(slots=True, frozen=True, kw_only=True)
class FieldMapping:
    """Candidate raw keys per canonical field; the first non-blank value wins."""

    external_id: tuple[str, ...] = ("id", "sku")
    sku: tuple[str, ...] = ("sku",)
    barcode: tuple[str, ...] = ("barcode",)
    name: tuple[str, ...] = ("name", "title")
    brand: tuple[str, ...] = ("brand",)
    price: tuple[str, ...] = ("price",)
    stock: tuple[str, ...] = ("stock", "quantity")
    description: tuple[str, ...] = ("description",)
    images: tuple[str, ...] = ("images",)
    image_url_keys: tuple[str, ...] = ("url", "src")
    category: tuple[str, ...] = ("category", "categoryId")
    status: tuple[str, ...] = ("status",)


class TableMapping:
    """Mapping driven by a ``FieldMapping`` table; also the fallback for unknown marketplaces."""

    def __init__(self, marketplace: str, fields: FieldMapping | None = None) -> None:
        self._marketplace = marketplace
        self.fields = fields or FieldMapping()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._marketplace!r})"

    @property
    def marketplace(self) -> str:
        return self._marketplace

    def to_canonical(self, raw: RawRecord) -> NormalizedProduct:
        source = self._source(raw)
        fields = self.fields

        name = coerce_text(first_present(source, fields.name))
        sku = coerce_text(first_present(source, fields.sku))
        barcode = coerce_text(first_present(source, fields.barcode))
        external_id = coerce_text(first_present(source, fields.external_id)) or sku or barcode

        if name is None:
            raise UnnormalizableRecordError(
                f"{self._marketplace} record has no product name",
                marketplace=self._marketplace,
                reason="missing_name",
            )
        if external_id is None:
            raise UnnormalizableRecordError(
                f"{self._marketplace} record {name!r} has neither id, sku nor barcode",
                marketplace=self._marketplace,
                reason="missing_identity",
            )

        return NormalizedProduct(
            marketplace=self._marketplace,
            external_id=external_id,
            sku=sku,
            barcode=barcode,
            name=name,
            brand=coerce_text(first_present(source, fields.brand)),
            price=coerce_price(first_present(source, fields.price)),
            stock=coerce_stock(first_present(source, fields.stock)),
            description=self._description(source),
            images=resolve_images(first_present(source, fields.images), fields.image_url_keys),
            category=coerce_text(first_present(source, fields.category)),
            status=self._status(source),
            original_data=MappingProxyType(dict(raw)),
        )

    def from_canonical(self, product: NormalizedProduct) -> dict[str, object]:
        return {
            "id": product.external_id,
            "sku": product.sku,
            "barcode": product.barcode,
            "name": product.name,
            "brand": product.brand,
            "price": _money(product.price),
            "stock": product.stock,
            "description": product.description,
            "images": [image.url for image in product.images],
            "category": product.category,
            "status": product.status.value,
        }

    def _source(self, raw: RawRecord) -> RawRecord:
        return raw

    def _description(self, source: RawRecord) -> str | None:
        return coerce_text(first_present(source, self.fields.description))

    def _status(self, source: RawRecord) -> ProductStatus:
        return parse_status(first_present(source, self.fields.status))


class _ActiveFlagMapping(TableMapping):
    """Status comes from an ``isActive`` flag; a missing flag reads as inactive."""

    def _status(self, source: RawRecord) -> ProductStatus:
        flag = coerce_flag(first_present(source, ("isActive",)))
        return ProductStatus.ACTIVE if flag else ProductStatus.INACTIVE


class TrendyolMapping(TableMapping):
    def __init__(self) -> None:
        super().__init__(
            Marketplace.TRENDYOL.value,
            FieldMapping(
                external_id=("id", "productMainId"),
                sku=("productMainId", "barcode"),
                name=("title",),
                price=("salePrice",),
                stock=("quantity",),
                category=("categoryName", "pimCategoryId"),
            ),
        )

    def _status(self, source: RawRecord) -> ProductStatus:
        approved = coerce_flag(source.get("approved"))
        return ProductStatus.ACTIVE if approved else ProductStatus.PENDING

    def from_canonical(self, product: NormalizedProduct) -> dict[str, object]:
        list_price = product.price * _TRENDYOL_LIST_PRICE_MARKUP
        return {
            "barcode": product.barcode or product.sku,
            "title": product.name,
            "productMainId": product.sku,
            "brandName": product.brand,
            "categoryName": product.category,
            "quantity": product.stock,
            "stockCode": product.sku,
            "salePrice": _money(product.price),
            "listPrice": _money(list_price),
            "description": product.description or product.name,
            "images": [{"url": image.url} for image in product.images],
        }


class HepsiburadaMapping(TableMapping):
    def __init__(self) -> None:
        super().__init__(
            Marketplace.HEPSIBURADA.value,
            FieldMapping(
                external_id=("variantGroupId", "listingId", "merchantSku"),
                sku=("merchantSku",),
                name=("productName", "title"),
                stock=("availableStock",),
                category=("categoryId",),
            ),
        )

    def from_canonical(self, product: NormalizedProduct) -> dict[str, object]:
        return {
            "merchantSku": product.sku,
            "barcode": product.barcode,
            "productName": product.name,
            "brand": product.brand,
            "price": _money(product.price),
            "availableStock": product.stock,
            "description": product.description,
            "images": [image.url for image in product.images],
        }


class AmazonMapping(TableMapping):
    def __init__(self) -> None:
        super().__init__(
            Marketplace.AMAZON.value,
            FieldMapping(
                external_id=("asin", "sku"),
                barcode=("upc", "ean"),
                name=("title",),
                stock=("quantity",),
                category=("productType",),
            ),
        )

    def from_canonical(self, product: NormalizedProduct) -> dict[str, object]:
        return {
            "sku": product.sku,
            "title": product.name,
            "brand": product.brand,
            "ean": product.barcode,
            "price": _money(product.price),
            "quantity": product.stock,
            "productType": product.category,
            "description": product.description,
            "images": [image.url for image in product.images],
        }


class N11Mapping(TableMapping):
    def __init__(self) -> None:
        super().__init__(
            Marketplace.N11.value,
            FieldMapping(
                external_id=("id", "productId"),
                sku=("sellerStockCode", "sku"),
                barcode=("gtin", "barcode"),
                name=("title",),
                stock=("quantity", "stock"),
                category=("categoryId",),
            ),
        )

    def from_canonical(self, product: NormalizedProduct) -> dict[str, object]:
        return {
            "productSellerCode": product.sku,
            "title": product.name,
            "description": product.description,
            "price": _money(product.price),
            "images": [{"url": image.url, "order": image.order} for image in product.images],
            "stockItems": [
                {
                    "sellerStockCode": product.sku,
                    "gtin": product.barcode,
                    "quantity": product.stock,
                }
            ],
        }


class ShopifyMapping(TableMapping):
    """Shopify keeps SKU, barcode, price and inventory on the product's variants."""

    _VARIANT_FIELDS = ("sku", "barcode", "price", "inventory_quantity")

    def __init__(self) -> None:
        super().__init__(
            Marketplace.SHOPIFY.value,
            FieldMapping(
                external_id=("id",),
                name=("title",),
                brand=("vendor",),
                stock=("inventory_quantity",),
                description=("body_html",),
                image_url_keys=("src", "url"),
                category=("product_type",),
            ),
        )

    def _source(self, raw: RawRecord) -> RawRecord:
        variants = raw.get("variants")
        if not isinstance(variants, list) or not variants:
            return raw
        first_variant = cast(list[object], variants)[0]
        if not isinstance(first_variant, Mapping):
            return raw
        variant = cast(RawRecord, first_variant)
        merged = dict(raw)
        for key in self._VARIANT_FIELDS:
            value = first_present(variant, (key,))
            if value is not None:
                merged[key] = value
        return merged

    def _description(self, source: RawRecord) -> str | None:
        return strip_html(coerce_text(first_present(source, self.fields.description)))

    def from_canonical(self, product: NormalizedProduct) -> dict[str, object]:
        return {
            "product": {
                "title": product.name,
                "body_html": product.description,
                "vendor": product.brand,
                "product_type": product.category,
                "status": "active" if product.status is ProductStatus.ACTIVE else "draft",
                "variants": [
                    {
                        "sku": product.sku,
                        "barcode": product.barcode,
                        "price": str(product.price.quantize(_CENT, rounding=ROUND_HALF_UP)),
                        "inventory_quantity": product.stock,
                    }
                ],
                "images": [
                    {"src": image.url, "position": image.order} for image in product.images
                ],
            }
        }


class CicekSepetiMapping(TableMapping):
    def __init__(self) -> None:
        super().__init__(Marketplace.CICEKSEPETI.value)

    def from_canonical(self, product: NormalizedProduct) -> dict[str, object]:
        return {
            "productName": product.name,
            "stockCode": product.sku,
            "barcode": product.barcode,
            "description": product.description,
            "salesPrice": _money(product.price),
            "stockQuantity": product.stock,
            "images": [{"url": image.url, "isMain": image.is_main} for image in product.images],
        }


class PazaramaMapping(_ActiveFlagMapping):
    def __init__(self) -> None:
        super().__init__(
            Marketplace.PAZARAMA.value,
            FieldMapping(
                external_id=("id", "code"),
                sku=("code", "sku"),
                barcode=("code", "barcode"),
                name=("name", "displayName"),
                brand=("brandId", "brand"),
                price=("salePrice", "listPrice", "price"),
                stock=("stockCount", "stock"),
                image_url_keys=("imageUrl", "url"),
            ),
        )

    def from_canonical(self, product: NormalizedProduct) -> dict[str, object]:
        return {
            "name": product.name,
            "displayName": product.name,
            "description": product.description,
            "brandId": product.brand,
            "code": product.sku or product.barcode,
            "stockCount": product.stock,
            "listPrice": _money(product.price),
            "salePrice": _money(product.price),
            "vatRate": _PAZARAMA_VAT_RATE,
            "desi": _PAZARAMA_DESI,
            "images": [{"imageUrl": image.url} for image in product.images],
        }


class PttAvmMapping(_ActiveFlagMapping):
    def __init__(self) -> None:
        super().__init__(
            Marketplace.PTTAVM.value,
            FieldMapping(
                external_id=("id", "productId"),
                sku=("barcode", "modelCode", "sku"),
                brand=("brandId", "brand"),
                price=("price", "listPrice"),
                stock=("stock",),
            ),
        )

    def from_canonical(self, product: NormalizedProduct) -> dict[str, object]:
        return {
            "name": product.name,
            "barcode": product.barcode or product.sku,
            "modelCode": product.sku,
            "brand": product.brand,
            "price": _money(product.price),
            "stock": product.stock,
            "description": product.description,
            "images": [image.url for image in product.images],
            "isActive": product.status is ProductStatus.ACTIVE,
        }


# Registry ----------------------------------------------------------------------


class MappingRegistry:
    """Lookup of mapping strategies by marketplace identifier."""

    def __init__(self, mappings: Iterable[MarketplaceMapping] = ()) -> None:
        self._mappings: dict[str, MarketplaceMapping] = {}
        for mapping in mappings:
            self.register(mapping)

    def register(self, mapping: MarketplaceMapping, *, replace: bool = False) -> None:
        key = mapping.marketplace.casefold()
        if key in self._mappings and not replace:
            raise ValueError(f"Mapping for {mapping.marketplace!r} already registered")
        self._mappings[key] = mapping

    def get(self, marketplace: str) -> MarketplaceMapping:
        mapping = self._mappings.get(marketplace.strip().casefold())
        if mapping is None:
            log.debug("No mapping registered for %s, using generic field names", marketplace)
            return TableMapping(self.canonical_id(marketplace))
        return mapping

    def canonical_id(self, marketplace: str) -> str:
        """Return the identifier products of ``marketplace`` are filed under."""

        mapping = self._mappings.get(marketplace.strip().casefold())
        if mapping is not None:
            return mapping.marketplace
        return marketplace.strip().casefold()

    def __contains__(self, marketplace: object) -> bool:
        return isinstance(marketplace, str) and marketplace.strip().casefold() in self._mappings

    @property
    def marketplaces(self) -> tuple[str, ...]:
        return tuple(mapping.marketplace for mapping in self._mappings.values())


def build_default_registry() -> MappingRegistry:
    return MappingRegistry(
        (
            TrendyolMapping(),
            HepsiburadaMapping(),
            AmazonMapping(),
            N11Mapping(),
            ShopifyMapping(),
            CicekSepetiMapping(),
            PazaramaMapping(),
            PttAvmMapping(),
        )
    )


DEFAULT_REGISTRY = build_default_registry()
