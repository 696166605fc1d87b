"""Marketplace-neutral product snapshot produced by the normalizer."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType

from marketsync.domain.errors import ContractViolationError

from .enums import ProductStatus

type ProductKey = tuple[str, str]
"""Identity of a product within one fetch batch: ``(marketplace, external_id)``."""


@dataclass(slots=True, frozen=True, kw_only=True)
class ImageRef:
    url: str
    order: int
    is_main: bool = False


@dataclass(slots=True, frozen=True, kw_only=True)
class NormalizedProduct:
    """One marketplace listing expressed in canonical fields.

    ``original_data`` keeps the raw record for debugging; it never takes part in
    equality and is not part of any serialized report.
    """

    marketplace: str
    external_id: str
    name: str
    sku: str | None = None
    barcode: str | None = None
    brand: str | None = None
    price: Decimal = Decimal(0)
    stock: int = 0
    description: str | None = None
    images: tuple[ImageRef, ...] = ()
    category: str | None = None
    status: ProductStatus = ProductStatus.ACTIVE
    original_data: Mapping[str, object] = field(
        default_factory=lambda: MappingProxyType({}),
        compare=False,
        repr=False,
    )

    def __post_init__(self) -> None:
        if not self.external_id:
            raise ContractViolationError(f"{self.marketplace} product without external id")
        if self.price < 0:
            raise ContractViolationError(
                f"Negative price {self.price} for {self.marketplace}:{self.external_id}"
            )
        if self.stock < 0:
            raise ContractViolationError(
                f"Negative stock {self.stock} for {self.marketplace}:{self.external_id}"
            )

    @property
    def key(self) -> ProductKey:
        return (self.marketplace, self.external_id)

    @property
    def main_image(self) -> ImageRef | None:
        for image in self.images:
            if image.is_main:
                return image
        return self.images[0] if self.images else None
