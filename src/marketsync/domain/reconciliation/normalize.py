"""Normalization stage: raw marketplace records to canonical products.

Responsibilities of this stage:
- resolve the marketplace's mapping strategy from a ``MappingRegistry``
- drop records that cannot be normalized, with a warning, without aborting the batch
- drop repeated ``(marketplace, external_id)`` keys so every product is unique per batch
- provide the idempotent key normalizers used by the pair matcher
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from marketsync.domain.errors import UnnormalizableRecordError

from .mappings import DEFAULT_REGISTRY

if TYPE_CHECKING:
    from collections.abc import Iterable

    from marketsync.domain.model import NormalizedProduct, ProductKey

    from .mappings import MappingRegistry, RawRecord

log = getLogger(__name__)

_NON_ALNUM_RE = re.compile(r"[\W_]+")


@dataclass(slots=True, frozen=True, kw_only=True)
class NormalizationWarning:
    marketplace: str
    index: int
    reason: str
    message: str


@dataclass(slots=True, kw_only=True)
class NormalizationBatch:
    marketplace: str
    products: list[NormalizedProduct] = field(default_factory=list["NormalizedProduct"])
    warnings: list[NormalizationWarning] = field(default_factory=list[NormalizationWarning])

    @property
    def dropped(self) -> int:
        return len(self.warnings)


def normalize(
    raw: RawRecord,
    marketplace: str,
    *,
    registry: MappingRegistry = DEFAULT_REGISTRY,
) -> NormalizedProduct:
    """Normalize one raw record; raises ``UnnormalizableRecordError`` for unusable input."""

    return registry.get(marketplace).to_canonical(raw)


def normalize_batch(
    records: Iterable[RawRecord],
    marketplace: str,
    *,
    registry: MappingRegistry = DEFAULT_REGISTRY,
) -> NormalizationBatch:
    mapping = registry.get(marketplace)
    batch = NormalizationBatch(marketplace=mapping.marketplace)
    seen: set[ProductKey] = set()

    for index, raw in enumerate(records):
        try:
            product = mapping.to_canonical(raw)
        except UnnormalizableRecordError as exc:
            log.warning("Dropping %s record #%d: %s", marketplace, index, exc)
            batch.warnings.append(
                NormalizationWarning(
                    marketplace=mapping.marketplace,
                    index=index,
                    reason=exc.reason,
                    message=str(exc),
                )
            )
            continue

        if product.key in seen:
            log.warning(
                "Dropping %s record #%d: duplicate external id %s",
                marketplace,
                index,
                product.external_id,
            )
            batch.warnings.append(
                NormalizationWarning(
                    marketplace=mapping.marketplace,
                    index=index,
                    reason="duplicate_key",
                    message=f"duplicate external id {product.external_id!r}",
                )
            )
            continue

        seen.add(product.key)
        batch.products.append(product)

    if batch.warnings:
        log.info(
            "Normalized %d %s records, dropped %d",
            len(batch.products),
            marketplace,
            batch.dropped,
        )
    return batch


# Matching keys -------------------------------------------------------------------


def normalize_sku(value: str | None) -> str | None:
    """Uppercase and strip everything but letters and digits: ``abc-123`` -> ``ABC123``."""

    if value is None:
        return None
    text = unicodedata.normalize("NFKC", unicodedata.normalize("NFKC", value).upper())
    return _NON_ALNUM_RE.sub("", text) or None


def normalize_brand(value: str | None) -> str | None:
    if value is None:
        return None
    text = unicodedata.normalize("NFKC", unicodedata.normalize("NFKC", value).casefold())
    return _NON_ALNUM_RE.sub("", text) or None


def normalize_name(value: str | None) -> str | None:
    if value is None:
        return None
    text = unicodedata.normalize("NFKC", unicodedata.normalize("NFKC", value).casefold())
    text = "".join(ch for ch in text if not unicodedata.category(ch).startswith("P"))
    text = " ".join(text.split())
    return text or None


def normalize_barcode(value: str | None) -> str | None:
    if value is None:
        return None
    text = "".join(value.split())
    return text or None
