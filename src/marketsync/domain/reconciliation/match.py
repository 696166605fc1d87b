"""Pairwise product matching.

Rules are tried strongest first and the first hit wins:

1. exact SKU     normalized SKUs equal and longer than 3 characters    -> 1.00
2. barcode       barcodes equal and at least 8 characters long         -> 0.95
3. brand + name  normalized brand and normalized name both equal       -> 0.90
4. name          edit-distance similarity of the normalized names      -> similarity

Every rule is symmetric, so ``match_products(a, b) == match_products(b, a)``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from rapidfuzz.distance import Levenshtein

from marketsync.domain.model import MatchCriterion

from .contracts import NO_MATCH, MatchResult
from .normalize import normalize_barcode, normalize_brand, normalize_name, normalize_sku
from .options import MatchingOptions

if TYPE_CHECKING:
    from marketsync.domain.model import NormalizedProduct

MIN_SKU_LENGTH: Final[int] = 4
MIN_BARCODE_LENGTH: Final[int] = 8
SKU_CONFIDENCE: Final[float] = 1.0
BARCODE_CONFIDENCE: Final[float] = 0.95
BRAND_NAME_CONFIDENCE: Final[float] = 0.90
BRAND_MISMATCH_PENALTY: Final[float] = 0.8

DEFAULT_OPTIONS: Final[MatchingOptions] = MatchingOptions()


def name_similarity(left: str | None, right: str | None) -> float:
    """Return ``(maxLen - editDistance) / maxLen`` of the normalized names."""

    a = normalize_name(left) or ""
    b = normalize_name(right) or ""
    longest = max(len(a), len(b))
    if longest == 0:
        return 0.0
    distance = Levenshtein.distance(a, b)
    return (longest - distance) / longest


def match_products(
    a: NormalizedProduct,
    b: NormalizedProduct,
    options: MatchingOptions = DEFAULT_OPTIONS,
) -> MatchResult:
    sku_a = normalize_sku(a.sku)
    if sku_a is not None and len(sku_a) >= MIN_SKU_LENGTH and sku_a == normalize_sku(b.sku):
        return MatchResult(MatchCriterion.EXACT_SKU, SKU_CONFIDENCE)

    barcode_a = normalize_barcode(a.barcode)
    if (
        barcode_a is not None
        and len(barcode_a) >= MIN_BARCODE_LENGTH
        and barcode_a == normalize_barcode(b.barcode)
    ):
        return MatchResult(MatchCriterion.BARCODE, BARCODE_CONFIDENCE)

    brand_a = normalize_brand(a.brand)
    brand_b = normalize_brand(b.brand)
    name_a = normalize_name(a.name)
    if (
        not options.ignore_brand
        and brand_a is not None
        and brand_a == brand_b
        and name_a is not None
        and name_a == normalize_name(b.name)
    ):
        return MatchResult(MatchCriterion.BRAND_NAME, BRAND_NAME_CONFIDENCE)

    if options.strict_matching:
        return NO_MATCH

    similarity = name_similarity(a.name, b.name)
    if similarity < options.similarity_threshold:
        return NO_MATCH

    brands_disagree = (
        not options.ignore_brand
        and brand_a is not None
        and brand_b is not None
        and brand_a != brand_b
    )
    confidence = similarity * BRAND_MISMATCH_PENALTY if brands_disagree else similarity
    if confidence <= 0.0:
        return NO_MATCH
    return MatchResult(MatchCriterion.NAME_SIMILARITY, confidence)


class PairMatcher:
    """Callable matcher bound to one set of options."""

    def __init__(self, options: MatchingOptions = DEFAULT_OPTIONS) -> None:
        self.options = options

    def __call__(self, a: NormalizedProduct, b: NormalizedProduct) -> MatchResult:
        return match_products(a, b, self.options)
