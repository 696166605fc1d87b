"""Field-level conflict detection between two matched products."""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal
from typing import TYPE_CHECKING, Final

from marketsync.domain.model import Severity

from .contracts import Conflict, ConflictReport

if TYPE_CHECKING:
    from collections.abc import Sequence

    from marketsync.domain.model import NormalizedProduct

PRICE_TOLERANCE: Final[Decimal] = Decimal("0.1")
STOCK_TOLERANCE: Final[int] = 5

type ConflictRule = Callable[[NormalizedProduct, NormalizedProduct], Conflict | None]


def price_conflict(source: NormalizedProduct, target: NormalizedProduct) -> Conflict | None:
    """Flag prices differing by more than 10% of the larger one.

    A price of 0 means the marketplace did not report one, so it is never compared.
    """

    if source.price == 0 or target.price == 0:
        return None
    difference = abs(source.price - target.price)
    if difference <= PRICE_TOLERANCE * max(source.price, target.price):
        return None
    return Conflict(
        field="price",
        source_value=source.price,
        target_value=target.price,
        difference=difference,
        severity=Severity.MEDIUM,
    )


def stock_conflict(source: NormalizedProduct, target: NormalizedProduct) -> Conflict | None:
    difference = abs(source.stock - target.stock)
    if difference <= STOCK_TOLERANCE:
        return None
    return Conflict(
        field="stock",
        source_value=source.stock,
        target_value=target.stock,
        difference=difference,
        severity=Severity.LOW,
    )


DEFAULT_RULES: Final[tuple[ConflictRule, ...]] = (price_conflict, stock_conflict)


def detect_conflicts(
    source: NormalizedProduct,
    target: NormalizedProduct,
    rules: Sequence[ConflictRule] = DEFAULT_RULES,
) -> ConflictReport:
    conflicts = tuple(
        conflict for rule in rules if (conflict := rule(source, target)) is not None
    )
    return ConflictReport(conflicts)
