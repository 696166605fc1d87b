"""Port for creating products on a marketplace."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol, runtime_checkable


@runtime_checkable
class ListingPublisher(Protocol):
    """Async port creating one product on a marketplace from its native payload.

    Returns the marketplace's identifier of the created product, if it reports one.
    """

    async def __call__(
        self,
        *,
        seller_id: str,
        marketplace: str,
        payload: Mapping[str, object],
    ) -> str | None: ...
