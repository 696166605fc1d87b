"""Port guarding per-seller exclusivity of reconciliation runs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from contextlib import AbstractContextManager


@runtime_checkable
class SellerLock(Protocol):
    """Exclusive per-seller lease.

    ``hold`` raises ``SellerBusyError`` when another run holds the seller and
    releases the lease when the context exits. ``renew`` extends a lease held by this
    object and raises ``SellerBusyError`` once the lease was lost.
    """

    def hold(self, seller_id: str) -> AbstractContextManager[None]: ...

    def renew(self, seller_id: str) -> None: ...
