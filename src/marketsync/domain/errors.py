"""Exceptions raised by the reconciliation domain."""

from __future__ import annotations


class ReconciliationError(Exception):
    """Base class for reconciliation failures."""


class ContractViolationError(ReconciliationError, ValueError):
    """Raised when an internal invariant is broken; fatal for the current run."""


class InvalidOptionsError(ContractViolationError):
    """Raised when matching or grouping options are out of range."""


class UnnormalizableRecordError(ReconciliationError):
    """Raised when a raw marketplace record lacks the fields needed to match it."""

    def __init__(self, message: str, *, marketplace: str, reason: str) -> None:
        super().__init__(message)
        self.marketplace = marketplace
        self.reason = reason


class PersistenceError(ReconciliationError):
    """Raised by persistence adapters when a unit of work cannot be committed."""


class SellerBusyError(ReconciliationError):
    """Raised when another run already holds the seller's reconciliation lease."""

    def __init__(self, seller_id: str) -> None:
        super().__init__(f"Seller {seller_id!r} is already being reconciled")
        self.seller_id = seller_id


class MarketplaceUnavailableError(ReconciliationError):
    """Raised by fetchers and publishers when a marketplace cannot serve a request."""

    def __init__(self, message: str, *, marketplace: str) -> None:
        super().__init__(message)
        self.marketplace = marketplace
