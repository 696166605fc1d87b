"""Per-seller reconciliation leases stored in the ``seller_lease`` table."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError

from marketsync.adapters.sqlalchemy.mappings import seller_lease_table
from marketsync.adapters.sqlalchemy.unit_of_work import StartupError, configured_engine
from marketsync.domain.errors import SellerBusyError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

DEFAULT_LEASE_TTL = timedelta(minutes=15)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SqlAlchemySellerLease:
    """Exclusive lease row per seller with a holder token and an expiry.

    An expired lease is taken over by the next caller, so a crashed run blocks the
    seller for at most ``ttl``. Long runs call ``renew`` between transactions to push
    the expiry forward.
    """

    def __init__(
        self,
        engine: Engine | None = None,
        *,
        ttl: timedelta = DEFAULT_LEASE_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        resolved = engine or configured_engine()
        if resolved is None:
            raise StartupError("SQLAlchemy adapter not initialised; no engine for seller leases")
        self._engine = resolved
        self._ttl = ttl
        self._clock = clock
        self._tokens: dict[str, str] = {}

    @contextmanager
    def hold(self, seller_id: str) -> Iterator[None]:
        token = uuid.uuid4().hex
        self._acquire(seller_id, token)
        self._tokens[seller_id] = token
        try:
            yield
        finally:
            del self._tokens[seller_id]
            self._release(seller_id, token)

    def renew(self, seller_id: str) -> None:
        token = self._tokens.get(seller_id)
        if token is None:
            raise SellerBusyError(seller_id)
        with self._engine.begin() as connection:
            renewed = connection.execute(
                update(seller_lease_table)
                .where(seller_lease_table.c.seller_id == seller_id)
                .where(seller_lease_table.c.holder == token)
                .values(expires_at=self._clock() + self._ttl)
            ).rowcount
        if not renewed:
            log.warning("Lease of seller %s was taken over from %s", seller_id, token)
            raise SellerBusyError(seller_id)

    def _acquire(self, seller_id: str, token: str) -> None:
        now = self._clock()
        try:
            with self._engine.begin() as connection:
                current = connection.execute(
                    select(seller_lease_table.c.holder, seller_lease_table.c.expires_at).where(
                        seller_lease_table.c.seller_id == seller_id
                    )
                ).one_or_none()
                if current is not None:
                    if current.expires_at > now:
                        raise SellerBusyError(seller_id)
                    log.warning(
                        "Taking over expired lease of seller %s from %s",
                        seller_id,
                        current.holder,
                    )
                    connection.execute(
                        delete(seller_lease_table).where(
                            seller_lease_table.c.seller_id == seller_id
                        )
                    )
                connection.execute(
                    insert(seller_lease_table).values(
                        seller_id=seller_id,
                        holder=token,
                        acquired_at=now,
                        expires_at=now + self._ttl,
                    )
                )
        except IntegrityError as exc:
            raise SellerBusyError(seller_id) from exc
        log.debug("Acquired lease for seller %s (%s)", seller_id, token)

    def _release(self, seller_id: str, token: str) -> None:
        with self._engine.begin() as connection:
            connection.execute(
                delete(seller_lease_table)
                .where(seller_lease_table.c.seller_id == seller_id)
                .where(seller_lease_table.c.holder == token)
            )
        log.debug("Released lease for seller %s (%s)", seller_id, token)


if TYPE_CHECKING:
    from marketsync.domain.ports.locking import SellerLock

    _lock_check: SellerLock = SqlAlchemySellerLease()
