"""Reservation manager: time-bounded holds against the inventory ledger.

State machine::

    reserved ──mark_used──▶ used ──release_for_order──▶ released
       │
       ├──release──▶ released
       ├──cancel───▶ cancelled
       └──sweep────▶ expired

Every transition out of ``reserved`` is a conditional update guarded by
``status = 'reserved'`` and, where it returns stock, calls the ledger in the
same storage transaction. A reservation therefore returns its hold at most
once no matter how many releases, cancellations and sweeps race for it.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from uuid import uuid4

import structlog
from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.engine import Connection

from inventory.exceptions import ReservationNotActive, ReservationNotFound
from inventory.ledger import InventoryLedger
from shared.config import MAX_RESERVATION_TTL_MINUTES, MIN_RESERVATION_TTL_MINUTES
from shared.database import Database, as_utc, utcnow
from shared.tables import reservations

logger = structlog.get_logger(__name__)


class ReservationStatus(Enum):
    RESERVED = "reserved"
    USED = "used"
    RELEASED = "released"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


# Rows in these states no longer hold stock and may be purged after retention.
# Used rows keep their hold until the order is cancelled, so they are never purged.
_CLOSED_STATUSES = (
    ReservationStatus.RELEASED.value,
    ReservationStatus.EXPIRED.value,
    ReservationStatus.CANCELLED.value,
)

# Rows in these states count towards the ledger's reserved_quantity
_HOLDING_STATUSES = (ReservationStatus.RESERVED.value, ReservationStatus.USED.value)


@dataclass(frozen=True)
class Reservation:
    id: str
    store_id: str
    product_id: str
    quantity: int
    status: str
    expires_at: datetime
    created_at: datetime
    updated_at: datetime
    user_id: str | None = None
    order_id: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == ReservationStatus.RESERVED.value

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.is_active and self.expires_at <= (now or utcnow())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "status": self.status,
            "user_id": self.user_id,
            "order_id": self.order_id,
            "expires_at": self.expires_at.isoformat(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row) -> "Reservation":
        return cls(
            id=row.id,
            store_id=row.store_id,
            product_id=row.product_id,
            quantity=row.quantity,
            status=row.status,
            expires_at=as_utc(row.expires_at),
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
            user_id=row.user_id,
            order_id=row.order_id,
        )


class ReservationManager:
    def __init__(
        self,
        database: Database,
        ledger: InventoryLedger,
        default_ttl_minutes: int = 15,
        retention_days: int = 7,
        sweep_batch_size: int = 500,
    ) -> None:
        self.database = database
        self.ledger = ledger
        self.default_ttl_minutes = self._validate_ttl(default_ttl_minutes)
        self.retention_days = retention_days
        self.sweep_batch_size = sweep_batch_size

    @staticmethod
    def _validate_ttl(ttl_minutes: int) -> int:
        if not MIN_RESERVATION_TTL_MINUTES <= ttl_minutes <= MAX_RESERVATION_TTL_MINUTES:
            raise ValueError(
                f"Reservation TTL must be between {MIN_RESERVATION_TTL_MINUTES} and "
                f"{MAX_RESERVATION_TTL_MINUTES} minutes, got {ttl_minutes}"
            )
        return ttl_minutes

    # -------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------
    def reserve(
        self,
        store_id: str,
        product_id: str,
        quantity: int,
        user_id: str | None = None,
        ttl_minutes: int | None = None,
    ) -> Reservation:
        """Place a hold and record it, in one transaction.

        Raises ``InsufficientStock`` when the ledger refuses the hold; in that
        case no reservation row is written.
        """
        ttl = self._validate_ttl(ttl_minutes) if ttl_minutes is not None else self.default_ttl_minutes
        now = utcnow()
        reservation = Reservation(
            id=str(uuid4()),
            store_id=str(store_id),
            product_id=str(product_id),
            quantity=quantity,
            status=ReservationStatus.RESERVED.value,
            expires_at=now + timedelta(minutes=ttl),
            created_at=now,
            updated_at=now,
            user_id=str(user_id) if user_id is not None else None,
        )

        with self.database.transaction() as tx:
            self.ledger.reserve(store_id, product_id, quantity, conn=tx)
            tx.execute(
                insert(reservations).values(
                    id=reservation.id,
                    store_id=reservation.store_id,
                    product_id=reservation.product_id,
                    quantity=reservation.quantity,
                    user_id=reservation.user_id,
                    order_id=None,
                    status=reservation.status,
                    expires_at=reservation.expires_at,
                    created_at=now,
                    updated_at=now,
                )
            )

        logger.info(
            "Reservation created",
            reservation_id=reservation.id,
            store_id=reservation.store_id,
            product_id=reservation.product_id,
            quantity=quantity,
            expires_at=reservation.expires_at.isoformat(),
        )
        return reservation

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def mark_used(self, reservation_ids, order_id: str) -> None:
        """Move every reservation to ``used`` for ``order_id``, or none of them.

        The holds stay on the ledger until the order is fulfilled or cancelled.
        """
        ids = [str(rid) for rid in reservation_ids]
        if not ids:
            return

        c = reservations.c
        with self.database.transaction() as tx:
            for reservation_id in ids:
                result = tx.execute(
                    update(reservations)
                    .where(c.id == reservation_id, c.status == ReservationStatus.RESERVED.value)
                    .values(status=ReservationStatus.USED.value, order_id=str(order_id), updated_at=utcnow())
                )
                if result.rowcount == 0:
                    current = self._fetch(tx, reservation_id)
                    # Raising rolls back the rows already moved in this transaction
                    raise ReservationNotActive(reservation_id, current.status if current else None)

        logger.info("Reservations marked used", order_id=str(order_id), count=len(ids))

    def release(self, reservation_id: str) -> Reservation:
        return self._finish(reservation_id, ReservationStatus.RELEASED)

    def cancel(self, reservation_id: str) -> Reservation:
        return self._finish(reservation_id, ReservationStatus.CANCELLED)

    def _finish(
        self,
        reservation_id: str,
        target: ReservationStatus,
        now: datetime | None = None,
        conn: Connection | None = None,
        only_if_expired: bool = False,
    ) -> Reservation:
        c = reservations.c
        now = now or utcnow()
        conditions = [c.id == str(reservation_id), c.status == ReservationStatus.RESERVED.value]
        if only_if_expired:
            conditions.append(c.expires_at <= now)

        with self.database.transaction(conn) as tx:
            result = tx.execute(update(reservations).where(*conditions).values(status=target.value, updated_at=now))
            current = self._fetch(tx, reservation_id)
            if current is None:
                raise ReservationNotFound(str(reservation_id))
            if result.rowcount == 0:
                raise ReservationNotActive(str(reservation_id), current.status)
            self.ledger.release(current.store_id, current.product_id, current.quantity, conn=tx)

        logger.info(
            "Reservation closed",
            reservation_id=current.id,
            status=target.value,
            store_id=current.store_id,
            product_id=current.product_id,
            quantity=current.quantity,
        )
        return current

    def release_for_order(self, order_id: str) -> int:
        """Return every hold still tied to ``order_id`` to the ledger.

        Covers ``used`` reservations of a cancelled order and ``reserved`` ones
        that were linked but never consumed. Returns the number released.
        """
        c = reservations.c
        with self.database.connect() as conn:
            stmt = select(reservations).where(c.order_id == str(order_id), c.status.in_(_HOLDING_STATUSES))
            rows = conn.execute(stmt).all()

        released = 0
        for row in rows:
            with self.database.transaction() as tx:
                result = tx.execute(
                    update(reservations)
                    .where(c.id == row.id, c.status == row.status)
                    .values(status=ReservationStatus.RELEASED.value, updated_at=utcnow())
                )
                if result.rowcount == 0:
                    continue
                self.ledger.release(row.store_id, row.product_id, row.quantity, conn=tx)
                released += 1

        logger.info("Order reservations released", order_id=str(order_id), released=released)
        return released

    # -------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------
    def expire_stale(self, now: datetime | None = None, batch_size: int | None = None) -> int:
        """Move reservations still ``reserved`` past their expiry to ``expired``.

        Each row is expired in its own transaction with the same status guard
        as ``release``, so a reservation that was consumed in the meantime is
        left alone. Returns the number of reservations expired.
        """
        now = now or utcnow()
        limit = batch_size or self.sweep_batch_size
        c = reservations.c

        with self.database.connect() as conn:
            candidates = conn.execute(
                select(c.id)
                .where(c.status == ReservationStatus.RESERVED.value, c.expires_at <= now)
                .order_by(c.expires_at)
                .limit(limit)
            ).scalars().all()

        if not candidates:
            logger.debug("No stale reservations found")
            return 0

        expired_count = 0
        for reservation_id in candidates:
            try:
                self._finish(reservation_id, ReservationStatus.EXPIRED, now=now, only_if_expired=True)
                expired_count += 1
            except (ReservationNotActive, ReservationNotFound) as exc:
                logger.debug("Skipped reservation during sweep", reservation_id=reservation_id, error=str(exc))

        logger.info("Stale reservation sweep complete", expired_count=expired_count, candidates=len(candidates))
        return expired_count

    def cleanup(self, retention_days: int | None = None, now: datetime | None = None) -> int:
        """Delete released, expired and cancelled reservations older than the retention window."""
        days = retention_days if retention_days is not None else self.retention_days
        cutoff = (now or utcnow()) - timedelta(days=days)
        c = reservations.c
        with self.database.transaction() as tx:
            result = tx.execute(delete(reservations).where(c.status.in_(_CLOSED_STATUSES), c.updated_at < cutoff))

        logger.info("Old reservations cleaned up", deleted=result.rowcount, retention_days=days)
        return result.rowcount

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get(self, reservation_id: str) -> Reservation | None:
        with self.database.connect() as conn:
            return self._fetch(conn, reservation_id)

    def list_for_user(self, user_id: str, status: ReservationStatus | None = None) -> list[Reservation]:
        return self._list(reservations.c.user_id == str(user_id), status)

    def list_for_store(self, store_id: str, status: ReservationStatus | None = None) -> list[Reservation]:
        return self._list(reservations.c.store_id == str(store_id), status)

    def list_for_order(self, order_id: str) -> list[Reservation]:
        return self._list(reservations.c.order_id == str(order_id), None)

    def active_for(self, store_id: str, product_id: str) -> list[Reservation]:
        c = reservations.c
        return self._list(
            (c.store_id == str(store_id)) & (c.product_id == str(product_id)),
            ReservationStatus.RESERVED,
        )

    def summary(self, store_id: str | None = None) -> dict:
        """Counts per status and the quantity held on the ledger by reserved and used rows."""
        c = reservations.c
        stmt = select(c.status, func.count(), func.coalesce(func.sum(c.quantity), 0)).group_by(c.status)
        if store_id is not None:
            stmt = stmt.where(c.store_id == str(store_id))

        counts = {status.value: 0 for status in ReservationStatus}
        held_quantity = 0
        with self.database.connect() as conn:
            for status, count, quantity in conn.execute(stmt):
                counts[status] = count
                if status in _HOLDING_STATUSES:
                    held_quantity += int(quantity)

        return {
            "store_id": store_id,
            "total": sum(counts.values()),
            "by_status": counts,
            "held_quantity": held_quantity,
        }

    def _list(self, condition, status: ReservationStatus | None) -> list[Reservation]:
        stmt = select(reservations).where(condition).order_by(reservations.c.created_at.desc())
        if status is not None:
            stmt = stmt.where(reservations.c.status == status.value)
        with self.database.connect() as conn:
            return [Reservation.from_row(row) for row in conn.execute(stmt)]

    @staticmethod
    def _fetch(conn: Connection, reservation_id: str) -> Reservation | None:
        row = conn.execute(select(reservations).where(reservations.c.id == str(reservation_id))).first()
        return Reservation.from_row(row) if row is not None else None
