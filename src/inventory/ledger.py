"""Inventory ledger: the single writer of per-store stock counters.

Each (store, product) pair has a ``quantity_available`` and a
``reserved_quantity``. Holds are placed and returned with conditional
``UPDATE`` statements so the check and the mutation happen in one atomic
storage operation::

    UPDATE store_inventory
       SET reserved_quantity = reserved_quantity + :q
     WHERE store_id = :s AND product_id = :p AND is_available
       AND quantity_available - reserved_quantity >= :q

Zero rows updated means the hold did not fit. No component other than the
ledger writes these two counters.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy import and_, insert, select, update
from sqlalchemy.engine import Connection

from inventory.exceptions import InsufficientStock, LedgerInvariantError
from shared.database import Database, as_utc, utcnow
from shared.tables import inventory_records

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class InventoryRecord:
    store_id: str
    product_id: str
    quantity_available: int
    reserved_quantity: int
    is_available: bool
    reorder_level: int | None = None
    price_override: Decimal | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def available_to_sell(self) -> int:
        return self.quantity_available - self.reserved_quantity

    @property
    def needs_reorder(self) -> bool:
        return self.reorder_level is not None and self.available_to_sell <= self.reorder_level

    def to_dict(self) -> dict:
        return {
            "store_id": self.store_id,
            "product_id": self.product_id,
            "quantity_available": self.quantity_available,
            "reserved_quantity": self.reserved_quantity,
            "available_to_sell": self.available_to_sell,
            "is_available": self.is_available,
            "reorder_level": self.reorder_level,
            "price_override": str(self.price_override) if self.price_override is not None else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_row(cls, row) -> "InventoryRecord":
        return cls(
            store_id=row.store_id,
            product_id=row.product_id,
            quantity_available=row.quantity_available,
            reserved_quantity=row.reserved_quantity,
            is_available=bool(row.is_available),
            reorder_level=row.reorder_level,
            price_override=Decimal(str(row.price_override)) if row.price_override is not None else None,
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
        )


def _key(store_id: str, product_id: str):
    return and_(
        inventory_records.c.store_id == str(store_id),
        inventory_records.c.product_id == str(product_id),
    )


class InventoryLedger:
    def __init__(self, database: Database) -> None:
        self.database = database

    # -------------------------------------------------------------------
    # Holds
    # -------------------------------------------------------------------
    def reserve(self, store_id: str, product_id: str, quantity: int, conn: Connection | None = None) -> None:
        """Place a hold of ``quantity`` units, or raise ``InsufficientStock``."""
        if quantity is None or quantity <= 0:
            logger.error(
                "Rejected non-positive reservation quantity",
                store_id=store_id,
                product_id=product_id,
                quantity=quantity,
            )
            raise LedgerInvariantError(f"Reservation quantity must be positive, got {quantity}")

        c = inventory_records.c
        with self.database.transaction(conn) as tx:
            result = tx.execute(
                update(inventory_records)
                .where(
                    _key(store_id, product_id),
                    c.is_available.is_(True),
                    c.quantity_available - c.reserved_quantity >= quantity,
                )
                .values(reserved_quantity=c.reserved_quantity + quantity, updated_at=utcnow())
            )
            if result.rowcount == 0:
                record = self._fetch(tx, store_id, product_id)
                available = record.available_to_sell if record and record.is_available else 0
                logger.info(
                    "Insufficient stock for hold",
                    store_id=store_id,
                    product_id=product_id,
                    requested=quantity,
                    available=available,
                )
                raise InsufficientStock(str(product_id), max(available, 0), requested=quantity)

        logger.debug("Stock hold placed", store_id=store_id, product_id=product_id, quantity=quantity)

    def release(self, store_id: str, product_id: str, quantity: int, conn: Connection | None = None) -> None:
        """Return ``quantity`` held units to available-to-sell.

        A release larger than the outstanding hold clamps the counter at zero
        and is logged as an invariant breach.
        """
        if quantity is None or quantity <= 0:
            logger.error(
                "Rejected non-positive release quantity",
                store_id=store_id,
                product_id=product_id,
                quantity=quantity,
            )
            raise LedgerInvariantError(f"Release quantity must be positive, got {quantity}")

        c = inventory_records.c
        with self.database.transaction(conn) as tx:
            result = tx.execute(
                update(inventory_records)
                .where(_key(store_id, product_id), c.reserved_quantity >= quantity)
                .values(reserved_quantity=c.reserved_quantity - quantity, updated_at=utcnow())
            )
            if result.rowcount == 1:
                logger.debug("Stock hold released", store_id=store_id, product_id=product_id, quantity=quantity)
                return

            clamped = tx.execute(
                update(inventory_records)
                .where(_key(store_id, product_id))
                .values(reserved_quantity=0, updated_at=utcnow())
            )
            if clamped.rowcount == 0:
                logger.error(
                    "Release for unknown inventory record",
                    store_id=store_id,
                    product_id=product_id,
                    quantity=quantity,
                )
                return

            logger.error(
                "Reserved quantity would go negative; clamped to zero",
                store_id=store_id,
                product_id=product_id,
                quantity=quantity,
            )

    # -------------------------------------------------------------------
    # Stock administration
    # -------------------------------------------------------------------
    def set_stock(
        self,
        store_id: str,
        product_id: str,
        quantity_available: int,
        is_available: bool = True,
        reorder_level: int | None = None,
        price_override: Decimal | None = None,
    ) -> InventoryRecord:
        """Create or update a record's on-hand quantity and flags.

        The on-hand quantity may never drop below the outstanding holds.
        """
        if quantity_available < 0:
            raise LedgerInvariantError("quantity_available must not be negative")

        c = inventory_records.c
        now = utcnow()
        values = {
            "quantity_available": quantity_available,
            "is_available": is_available,
            "reorder_level": reorder_level,
            "price_override": price_override,
            "updated_at": now,
        }
        with self.database.transaction() as tx:
            result = tx.execute(
                update(inventory_records)
                .where(_key(store_id, product_id), c.reserved_quantity <= quantity_available)
                .values(**values)
            )
            if result.rowcount == 0:
                existing = self._fetch(tx, store_id, product_id)
                if existing is not None:
                    raise LedgerInvariantError(
                        f"Cannot set quantity_available to {quantity_available}: "
                        f"{existing.reserved_quantity} units are reserved"
                    )
                tx.execute(
                    insert(inventory_records).values(
                        store_id=str(store_id),
                        product_id=str(product_id),
                        reserved_quantity=0,
                        created_at=now,
                        **values,
                    )
                )
            record = self._fetch(tx, store_id, product_id)

        logger.info(
            "Stock level set",
            store_id=store_id,
            product_id=product_id,
            quantity_available=quantity_available,
            is_available=is_available,
        )
        return record

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get(self, store_id: str, product_id: str, conn: Connection | None = None) -> InventoryRecord | None:
        if conn is not None:
            return self._fetch(conn, store_id, product_id)
        with self.database.connect() as c:
            return self._fetch(c, store_id, product_id)

    def get_many(self, store_id: str, product_ids) -> dict[str, InventoryRecord]:
        ids = [str(pid) for pid in product_ids]
        if not ids:
            return {}
        stmt = select(inventory_records).where(
            inventory_records.c.store_id == str(store_id),
            inventory_records.c.product_id.in_(ids),
        )
        with self.database.connect() as c:
            return {row.product_id: InventoryRecord.from_row(row) for row in c.execute(stmt)}

    def list_for_store(self, store_id: str) -> list[InventoryRecord]:
        stmt = (
            select(inventory_records)
            .where(inventory_records.c.store_id == str(store_id))
            .order_by(inventory_records.c.product_id)
        )
        with self.database.connect() as c:
            return [InventoryRecord.from_row(row) for row in c.execute(stmt)]

    def low_stock(self, store_id: str) -> list[InventoryRecord]:
        c = inventory_records.c
        stmt = (
            select(inventory_records)
            .where(
                c.store_id == str(store_id),
                c.reorder_level.is_not(None),
                c.quantity_available - c.reserved_quantity <= c.reorder_level,
            )
            .order_by(c.product_id)
        )
        with self.database.connect() as conn:
            return [InventoryRecord.from_row(row) for row in conn.execute(stmt)]

    @staticmethod
    def _fetch(conn: Connection, store_id: str, product_id: str) -> InventoryRecord | None:
        row = conn.execute(select(inventory_records).where(_key(store_id, product_id))).first()
        return InventoryRecord.from_row(row) if row is not None else None
