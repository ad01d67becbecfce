"""Relational schema for the rows that need storage-level atomicity.

Inventory counters, reservations and idempotency records are mutated with
conditional ``UPDATE`` statements, so they live in plain SQLAlchemy Core
tables rather than behind an aggregate repository.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    UniqueConstraint,
)

metadata = MetaData()

inventory_records = Table(
    "store_inventory",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("store_id", String(64), nullable=False),
    Column("product_id", String(64), nullable=False),
    Column("quantity_available", Integer, nullable=False, default=0),
    Column("reserved_quantity", Integer, nullable=False, default=0),
    Column("is_available", Boolean, nullable=False, default=True),
    Column("reorder_level", Integer, nullable=True),
    Column("price_override", Numeric(10, 2), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("store_id", "product_id", name="uq_store_inventory_store_product"),
    CheckConstraint("quantity_available >= 0", name="ck_store_inventory_available_non_negative"),
    CheckConstraint("reserved_quantity >= 0", name="ck_store_inventory_reserved_non_negative"),
    CheckConstraint(
        "reserved_quantity <= quantity_available",
        name="ck_store_inventory_reserved_within_available",
    ),
)

reservations = Table(
    "inventory_reservations",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("store_id", String(64), nullable=False),
    Column("product_id", String(64), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("user_id", String(64), nullable=True),
    Column("order_id", String(64), nullable=True),
    Column("status", String(16), nullable=False),
    Column("expires_at", DateTime(timezone=True), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    CheckConstraint("quantity > 0", name="ck_inventory_reservations_quantity_positive"),
    Index("ix_inventory_reservations_status_expires", "status", "expires_at"),
    Index("ix_inventory_reservations_order", "order_id"),
    Index("ix_inventory_reservations_user", "user_id"),
    Index("ix_inventory_reservations_store_product", "store_id", "product_id"),
)

idempotency_records = Table(
    "idempotency_keys",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("key", String(255), nullable=False),
    Column("user_id", String(64), nullable=False),
    Column("fingerprint", String(64), nullable=False),
    Column("status", String(16), nullable=False),
    Column("response", JSON, nullable=True),
    Column("error", JSON, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("key", "user_id", name="uq_idempotency_keys_key_user"),
)
