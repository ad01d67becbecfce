"""Pydantic request/response schemas for the Inventory API.

These are external contracts (anti-corruption layer), separate from the
ledger's ``InventoryRecord`` and the reservation manager's types.
"""

from decimal import Decimal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Stock Schemas
# ---------------------------------------------------------------------------
class SetStockRequest(BaseModel):
    quantity_available: int = Field(ge=0)
    is_available: bool = True
    reorder_level: int | None = Field(default=None, ge=0)
    price_override: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "quantity_available": 50,
                    "is_available": True,
                    "reorder_level": 5,
                    "price_override": None,
                }
            ]
        }
    }


class InventoryRecordResponse(BaseModel):
    store_id: str
    product_id: str
    quantity_available: int
    reserved_quantity: int
    available_to_sell: int
    is_available: bool
    reorder_level: int | None = None
    price_override: str | None = None
    updated_at: str | None = None


# ---------------------------------------------------------------------------
# Reservation Schemas
# ---------------------------------------------------------------------------
class ReservationSummaryResponse(BaseModel):
    store_id: str | None = None
    total: int
    by_status: dict[str, int]
    held_quantity: int = Field(description="Quantity held on the ledger by reserved and used reservations")


class CleanupReservationsRequest(BaseModel):
    retention_days: int | None = Field(default=None, ge=1)


class MaintenanceResponse(BaseModel):
    status: str = "ok"
    affected: int
