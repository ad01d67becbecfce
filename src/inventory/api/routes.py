"""FastAPI routes for the Inventory domain: stock levels and reservations."""

from fastapi import APIRouter, Depends, HTTPException

from inventory.api.schemas import (
    CleanupReservationsRequest,
    InventoryRecordResponse,
    MaintenanceResponse,
    ReservationSummaryResponse,
    SetStockRequest,
)
from inventory.exceptions import LedgerInvariantError
from inventory.reservations import ReservationStatus
from shared.api import get_components

# ---------------------------------------------------------------------------
# Inventory Router
# ---------------------------------------------------------------------------
inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])


@inventory_router.get("/{store_id}", response_model=list[InventoryRecordResponse])
def list_store_inventory(store_id: str, components=Depends(get_components)) -> list[InventoryRecordResponse]:
    return [InventoryRecordResponse(**record.to_dict()) for record in components.ledger.list_for_store(store_id)]


@inventory_router.get("/{store_id}/low-stock", response_model=list[InventoryRecordResponse])
def low_stock(store_id: str, components=Depends(get_components)) -> list[InventoryRecordResponse]:
    return [InventoryRecordResponse(**record.to_dict()) for record in components.ledger.low_stock(store_id)]


@inventory_router.get("/{store_id}/{product_id}", response_model=InventoryRecordResponse)
def get_stock(store_id: str, product_id: str, components=Depends(get_components)) -> InventoryRecordResponse:
    record = components.ledger.get(store_id, product_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"No inventory for product {product_id} at store {store_id}")
    return InventoryRecordResponse(**record.to_dict())


@inventory_router.put("/{store_id}/{product_id}", response_model=InventoryRecordResponse)
def set_stock(
    store_id: str,
    product_id: str,
    body: SetStockRequest,
    components=Depends(get_components),
) -> InventoryRecordResponse:
    try:
        record = components.ledger.set_stock(
            store_id,
            product_id,
            quantity_available=body.quantity_available,
            is_available=body.is_available,
            reorder_level=body.reorder_level,
            price_override=body.price_override,
        )
    except LedgerInvariantError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return InventoryRecordResponse(**record.to_dict())


# ---------------------------------------------------------------------------
# Reservation Router
# ---------------------------------------------------------------------------
reservation_router = APIRouter(prefix="/reservations", tags=["reservations"])


@reservation_router.get("/summary", response_model=ReservationSummaryResponse)
def reservation_summary(store_id: str | None = None, components=Depends(get_components)) -> ReservationSummaryResponse:
    return ReservationSummaryResponse(**components.reservations.summary(store_id))


@reservation_router.get("")
def list_reservations(
    user_id: str | None = None,
    store_id: str | None = None,
    status: ReservationStatus | None = None,
    components=Depends(get_components),
) -> list[dict]:
    if user_id is not None:
        found = components.reservations.list_for_user(user_id, status)
    elif store_id is not None:
        found = components.reservations.list_for_store(store_id, status)
    else:
        raise HTTPException(status_code=400, detail="user_id or store_id is required")
    return [reservation.to_dict() for reservation in found]


# ---------------------------------------------------------------------------
# Maintenance Router
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@maintenance_router.post("/reservations/expire", response_model=MaintenanceResponse)
def expire_reservations(components=Depends(get_components)) -> MaintenanceResponse:
    return MaintenanceResponse(affected=components.reservations.expire_stale())


@maintenance_router.post("/reservations/cleanup", response_model=MaintenanceResponse)
def cleanup_reservations(
    body: CleanupReservationsRequest | None = None,
    components=Depends(get_components),
) -> MaintenanceResponse:
    retention_days = body.retention_days if body else None
    return MaintenanceResponse(affected=components.reservations.cleanup(retention_days=retention_days))
