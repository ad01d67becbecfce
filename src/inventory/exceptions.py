"""Exceptions raised by the inventory ledger and reservation manager."""


class InventoryError(Exception):
    pass


class InsufficientStock(InventoryError):
    """Not enough available-to-sell stock to satisfy a hold."""

    def __init__(self, product_id: str, available: int, requested: int | None = None) -> None:
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(f"Insufficient stock for product {product_id}: {available} available")


class LedgerInvariantError(InventoryError):
    """A request that would break the ledger's counters was rejected."""


class ReservationNotFound(InventoryError):
    def __init__(self, reservation_id: str) -> None:
        self.reservation_id = reservation_id
        super().__init__(f"Reservation {reservation_id} does not exist")


class ReservationNotActive(InventoryError):
    """The reservation is no longer in the ``reserved`` state."""

    def __init__(self, reservation_id: str, status: str | None = None) -> None:
        self.reservation_id = reservation_id
        self.status = status
        suffix = f" (status: {status})" if status else ""
        super().__init__(f"Reservation {reservation_id} is not active{suffix}")
