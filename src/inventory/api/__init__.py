from inventory.api.routes import inventory_router, maintenance_router, reservation_router

__all__ = ["inventory_router", "maintenance_router", "reservation_router"]
