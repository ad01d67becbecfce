"""Storefront checkout FastAPI application.

Serves checkout, order lifecycle, inventory and reservation maintenance
over HTTP. Components are built at startup from environment settings (or
passed in by tests) and closed on shutdown.

Usage:
    uvicorn app:create_app --factory --app-dir src --host 0.0.0.0 --port 8000
"""

from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from bootstrap import Components, build_components
from inventory.api.routes import inventory_router, maintenance_router, reservation_router
from ordering.api.routes import order_router
from ordering.checkout.exceptions import OrderNumberExhausted
from ordering.utils.logging import add_context, clear_context, configure_logging

logger = structlog.get_logger(__name__)


def create_app(components: Components | None = None) -> FastAPI:
    owns_components = components is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if owns_components:
            configure_logging()
            app.state.components = build_components()
        yield
        if owns_components:
            app.state.components.close()

    app = FastAPI(
        title="Storefront Checkout API",
        description="Multi-store checkout with stock reservations",
        lifespan=lifespan,
    )
    if components is not None:
        app.state.components = components

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        """Bind a request id to every log line emitted while handling the request."""
        request_id = request.headers.get("X-Request-Id") or uuid4().hex
        add_context(request_id=request_id, path=request.url.path)
        try:
            response = await call_next(request)
        finally:
            clear_context()
        response.headers["X-Request-Id"] = request_id
        return response

    # -----------------------------------------------------------------------
    # Infrastructure failures
    # -----------------------------------------------------------------------
    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error("Storage failure", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=503,
            content={"error": "SERVICE_UNAVAILABLE", "message": "Storage is unavailable", "details": {}},
        )

    @app.exception_handler(OrderNumberExhausted)
    async def order_number_error_handler(request: Request, exc: OrderNumberExhausted):
        logger.error("Order number generation exhausted", attempts=exc.attempts)
        return JSONResponse(
            status_code=503,
            content={"error": "ORDER_NUMBER_EXHAUSTED", "message": str(exc), "details": {"attempts": exc.attempts}},
        )

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------
    app.include_router(order_router)
    app.include_router(inventory_router)
    app.include_router(reservation_router)
    app.include_router(maintenance_router)

    @app.get("/health")
    async def health(request: Request):
        state = request.app.state
        return JSONResponse(
            content={
                "status": "ok",
                "domain": state.components.domain.name if hasattr(state, "components") else None,
            }
        )

    return app
