"""FastAPI routes for the Ordering domain: checkout and orders.

Handlers are plain ``def`` functions: the orchestrator blocks on storage
and the payment gateway, so FastAPI runs them in its worker thread pool.
"""

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import JSONResponse

from ordering.api.schemas import (
    CancelOrderRequest,
    CreateOrderRequest,
    ErrorResponse,
    OrderListResponse,
    UpdateOrderStatusRequest,
)
from ordering.checkout.outcome import CheckoutRequest, ErrorKind, OrderError, OrderOutcome
from shared.api import get_components

# Stable HTTP status per business error kind
ERROR_STATUS_CODES = {
    ErrorKind.CART_VALIDATION_FAILED: 400,
    ErrorKind.INSUFFICIENT_STOCK: 409,
    ErrorKind.PAYMENT_DECLINED: 402,
    ErrorKind.IDEMPOTENCY_CONFLICT: 409,
    ErrorKind.IDEMPOTENCY_KEY_REUSED: 422,
    ErrorKind.RESERVATION_EXPIRED: 409,
    ErrorKind.ORDER_NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.ORDER_STATE_VIOLATION: 409,
}


def error_response(error: OrderError) -> JSONResponse:
    body = ErrorResponse(error=error.kind.value, message=error.message, details=error.details)
    headers = {"Retry-After": "1"} if error.retryable else None
    return JSONResponse(status_code=ERROR_STATUS_CODES[error.kind], content=body.model_dump(), headers=headers)


def _respond(outcome: OrderOutcome, status_code: int = 200):
    if not outcome.ok:
        return error_response(outcome.error)
    return JSONResponse(status_code=status_code, content=outcome.order)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201)
def create_order(
    body: CreateOrderRequest,
    x_user_id: str = Header(..., min_length=1),
    idempotency_key: str | None = Header(default=None, max_length=255),
    components=Depends(get_components),
):
    request = CheckoutRequest(
        store_id=body.store_id,
        payment_method=body.payment_method,
        delivery_type=body.delivery_type,
        delivery_address=body.delivery_address.model_dump() if body.delivery_address else None,
        special_instructions=body.special_instructions,
        idempotency_key=idempotency_key,
    )
    outcome = components.orchestrator.checkout(x_user_id, request)
    if not outcome.ok:
        return error_response(outcome.error)
    if outcome.replayed:
        return JSONResponse(status_code=200, content=outcome.order, headers={"Idempotent-Replayed": "true"})
    return JSONResponse(status_code=201, content=outcome.order)


@order_router.get("", response_model=OrderListResponse)
def list_orders(
    x_user_id: str = Header(..., min_length=1),
    status: str | None = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    components=Depends(get_components),
) -> OrderListResponse:
    result = components.orchestrator.list_orders(x_user_id, status=status, limit=limit, offset=offset)
    return OrderListResponse(**result)


@order_router.get("/summary")
def order_summary(store_id: str | None = None, components=Depends(get_components)) -> dict:
    return components.orchestrator.order_summary(store_id)


@order_router.get("/{order_id}")
def get_order(order_id: str, x_user_id: str = Header(..., min_length=1), components=Depends(get_components)):
    return _respond(components.orchestrator.get_order(order_id, user_id=x_user_id))


@order_router.put("/{order_id}/status")
def update_order_status(order_id: str, body: UpdateOrderStatusRequest, components=Depends(get_components)):
    outcome = components.orchestrator.update_status(
        order_id,
        body.status,
        estimated_pickup_time=body.estimated_pickup_time,
        actual_pickup_time=body.actual_pickup_time,
    )
    return _respond(outcome)


@order_router.post("/{order_id}/cancel")
def cancel_order(
    order_id: str,
    body: CancelOrderRequest | None = None,
    x_user_id: str = Header(..., min_length=1),
    components=Depends(get_components),
):
    reason = body.reason if body else None
    return _respond(components.orchestrator.cancel(order_id, x_user_id, reason=reason))
