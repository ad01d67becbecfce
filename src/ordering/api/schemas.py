"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from the
orchestrator's ``CheckoutRequest`` and the Protean commands.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class DeliveryAddressSchema(BaseModel):
    title: str | None = None
    address_line1: str = Field(min_length=1, max_length=255)
    address_line2: str | None = None
    city: str = Field(min_length=1, max_length=100)
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    store_id: str = Field(min_length=1)
    payment_method: str = Field(min_length=1, max_length=50)
    delivery_type: Literal["pickup", "delivery"] = "pickup"
    delivery_address: DeliveryAddressSchema | None = None
    special_instructions: str | None = Field(default=None, max_length=1000)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "store_id": "store-001",
                    "payment_method": "credit_card",
                    "delivery_type": "pickup",
                    "special_instructions": "Ring the bell",
                }
            ]
        }
    }


class UpdateOrderStatusRequest(BaseModel):
    status: Literal["confirmed", "preparing", "ready", "completed"]
    estimated_pickup_time: datetime | None = None
    actual_pickup_time: datetime | None = None


class CancelOrderRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class ErrorResponse(BaseModel):
    error: str
    message: str
    details: dict = Field(default_factory=dict)


class OrderListResponse(BaseModel):
    items: list[dict]
    total: int
    limit: int
    offset: int
