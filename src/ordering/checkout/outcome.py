"""Typed request and result values exchanged with the checkout orchestrator.

Business rejections (empty cart, stock shortfall, payment decline,
idempotency conflicts) are returned as an ``OrderOutcome`` carrying an
``OrderError``; they are never raised.
"""

from dataclasses import dataclass, field
from enum import Enum


class ErrorKind(Enum):
    CART_VALIDATION_FAILED = "CART_VALIDATION_FAILED"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    PAYMENT_DECLINED = "PAYMENT_DECLINED"
    IDEMPOTENCY_CONFLICT = "IDEMPOTENCY_CONFLICT"
    IDEMPOTENCY_KEY_REUSED = "IDEMPOTENCY_KEY_REUSED"
    RESERVATION_EXPIRED = "RESERVATION_EXPIRED"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    ORDER_STATE_VIOLATION = "ORDER_STATE_VIOLATION"


@dataclass(frozen=True)
class OrderError:
    kind: ErrorKind
    message: str
    details: dict = field(default_factory=dict)
    retryable: bool = False

    def to_dict(self) -> dict:
        return {
            "error": self.kind.value,
            "message": self.message,
            "details": self.details,
            "retryable": self.retryable,
        }


@dataclass(frozen=True)
class OrderOutcome:
    ok: bool
    order: dict | None = None
    error: OrderError | None = None
    replayed: bool = False

    @classmethod
    def success(cls, order: dict, replayed: bool = False) -> "OrderOutcome":
        return cls(ok=True, order=order, replayed=replayed)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, retryable: bool = False, **details) -> "OrderOutcome":
        return cls(ok=False, error=OrderError(kind, message, details, retryable))


@dataclass(frozen=True)
class CheckoutRequest:
    store_id: str
    payment_method: str
    delivery_type: str = "pickup"
    delivery_address: dict | None = None
    special_instructions: str | None = None
    idempotency_key: str | None = None

    def fingerprint_payload(self) -> dict:
        """The request body as seen by the idempotency check.

        Cart contents are not part of it, so a retry after a successful
        attempt cleared the cart still matches.
        """
        return {
            "store_id": str(self.store_id),
            "payment_method": self.payment_method,
            "delivery_type": self.delivery_type,
            "delivery_address": self.delivery_address,
            "special_instructions": self.special_instructions,
        }
