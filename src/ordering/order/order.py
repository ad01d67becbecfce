"""Order aggregate: a placed storefront order and its lifecycle.

Orders are created only by the checkout orchestrator, in ``pending`` state
with payment ``pending``. Payment confirmation moves them to ``confirmed``;
a payment failure cancels them. After that the store advances them through
fulfillment, and the customer may cancel at any point before completion.

State Machine:
    PENDING → CONFIRMED → PREPARING → READY → COMPLETED
    CANCELLED (from any state except COMPLETED)

Monetary amounts are stored as cent-quantized decimal strings and exposed
as ``Decimal`` through ``total_amount``.
"""

import json
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.order.events import (
    OrderCancelled,
    OrderConfirmed,
    OrderPaymentFailed,
    OrderPlaced,
    OrderRefunded,
    OrderRefundFailed,
    OrderStatusChanged,
)
from shared.money import money_str, to_money


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class DeliveryType(Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


# The store may skip fulfillment steps forward but never move back
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {
        OrderStatus.PREPARING,
        OrderStatus.READY,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.PREPARING: {OrderStatus.READY, OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

_TOTAL_FIELDS = ("subtotal", "tax", "delivery_fee", "discount", "total")


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class DeliveryAddress:
    """Where a delivery order is taken, captured at checkout time."""

    title = String(max_length=100)
    address_line1 = String(required=True, max_length=255)
    address_line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    zip_code = String(max_length=20)
    country = String(max_length=100)
    latitude = Float()
    longitude = Float()


@ordering.value_object(part_of="Order")
class OrderTotals:
    """Amounts locked at checkout, as decimal strings."""

    subtotal = String(max_length=20, default="0.00")
    tax = String(max_length=20, default="0.00")
    delivery_fee = String(max_length=20, default="0.00")
    discount = String(max_length=20, default="0.00")
    total = String(max_length=20, default="0.00")


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A line of the order. Immutable except for the status flag copied from the order."""

    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = String(required=True, max_length=20)
    total_price = String(required=True, max_length=20)
    special_instructions = Text()
    item_status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=40, unique=True)
    user_id = Identifier(required=True)
    store_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_method = String(required=True, max_length=50)
    payment_transaction_id = String(max_length=255)
    refund_id = String(max_length=255)
    items = HasMany(OrderItem)
    totals = ValueObject(OrderTotals)
    delivery_type = String(choices=DeliveryType, default=DeliveryType.PICKUP.value)
    delivery_address = ValueObject(DeliveryAddress)
    special_instructions = Text()
    estimated_pickup_time = DateTime()
    actual_pickup_time = DateTime()
    cancellation_reason = String(max_length=500)
    idempotency_key = String(max_length=255)
    created_at = DateTime()
    updated_at = DateTime()
    confirmed_at = DateTime()
    cancelled_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_number: str,
        user_id: str,
        store_id: str,
        items_data: list[dict],
        totals: dict,
        payment_method: str,
        delivery_type: str = DeliveryType.PICKUP.value,
        delivery_address: dict | None = None,
        special_instructions: str | None = None,
        idempotency_key: str | None = None,
    ):
        """Create a pending order from a priced cart.

        Args:
            items_data: List of dicts with product_id, product_name, quantity,
                        unit_price and optional special_instructions.
            totals: Dict with subtotal, tax, delivery_fee, discount, total.
            delivery_address: Dict matching ``DeliveryAddress``; required for
                              delivery orders.
        """
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})
        if delivery_type == DeliveryType.DELIVERY.value and not delivery_address:
            raise ValidationError({"delivery_address": ["Delivery orders need a delivery address"]})

        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            user_id=user_id,
            store_id=store_id,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=payment_method,
            totals=OrderTotals(**{name: money_str(totals.get(name)) for name in _TOTAL_FIELDS}),
            delivery_type=delivery_type,
            delivery_address=DeliveryAddress(**delivery_address) if delivery_address else None,
            special_instructions=special_instructions,
            idempotency_key=idempotency_key,
            created_at=now,
            updated_at=now,
        )

        serialized_items = []
        for item_data in items_data:
            unit_price = to_money(item_data["unit_price"])
            quantity = int(item_data["quantity"])
            item = OrderItem(
                product_id=str(item_data["product_id"]),
                product_name=item_data["product_name"],
                quantity=quantity,
                unit_price=money_str(unit_price),
                total_price=money_str(unit_price * quantity),
                special_instructions=item_data.get("special_instructions"),
            )
            order.add_items(item)
            serialized_items.append(
                {
                    "product_id": item.product_id,
                    "product_name": item.product_name,
                    "quantity": item.quantity,
                    "unit_price": item.unit_price,
                    "total_price": item.total_price,
                }
            )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                user_id=str(user_id),
                store_id=str(store_id),
                items=json.dumps(serialized_items),
                total=order.totals.total,
                payment_method=payment_method,
                delivery_type=delivery_type,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def total_amount(self) -> Decimal:
        return to_money(self.totals.total if self.totals else None)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID.value

    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        """Validate that the current state allows transition to target."""
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _set_status(self, target_status: OrderStatus, now: datetime) -> None:
        self.status = target_status.value
        for item in self.items:
            item.item_status = target_status.value
        self.updated_at = now

    # -------------------------------------------------------------------
    # Payment outcome
    # -------------------------------------------------------------------
    def confirm_payment(self, transaction_id: str) -> None:
        """Record a captured payment and confirm the order."""
        self._assert_can_transition(OrderStatus.CONFIRMED)
        if self.payment_status != PaymentStatus.PENDING.value:
            raise ValidationError({"payment_status": [f"Payment already {self.payment_status}"]})

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.PAID.value
        self.payment_transaction_id = transaction_id
        self.confirmed_at = now
        self._set_status(OrderStatus.CONFIRMED, now)

        self.raise_(
            OrderConfirmed(
                order_id=str(self.id),
                order_number=self.order_number,
                payment_transaction_id=transaction_id,
                amount=self.totals.total,
                confirmed_at=now,
            )
        )

    def record_payment_failure(self, reason: str) -> None:
        """Mark payment failed and cancel the order."""
        if OrderStatus(self.status) != OrderStatus.PENDING:
            raise ValidationError({"status": ["Payment failure can only be recorded on a pending order"]})

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.FAILED.value
        self.cancellation_reason = f"Payment failed: {reason}"[:500]
        self.cancelled_at = now
        self._set_status(OrderStatus.CANCELLED, now)

        self.raise_(
            OrderPaymentFailed(
                order_id=str(self.id),
                order_number=self.order_number,
                reason=reason,
                failed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Fulfillment lifecycle
    # -------------------------------------------------------------------
    def advance(
        self,
        target_status: OrderStatus,
        estimated_pickup_time: datetime | None = None,
        actual_pickup_time: datetime | None = None,
    ) -> None:
        """Move the order forward through fulfillment.

        Cancellation is not a fulfillment step and goes through ``cancel``.
        """
        if target_status == OrderStatus.CANCELLED:
            raise ValidationError({"status": ["Use cancel() to cancel an order"]})
        if OrderStatus(self.status) == OrderStatus.PENDING:
            raise ValidationError({"status": ["Order cannot advance before payment is confirmed"]})
        self._assert_can_transition(target_status)

        now = datetime.now(UTC)
        previous = self.status
        if estimated_pickup_time is not None:
            self.estimated_pickup_time = estimated_pickup_time
        if actual_pickup_time is not None:
            self.actual_pickup_time = actual_pickup_time
        elif target_status == OrderStatus.COMPLETED and self.delivery_type == DeliveryType.PICKUP.value:
            self.actual_pickup_time = now
        self._set_status(target_status, now)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=previous,
                new_status=target_status.value,
                changed_at=now,
            )
        )

    def cancel(self, reason: str | None = None) -> None:
        """Cancel the order. Completed and already-cancelled orders are rejected."""
        current = OrderStatus(self.status)
        if current == OrderStatus.COMPLETED:
            raise ValidationError({"status": ["Completed orders cannot be cancelled"]})
        if current == OrderStatus.CANCELLED:
            raise ValidationError({"status": ["Order is already cancelled"]})

        now = datetime.now(UTC)
        self.cancellation_reason = reason
        self.cancelled_at = now
        self._set_status(OrderStatus.CANCELLED, now)

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=current.value,
                reason=reason,
                cancelled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Refunds
    # -------------------------------------------------------------------
    def record_refund(self, refund_id: str) -> None:
        if self.payment_status != PaymentStatus.PAID.value:
            raise ValidationError({"payment_status": ["Only paid orders can be refunded"]})

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.REFUNDED.value
        self.refund_id = refund_id
        self.updated_at = now

        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                refund_id=refund_id,
                amount=self.totals.total,
                refunded_at=now,
            )
        )

    def record_refund_failure(self, reason: str) -> None:
        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            OrderRefundFailed(
                order_id=str(self.id),
                amount=self.totals.total,
                reason=reason,
                failed_at=now,
            )
        )

