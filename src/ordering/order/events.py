"""Domain events for the Order aggregate.

All events are versioned, immutable facts representing state changes.
Monetary amounts are carried as decimal strings.
"""

from protean.fields import DateTime, Identifier, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """An order was persisted for a checkout attempt, awaiting payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    user_id = Identifier(required=True)
    store_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of item dicts
    total = String(required=True)
    payment_method = String(required=True)
    delivery_type = String(required=True)
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderConfirmed:
    """Payment was captured and the order is confirmed."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    payment_transaction_id = String(required=True)
    amount = String(required=True)
    confirmed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderPaymentFailed:
    """Payment for the order failed; the order was cancelled."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    reason = String(required=True)
    failed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """The order moved forward through its fulfillment lifecycle."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled before completion."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderRefunded:
    """A captured payment was refunded through the gateway."""

    __version__ = 1

    order_id = Identifier(required=True)
    refund_id = String(required=True)
    amount = String(required=True)
    refunded_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderRefundFailed:
    """The gateway refused to refund a captured payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    amount = String(required=True)
    reason = String(required=True)
    failed_at = DateTime(required=True)
