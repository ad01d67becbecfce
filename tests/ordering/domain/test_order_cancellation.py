"""Tests for order cancellation and refund bookkeeping."""

import pytest
from ordering.order.events import OrderCancelled, OrderRefunded, OrderRefundFailed
from ordering.order.order import Order, OrderStatus, PaymentStatus
from protean.exceptions import ValidationError


def _make_order():
    return Order.create(
        order_number="ORD-TEST-000002",
        user_id="user-001",
        store_id="store-001",
        items_data=[{"product_id": "prod-shake", "product_name": "Vanilla Shake", "quantity": 1, "unit_price": "4.50"}],
        totals={"subtotal": "4.50", "tax": "0.38", "delivery_fee": "2.99", "discount": "0", "total": "7.87"},
        payment_method="credit_card",
    )


class TestCancelOrder:
    def test_cancel_pending_order(self):
        order = _make_order()
        order._events.clear()

        order.cancel("Changed my mind")

        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancellation_reason == "Changed my mind"
        assert order.cancelled_at is not None

    def test_cancel_raises_event(self):
        order = _make_order()
        order.confirm_payment("fake_txn_001")
        order._events.clear()

        order.cancel("Out of buns")

        assert len(order._events) == 1
        event = order._events[0]
        assert isinstance(event, OrderCancelled)
        assert event.previous_status == "confirmed"
        assert event.reason == "Out of buns"

    def test_cancel_ready_order(self):
        order = _make_order()
        order.confirm_payment("fake_txn_001")
        order.advance(OrderStatus.READY)
        order.cancel(None)
        assert order.status == OrderStatus.CANCELLED.value

    def test_cannot_cancel_completed(self):
        order = _make_order()
        order.confirm_payment("fake_txn_001")
        order.advance(OrderStatus.COMPLETED)
        with pytest.raises(ValidationError):
            order.cancel("Too late")

    def test_cannot_cancel_twice(self):
        order = _make_order()
        order.cancel("First")
        with pytest.raises(ValidationError) as exc:
            order.cancel("Second")
        assert exc.value.messages["status"] == ["Order is already cancelled"]


class TestRefunds:
    def test_record_refund(self):
        order = _make_order()
        order.confirm_payment("fake_txn_001")
        order._events.clear()

        order.record_refund("fake_ref_001")

        assert order.payment_status == PaymentStatus.REFUNDED.value
        assert order.refund_id == "fake_ref_001"
        assert isinstance(order._events[0], OrderRefunded)
        assert order._events[0].amount == "7.87"

    def test_refund_requires_paid_order(self):
        order = _make_order()
        with pytest.raises(ValidationError):
            order.record_refund("fake_ref_001")

    def test_refund_failure_keeps_payment_status(self):
        order = _make_order()
        order.confirm_payment("fake_txn_001")
        order._events.clear()

        order.record_refund_failure("Gateway unavailable")

        assert order.payment_status == PaymentStatus.PAID.value
        assert isinstance(order._events[0], OrderRefundFailed)
        assert order._events[0].reason == "Gateway unavailable"
