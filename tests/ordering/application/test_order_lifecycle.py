"""Application tests for cancellation, store status updates and order queries."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from inventory.reservations import ReservationStatus
from ordering.checkout.outcome import CheckoutRequest, ErrorKind

USER = "user-001"
STORE = "store-001"


def _place_order(orchestrator, cart, key="key-1", user=USER, quantity=2):
    cart.add_item(user, STORE, "prod-burger", quantity, "8.99")
    outcome = orchestrator.checkout(
        user, CheckoutRequest(store_id=STORE, payment_method="credit_card", idempotency_key=key)
    )
    assert outcome.ok, outcome.error
    return outcome.order


class TestCancelOrder:
    def test_cancel_refunds_and_releases(self, orchestrator, cart, gateway, ledger, reservations, stocked_store):
        order = _place_order(orchestrator, cart)

        outcome = orchestrator.cancel(order["id"], USER, "Changed my mind")

        assert outcome.ok is True
        assert outcome.order["status"] == "cancelled"
        assert outcome.order["payment_status"] == "refunded"
        assert outcome.order["refund_id"].startswith("fake_ref_")
        assert outcome.order["cancellation_reason"] == "Changed my mind"
        assert ledger.get(STORE, "prod-burger").reserved_quantity == 0
        assert {r.status for r in reservations.list_for_order(order["id"])} == {ReservationStatus.RELEASED.value}
        assert gateway.calls_for("refund")[0]["amount"] == Decimal(order["total"])

    def test_cancel_after_retention_cleanup_releases_stock(
        self, orchestrator, cart, ledger, reservations, stocked_store
    ):
        order = _place_order(orchestrator, cart)
        reservations.cleanup(now=datetime.now(UTC) + timedelta(days=8))

        outcome = orchestrator.cancel(order["id"], USER)

        assert outcome.ok is True
        assert ledger.get(STORE, "prod-burger").reserved_quantity == 0

    def test_failed_refund_keeps_order_cancelled(self, orchestrator, cart, gateway, stocked_store):
        order = _place_order(orchestrator, cart)
        gateway.configure(should_succeed=False, failure_reason="Refund window closed")

        outcome = orchestrator.cancel(order["id"], USER)

        assert outcome.ok is True
        assert outcome.order["status"] == "cancelled"
        assert outcome.order["payment_status"] == "paid"

    def test_unknown_order(self, orchestrator):
        outcome = orchestrator.cancel("missing-order", USER)
        assert outcome.error.kind == ErrorKind.ORDER_NOT_FOUND

    def test_other_users_order(self, orchestrator, cart, stocked_store):
        order = _place_order(orchestrator, cart)

        outcome = orchestrator.cancel(order["id"], "user-999")

        assert outcome.error.kind == ErrorKind.FORBIDDEN
        assert orchestrator.get_order(order["id"]).order["status"] == "confirmed"

    def test_cancel_twice(self, orchestrator, cart, gateway, stocked_store):
        order = _place_order(orchestrator, cart)
        orchestrator.cancel(order["id"], USER)

        outcome = orchestrator.cancel(order["id"], USER)

        assert outcome.error.kind == ErrorKind.ORDER_STATE_VIOLATION
        assert len(gateway.calls_for("refund")) == 1

    def test_completed_order_cannot_be_cancelled(self, orchestrator, cart, ledger, stocked_store):
        order = _place_order(orchestrator, cart)
        orchestrator.update_status(order["id"], "completed")

        outcome = orchestrator.cancel(order["id"], USER)

        assert outcome.error.kind == ErrorKind.ORDER_STATE_VIOLATION
        assert ledger.get(STORE, "prod-burger").reserved_quantity == 2


class TestUpdateStatus:
    def test_advance_through_fulfillment(self, orchestrator, cart, stocked_store):
        order = _place_order(orchestrator, cart)

        for status in ("preparing", "ready", "completed"):
            outcome = orchestrator.update_status(order["id"], status)
            assert outcome.ok is True
            assert outcome.order["status"] == status

        assert outcome.order["actual_pickup_time"] is not None

    def test_backwards_move_is_rejected(self, orchestrator, cart, stocked_store):
        order = _place_order(orchestrator, cart)
        orchestrator.update_status(order["id"], "ready")

        outcome = orchestrator.update_status(order["id"], "preparing")

        assert outcome.error.kind == ErrorKind.ORDER_STATE_VIOLATION

    def test_cancelled_order_cannot_advance(self, orchestrator, cart, stocked_store):
        order = _place_order(orchestrator, cart)
        orchestrator.cancel(order["id"], USER)

        outcome = orchestrator.update_status(order["id"], "preparing")

        assert outcome.error.kind == ErrorKind.ORDER_STATE_VIOLATION

    def test_cancel_is_not_a_status_update(self, orchestrator, cart, stocked_store):
        order = _place_order(orchestrator, cart)

        outcome = orchestrator.update_status(order["id"], "cancelled")

        assert outcome.error.kind == ErrorKind.ORDER_STATE_VIOLATION

    def test_unknown_order(self, orchestrator):
        outcome = orchestrator.update_status("missing-order", "preparing")
        assert outcome.error.kind == ErrorKind.ORDER_NOT_FOUND


class TestQueries:
    def test_get_order_for_owner(self, orchestrator, cart, stocked_store):
        order = _place_order(orchestrator, cart)

        outcome = orchestrator.get_order(order["id"], USER)

        assert outcome.ok is True
        assert outcome.order["order_number"] == order["order_number"]

    def test_get_order_for_other_user(self, orchestrator, cart, stocked_store):
        order = _place_order(orchestrator, cart)
        assert orchestrator.get_order(order["id"], "user-999").error.kind == ErrorKind.FORBIDDEN

    def test_get_missing_order(self, orchestrator):
        assert orchestrator.get_order("missing-order").error.kind == ErrorKind.ORDER_NOT_FOUND

    def test_list_orders_is_scoped_and_paginated(self, orchestrator, cart, stocked_store):
        for index in range(3):
            _place_order(orchestrator, cart, key=f"key-{index}", quantity=1)
        _place_order(orchestrator, cart, key="key-other", user="user-002", quantity=1)

        page = orchestrator.list_orders(USER, limit=2, offset=0)

        assert page["total"] == 3
        assert len(page["items"]) == 2
        assert all(item["user_id"] == USER for item in page["items"])
        assert len(orchestrator.list_orders(USER, limit=2, offset=2)["items"]) == 1

    def test_list_orders_by_status(self, orchestrator, cart, stocked_store):
        first = _place_order(orchestrator, cart, key="key-1", quantity=1)
        _place_order(orchestrator, cart, key="key-2", quantity=1)
        orchestrator.cancel(first["id"], USER)

        page = orchestrator.list_orders(USER, status="cancelled")

        assert page["total"] == 1
        assert page["items"][0]["id"] == first["id"]

    def test_order_summary(self, orchestrator, cart, gateway, stocked_store):
        _place_order(orchestrator, cart, key="key-1", quantity=1)
        _place_order(orchestrator, cart, key="key-2", quantity=1)
        gateway.configure(should_succeed=False)
        cart.add_item(USER, STORE, "prod-fries", 1, "3.49")
        orchestrator.checkout(USER, CheckoutRequest(store_id=STORE, payment_method="credit_card", idempotency_key="k3"))

        summary = orchestrator.order_summary(STORE)

        assert summary["total_orders"] == 3
        assert summary["by_status"]["confirmed"] == 2
        assert summary["by_status"]["cancelled"] == 1
        assert summary["paid_orders"] == 2
        # One burger: 8.99 + 0.76 tax + 2.99 delivery
        assert summary["revenue"] == "25.48"
        assert summary["average_order_value"] == "12.74"

    def test_empty_summary(self, orchestrator):
        summary = orchestrator.order_summary()
        assert summary["total_orders"] == 0
        assert summary["revenue"] == "0.00"
