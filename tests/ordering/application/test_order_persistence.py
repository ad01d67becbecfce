"""Orders are stored in the relational database behind the ordering domain.

Covers:
- Checkout writes the order and its items as table rows
- The order number is backed by a database UNIQUE constraint
- A replay, lookup and cancellation still work after the domain's storage
  providers are rebuilt from configuration, as after a restart
"""

from ordering.checkout.outcome import CheckoutRequest
from protean import current_domain
from sqlalchemy import create_engine, inspect, text

USER = "user-001"
STORE = "store-001"


def _checkout(orchestrator, cart, key="key-1"):
    cart.add_item(USER, STORE, "prod-burger", 2, "8.99")
    cart.add_item(USER, STORE, "prod-shake", 1, "4.50")
    return orchestrator.checkout(
        USER, CheckoutRequest(store_id=STORE, payment_method="credit_card", idempotency_key=key)
    )


def _query(sql, **params):
    engine = create_engine(current_domain.config["databases"]["default"]["database_uri"])
    try:
        with engine.connect() as conn:
            return conn.execute(text(sql), params).all()
    finally:
        engine.dispose()


class TestOrderStorage:
    def test_checkout_writes_order_rows(self, orchestrator, cart, stocked_store):
        order = _checkout(orchestrator, cart).order

        rows = _query(
            'SELECT status, payment_status FROM "order" WHERE order_number = :number',
            number=order["order_number"],
        )

        assert [tuple(row) for row in rows] == [("confirmed", "paid")]
        assert _query("SELECT COUNT(*) FROM order_item")[0][0] == 2

    def test_order_survives_rebuilt_providers(self, orchestrator, cart, ledger, stocked_store):
        order = _checkout(orchestrator, cart).order

        current_domain.providers._initialize()

        replay = orchestrator.checkout(
            USER, CheckoutRequest(store_id=STORE, payment_method="credit_card", idempotency_key="key-1")
        )
        assert replay.replayed is True
        assert replay.order["id"] == order["id"]

        fetched = orchestrator.get_order(order["id"], USER)
        assert fetched.ok is True
        assert fetched.order["order_number"] == order["order_number"]
        assert len(fetched.order["items"]) == 2

        cancelled = orchestrator.cancel(order["id"], USER)
        assert cancelled.ok is True
        assert ledger.get(STORE, "prod-burger").reserved_quantity == 0
        assert ledger.get(STORE, "prod-shake").reserved_quantity == 0

    def test_order_number_is_unique_in_the_database(self):
        engine = create_engine(current_domain.config["databases"]["default"]["database_uri"])
        try:
            inspector = inspect(engine)
            unique_columns = [c["column_names"] for c in inspector.get_unique_constraints("order")]
            unique_columns += [i["column_names"] for i in inspector.get_indexes("order") if i["unique"]]
        finally:
            engine.dispose()

        assert ["order_number"] in unique_columns
