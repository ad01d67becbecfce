"""HTTP tests for checkout and order endpoints."""

HEADERS = {"X-User-Id": "user-001"}


def _fill_cart(components, user_id="user-001", product_id="prod-burger", quantity=2):
    components.cart.add_item(user_id, "store-001", product_id, quantity, "8.99")


def _place(client, components, key="key-1"):
    _fill_cart(components)
    response = client.post(
        "/orders",
        json={"store_id": "store-001", "payment_method": "credit_card"},
        headers={**HEADERS, "Idempotency-Key": key},
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateOrder:
    def test_checkout_returns_201(self, client, components):
        order = _place(client, components)

        assert order["status"] == "confirmed"
        assert order["payment_status"] == "paid"
        assert order["items"][0]["product_name"] == "Classic Burger"

    def test_retry_with_same_key_replays(self, client, components):
        first = _place(client, components)

        response = client.post(
            "/orders",
            json={"store_id": "store-001", "payment_method": "credit_card"},
            headers={**HEADERS, "Idempotency-Key": "key-1"},
        )

        assert response.status_code == 200
        assert response.headers["Idempotent-Replayed"] == "true"
        assert response.json()["id"] == first["id"]
        assert len(components.gateway.calls_for("charge")) == 1

    def test_key_reused_with_different_body(self, client, components):
        _place(client, components)

        response = client.post(
            "/orders",
            json={"store_id": "store-001", "payment_method": "paypal"},
            headers={**HEADERS, "Idempotency-Key": "key-1"},
        )

        assert response.status_code == 422
        assert response.json()["error"] == "IDEMPOTENCY_KEY_REUSED"

    def test_empty_cart(self, client):
        response = client.post("/orders", json={"store_id": "store-001", "payment_method": "credit_card"}, headers=HEADERS)

        assert response.status_code == 400
        assert response.json()["error"] == "CART_VALIDATION_FAILED"

    def test_insufficient_stock(self, client, components):
        _fill_cart(components, product_id="prod-shake", quantity=6)

        response = client.post("/orders", json={"store_id": "store-001", "payment_method": "credit_card"}, headers=HEADERS)

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "INSUFFICIENT_STOCK"
        assert body["details"] == {"product_id": "prod-shake", "available": 5, "requested": 6}

    def test_payment_declined(self, client, components):
        components.gateway.configure(should_succeed=False, failure_reason="Card declined")
        _fill_cart(components)

        response = client.post("/orders", json={"store_id": "store-001", "payment_method": "credit_card"}, headers=HEADERS)

        assert response.status_code == 402
        assert response.json()["details"]["reason"] == "Card declined"
        assert components.ledger.get("store-001", "prod-burger").reserved_quantity == 0

    def test_user_header_is_required(self, client):
        response = client.post("/orders", json={"store_id": "store-001", "payment_method": "credit_card"})
        assert response.status_code == 422

    def test_unknown_delivery_type_is_rejected(self, client):
        response = client.post(
            "/orders",
            json={"store_id": "store-001", "payment_method": "credit_card", "delivery_type": "drone"},
            headers=HEADERS,
        )
        assert response.status_code == 422


class TestReadOrders:
    def test_get_own_order(self, client, components):
        order = _place(client, components)

        response = client.get(f"/orders/{order['id']}", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["order_number"] == order["order_number"]

    def test_get_other_users_order(self, client, components):
        order = _place(client, components)
        response = client.get(f"/orders/{order['id']}", headers={"X-User-Id": "user-999"})
        assert response.status_code == 403

    def test_get_missing_order(self, client):
        response = client.get("/orders/missing-order", headers=HEADERS)
        assert response.status_code == 404

    def test_list_orders(self, client, components):
        _place(client, components, key="key-1")
        _place(client, components, key="key-2")

        response = client.get("/orders", params={"limit": 1}, headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert len(body["items"]) == 1

    def test_summary(self, client, components):
        _place(client, components)

        response = client.get("/orders/summary", params={"store_id": "store-001"})

        assert response.status_code == 200
        assert response.json()["paid_orders"] == 1


class TestOrderLifecycle:
    def test_store_advances_order(self, client, components):
        order = _place(client, components)

        response = client.put(f"/orders/{order['id']}/status", json={"status": "preparing"})

        assert response.status_code == 200
        assert response.json()["status"] == "preparing"

    def test_invalid_transition(self, client, components):
        order = _place(client, components)
        client.put(f"/orders/{order['id']}/status", json={"status": "completed"})

        response = client.put(f"/orders/{order['id']}/status", json={"status": "ready"})

        assert response.status_code == 409
        assert response.json()["error"] == "ORDER_STATE_VIOLATION"

    def test_cancelled_is_not_an_accepted_status(self, client, components):
        order = _place(client, components)
        response = client.put(f"/orders/{order['id']}/status", json={"status": "cancelled"})
        assert response.status_code == 422

    def test_customer_cancels(self, client, components):
        order = _place(client, components)

        response = client.post(f"/orders/{order['id']}/cancel", json={"reason": "Wrong store"}, headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "cancelled"
        assert body["payment_status"] == "refunded"
        assert components.ledger.get("store-001", "prod-burger").reserved_quantity == 0

    def test_cancel_without_body(self, client, components):
        order = _place(client, components)
        response = client.post(f"/orders/{order['id']}/cancel", headers=HEADERS)
        assert response.status_code == 200

    def test_cancel_other_users_order(self, client, components):
        order = _place(client, components)
        response = client.post(f"/orders/{order['id']}/cancel", headers={"X-User-Id": "user-999"})
        assert response.status_code == 403


class TestServiceEndpoints:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "domain": "ordering"}

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-Id": "req-123"})
        assert response.headers["X-Request-Id"] == "req-123"
