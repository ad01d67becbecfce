"""Plain-dict views of orders for API responses and idempotent replays.

Payloads are JSON-safe: identifiers and amounts are strings, timestamps
ISO-8601.
"""


def _iso(value):
    return value.isoformat() if value else None


def order_item_payload(item) -> dict:
    return {
        "id": str(item.id),
        "product_id": str(item.product_id),
        "product_name": item.product_name,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "total_price": item.total_price,
        "special_instructions": item.special_instructions,
        "item_status": item.item_status,
    }


def order_payload(order) -> dict:
    address = order.delivery_address
    totals = order.totals
    return {
        "id": str(order.id),
        "order_number": order.order_number,
        "user_id": str(order.user_id),
        "store_id": str(order.store_id),
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "payment_transaction_id": order.payment_transaction_id,
        "refund_id": order.refund_id,
        "subtotal": totals.subtotal if totals else "0.00",
        "tax": totals.tax if totals else "0.00",
        "delivery_fee": totals.delivery_fee if totals else "0.00",
        "discount": totals.discount if totals else "0.00",
        "total": totals.total if totals else "0.00",
        "delivery_type": order.delivery_type,
        "delivery_address": (
            {
                "title": address.title,
                "address_line1": address.address_line1,
                "address_line2": address.address_line2,
                "city": address.city,
                "state": address.state,
                "zip_code": address.zip_code,
                "country": address.country,
                "latitude": address.latitude,
                "longitude": address.longitude,
            }
            if address
            else None
        ),
        "special_instructions": order.special_instructions,
        "estimated_pickup_time": _iso(order.estimated_pickup_time),
        "actual_pickup_time": _iso(order.actual_pickup_time),
        "cancellation_reason": order.cancellation_reason,
        "items": [order_item_payload(item) for item in order.items],
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
    }
