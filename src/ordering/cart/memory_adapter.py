"""In-memory cart adapter with the storefront's pricing rules.

Pricing:
    tax           8.5% of the subtotal
    delivery fee  2.99 when the subtotal is under 25.00, otherwise free
    discount      none

Totals are rounded half-up to cents.
"""

import threading
from decimal import Decimal

from ordering.cart.port import CartLine, CartProvider, CartSnapshot
from shared.money import ZERO, to_money

TAX_RATE = Decimal("0.085")
DELIVERY_FEE = Decimal("2.99")
FREE_DELIVERY_THRESHOLD = Decimal("25.00")


def price_cart(user_id: str, store_id: str, lines) -> CartSnapshot:
    lines = tuple(lines)
    subtotal = to_money(sum((line.line_total for line in lines), ZERO))
    tax = to_money(subtotal * TAX_RATE)
    delivery_fee = DELIVERY_FEE if lines and subtotal < FREE_DELIVERY_THRESHOLD else ZERO
    discount = ZERO
    return CartSnapshot(
        user_id=str(user_id),
        store_id=str(store_id),
        lines=lines,
        subtotal=subtotal,
        tax=tax,
        delivery_fee=delivery_fee,
        discount=discount,
        total=to_money(subtotal + tax + delivery_fee - discount),
    )


class InMemoryCart(CartProvider):
    def __init__(self) -> None:
        self._carts: dict[tuple[str, str], dict[str, CartLine]] = {}
        self._lock = threading.Lock()

    def add_item(
        self,
        user_id: str,
        store_id: str,
        product_id: str,
        quantity: int,
        unit_price,
        special_instructions: str | None = None,
    ) -> None:
        """Add ``quantity`` of a product, merging with an existing line."""
        if quantity < 1:
            raise ValueError("quantity must be at least 1")
        key = (str(user_id), str(store_id))
        with self._lock:
            cart = self._carts.setdefault(key, {})
            existing = cart.get(str(product_id))
            if existing is not None:
                quantity += existing.quantity
            cart[str(product_id)] = CartLine(
                product_id=str(product_id),
                quantity=quantity,
                unit_price=to_money(unit_price),
                special_instructions=special_instructions,
            )

    def get_cart_with_totals(self, user_id: str, store_id: str) -> CartSnapshot:
        with self._lock:
            lines = list(self._carts.get((str(user_id), str(store_id)), {}).values())
        return price_cart(user_id, store_id, lines)

    def clear(self, user_id: str, store_id: str) -> None:
        with self._lock:
            self._carts.pop((str(user_id), str(store_id)), None)
