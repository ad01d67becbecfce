"""Cart collaborator port.

Checkout reads a priced snapshot of the user's per-store cart and clears it
once the order is placed. Cart editing itself lives behind this interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal

from shared.money import ZERO


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int
    unit_price: Decimal
    special_instructions: str | None = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class CartSnapshot:
    """A cart's lines with totals computed by the cart service."""

    user_id: str
    store_id: str
    lines: tuple[CartLine, ...] = field(default_factory=tuple)
    subtotal: Decimal = ZERO
    tax: Decimal = ZERO
    delivery_fee: Decimal = ZERO
    discount: Decimal = ZERO
    total: Decimal = ZERO

    @property
    def is_empty(self) -> bool:
        return not self.lines


class CartProvider(ABC):
    @abstractmethod
    def get_cart_with_totals(self, user_id: str, store_id: str) -> CartSnapshot:
        """Return the user's cart for ``store_id``; an empty snapshot if none."""
        ...

    @abstractmethod
    def clear(self, user_id: str, store_id: str) -> None:
        """Remove every line from the user's cart for ``store_id``."""
        ...
