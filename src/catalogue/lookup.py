"""Product lookup port used to snapshot product names onto order items.

The catalogue itself is owned elsewhere; checkout only needs a display
name per product id. Lookups are best-effort: callers fall back to a
placeholder name when the lookup fails or is too slow.
"""

import time
from abc import ABC, abstractmethod


def placeholder_name(product_id: str) -> str:
    return f"Product {product_id}"


class CatalogLookup(ABC):
    @abstractmethod
    def product_name(self, product_id: str) -> str | None:
        """Return the display name of ``product_id``, or None if unknown."""
        ...


class StaticCatalog(CatalogLookup):
    """In-process catalogue backed by a dict of product id to name."""

    def __init__(self, names: dict[str, str] | None = None, delay_seconds: float = 0.0) -> None:
        self.names = dict(names or {})
        self.delay_seconds = delay_seconds

    def register(self, product_id: str, name: str) -> None:
        self.names[str(product_id)] = name

    def product_name(self, product_id: str) -> str | None:
        if self.delay_seconds:
            time.sleep(self.delay_seconds)
        return self.names.get(str(product_id))
