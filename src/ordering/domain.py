"""Ordering bounded context: storefront orders and checkout.

Holds the Order aggregate, its events and lifecycle command, and the
checkout orchestrator that turns a user's per-store cart into a paid order.
"""

from protean.domain import Domain

ordering = Domain(name="ordering")
