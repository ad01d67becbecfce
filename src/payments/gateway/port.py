"""Payment gateway port (abstract interface).

Defines the contract the checkout orchestrator charges and refunds through.
Adapters are constructed and injected explicitly; the orchestrator never
looks a gateway up globally.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class ChargeResult:
    """Result of a payment charge attempt."""

    success: bool
    transaction_id: str | None = None
    gateway_status: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund attempt."""

    success: bool
    refund_id: str | None = None
    gateway_status: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def charge(
        self,
        amount: Decimal,
        method: str,
        order_id: str,
        user_id: str,
    ) -> ChargeResult:
        """Charge ``amount`` for ``order_id`` with the given payment method."""
        ...

    @abstractmethod
    def refund(
        self,
        order_id: str,
        amount: Decimal,
        reason: str,
        transaction_id: str | None = None,
    ) -> RefundResult:
        """Refund a previous charge for ``order_id``."""
        ...
