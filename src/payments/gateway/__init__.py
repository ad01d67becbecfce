"""Payment gateway adapters.

Gateways are plain objects built once at startup by ``build_gateway()`` and
handed to the checkout orchestrator. Tests construct ``FakeGateway``
directly and configure it per scenario.
"""

from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.port import ChargeResult, PaymentGateway, RefundResult


def build_gateway(adapter: str = "fake") -> PaymentGateway:
    """Instantiate the gateway adapter named in settings."""
    if adapter == "fake":
        return FakeGateway()
    raise ValueError(f"Unknown payment adapter: {adapter}")


__all__ = ["ChargeResult", "FakeGateway", "PaymentGateway", "RefundResult", "build_gateway"]
