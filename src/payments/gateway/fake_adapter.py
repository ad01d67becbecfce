"""Configurable fake payment gateway for development and testing.

This adapter simulates a real payment gateway without any external calls.
It can be configured at runtime to succeed, fail or stall, making it useful
for:
- Automated tests with predictable outcomes
- Exercising payment timeouts and compensation paths
- Development without real gateway credentials

The ``test_fail`` payment method always declines, like a test card number
in a sandbox account.
"""

import threading
import time
from decimal import Decimal
from uuid import uuid4

import structlog

from payments.gateway.port import ChargeResult, PaymentGateway, RefundResult

logger = structlog.get_logger(__name__)

SUPPORTED_METHODS = (
    "credit_card",
    "debit_card",
    "paypal",
    "apple_pay",
    "google_pay",
    "bank_transfer",
    "cash_on_delivery",
)
ALWAYS_FAIL_METHOD = "test_fail"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, delay_seconds: float = 0.0) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.delay_seconds: float = delay_seconds
        self.calls: list[dict] = []
        self._charges: dict[str, str] = {}
        self._lock = threading.Lock()

    def configure(
        self,
        should_succeed: bool,
        failure_reason: str = "Card declined",
        delay_seconds: float | None = None,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        if delay_seconds is not None:
            self.delay_seconds = delay_seconds

    def calls_for(self, method: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == method]

    def charge(
        self,
        amount: Decimal,
        method: str,
        order_id: str,
        user_id: str,
    ) -> ChargeResult:
        with self._lock:
            self.calls.append(
                {
                    "method": "charge",
                    "amount": amount,
                    "payment_method": method,
                    "order_id": order_id,
                    "user_id": user_id,
                }
            )

        if self.delay_seconds:
            time.sleep(self.delay_seconds)

        if method == ALWAYS_FAIL_METHOD:
            return ChargeResult(success=False, gateway_status="failed", failure_reason="Payment failed")
        if method not in SUPPORTED_METHODS:
            return ChargeResult(success=False, gateway_status="failed", failure_reason="Payment method not supported")
        if not self.should_succeed:
            return ChargeResult(success=False, gateway_status="failed", failure_reason=self.failure_reason)

        transaction_id = f"fake_txn_{uuid4().hex[:12]}"
        with self._lock:
            self._charges[str(order_id)] = transaction_id
        logger.debug("Fake charge succeeded", order_id=order_id, amount=str(amount), transaction_id=transaction_id)
        return ChargeResult(success=True, transaction_id=transaction_id, gateway_status="succeeded")

    def refund(
        self,
        order_id: str,
        amount: Decimal,
        reason: str,
        transaction_id: str | None = None,
    ) -> RefundResult:
        with self._lock:
            self.calls.append(
                {
                    "method": "refund",
                    "order_id": order_id,
                    "amount": amount,
                    "reason": reason,
                    "transaction_id": transaction_id,
                }
            )
            known_transaction = transaction_id or self._charges.get(str(order_id))

        if known_transaction is None:
            return RefundResult(success=False, gateway_status="failed", failure_reason="No charge found for order")
        if not self.should_succeed:
            return RefundResult(success=False, gateway_status="failed", failure_reason=self.failure_reason)

        return RefundResult(success=True, refund_id=f"fake_ref_{uuid4().hex[:12]}", gateway_status="succeeded")
