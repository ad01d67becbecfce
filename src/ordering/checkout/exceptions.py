"""Exceptions raised inside the checkout flow.

These never reach API callers directly: the orchestrator turns each of them
into a typed ``OrderError`` on the returned outcome.
"""


class CheckoutError(Exception):
    pass


class ConflictInProgress(CheckoutError):
    """Another attempt with the same idempotency key is still running."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"A request with idempotency key {key!r} is already in progress")


class IdempotencyKeyReused(CheckoutError):
    """The idempotency key was already used for a different request body."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Idempotency key {key!r} was already used for a different request")


class OrderNumberExhausted(CheckoutError):
    """No unique order number could be generated within the allowed attempts."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Could not generate a unique order number after {attempts} attempts")


class RefundFailed(CheckoutError):
    """The gateway refused to refund a charge taken during checkout."""

    def __init__(self, order_id: str, reason: str | None) -> None:
        self.order_id = order_id
        self.reason = reason
        super().__init__(f"Refund for order {order_id} failed: {reason}")
