"""Checkout saga: a stack of compensating actions.

Every forward step of a checkout attempt that leaves a durable effect
records how to undo it. On failure the recorded compensations run in
reverse order. A compensation that raises is logged and the remaining
ones still run; the reservation expiry sweep frees anything left behind.

    saga = CheckoutSaga(attempt_id)
    reservation = reservations.reserve(...)
    saga.record("release_reservation", lambda reason: reservations.release(reservation.id))
    ...
    saga.compensate("payment declined")
"""

from collections.abc import Callable
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CompensationStep:
    name: str
    action: Callable[[str], None]


class CheckoutSaga:
    def __init__(self, attempt_id: str) -> None:
        self.attempt_id = attempt_id
        self._steps: list[CompensationStep] = []
        self.compensated = False

    def record(self, name: str, action: Callable[[str], None]) -> None:
        """Register the undo for a completed forward step."""
        self._steps.append(CompensationStep(name, action))

    def discard(self, name: str) -> None:
        """Forget compensations named ``name``; their effect is now permanent or undone."""
        self._steps = [step for step in self._steps if step.name != name]

    @property
    def pending(self) -> list[str]:
        return [step.name for step in self._steps]

    def compensate(self, reason: str) -> list[str]:
        """Run recorded compensations newest-first. Returns the names that failed."""
        failed = []
        while self._steps:
            step = self._steps.pop()
            try:
                step.action(reason)
                logger.info("Compensation applied", attempt_id=self.attempt_id, step=step.name)
            except Exception:
                logger.exception("Compensation failed", attempt_id=self.attempt_id, step=step.name, reason=reason)
                failed.append(step.name)
        self.compensated = True
        return failed
