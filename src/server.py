"""Background reservation sweeper.

Runs the reservation expiry sweep every ``SWEEP_INTERVAL_SECONDS`` and the
retention cleanup once an hour until interrupted. Storage work runs in a
worker thread so the loop stays responsive to cancellation.

Usage:
    python src/server.py            # Run until Ctrl-C
    python src/server.py --once     # Run a single sweep and exit
"""

import argparse
import asyncio
import time

import structlog

from inventory.ledger import InventoryLedger
from inventory.reservations import ReservationManager
from ordering.utils.logging import configure_logging
from shared.config import Settings
from shared.database import Database

logger = structlog.get_logger(__name__)

CLEANUP_INTERVAL_SECONDS = 3600


class ReservationSweeper:
    def __init__(self, reservations: ReservationManager, interval_seconds: float) -> None:
        self.reservations = reservations
        self.interval_seconds = interval_seconds
        self._last_cleanup: float | None = None

    async def sweep_once(self) -> int:
        expired = await asyncio.to_thread(self.reservations.expire_stale)
        now = time.monotonic()
        if self._last_cleanup is None or now - self._last_cleanup >= CLEANUP_INTERVAL_SECONDS:
            await asyncio.to_thread(self.reservations.cleanup)
            self._last_cleanup = now
        return expired

    async def run(self) -> None:
        logger.info("Reservation sweeper started", interval_seconds=self.interval_seconds)
        while True:
            try:
                await self.sweep_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Reservation sweep failed; retrying next interval")
            await asyncio.sleep(self.interval_seconds)


async def run(settings: Settings, once: bool = False) -> None:
    database = Database(settings.database_url).init()
    reservations = ReservationManager(
        database,
        InventoryLedger(database),
        default_ttl_minutes=settings.reservation_ttl_minutes,
        retention_days=settings.reservation_retention_days,
        sweep_batch_size=settings.sweep_batch_size,
    )
    sweeper = ReservationSweeper(reservations, settings.sweep_interval_seconds)
    try:
        if once:
            await sweeper.sweep_once()
        else:
            await sweeper.run()
    finally:
        database.dispose()


def main():
    parser = argparse.ArgumentParser(description="Storefront reservation sweeper")
    parser.add_argument("--once", action="store_true", help="Run a single sweep and exit")
    args = parser.parse_args()

    configure_logging()
    try:
        asyncio.run(run(Settings.from_env(), once=args.once))
    except KeyboardInterrupt:
        logger.info("Reservation sweeper stopped")


if __name__ == "__main__":
    main()
