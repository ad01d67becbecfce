"""Storefront database and maintenance CLI.

Usage:
    python src/manage.py setup-db                    # Create all tables
    python src/manage.py drop-db                     # Drop all tables
    python src/manage.py expire-reservations         # Run one expiry sweep
    python src/manage.py cleanup-reservations --days 7
"""

import argparse
import sys

from ordering.utils.logging import configure_logging
from shared.config import Settings
from shared.database import Database


def _ordering_domain(settings: Settings, domain=None):
    if domain is not None:
        return domain
    from bootstrap import init_domain

    return init_domain(settings)


def setup_database(settings: Settings, domain=None) -> None:
    from ordering.utils.db import setup_db

    database = Database(settings.database_url).init()
    try:
        print("Creating checkout schema...")
        database.create_schema()
        print("  schema ready.")
    finally:
        database.dispose()

    print("Creating ordering schema...")
    tables = setup_db(_ordering_domain(settings, domain))
    print(f"  ordering schema ready ({', '.join(tables)}).")


def drop_database(settings: Settings, domain=None) -> None:
    from ordering.utils.db import drop_db

    print("Dropping ordering schema...")
    drop_db(_ordering_domain(settings, domain))
    print("  ordering schema dropped.")

    database = Database(settings.database_url).init()
    try:
        print("Dropping checkout schema...")
        database.drop_schema()
        print("  schema dropped.")
    finally:
        database.dispose()



def _reservation_manager(settings: Settings):
    from inventory.ledger import InventoryLedger
    from inventory.reservations import ReservationManager

    database = Database(settings.database_url).init()
    manager = ReservationManager(
        database,
        InventoryLedger(database),
        default_ttl_minutes=settings.reservation_ttl_minutes,
        retention_days=settings.reservation_retention_days,
        sweep_batch_size=settings.sweep_batch_size,
    )
    return database, manager


def expire_reservations(settings: Settings) -> int:
    database, manager = _reservation_manager(settings)
    try:
        expired = manager.expire_stale()
    finally:
        database.dispose()
    print(f"Expired {expired} reservation(s).")
    return expired


def cleanup_reservations(settings: Settings, days: int | None = None) -> int:
    database, manager = _reservation_manager(settings)
    try:
        deleted = manager.cleanup(retention_days=days)
    finally:
        database.dispose()
    print(f"Deleted {deleted} closed reservation(s).")
    return deleted


def main():
    parser = argparse.ArgumentParser(description="Storefront database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("expire-reservations", help="Expire reservations past their TTL")
    cleanup_parser = subparsers.add_parser("cleanup-reservations", help="Delete old closed reservations")
    cleanup_parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Retention window in days (default: RESERVATION_RETENTION_DAYS)",
    )

    args = parser.parse_args()
    configure_logging()
    settings = Settings.from_env()

    if args.command == "setup-db":
        setup_database(settings)
    elif args.command == "drop-db":
        drop_database(settings)
    elif args.command == "expire-reservations":
        expire_reservations(settings)
    elif args.command == "cleanup-reservations":
        cleanup_reservations(settings, args.days)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
