"""Composition root: builds the service's components from settings.

Every long-lived object (engine, gateway, orchestrator thread pool) is
created here and torn down by ``Components.close()``. Entry points (the
FastAPI app, the sweeper, management commands) build one ``Components``
and pass it down.
"""

from dataclasses import dataclass

import structlog

from catalogue.lookup import CatalogLookup, StaticCatalog
from inventory.ledger import InventoryLedger
from inventory.reservations import ReservationManager
from ordering.cart.memory_adapter import InMemoryCart
from ordering.cart.port import CartProvider
from ordering.checkout.idempotency import IdempotencyStore
from ordering.checkout.orchestrator import CheckoutOrchestrator
from ordering.utils.db import configure_database, setup_db
from payments.gateway import PaymentGateway, build_gateway
from shared.config import Settings
from shared.database import Database

logger = structlog.get_logger(__name__)


@dataclass
class Components:
    settings: Settings
    domain: object
    database: Database
    ledger: InventoryLedger
    reservations: ReservationManager
    idempotency: IdempotencyStore
    gateway: PaymentGateway
    cart: CartProvider
    catalog: CatalogLookup
    orchestrator: CheckoutOrchestrator

    def close(self) -> None:
        self.orchestrator.close()
        self.database.dispose()
        logger.info("Components closed")


def init_domain(settings: Settings):
    """Point the ordering domain at the settings database and initialize it once per process."""
    from ordering.domain import ordering

    configure_database(ordering, settings.database_url)
    ordering.init()
    return ordering


def build_components(
    settings: Settings | None = None,
    domain=None,
    database: Database | None = None,
    gateway: PaymentGateway | None = None,
    cart: CartProvider | None = None,
    catalog: CatalogLookup | None = None,
    create_schema: bool = True,
) -> Components:
    """Wire every component; collaborators may be overridden (tests, adapters)."""
    settings = settings or Settings.from_env()
    domain = domain if domain is not None else init_domain(settings)
    database = (database or Database(settings.database_url)).init()
    if create_schema:
        database.create_schema()
        setup_db(domain)

    ledger = InventoryLedger(database)
    reservations = ReservationManager(
        database,
        ledger,
        default_ttl_minutes=settings.reservation_ttl_minutes,
        retention_days=settings.reservation_retention_days,
        sweep_batch_size=settings.sweep_batch_size,
    )
    idempotency = IdempotencyStore(database)
    gateway = gateway or build_gateway(settings.payment_adapter)
    cart = cart or InMemoryCart()
    catalog = catalog or StaticCatalog()

    orchestrator = CheckoutOrchestrator(
        domain=domain,
        ledger=ledger,
        reservations=reservations,
        idempotency=idempotency,
        gateway=gateway,
        cart=cart,
        catalog=catalog,
        settings=settings,
    )
    logger.info("Components built", database=database.engine.dialect.name, payment_adapter=settings.payment_adapter)
    return Components(
        settings=settings,
        domain=domain,
        database=database,
        ledger=ledger,
        reservations=reservations,
        idempotency=idempotency,
        gateway=gateway,
        cart=cart,
        catalog=catalog,
        orchestrator=orchestrator,
    )
